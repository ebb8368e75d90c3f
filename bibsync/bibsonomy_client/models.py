"""Data models for BibSonomy API responses.

All models use dataclasses and are built from the JSON structures returned by
the BibSonomy REST API. Parsing is strict about the fields the sync engine
relies on (hashes, change date, documents) and lenient about everything else.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .errors import InvalidFormatError


def _names(entries: Any) -> List[str]:
    """Extract ``name`` values from a list of ``{"name": ...}`` objects."""
    if entries is None:
        return []
    if isinstance(entries, dict):
        entries = [entries]
    if not isinstance(entries, list):
        raise InvalidFormatError(f"Expected a list of named entries, got {type(entries).__name__}")
    return [str(entry["name"]) for entry in entries if isinstance(entry, dict) and "name" in entry]


@dataclass
class RemoteDocument:
    """A file attached to a BibSonomy post.

    Attributes:
        filename: Name of the uploaded file (used for matching local attachments)
        href: Absolute URL of the document; DELETE on it removes the document
        md5hash: Content hash reported by BibSonomy (informational only)
    """
    filename: str
    href: str
    md5hash: str = ""

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "RemoteDocument":
        """Build a RemoteDocument from a ``document`` JSON object.

        Raises:
            InvalidFormatError: If filename or href is missing
        """
        if not isinstance(data, dict) or "filename" not in data or "href" not in data:
            raise InvalidFormatError(f"Unexpected document format: {data!r}")
        return cls(
            filename=str(data["filename"]),
            href=str(data["href"]),
            md5hash=str(data.get("md5hash", "")),
        )


@dataclass
class RemotePost:
    """Remote-side representation of a synchronized record.

    The sync engine treats posts as read-mostly projections fetched by
    intrahash. Generated fields (hashes, dates, documents) are owned by
    BibSonomy.

    Attributes:
        user: Owner of the post
        groups: Visibility groups
        tags: Tag names
        bibtex: Raw BibTeX payload as returned by the API
        interhash: Content-derived identity hash
        intrahash: Unique identifier of this user's post (the resourcehash)
        changedate: Last-changed timestamp (ISO 8601) or None
        postingdate: Creation timestamp (ISO 8601) or None
        documents: Attached documents
        description: Optional free-text description

    Example:
        >>> post = RemotePost.from_api(response_json["post"])
        >>> post.intrahash
        'a3f1...'
    """
    user: str
    intrahash: str
    interhash: str
    groups: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    bibtex: Dict[str, Any] = field(default_factory=dict)
    changedate: Optional[str] = None
    postingdate: Optional[str] = None
    documents: List[RemoteDocument] = field(default_factory=list)
    description: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "RemotePost":
        """Build a RemotePost from the ``post`` object of an API response.

        Args:
            data: The ``post`` JSON object

        Returns:
            Parsed RemotePost

        Raises:
            InvalidFormatError: If the payload lacks a bibtex object or hashes
        """
        if not isinstance(data, dict):
            raise InvalidFormatError(f"Post must be an object, got {type(data).__name__}")

        bibtex = data.get("bibtex")
        if not isinstance(bibtex, dict):
            raise InvalidFormatError("Post has no bibtex object")

        intrahash = bibtex.get("intrahash")
        interhash = bibtex.get("interhash")
        if not intrahash or not interhash:
            raise InvalidFormatError("Post bibtex is missing interhash or intrahash")

        user = data.get("user")
        if isinstance(user, dict):
            user = user.get("name", "")

        documents_raw = (data.get("documents") or {}).get("document") or []
        if isinstance(documents_raw, dict):
            documents_raw = [documents_raw]

        return cls(
            user=str(user or ""),
            intrahash=str(intrahash),
            interhash=str(interhash),
            groups=_names(data.get("group")),
            tags=_names(data.get("tag")),
            bibtex=bibtex,
            changedate=data.get("changedate"),
            postingdate=data.get("postingdate"),
            documents=[RemoteDocument.from_api(doc) for doc in documents_raw],
            description=data.get("description"),
        )

    @property
    def document_filenames(self) -> List[str]:
        """Filenames of all attached documents."""
        return [doc.filename for doc in self.documents]


@dataclass
class PostResponse:
    """Response of a create or update request.

    BibSonomy does not echo the post back; it only returns the resourcehash
    (the new intrahash) and a status string.
    """
    resourcehash: str
    stat: str = "ok"

    @classmethod
    def from_api(cls, data: Any) -> "PostResponse":
        """Parse a create/update response body.

        Raises:
            InvalidFormatError: If the body has no resourcehash
        """
        if not isinstance(data, dict) or not data.get("resourcehash"):
            raise InvalidFormatError("Unexpected response format from BibSonomy API")
        return cls(resourcehash=str(data["resourcehash"]), stat=str(data.get("stat", "ok")))
