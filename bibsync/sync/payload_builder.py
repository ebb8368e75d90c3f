"""Build BibSonomy post payloads from local records.

Records already carry their fields in BibTeX vocabulary, so the payload is a
direct projection: fields are copied, creators are joined into BibTeX name
lists and tags are normalized.
"""

import re
import unicodedata
from typing import Any, Dict, List

from bibsync.library.models import Creator, RegularRecord

YEAR_PATTERN = re.compile(r'\b(\d{4})\b')

# Fields set by the builder itself; record fields with these names are ignored
RESERVED_FIELDS = {"bibtexKey", "entrytype", "author", "editor", "intrahash", "interhash", "privnote"}


def normalize_tag(tag: str) -> str:
    """BibSonomy tags cannot contain whitespace; replace each whitespace character with ``_``."""
    return re.sub(r'\s', '_', tag.strip())


def _ascii(text: str) -> str:
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(c for c in decomposed if not unicodedata.combining(c))


def _names(creators: List[Creator]) -> str:
    return " and ".join(c.display_name for c in creators)


def extract_year(record: RegularRecord) -> str:
    """Year from the ``year`` field, else the first 4-digit number in ``date``."""
    year = record.fields.get("year", "").strip()
    if year:
        return year
    match = YEAR_PATTERN.search(record.fields.get("date", ""))
    return match.group(1) if match else ""


def generate_bibtex_key(record: RegularRecord) -> str:
    """Citation key of the record, or ``<LastName><Year><FirstTitleWord>``.

    Example:
        >>> generate_bibtex_key(RegularRecord("R1", fields={"title": "Dune Messiah", "year": "1969"},
        ...                                   creators=[Creator("Herbért", "Frank")]))
        'Herbert1969Dune'
    """
    if record.citation_key:
        return record.citation_key

    authors = [c for c in record.creators if c.creator_type == "author"] or record.creators
    last_name = _ascii(authors[0].last_name) if authors and authors[0].last_name else "UnknownAuthor"
    year = extract_year(record) or "NoYear"
    title_words = record.title.split()
    first_word = title_words[0] if title_words else "Untitled"
    return f"{last_name}{year}{first_word}"


def build_post_payload(record: RegularRecord, user: str, group: str, post_tag: str) -> Dict[str, Any]:
    """Build the ``post`` object for create and update requests.

    Args:
        record: The local record
        user: BibSonomy user name owning the post
        group: Visibility group
        post_tag: Tag every synchronized post carries

    Returns:
        Dict ready to be sent as ``{"post": payload}``
    """
    tags = [normalize_tag(t) for t in sorted(record.tags) if t.strip()]
    if post_tag not in tags:
        tags.append(post_tag)

    bibtex: Dict[str, Any] = {
        k: v for k, v in record.fields.items()
        if k not in RESERVED_FIELDS and v not in (None, "")
    }
    bibtex["bibtexKey"] = generate_bibtex_key(record)
    bibtex["entrytype"] = record.entry_type
    bibtex["title"] = record.title

    year = extract_year(record)
    if year:
        bibtex["year"] = year

    authors = [c for c in record.creators if c.creator_type == "author"]
    editors = [c for c in record.creators if c.creator_type == "editor"]
    if authors:
        bibtex["author"] = _names(authors)
    if editors:
        bibtex["editor"] = _names(editors)

    bibtex["privnote"] = f"bibsync record: {record.record_id}"

    return {
        "user": {"name": user},
        "group": [{"name": group}],
        "tag": [{"name": t} for t in tags],
        "bibtex": bibtex,
    }


def share_url(base_url: str, interhash: str, user: str) -> str:
    """Public URL of a user's post."""
    return f"{base_url.rstrip('/')}/bibtex/{interhash}/{user}"
