"""In-memory stand-in for the BibSonomy API wrapper.

Implements the APIWrapper methods the sync engine calls. Intrahashes are
derived from the post content like on the real service, so an update that
changes the content moves the post to a new intrahash. Every call is recorded
in ``calls`` and single failures can be scheduled with ``fail``.
"""

import copy
import hashlib
import json
import threading
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from bibsync.bibsonomy_client.errors import DuplicateItemError, PostNotFoundError
from bibsync.bibsonomy_client.models import PostResponse, RemoteDocument, RemotePost
from bibsync.timestamps import format_timestamp, utc_now


def _md5(value: Any) -> str:
    return hashlib.md5(json.dumps(value, sort_keys=True).encode("utf-8")).hexdigest()


class FakeBibSonomy:
    """Fake APIWrapper backed by a dict of posts keyed by intrahash."""

    def __init__(self, user: str = "alice", base_url: str = "https://bibsonomy.test"):
        self.user = user
        self.base_url = base_url
        self.posts: Dict[str, RemotePost] = {}
        self.uploads: List[Tuple[str, str, bytes]] = []
        self.calls: List[Tuple[str, tuple]] = []
        self.groups = ["public", "kde"]
        self._failures: Dict[str, List[Exception]] = {}
        self._lock = threading.Lock()

    # Test controls

    def fail(self, operation: str, error: Exception, times: int = 1) -> None:
        """Raise error from the next ``times`` calls of operation."""
        self._failures.setdefault(operation, []).extend([error] * times)

    def _record(self, operation: str, *args: Any) -> None:
        with self._lock:
            self.calls.append((operation, args))
            pending = self._failures.get(operation)
            error = pending.pop(0) if pending else None
        if error is not None:
            raise error

    def call_names(self) -> List[str]:
        return [name for name, _ in self.calls]

    def count(self, operation: str) -> int:
        return self.call_names().count(operation)

    def edit_remotely(self, intrahash: str, changedate: datetime) -> None:
        """Simulate an edit on the BibSonomy website."""
        self.posts[intrahash].changedate = format_timestamp(changedate)

    def only_post(self) -> RemotePost:
        assert len(self.posts) == 1, f"expected one post, found {len(self.posts)}"
        return next(iter(self.posts.values()))

    # APIWrapper interface

    def _hashes(self, payload: Dict[str, Any]) -> Tuple[str, str]:
        bibtex = payload["bibtex"]
        interhash = _md5([bibtex.get("title"), bibtex.get("author"), bibtex.get("year")])
        intrahash = _md5([self.user, {k: v for k, v in bibtex.items() if k != "privnote"}])
        return interhash, intrahash

    def _build(self, payload: Dict[str, Any], documents: Optional[List[RemoteDocument]] = None,
               postingdate: Optional[str] = None) -> RemotePost:
        interhash, intrahash = self._hashes(payload)
        now = format_timestamp(utc_now())
        bibtex = dict(payload["bibtex"], interhash=interhash, intrahash=intrahash)
        return RemotePost(
            user=self.user,
            intrahash=intrahash,
            interhash=interhash,
            groups=[g["name"] for g in payload.get("group", [])],
            tags=[t["name"] for t in payload.get("tag", [])],
            bibtex=bibtex,
            changedate=now,
            postingdate=postingdate or now,
            documents=documents or [],
        )

    def create_post(self, payload: Dict[str, Any]) -> PostResponse:
        self._record("create_post", payload)
        post = self._build(payload)
        if post.intrahash in self.posts:
            raise DuplicateItemError("Could not create new BibTex: This BibTex already exists in your collection")
        self.posts[post.intrahash] = post
        return PostResponse(resourcehash=post.intrahash)

    def get_post(self, intrahash: str) -> RemotePost:
        self._record("get_post", intrahash)
        if intrahash not in self.posts:
            raise PostNotFoundError(intrahash)
        return copy.deepcopy(self.posts[intrahash])

    def update_post(self, intrahash: str, payload: Dict[str, Any]) -> PostResponse:
        self._record("update_post", intrahash, payload)
        if intrahash not in self.posts:
            raise PostNotFoundError(intrahash)
        old = self.posts[intrahash]
        post = self._build(payload, documents=old.documents, postingdate=old.postingdate)
        if post.intrahash != intrahash and post.intrahash in self.posts:
            raise DuplicateItemError("Duplicate post detected")
        del self.posts[intrahash]
        self.posts[post.intrahash] = post
        return PostResponse(resourcehash=post.intrahash)

    def delete_post(self, intrahash: str) -> None:
        self._record("delete_post", intrahash)
        if intrahash not in self.posts:
            raise PostNotFoundError(intrahash)
        del self.posts[intrahash]

    def upload_attachment(self, intrahash: str, data: bytes, filename: str) -> None:
        self._record("upload_attachment", intrahash, filename)
        if intrahash not in self.posts:
            raise PostNotFoundError(intrahash)
        href = f"{self.base_url}/api/users/{self.user}/posts/{intrahash}/documents/{filename}"
        with self._lock:
            self.posts[intrahash].documents.append(RemoteDocument(filename=filename, href=href))
            self.uploads.append((intrahash, filename, data))

    def delete_attachment(self, document_url: str) -> None:
        self._record("delete_attachment", document_url)
        with self._lock:
            for post in self.posts.values():
                post.documents = [d for d in post.documents if d.href != document_url]

    def get_user_groups(self) -> List[str]:
        self._record("get_user_groups")
        return list(self.groups)

    def close(self) -> None:
        pass
