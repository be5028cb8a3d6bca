"""
Document store abstraction for Firestore and an in-memory test implementation.

Paths follow Firestore conventions: collection paths have an odd number of
segments (`tenants/t1/leads`), document paths an even number
(`tenants/t1/leads/abc`).
"""

from __future__ import annotations

import copy
import secrets
import string
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional, Protocol, Sequence

from firebase_admin import firestore
from google.api_core import exceptions as google_exceptions
from google.cloud.firestore_v1.base_query import FieldFilter

from imob_api.errors import ConflictError, NotFoundError
from shared.firebase_constants import tenant_id_from_path

Filter = tuple[str, str, Any]

_ID_ALPHABET = string.ascii_letters + string.digits


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Document:
    id: str
    path: str
    data: dict

    @property
    def tenant_id(self) -> str:
        return tenant_id_from_path(self.path)

    @property
    def parent_path(self) -> str:
        return self.path.rsplit("/", 1)[0]


class DocumentStore(Protocol):
    """Operations the services need from the document database."""

    def new_id(self) -> str:
        ...

    def get(self, path: str) -> Optional[Document]:
        ...

    def create(
        self, collection_path: str, data: dict, doc_id: Optional[str] = None
    ) -> Document:
        ...

    def set(self, path: str, data: dict, merge: bool = False) -> None:
        ...

    def update(self, path: str, updates: dict) -> None:
        ...

    def delete(self, path: str) -> None:
        ...

    def query(
        self,
        collection_path: str,
        filters: Sequence[Filter] = (),
        *,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[Document]:
        ...

    def collection_group(
        self,
        collection_id: str,
        filters: Sequence[Filter] = (),
        *,
        limit: Optional[int] = None,
    ) -> list[Document]:
        ...


def _matches(data: dict, field_path: str, op: str, value: Any) -> bool:
    current: Any = data
    for part in field_path.split("."):
        if not isinstance(current, dict) or part not in current:
            current = None
            break
        current = current[part]

    if op == "==":
        return current == value
    if op == "!=":
        return current is not None and current != value
    if op == "in":
        return current in value
    if op == "not-in":
        return current is not None and current not in value
    if op == "array-contains":
        return isinstance(current, list) and value in current
    if current is None:
        return False
    if op == "<":
        return current < value
    if op == "<=":
        return current <= value
    if op == ">":
        return current > value
    if op == ">=":
        return current >= value
    raise ValueError(f"Unsupported filter operator: {op}")


def _sort_key(field_path: str):
    def key(doc: Document):
        value = doc.data.get(field_path)
        return (value is None, value if value is not None else 0)

    return key


class InMemoryDocumentStore:
    """Dictionary-backed store with Firestore-like semantics for tests and dev."""

    def __init__(self):
        self.documents: Dict[str, dict] = {}

    def reset(self) -> None:
        """Clear all stored documents (useful in tests)."""
        self.documents.clear()

    def new_id(self) -> str:
        return "".join(secrets.choice(_ID_ALPHABET) for _ in range(20))

    def get(self, path: str) -> Optional[Document]:
        data = self.documents.get(path)
        if data is None:
            return None
        return Document(id=path.rsplit("/", 1)[-1], path=path, data=copy.deepcopy(data))

    def create(
        self, collection_path: str, data: dict, doc_id: Optional[str] = None
    ) -> Document:
        doc_id = doc_id or self.new_id()
        path = f"{collection_path}/{doc_id}"
        if path in self.documents:
            raise ConflictError("document already exists")
        self.documents[path] = copy.deepcopy(data)
        return Document(id=doc_id, path=path, data=copy.deepcopy(data))

    def set(self, path: str, data: dict, merge: bool = False) -> None:
        if merge and path in self.documents:
            self.documents[path].update(copy.deepcopy(data))
        else:
            self.documents[path] = copy.deepcopy(data)

    def update(self, path: str, updates: dict) -> None:
        if path not in self.documents:
            raise NotFoundError("document not found")
        self.documents[path].update(copy.deepcopy(updates))

    def delete(self, path: str) -> None:
        self.documents.pop(path, None)

    def _select(self, predicate, filters: Sequence[Filter]) -> list[Document]:
        results = []
        for path, data in self.documents.items():
            parent, _, doc_id = path.rpartition("/")
            if not predicate(parent):
                continue
            if all(_matches(data, f, op, v) for f, op, v in filters):
                results.append(Document(id=doc_id, path=path, data=copy.deepcopy(data)))
        return results

    def query(
        self,
        collection_path: str,
        filters: Sequence[Filter] = (),
        *,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[Document]:
        results = self._select(lambda parent: parent == collection_path, filters)
        if order_by:
            results.sort(key=_sort_key(order_by), reverse=descending)
        results = results[offset:]
        if limit is not None:
            results = results[:limit]
        return results

    def collection_group(
        self,
        collection_id: str,
        filters: Sequence[Filter] = (),
        *,
        limit: Optional[int] = None,
    ) -> list[Document]:
        results = self._select(
            lambda parent: parent.rsplit("/", 1)[-1] == collection_id, filters
        )
        if limit is not None:
            results = results[:limit]
        return results


class FirestoreDocumentStore:
    """Firestore-backed implementation using the Firebase Admin SDK."""

    def __init__(self, app=None, database_id: Optional[str] = None):
        if database_id:
            self.client = firestore.client(app=app, database_id=database_id)
        else:
            self.client = firestore.client(app=app)

    def _to_document(self, snapshot) -> Document:
        return Document(
            id=snapshot.id,
            path=snapshot.reference.path,
            data=snapshot.to_dict() or {},
        )

    def _apply_filters(self, query, filters: Iterable[Filter]):
        for field_path, op, value in filters:
            query = query.where(filter=FieldFilter(field_path, op, value))
        return query

    def new_id(self) -> str:
        return self.client.collection("_ids").document().id

    def get(self, path: str) -> Optional[Document]:
        snapshot = self.client.document(path).get()
        if not snapshot.exists:
            return None
        return self._to_document(snapshot)

    def create(
        self, collection_path: str, data: dict, doc_id: Optional[str] = None
    ) -> Document:
        collection = self.client.collection(collection_path)
        ref = collection.document(doc_id) if doc_id else collection.document()
        try:
            ref.create(data)
        except google_exceptions.AlreadyExists as exc:
            raise ConflictError("document already exists") from exc
        return Document(id=ref.id, path=ref.path, data=dict(data))

    def set(self, path: str, data: dict, merge: bool = False) -> None:
        self.client.document(path).set(data, merge=merge)

    def update(self, path: str, updates: dict) -> None:
        try:
            self.client.document(path).update(updates)
        except google_exceptions.NotFound as exc:
            raise NotFoundError("document not found") from exc

    def delete(self, path: str) -> None:
        self.client.document(path).delete()

    def query(
        self,
        collection_path: str,
        filters: Sequence[Filter] = (),
        *,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[Document]:
        query = self._apply_filters(self.client.collection(collection_path), filters)
        if order_by:
            direction = (
                firestore.Query.DESCENDING if descending else firestore.Query.ASCENDING
            )
            query = query.order_by(order_by, direction=direction)
        if offset:
            query = query.offset(offset)
        if limit is not None:
            query = query.limit(limit)
        return [self._to_document(snapshot) for snapshot in query.stream()]

    def collection_group(
        self,
        collection_id: str,
        filters: Sequence[Filter] = (),
        *,
        limit: Optional[int] = None,
    ) -> list[Document]:
        query = self._apply_filters(self.client.collection_group(collection_id), filters)
        if limit is not None:
            query = query.limit(limit)
        return [self._to_document(snapshot) for snapshot in query.stream()]
