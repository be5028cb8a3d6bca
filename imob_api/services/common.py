"""
Helpers shared by the service modules.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Type, TypeVar

from imob_api.documents import Document, DocumentStore
from imob_api.errors import NotFoundError, ValidationError
from shared.firebase_constants import tenant_document, tenant_path
from shared.types import Tenant, record_from_document

DEFAULT_LIMIT = 50
MAX_LIMIT = 500

RecordT = TypeVar("RecordT")


@dataclass
class Pagination:
    limit: int = DEFAULT_LIMIT
    offset: int = 0
    order_by: str = "created_at"
    descending: bool = True

    def __post_init__(self):
        if self.limit <= 0:
            self.limit = DEFAULT_LIMIT
        self.limit = min(self.limit, MAX_LIMIT)
        self.offset = max(self.offset, 0)


def require(value, message: str):
    if value is None or value == "":
        raise ValidationError(message)
    return value


def validated(fn: Callable[[str], str], value: str) -> str:
    """Runs a shared.validators function, turning ValueError into ValidationError."""
    try:
        return fn(value)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc


def parse_enum(enum_cls, value, field_name: str):
    try:
        return enum_cls(value)
    except ValueError as exc:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(f"invalid {field_name}: must be one of {allowed}") from exc


def to_record(cls: Type[RecordT], doc: Document) -> RecordT:
    return record_from_document(cls, doc.id, doc.data)


def get_tenant(store: DocumentStore, tenant_id: str) -> Tenant:
    require(tenant_id, "tenant_id is required")
    doc = store.get(tenant_path(tenant_id))
    if not doc:
        raise NotFoundError("tenant not found")
    return to_record(Tenant, doc)


def get_tenant_record(
    store: DocumentStore,
    cls: Type[RecordT],
    tenant_id: str,
    collection: str,
    doc_id: str,
    not_found: str,
) -> RecordT:
    require(doc_id, f"{collection} id is required")
    doc = store.get(tenant_document(tenant_id, collection, doc_id))
    if not doc:
        raise NotFoundError(not_found)
    return to_record(cls, doc)


def clean_updates(updates: dict, allowed: set[str]) -> dict:
    """Drops keys callers are not allowed to change (ids, timestamps, flags)."""
    return {k: v for k, v in updates.items() if k in allowed and v is not None}
