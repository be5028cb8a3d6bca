"""
Property owners. Contact data is personal data under LGPD: it can be revoked
and anonymized, after which the owner is no longer readable.
"""

from __future__ import annotations

import logging
from typing import Optional

from imob_api.documents import DocumentStore, utc_now
from imob_api.errors import NotFoundError, ValidationError
from imob_api.services.activity_log import record_activity
from imob_api.services.common import (
    Pagination,
    clean_updates,
    get_tenant,
    get_tenant_record,
    parse_enum,
    to_record,
    validated,
)
from shared import validators
from shared.firebase_constants import OWNERS_COLLECTION, tenant_collection, tenant_document
from shared.types import (
    ActorType,
    AnonymizationReason,
    DocumentType,
    Owner,
    OwnerStatus,
)

logger = logging.getLogger(__name__)

ANONYMIZED_NAME = "[ANONYMIZED]"
EDITABLE_FIELDS = {
    "name",
    "email",
    "phone",
    "document",
    "document_type",
    "consent_given",
    "consent_text",
    "consent_origin",
}
STATUS_FIELDS = ("name", "email", "phone", "document")


def _owners_path(tenant_id: str) -> str:
    return tenant_collection(tenant_id, OWNERS_COLLECTION)


def owner_status(data: dict) -> OwnerStatus:
    """Completeness of the contact data: nothing, everything including consent, or some."""
    filled = [bool((data.get(key) or "").strip()) for key in STATUS_FIELDS]
    filled.append(bool(data.get("consent_given")))
    if not any(filled):
        return OwnerStatus.INCOMPLETE
    if all(filled):
        return OwnerStatus.VERIFIED
    return OwnerStatus.PARTIAL


def _normalize(data: dict) -> None:
    if data.get("email"):
        data["email"] = validated(validators.validate_email, data["email"])
    if data.get("phone"):
        data["phone"] = validated(validators.validate_phone, data["phone"])
    if data.get("document"):
        document_type = parse_enum(
            DocumentType,
            data.get("document_type")
            or validators.detect_document_type(data["document"])
            or DocumentType.CPF,
            "document_type",
        ).value
        data["document"] = validated(
            lambda value: validators.validate_document(value, document_type), data["document"]
        )
        data["document_type"] = document_type
    elif data.get("document_type"):
        data["document_type"] = parse_enum(DocumentType, data["document_type"], "document_type").value


def create_owner(
    store: DocumentStore, tenant_id: str, data: dict, *, actor_id: str = ""
) -> Owner:
    get_tenant(store, tenant_id)
    data = clean_updates(data, EDITABLE_FIELDS)
    _normalize(data)
    now = utc_now()
    if data.get("consent_given"):
        data.setdefault("consent_date", now)
    data.update(
        {
            "tenant_id": tenant_id,
            "owner_status": owner_status(data).value,
            "consent_revoked": False,
            "is_anonymized": False,
            "created_at": now,
            "updated_at": now,
        }
    )
    doc = store.create(_owners_path(tenant_id), data)
    record_activity(
        store,
        tenant_id,
        "owner_created",
        actor_type=ActorType.USER if actor_id else ActorType.SYSTEM,
        actor_id=actor_id,
        metadata={"owner_id": doc.id, "owner_status": data["owner_status"]},
    )
    return to_record(Owner, doc)


def _load_owner(store: DocumentStore, tenant_id: str, owner_id: str) -> Owner:
    return get_tenant_record(
        store, Owner, tenant_id, OWNERS_COLLECTION, owner_id, "owner not found"
    )


def get_owner(store: DocumentStore, tenant_id: str, owner_id: str) -> Owner:
    owner = _load_owner(store, tenant_id, owner_id)
    if owner.is_anonymized:
        raise NotFoundError("owner not found")
    return owner


def update_owner(
    store: DocumentStore, tenant_id: str, owner_id: str, updates: dict, *, actor_id: str = ""
) -> Owner:
    owner = get_owner(store, tenant_id, owner_id)
    updates = clean_updates(updates, EDITABLE_FIELDS)
    _normalize(updates)

    merged = {key: getattr(owner, key) for key in STATUS_FIELDS}
    merged["consent_given"] = owner.consent_given
    merged.update(updates)
    updates["owner_status"] = owner_status(merged).value
    if updates.get("consent_given") and not owner.consent_given:
        updates["consent_date"] = utc_now()
    updates["updated_at"] = utc_now()

    store.update(tenant_document(tenant_id, OWNERS_COLLECTION, owner_id), updates)
    record_activity(
        store,
        tenant_id,
        "owner_updated",
        actor_type=ActorType.USER if actor_id else ActorType.SYSTEM,
        actor_id=actor_id,
        metadata={"owner_id": owner_id},
    )
    return get_owner(store, tenant_id, owner_id)


def delete_owner(store: DocumentStore, tenant_id: str, owner_id: str, *, actor_id: str = "") -> None:
    _load_owner(store, tenant_id, owner_id)
    store.delete(tenant_document(tenant_id, OWNERS_COLLECTION, owner_id))
    record_activity(
        store,
        tenant_id,
        "owner_deleted",
        actor_type=ActorType.USER if actor_id else ActorType.SYSTEM,
        actor_id=actor_id,
        metadata={"owner_id": owner_id},
    )


def list_owners(
    store: DocumentStore,
    tenant_id: str,
    *,
    status: Optional[str] = None,
    page: Optional[Pagination] = None,
) -> list[Owner]:
    page = page or Pagination()
    filters = [("is_anonymized", "==", False)]
    if status:
        filters.append(("owner_status", "==", parse_enum(OwnerStatus, status, "owner_status").value))
    docs = store.query(
        _owners_path(tenant_id),
        filters,
        order_by=page.order_by,
        descending=page.descending,
        limit=page.limit,
        offset=page.offset,
    )
    return [to_record(Owner, doc) for doc in docs]


def find_owner_by_contact(
    store: DocumentStore, tenant_id: str, *, phone: str = "", email: str = ""
) -> Optional[Owner]:
    """Matches an existing owner by normalized phone first, then email."""
    for field_name, value in (("phone", phone), ("email", email)):
        if not value:
            continue
        docs = store.query(
            _owners_path(tenant_id),
            [(field_name, "==", value), ("is_anonymized", "==", False)],
            limit=1,
        )
        if docs:
            return to_record(Owner, docs[0])
    return None


def revoke_consent(store: DocumentStore, tenant_id: str, owner_id: str) -> Owner:
    owner = get_owner(store, tenant_id, owner_id)
    now = utc_now()
    merged = {key: getattr(owner, key) for key in STATUS_FIELDS}
    store.update(
        tenant_document(tenant_id, OWNERS_COLLECTION, owner_id),
        {
            "consent_given": False,
            "consent_revoked": True,
            "revoked_at": now,
            "owner_status": owner_status(merged).value,
            "updated_at": now,
        },
    )
    record_activity(store, tenant_id, "owner_consent_revoked", metadata={"owner_id": owner_id})
    return _load_owner(store, tenant_id, owner_id)


def anonymize_owner(
    store: DocumentStore, tenant_id: str, owner_id: str, reason: str, *, actor_id: str = ""
) -> Owner:
    reason = parse_enum(AnonymizationReason, reason, "anonymization reason").value
    owner = _load_owner(store, tenant_id, owner_id)
    if owner.is_anonymized:
        raise ValidationError("owner is already anonymized")
    now = utc_now()
    store.update(
        tenant_document(tenant_id, OWNERS_COLLECTION, owner_id),
        {
            "name": ANONYMIZED_NAME,
            "email": "",
            "phone": "",
            "document": "",
            "consent_given": False,
            "consent_revoked": True,
            "revoked_at": owner.revoked_at or now,
            "is_anonymized": True,
            "anonymized_at": now,
            "anonymization_reason": reason,
            "owner_status": OwnerStatus.PARTIAL.value,
            "updated_at": now,
        },
    )
    record_activity(
        store,
        tenant_id,
        "owner_anonymized",
        actor_type=ActorType.USER if actor_id else ActorType.SYSTEM,
        actor_id=actor_id,
        metadata={"owner_id": owner_id, "reason": reason},
    )
    return _load_owner(store, tenant_id, owner_id)
