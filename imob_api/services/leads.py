"""
Leads: contact requests about a property, with LGPD consent tracking.
"""

from __future__ import annotations

import logging
from typing import Optional

from imob_api.documents import DocumentStore, utc_now
from imob_api.errors import ValidationError
from imob_api.services.activity_log import record_activity
from imob_api.services.common import (
    Pagination,
    clean_updates,
    get_tenant,
    get_tenant_record,
    parse_enum,
    require,
    to_record,
    validated,
)
from shared import validators
from shared.firebase_constants import (
    LEADS_COLLECTION,
    PROPERTIES_COLLECTION,
    tenant_collection,
    tenant_document,
)
from shared.types import ActorType, AnonymizationReason, Lead, LeadChannel, LeadStatus

logger = logging.getLogger(__name__)

ANONYMIZED_NAME = "[ANONYMIZED]"
DEFAULT_CONSENT_TEXT = (
    "Autorizo o contato por parte da imobiliária para tratar sobre este imóvel, "
    "conforme a Lei Geral de Proteção de Dados (LGPD)."
)

CREATE_FIELDS = {
    "property_id",
    "name",
    "email",
    "phone",
    "message",
    "channel",
    "utm_source",
    "utm_campaign",
    "utm_medium",
    "referrer",
    "consent_given",
    "consent_text",
    "consent_ip",
}
UPDATE_FIELDS = {"name", "email", "phone", "message", "status"}


def _leads_path(tenant_id: str) -> str:
    return tenant_collection(tenant_id, LEADS_COLLECTION)


def _normalize_contacts(data: dict) -> None:
    if data.get("email"):
        data["email"] = validated(validators.validate_email, data["email"])
    if data.get("phone"):
        # Public channels may carry placeholders such as "WhatsApp"; keep them as is.
        digits = validators.only_digits(data["phone"])
        if digits:
            data["phone"] = validated(validators.validate_phone, data["phone"])


def create_lead(
    store: DocumentStore,
    tenant_id: str,
    data: dict,
    *,
    actor_type: ActorType = ActorType.SYSTEM,
    actor_id: str = "",
) -> Lead:
    get_tenant(store, tenant_id)
    data = clean_updates(data, CREATE_FIELDS)
    property_id = require(data.get("property_id"), "property_id is required")
    if not store.get(tenant_document(tenant_id, PROPERTIES_COLLECTION, property_id)):
        raise ValidationError("property not found in this tenant")
    if not data.get("consent_given"):
        raise ValidationError("consent_given must be true (LGPD compliance)")

    channel = parse_enum(LeadChannel, data.get("channel") or LeadChannel.FORM, "channel")
    _normalize_contacts(data)

    now = utc_now()
    data.update(
        {
            "tenant_id": tenant_id,
            "channel": channel.value,
            "status": LeadStatus.NEW.value,
            "consent_text": data.get("consent_text") or DEFAULT_CONSENT_TEXT,
            "consent_date": now,
            "consent_revoked": False,
            "is_anonymized": False,
            "created_at": now,
            "updated_at": now,
        }
    )
    doc = store.create(_leads_path(tenant_id), data)
    record_activity(
        store,
        tenant_id,
        f"lead_created_{channel.value}",
        actor_type=actor_type,
        actor_id=actor_id,
        metadata={"lead_id": doc.id, "property_id": property_id, "channel": channel.value},
    )
    return to_record(Lead, doc)


def get_lead(store: DocumentStore, tenant_id: str, lead_id: str) -> Lead:
    return get_tenant_record(store, Lead, tenant_id, LEADS_COLLECTION, lead_id, "lead not found")


def update_lead(
    store: DocumentStore, tenant_id: str, lead_id: str, updates: dict, *, actor_id: str = ""
) -> Lead:
    lead = get_lead(store, tenant_id, lead_id)
    if lead.is_anonymized:
        raise ValidationError("anonymized leads cannot be updated")
    updates = clean_updates(updates, UPDATE_FIELDS)
    if "status" in updates:
        updates["status"] = parse_enum(LeadStatus, updates["status"], "status").value
    _normalize_contacts(updates)
    updates["updated_at"] = utc_now()
    store.update(tenant_document(tenant_id, LEADS_COLLECTION, lead_id), updates)

    metadata = {"lead_id": lead_id}
    if "status" in updates and updates["status"] != lead.status:
        metadata.update({"from_status": str(lead.status), "to_status": updates["status"]})
    record_activity(
        store,
        tenant_id,
        "lead_status_changed" if "to_status" in metadata else "lead_updated",
        actor_type=ActorType.USER if actor_id else ActorType.SYSTEM,
        actor_id=actor_id,
        metadata=metadata,
    )
    return get_lead(store, tenant_id, lead_id)


def delete_lead(store: DocumentStore, tenant_id: str, lead_id: str, *, actor_id: str = "") -> None:
    get_lead(store, tenant_id, lead_id)
    store.delete(tenant_document(tenant_id, LEADS_COLLECTION, lead_id))
    record_activity(
        store,
        tenant_id,
        "lead_deleted",
        actor_type=ActorType.USER if actor_id else ActorType.SYSTEM,
        actor_id=actor_id,
        metadata={"lead_id": lead_id},
    )


def list_leads(
    store: DocumentStore,
    tenant_id: str,
    *,
    property_id: Optional[str] = None,
    status: Optional[str] = None,
    channel: Optional[str] = None,
    page: Optional[Pagination] = None,
) -> list[Lead]:
    page = page or Pagination()
    filters = []
    if property_id:
        filters.append(("property_id", "==", property_id))
    if status:
        filters.append(("status", "==", parse_enum(LeadStatus, status, "status").value))
    if channel:
        filters.append(("channel", "==", parse_enum(LeadChannel, channel, "channel").value))
    docs = store.query(
        _leads_path(tenant_id),
        filters,
        order_by=page.order_by,
        descending=page.descending,
        limit=page.limit,
        offset=page.offset,
    )
    return [to_record(Lead, doc) for doc in docs]


def get_lead_by_email(store: DocumentStore, tenant_id: str, email: str) -> Optional[Lead]:
    email = validated(validators.validate_email, email)
    docs = store.query(_leads_path(tenant_id), [("email", "==", email)], limit=1)
    return to_record(Lead, docs[0]) if docs else None


def get_lead_by_phone(store: DocumentStore, tenant_id: str, phone: str) -> Optional[Lead]:
    phone = validated(validators.validate_phone, phone)
    docs = store.query(_leads_path(tenant_id), [("phone", "==", phone)], limit=1)
    return to_record(Lead, docs[0]) if docs else None


def list_revoked_consent(store: DocumentStore, tenant_id: str) -> list[Lead]:
    docs = store.query(_leads_path(tenant_id), [("consent_revoked", "==", True)])
    return [to_record(Lead, doc) for doc in docs]


def revoke_consent(store: DocumentStore, tenant_id: str, lead_id: str) -> Lead:
    get_lead(store, tenant_id, lead_id)
    now = utc_now()
    store.update(
        tenant_document(tenant_id, LEADS_COLLECTION, lead_id),
        {"consent_revoked": True, "revoked_at": now, "updated_at": now},
    )
    record_activity(store, tenant_id, "lead_consent_revoked", metadata={"lead_id": lead_id})
    return get_lead(store, tenant_id, lead_id)


def anonymize_lead(
    store: DocumentStore, tenant_id: str, lead_id: str, reason: str, *, actor_id: str = ""
) -> Lead:
    reason = parse_enum(AnonymizationReason, reason, "anonymization reason").value
    lead = get_lead(store, tenant_id, lead_id)
    if lead.is_anonymized:
        raise ValidationError("lead is already anonymized")
    now = utc_now()
    store.update(
        tenant_document(tenant_id, LEADS_COLLECTION, lead_id),
        {
            "name": ANONYMIZED_NAME,
            "email": "",
            "phone": "",
            "message": "",
            "consent_ip": "",
            "consent_revoked": True,
            "revoked_at": lead.revoked_at or now,
            "is_anonymized": True,
            "anonymized_at": now,
            "anonymization_reason": reason,
            "updated_at": now,
        },
    )
    record_activity(
        store,
        tenant_id,
        "lead_anonymized",
        actor_type=ActorType.USER if actor_id else ActorType.SYSTEM,
        actor_id=actor_id,
        metadata={"lead_id": lead_id, "reason": reason},
    )
    return get_lead(store, tenant_id, lead_id)
