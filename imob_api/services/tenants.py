"""
Tenant lifecycle: creation with slug and document validation, updates, activation.
"""

from __future__ import annotations

import logging
from typing import Optional

from imob_api.documents import DocumentStore, utc_now
from imob_api.errors import ConflictError, NotFoundError, ValidationError
from imob_api.services.activity_log import record_activity
from imob_api.services.common import get_tenant, parse_enum, require, to_record, validated
from shared import validators
from shared.firebase_constants import TENANTS_COLLECTION, tenant_path
from shared.string_utils import generate_slug, normalize_slug
from shared.types import ActorType, BusinessType, Tenant, TenantType

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = {
    "name",
    "slug",
    "email",
    "phone",
    "document",
    "document_type",
    "business_type",
    "tenant_type",
    "creci",
    "street",
    "number",
    "complement",
    "neighborhood",
    "city",
    "state",
    "zip_code",
    "country",
    "settings",
}


def _slug_taken(store: DocumentStore, slug: str, exclude_id: Optional[str] = None) -> bool:
    for doc in store.query(TENANTS_COLLECTION, [("slug", "==", slug)], limit=2):
        if doc.id != exclude_id:
            return True
    return False


def _normalize_document(data: dict) -> None:
    document = data.get("document")
    if not document:
        return
    document_type = data.get("document_type") or (
        "cnpj" if len(validators.only_digits(document)) == 14 else "cpf"
    )
    data["document"] = validated(
        lambda value: validators.validate_document(value, document_type), document
    )
    data["document_type"] = document_type


def _normalize_contact_fields(data: dict) -> None:
    if data.get("creci"):
        data["creci"] = validated(validators.validate_creci, data["creci"])
    if data.get("email"):
        data["email"] = validated(validators.validate_email, data["email"])
    if data.get("phone"):
        data["phone"] = validated(validators.validate_phone, data["phone"])
    if data.get("business_type"):
        data["business_type"] = parse_enum(BusinessType, data["business_type"], "business_type").value
    if data.get("tenant_type"):
        data["tenant_type"] = parse_enum(TenantType, data["tenant_type"], "tenant_type").value
    _normalize_document(data)


def create_tenant(store: DocumentStore, data: dict, *, actor_id: str = "") -> Tenant:
    data = {k: v for k, v in data.items() if k in EDITABLE_FIELDS and v is not None}
    name = require((data.get("name") or "").strip(), "name is required")
    data["name"] = name

    slug = normalize_slug(data["slug"]) if data.get("slug") else generate_slug(name)
    if not slug:
        raise ValidationError("slug could not be generated from name")
    if _slug_taken(store, slug):
        raise ConflictError(f"slug '{slug}' is already in use")
    data["slug"] = slug

    _normalize_contact_fields(data)

    now = utc_now()
    data.setdefault("country", "BR")
    data.setdefault("settings", {})
    data.update(
        {
            "is_active": True,
            "is_platform_admin": False,
            "subscription_plan": "full",
            "subscription_status": "active",
            "subscription_started_at": now,
            "created_at": now,
            "updated_at": now,
        }
    )
    doc = store.create(TENANTS_COLLECTION, data)
    logger.info("Created tenant %s (%s)", doc.id, slug)
    record_activity(
        store,
        doc.id,
        "tenant_created",
        actor_type=ActorType.USER if actor_id else ActorType.SYSTEM,
        actor_id=actor_id,
        metadata={"tenant_name": name, "slug": slug},
    )
    return to_record(Tenant, doc)


def get_tenant_by_slug(store: DocumentStore, slug: str) -> Tenant:
    docs = store.query(TENANTS_COLLECTION, [("slug", "==", normalize_slug(slug))], limit=1)
    if not docs:
        raise NotFoundError("tenant not found")
    return to_record(Tenant, docs[0])


def update_tenant(
    store: DocumentStore, tenant_id: str, updates: dict, *, actor_id: str = ""
) -> Tenant:
    get_tenant(store, tenant_id)
    updates = {k: v for k, v in updates.items() if k in EDITABLE_FIELDS and v is not None}
    if "name" in updates:
        updates["name"] = require(updates["name"].strip(), "name cannot be empty")
    if "slug" in updates:
        slug = normalize_slug(updates["slug"])
        if not slug:
            raise ValidationError("slug cannot be empty")
        if _slug_taken(store, slug, exclude_id=tenant_id):
            raise ConflictError(f"slug '{slug}' is already in use")
        updates["slug"] = slug
    _normalize_contact_fields(updates)
    updates["updated_at"] = utc_now()

    store.update(tenant_path(tenant_id), updates)
    record_activity(
        store,
        tenant_id,
        "tenant_updated",
        actor_type=ActorType.USER if actor_id else ActorType.SYSTEM,
        actor_id=actor_id,
        metadata={"fields": sorted(k for k in updates if k != "updated_at")},
    )
    return get_tenant(store, tenant_id)


def delete_tenant(store: DocumentStore, tenant_id: str, *, actor_id: str = "") -> None:
    tenant = get_tenant(store, tenant_id)
    if tenant.is_platform_admin:
        raise ValidationError("the platform admin tenant cannot be deleted")
    # Logged before deletion: the log write checks that the tenant exists.
    record_activity(
        store,
        tenant_id,
        "tenant_deleted",
        actor_type=ActorType.USER if actor_id else ActorType.SYSTEM,
        actor_id=actor_id,
        metadata={"tenant_name": tenant.name},
    )
    store.delete(tenant_path(tenant_id))
    logger.info("Deleted tenant %s", tenant_id)


def list_tenants(store: DocumentStore, *, active_only: bool = False) -> list[Tenant]:
    filters = [("is_active", "==", True)] if active_only else []
    docs = store.query(TENANTS_COLLECTION, filters, order_by="created_at", descending=True)
    return [to_record(Tenant, doc) for doc in docs]


def set_tenant_active(
    store: DocumentStore, tenant_id: str, active: bool, *, actor_id: str = ""
) -> Tenant:
    get_tenant(store, tenant_id)
    store.update(tenant_path(tenant_id), {"is_active": active, "updated_at": utc_now()})
    record_activity(
        store,
        tenant_id,
        "tenant_activated" if active else "tenant_deactivated",
        actor_type=ActorType.USER if actor_id else ActorType.SYSTEM,
        actor_id=actor_id,
    )
    return get_tenant(store, tenant_id)
