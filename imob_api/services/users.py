"""
Users and brokers of a tenant.

Everyone who signs in lives in `tenants/{tenant_id}/users`. Brokers are users
with a broker role and a CRECI; their public profile fields sit on the same
document.
"""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Optional

from imob_api.documents import DocumentStore, utc_now
from imob_api.errors import ConflictError, NotFoundError, ValidationError
from imob_api.services.activity_log import record_activity
from imob_api.services.common import (
    Pagination,
    get_tenant,
    get_tenant_record,
    parse_enum,
    require,
    to_record,
    validated,
)
from shared import validators
from shared.firebase_constants import (
    TENANTS_COLLECTION,
    USERS_COLLECTION,
    tenant_collection,
    tenant_document,
)
from shared.string_utils import collapse_whitespace, strip_accents
from shared.types import (
    BROKER_ROLES,
    ActorType,
    Broker,
    User,
    UserRole,
    default_permissions,
)

logger = logging.getLogger(__name__)

USER_FIELDS = {
    "name",
    "email",
    "phone",
    "document",
    "document_type",
    "creci",
    "role",
    "permissions",
    "photo_url",
}
BROKER_PROFILE_FIELDS = {
    "bio",
    "specialties",
    "languages",
    "experience",
    "company",
    "website",
    "social_media",
    "service_areas",
    "certifications_awards",
}
PUBLIC_BROKER_FIELDS = (
    "id",
    "name",
    "email",
    "phone",
    "creci",
    "photo_url",
    "bio",
    "specialties",
    "languages",
    "experience",
    "company",
    "website",
    "social_media",
    "total_sales",
    "total_listings",
    "average_price",
    "rating",
    "review_count",
    "service_areas",
    "certifications_awards",
)


def _users_path(tenant_id: str) -> str:
    return tenant_collection(tenant_id, USERS_COLLECTION)


def _normalize(data: dict) -> None:
    if "email" in data:
        data["email"] = validated(validators.validate_email, data["email"])
    if data.get("phone"):
        data["phone"] = validated(validators.validate_phone, data["phone"])
    if data.get("creci"):
        data["creci"] = validated(validators.validate_creci, data["creci"])
    if data.get("document"):
        document_type = data.get("document_type") or "cpf"
        data["document"] = validated(
            lambda value: validators.validate_document(value, document_type),
            data["document"],
        )
        data["document_type"] = document_type
    if "role" in data:
        data["role"] = parse_enum(UserRole, data["role"], "role").value


def find_user_by_email(store: DocumentStore, tenant_id: str, email: str) -> Optional[User]:
    docs = store.query(_users_path(tenant_id), [("email", "==", email.strip().lower())], limit=1)
    return to_record(User, docs[0]) if docs else None


def find_user_by_firebase_uid(store: DocumentStore, firebase_uid: str) -> Optional[User]:
    """Searches every tenant. Firebase uids are globally unique."""
    docs = store.collection_group(USERS_COLLECTION, [("firebase_uid", "==", firebase_uid)], limit=1)
    if not docs:
        return None
    user = to_record(User, docs[0])
    if not user.tenant_id:
        user.tenant_id = docs[0].tenant_id
    return user


def create_user(
    store: DocumentStore,
    tenant_id: str,
    data: dict,
    *,
    firebase_uid: str = "",
    actor_id: str = "",
    doc_id: Optional[str] = None,
) -> User:
    get_tenant(store, tenant_id)
    data = {
        k: v
        for k, v in data.items()
        if k in USER_FIELDS | BROKER_PROFILE_FIELDS and v is not None
    }
    require((data.get("name") or "").strip(), "name is required")
    require(data.get("email"), "email is required")
    data.setdefault("role", UserRole.BROKER.value)
    _normalize(data)
    if data["role"] in BROKER_ROLES and not data.get("creci"):
        raise ValidationError("creci is required for brokers")
    if find_user_by_email(store, tenant_id, data["email"]):
        raise ConflictError("a user with this email already exists in this tenant")

    now = utc_now()
    data.setdefault("permissions", default_permissions(data["role"]))
    data.update(
        {
            "tenant_id": tenant_id,
            "firebase_uid": firebase_uid,
            "is_active": True,
            "created_at": now,
            "updated_at": now,
        }
    )
    doc = store.create(_users_path(tenant_id), data, doc_id=doc_id)
    record_activity(
        store,
        tenant_id,
        "broker_created" if data["role"] in BROKER_ROLES else "user_created",
        actor_type=ActorType.USER if actor_id else ActorType.SYSTEM,
        actor_id=actor_id,
        metadata={"user_id": doc.id, "role": data["role"]},
    )
    return to_record(User, doc)


def get_user(store: DocumentStore, tenant_id: str, user_id: str) -> User:
    return get_tenant_record(store, User, tenant_id, USERS_COLLECTION, user_id, "user not found")


def update_user(
    store: DocumentStore, tenant_id: str, user_id: str, updates: dict, *, actor_id: str = ""
) -> User:
    current = get_user(store, tenant_id, user_id)
    updates = {
        k: v
        for k, v in updates.items()
        if k in USER_FIELDS | BROKER_PROFILE_FIELDS and v is not None
    }
    _normalize(updates)
    role = updates.get("role", current.role)
    creci = updates.get("creci", current.creci)
    if role in BROKER_ROLES and not creci:
        raise ValidationError("creci is required for brokers")
    if "email" in updates and updates["email"] != current.email:
        existing = find_user_by_email(store, tenant_id, updates["email"])
        if existing and existing.id != user_id:
            raise ConflictError("a user with this email already exists in this tenant")
    updates["updated_at"] = utc_now()
    store.update(tenant_document(tenant_id, USERS_COLLECTION, user_id), updates)
    record_activity(
        store,
        tenant_id,
        "user_updated",
        actor_type=ActorType.USER if actor_id else ActorType.SYSTEM,
        actor_id=actor_id,
        metadata={"user_id": user_id, "fields": sorted(k for k in updates if k != "updated_at")},
    )
    return get_user(store, tenant_id, user_id)


def set_user_active(
    store: DocumentStore, tenant_id: str, user_id: str, active: bool, *, actor_id: str = ""
) -> User:
    get_user(store, tenant_id, user_id)
    store.update(
        tenant_document(tenant_id, USERS_COLLECTION, user_id),
        {"is_active": active, "updated_at": utc_now()},
    )
    record_activity(
        store,
        tenant_id,
        "user_activated" if active else "user_deactivated",
        actor_type=ActorType.USER if actor_id else ActorType.SYSTEM,
        actor_id=actor_id,
        metadata={"user_id": user_id},
    )
    return get_user(store, tenant_id, user_id)


def list_users(
    store: DocumentStore,
    tenant_id: str,
    *,
    role: Optional[str] = None,
    roles: Optional[list[str]] = None,
    active: Optional[bool] = None,
    page: Optional[Pagination] = None,
) -> list[User]:
    page = page or Pagination(order_by="name", descending=False)
    filters = []
    if role:
        filters.append(("role", "==", parse_enum(UserRole, role, "role").value))
    elif roles:
        filters.append(("role", "in", list(roles)))
    if active is not None:
        filters.append(("is_active", "==", active))
    docs = store.query(
        _users_path(tenant_id),
        filters,
        order_by=page.order_by,
        descending=page.descending,
        limit=page.limit,
        offset=page.offset,
    )
    return [to_record(User, doc) for doc in docs]


def set_permission(
    store: DocumentStore, tenant_id: str, user_id: str, permission: str, granted: bool
) -> User:
    user = get_user(store, tenant_id, user_id)
    permissions = [p for p in user.permissions if p != permission]
    if granted:
        permissions.append(permission)
    store.update(
        tenant_document(tenant_id, USERS_COLLECTION, user_id),
        {"permissions": permissions, "updated_at": utc_now()},
    )
    return get_user(store, tenant_id, user_id)


# Brokers


def create_broker(store: DocumentStore, tenant_id: str, data: dict, *, actor_id: str = "") -> Broker:
    data = dict(data)
    data["role"] = data.get("role") or UserRole.BROKER.value
    if data["role"] not in BROKER_ROLES:
        raise ValidationError("role must be broker or broker_admin")
    require(data.get("creci"), "creci is required for brokers")
    user = create_user(store, tenant_id, data, actor_id=actor_id)
    return get_broker(store, tenant_id, user.id)


def get_broker(store: DocumentStore, tenant_id: str, broker_id: str) -> Broker:
    broker = get_tenant_record(
        store, Broker, tenant_id, USERS_COLLECTION, broker_id, "broker not found"
    )
    if broker.role not in BROKER_ROLES:
        raise NotFoundError("broker not found")
    return broker


def list_brokers(
    store: DocumentStore,
    tenant_id: str,
    *,
    active: Optional[bool] = None,
    page: Optional[Pagination] = None,
) -> list[Broker]:
    users = list_users(
        store, tenant_id, roles=[r.value for r in BROKER_ROLES], active=active, page=page
    )
    return [get_broker(store, tenant_id, user.id) for user in users]


def find_broker_by_name(store: DocumentStore, tenant_id: str, name: str) -> Optional[Broker]:
    """Case- and accent-insensitive match, used by imports to resolve captador names."""
    wanted = strip_accents(collapse_whitespace(name)).lower()
    if not wanted:
        return None
    page = Pagination(limit=500, order_by="name", descending=False)
    for broker in list_brokers(store, tenant_id, page=page):
        if strip_accents(collapse_whitespace(broker.name)).lower() == wanted:
            return broker
    return None


def public_broker_profile(broker: Broker) -> dict:
    data = asdict(broker)
    return {key: data[key] for key in PUBLIC_BROKER_FIELDS}


def find_public_broker(store: DocumentStore, broker_id: str) -> Broker:
    """Resolves an active broker by id across tenants (public site URLs carry no tenant)."""
    for tenant_doc in store.query(TENANTS_COLLECTION, [("is_active", "==", True)]):
        doc = store.get(tenant_document(tenant_doc.id, USERS_COLLECTION, broker_id))
        if doc:
            broker = to_record(Broker, doc)
            if broker.role in BROKER_ROLES and broker.is_active:
                if not broker.tenant_id:
                    broker.tenant_id = tenant_doc.id
                return broker
    raise NotFoundError("broker not found")
