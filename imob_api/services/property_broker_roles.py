"""
Which brokers work a property and in what capacity.

A property has at most one originating broker (the one who brought it in),
who can never be removed or demoted. One role per property is primary: the
broker shown as responsible for it.
"""

from __future__ import annotations

import logging
from typing import Optional

from imob_api.documents import DocumentStore, utc_now
from imob_api.errors import ConflictError, NotFoundError, ValidationError
from imob_api.services.activity_log import record_activity
from imob_api.services.common import get_tenant_record, parse_enum, require, to_record
from imob_api.services.properties import get_property
from imob_api.services.users import get_broker
from shared.firebase_constants import (
    PROPERTY_BROKER_ROLES_COLLECTION,
    tenant_collection,
    tenant_document,
)
from shared.types import ActorType, BrokerPropertyRole, PropertyBrokerRoleRecord

logger = logging.getLogger(__name__)

# Order in which a new primary is picked after the primary is removed.
PRIMARY_SUCCESSION = (BrokerPropertyRole.ORIGINATING, BrokerPropertyRole.LISTING)


def _roles_path(tenant_id: str) -> str:
    return tenant_collection(tenant_id, PROPERTY_BROKER_ROLES_COLLECTION)


def _role_path(tenant_id: str, role_id: str) -> str:
    return tenant_document(tenant_id, PROPERTY_BROKER_ROLES_COLLECTION, role_id)


def _actor(actor_id: str) -> ActorType:
    return ActorType.USER if actor_id else ActorType.SYSTEM


def list_property_roles(
    store: DocumentStore, tenant_id: str, property_id: str
) -> list[PropertyBrokerRoleRecord]:
    docs = store.query(
        _roles_path(tenant_id), [("property_id", "==", property_id)], order_by="created_at"
    )
    return [to_record(PropertyBrokerRoleRecord, doc) for doc in docs]


def list_broker_roles(
    store: DocumentStore, tenant_id: str, broker_id: str
) -> list[PropertyBrokerRoleRecord]:
    docs = store.query(
        _roles_path(tenant_id), [("broker_id", "==", broker_id)], order_by="created_at"
    )
    return [to_record(PropertyBrokerRoleRecord, doc) for doc in docs]


def get_role(store: DocumentStore, tenant_id: str, role_id: str) -> PropertyBrokerRoleRecord:
    return get_tenant_record(
        store,
        PropertyBrokerRoleRecord,
        tenant_id,
        PROPERTY_BROKER_ROLES_COLLECTION,
        role_id,
        "property broker role not found",
    )


def get_originating_broker(
    store: DocumentStore, tenant_id: str, property_id: str
) -> Optional[PropertyBrokerRoleRecord]:
    for role in list_property_roles(store, tenant_id, property_id):
        if role.role == BrokerPropertyRole.ORIGINATING:
            return role
    return None


def get_primary_broker(
    store: DocumentStore, tenant_id: str, property_id: str
) -> Optional[PropertyBrokerRoleRecord]:
    for role in list_property_roles(store, tenant_id, property_id):
        if role.is_primary:
            return role
    return None


def assign_broker(
    store: DocumentStore,
    tenant_id: str,
    property_id: str,
    broker_id: str,
    role: str,
    *,
    commission_percentage: float = 0.0,
    is_primary: bool = False,
    actor_id: str = "",
) -> PropertyBrokerRoleRecord:
    role = parse_enum(BrokerPropertyRole, role, "role")
    require(broker_id, "broker_id is required")
    if not 0 <= commission_percentage <= 100:
        raise ValidationError("commission_percentage must be between 0 and 100")
    get_property(store, tenant_id, property_id)
    get_broker(store, tenant_id, broker_id)

    existing = list_property_roles(store, tenant_id, property_id)
    if role == BrokerPropertyRole.ORIGINATING and any(
        r.role == BrokerPropertyRole.ORIGINATING for r in existing
    ):
        raise ConflictError("property already has an originating broker")
    if any(r.broker_id == broker_id and r.role == role for r in existing):
        raise ConflictError("broker already holds this role on the property")

    is_primary = is_primary or not existing
    if is_primary:
        _clear_primary(store, tenant_id, existing)

    now = utc_now()
    doc = store.create(
        _roles_path(tenant_id),
        {
            "tenant_id": tenant_id,
            "property_id": property_id,
            "broker_id": broker_id,
            "role": role.value,
            "commission_percentage": float(commission_percentage),
            "is_primary": is_primary,
            "created_at": now,
            "updated_at": now,
        },
    )
    record_activity(
        store,
        tenant_id,
        "property_broker_assigned",
        actor_type=_actor(actor_id),
        actor_id=actor_id,
        metadata={"property_id": property_id, "broker_id": broker_id, "role": role.value},
    )
    return to_record(PropertyBrokerRoleRecord, doc)


def _clear_primary(
    store: DocumentStore, tenant_id: str, roles: list[PropertyBrokerRoleRecord]
) -> None:
    for role in roles:
        if role.is_primary:
            store.update(
                _role_path(tenant_id, role.id), {"is_primary": False, "updated_at": utc_now()}
            )


def remove_broker(
    store: DocumentStore, tenant_id: str, role_id: str, *, actor_id: str = ""
) -> None:
    role = get_role(store, tenant_id, role_id)
    if role.role == BrokerPropertyRole.ORIGINATING:
        raise ValidationError("the originating broker cannot be removed from a property")
    store.delete(_role_path(tenant_id, role_id))

    if role.is_primary:
        remaining = list_property_roles(store, tenant_id, role.property_id)
        successor = None
        for wanted in PRIMARY_SUCCESSION:
            successor = next((r for r in remaining if r.role == wanted), None)
            if successor:
                break
        if successor:
            store.update(
                _role_path(tenant_id, successor.id),
                {"is_primary": True, "updated_at": utc_now()},
            )
    record_activity(
        store,
        tenant_id,
        "property_broker_removed",
        actor_type=_actor(actor_id),
        actor_id=actor_id,
        metadata={
            "property_id": role.property_id,
            "broker_id": role.broker_id,
            "role": str(role.role),
        },
    )


def update_role(
    store: DocumentStore,
    tenant_id: str,
    role_id: str,
    *,
    role: Optional[str] = None,
    commission_percentage: Optional[float] = None,
    actor_id: str = "",
) -> PropertyBrokerRoleRecord:
    current = get_role(store, tenant_id, role_id)
    updates: dict = {}
    if role is not None:
        new_role = parse_enum(BrokerPropertyRole, role, "role")
        if new_role != current.role:
            if BrokerPropertyRole.ORIGINATING in (new_role, current.role):
                raise ValidationError("the originating broker role cannot be changed")
            siblings = list_property_roles(store, tenant_id, current.property_id)
            if any(r.broker_id == current.broker_id and r.role == new_role for r in siblings):
                raise ConflictError("broker already holds this role on the property")
            updates["role"] = new_role.value
    if commission_percentage is not None:
        if not 0 <= commission_percentage <= 100:
            raise ValidationError("commission_percentage must be between 0 and 100")
        updates["commission_percentage"] = float(commission_percentage)
    if not updates:
        return current
    updates["updated_at"] = utc_now()
    store.update(_role_path(tenant_id, role_id), updates)
    record_activity(
        store,
        tenant_id,
        "property_broker_updated",
        actor_type=_actor(actor_id),
        actor_id=actor_id,
        metadata={"property_id": current.property_id, "broker_id": current.broker_id},
    )
    return get_role(store, tenant_id, role_id)


def set_primary(
    store: DocumentStore, tenant_id: str, role_id: str, *, actor_id: str = ""
) -> PropertyBrokerRoleRecord:
    role = get_role(store, tenant_id, role_id)
    if role.is_primary:
        return role
    _clear_primary(store, tenant_id, list_property_roles(store, tenant_id, role.property_id))
    store.update(_role_path(tenant_id, role_id), {"is_primary": True, "updated_at": utc_now()})
    record_activity(
        store,
        tenant_id,
        "property_primary_broker_changed",
        actor_type=_actor(actor_id),
        actor_id=actor_id,
        metadata={"property_id": role.property_id, "broker_id": role.broker_id},
    )
    return get_role(store, tenant_id, role_id)


def commission_split(store: DocumentStore, tenant_id: str, property_id: str) -> dict[str, float]:
    """broker_id -> total commission percentage across the broker's roles."""
    split: dict[str, float] = {}
    for role in list_property_roles(store, tenant_id, property_id):
        split[role.broker_id] = split.get(role.broker_id, 0.0) + role.commission_percentage
    return split


def find_role(
    store: DocumentStore, tenant_id: str, property_id: str, broker_id: str, role: str
) -> PropertyBrokerRoleRecord:
    for record in list_property_roles(store, tenant_id, property_id):
        if record.broker_id == broker_id and record.role == role:
            return record
    raise NotFoundError("property broker role not found")
