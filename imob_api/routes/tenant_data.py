"""
Tenant-scoped CRUD under `/{tenant_id}`: properties, broker roles, leads,
owners, brokers and the activity log.

This router has a catch-all first path segment, so the app includes it last.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query

from imob_api.config import Settings, get_settings
from imob_api.dependencies import get_document_store, get_mailer
from imob_api.documents import DocumentStore
from imob_api.errors import NotFoundError, ValidationError
from imob_api.mailer import Mailer
from imob_api.routes.common import message, ok, pagination, payload
from imob_api.schemas import (
    AnonymizeRequest,
    BrokerRoleAssign,
    BrokerRoleUpdate,
    BrokerUpdate,
    ConfirmationLinkRequest,
    LeadCreate,
    LeadUpdate,
    OwnerPayload,
    PropertyPayload,
)
from imob_api.security import (
    CurrentUser,
    require_permission,
    require_roles,
    require_tenant_access,
)
from imob_api.services import (
    activity_log,
    leads,
    owner_confirmations,
    owners,
    properties,
    property_broker_roles,
    users,
)
from imob_api.services.common import Pagination
from shared.types import ActorType, UserRole

router = APIRouter(prefix="/{tenant_id}", tags=["tenant"])

# Deleting personal data and reading the audit trail need a manager or above.
require_manager = require_roles(UserRole.ADMIN, UserRole.BROKER_ADMIN, UserRole.MANAGER)


# Properties


@router.get("/properties")
def list_properties(
    tenant_id: str,
    status: Optional[str] = Query(None),
    visibility: Optional[str] = Query(None),
    property_type: Optional[str] = Query(None),
    transaction_type: Optional[str] = Query(None),
    city: Optional[str] = Query(None),
    neighborhood: Optional[str] = Query(None),
    featured: Optional[bool] = Query(None),
    reference: Optional[str] = Query(None),
    captador_id: Optional[str] = Query(None),
    owner_id: Optional[str] = Query(None),
    page: Optional[Pagination] = Depends(pagination),
    _: CurrentUser = Depends(require_tenant_access),
    store: DocumentStore = Depends(get_document_store),
):
    filters = {
        "status": status,
        "visibility": visibility,
        "property_type": property_type,
        "transaction_type": transaction_type,
        "city": city,
        "neighborhood": neighborhood,
        "featured": featured,
        "reference": reference,
        "captador_id": captador_id,
        "owner_id": owner_id,
    }
    return ok(properties.list_properties(store, tenant_id, filters=filters, page=page))


@router.post("/properties", status_code=201)
def create_property(
    tenant_id: str,
    body: PropertyPayload,
    user: CurrentUser = Depends(require_permission("properties.create")),
    store: DocumentStore = Depends(get_document_store),
):
    prop = properties.create_property(
        store, tenant_id, payload(body), actor_id=user.actor_id, actor_type=ActorType.USER
    )
    return ok(prop)


@router.get("/properties/by-reference/{reference}")
def read_property_by_reference(
    tenant_id: str,
    reference: str,
    _: CurrentUser = Depends(require_tenant_access),
    store: DocumentStore = Depends(get_document_store),
):
    prop = properties.get_property_by_reference(store, tenant_id, reference)
    if prop is None:
        raise NotFoundError("property not found")
    return ok(prop)


@router.get("/properties/{property_id}")
def read_property(
    tenant_id: str,
    property_id: str,
    _: CurrentUser = Depends(require_tenant_access),
    store: DocumentStore = Depends(get_document_store),
):
    return ok(properties.get_property(store, tenant_id, property_id))


@router.put("/properties/{property_id}")
def update_property(
    tenant_id: str,
    property_id: str,
    body: PropertyPayload,
    user: CurrentUser = Depends(require_permission("properties.edit_all")),
    store: DocumentStore = Depends(get_document_store),
):
    prop = properties.update_property(
        store, tenant_id, property_id, payload(body), actor_id=user.actor_id
    )
    return ok(prop)


@router.delete("/properties/{property_id}")
def delete_property(
    tenant_id: str,
    property_id: str,
    user: CurrentUser = Depends(require_permission("properties.delete")),
    store: DocumentStore = Depends(get_document_store),
):
    properties.delete_property(store, tenant_id, property_id, actor_id=user.actor_id)
    return message("Property deleted successfully")


@router.post("/properties/{property_id}/confirmation-links", status_code=201)
def create_confirmation_link(
    tenant_id: str,
    property_id: str,
    body: Optional[ConfirmationLinkRequest] = None,
    user: CurrentUser = Depends(require_permission("properties.edit_all")),
    store: DocumentStore = Depends(get_document_store),
    mailer: Mailer = Depends(get_mailer),
    settings: Settings = Depends(get_settings),
):
    body = body or ConfirmationLinkRequest()
    link = owner_confirmations.create_confirmation_link(
        store,
        tenant_id,
        property_id,
        actor_id=user.actor_id,
        base_url=settings.public_site_url,
        delivery_hint=body.delivery_hint or "",
        ttl_days=settings.owner_confirmation_ttl_days,
        mailer=mailer if body.send_email else None,
    )
    return {"success": True, "data": link}


# Property broker roles


@router.get("/properties/{property_id}/brokers")
def list_property_brokers(
    tenant_id: str,
    property_id: str,
    _: CurrentUser = Depends(require_tenant_access),
    store: DocumentStore = Depends(get_document_store),
):
    properties.get_property(store, tenant_id, property_id)
    return ok(property_broker_roles.list_property_roles(store, tenant_id, property_id))


@router.post("/properties/{property_id}/brokers", status_code=201)
def assign_property_broker(
    tenant_id: str,
    property_id: str,
    body: BrokerRoleAssign,
    user: CurrentUser = Depends(require_permission("properties.edit_all")),
    store: DocumentStore = Depends(get_document_store),
):
    role = property_broker_roles.assign_broker(
        store,
        tenant_id,
        property_id,
        body.broker_id,
        body.role,
        commission_percentage=body.commission_percentage,
        is_primary=body.is_primary,
        actor_id=user.actor_id,
    )
    return ok(role)


@router.get("/properties/{property_id}/commission-split")
def property_commission_split(
    tenant_id: str,
    property_id: str,
    _: CurrentUser = Depends(require_tenant_access),
    store: DocumentStore = Depends(get_document_store),
):
    return ok(property_broker_roles.commission_split(store, tenant_id, property_id))


@router.put("/property-broker-roles/{role_id}")
def update_property_broker_role(
    tenant_id: str,
    role_id: str,
    body: BrokerRoleUpdate,
    user: CurrentUser = Depends(require_permission("properties.edit_all")),
    store: DocumentStore = Depends(get_document_store),
):
    role = property_broker_roles.update_role(
        store,
        tenant_id,
        role_id,
        role=body.role,
        commission_percentage=body.commission_percentage,
        actor_id=user.actor_id,
    )
    return ok(role)


@router.post("/property-broker-roles/{role_id}/primary")
def set_primary_property_broker(
    tenant_id: str,
    role_id: str,
    user: CurrentUser = Depends(require_permission("properties.edit_all")),
    store: DocumentStore = Depends(get_document_store),
):
    return ok(property_broker_roles.set_primary(store, tenant_id, role_id, actor_id=user.actor_id))


@router.delete("/property-broker-roles/{role_id}")
def remove_property_broker(
    tenant_id: str,
    role_id: str,
    user: CurrentUser = Depends(require_permission("properties.edit_all")),
    store: DocumentStore = Depends(get_document_store),
):
    property_broker_roles.remove_broker(store, tenant_id, role_id, actor_id=user.actor_id)
    return message("Broker removed from property")


# Leads


@router.get("/leads")
def list_leads(
    tenant_id: str,
    property_id: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    channel: Optional[str] = Query(None),
    page: Optional[Pagination] = Depends(pagination),
    _: CurrentUser = Depends(require_tenant_access),
    store: DocumentStore = Depends(get_document_store),
):
    results = leads.list_leads(
        store, tenant_id, property_id=property_id, status=status, channel=channel, page=page
    )
    return ok(results)


@router.post("/leads", status_code=201)
def create_lead(
    tenant_id: str,
    body: LeadCreate,
    user: CurrentUser = Depends(require_tenant_access),
    store: DocumentStore = Depends(get_document_store),
):
    lead = leads.create_lead(
        store, tenant_id, payload(body), actor_type=ActorType.USER, actor_id=user.actor_id
    )
    return ok(lead)


@router.get("/leads/revoked-consent")
def list_revoked_consent_leads(
    tenant_id: str,
    _: CurrentUser = Depends(require_tenant_access),
    store: DocumentStore = Depends(get_document_store),
):
    return ok(leads.list_revoked_consent(store, tenant_id))


@router.get("/leads/lookup")
def lookup_lead(
    tenant_id: str,
    email: Optional[str] = Query(None),
    phone: Optional[str] = Query(None),
    _: CurrentUser = Depends(require_tenant_access),
    store: DocumentStore = Depends(get_document_store),
):
    if email:
        lead = leads.get_lead_by_email(store, tenant_id, email)
    elif phone:
        lead = leads.get_lead_by_phone(store, tenant_id, phone)
    else:
        raise ValidationError("email or phone is required")
    if lead is None:
        raise NotFoundError("lead not found")
    return ok(lead)


@router.get("/leads/{lead_id}")
def read_lead(
    tenant_id: str,
    lead_id: str,
    _: CurrentUser = Depends(require_tenant_access),
    store: DocumentStore = Depends(get_document_store),
):
    return ok(leads.get_lead(store, tenant_id, lead_id))


@router.put("/leads/{lead_id}")
def update_lead(
    tenant_id: str,
    lead_id: str,
    body: LeadUpdate,
    user: CurrentUser = Depends(require_tenant_access),
    store: DocumentStore = Depends(get_document_store),
):
    return ok(leads.update_lead(store, tenant_id, lead_id, payload(body), actor_id=user.actor_id))


@router.delete("/leads/{lead_id}")
def delete_lead(
    tenant_id: str,
    lead_id: str,
    user: CurrentUser = Depends(require_manager),
    store: DocumentStore = Depends(get_document_store),
):
    leads.delete_lead(store, tenant_id, lead_id, actor_id=user.actor_id)
    return message("Lead deleted successfully")


@router.post("/leads/{lead_id}/revoke-consent")
def revoke_lead_consent(
    tenant_id: str,
    lead_id: str,
    _: CurrentUser = Depends(require_tenant_access),
    store: DocumentStore = Depends(get_document_store),
):
    return ok(leads.revoke_consent(store, tenant_id, lead_id))


@router.post("/leads/{lead_id}/anonymize")
def anonymize_lead(
    tenant_id: str,
    lead_id: str,
    body: AnonymizeRequest,
    user: CurrentUser = Depends(require_manager),
    store: DocumentStore = Depends(get_document_store),
):
    lead = leads.anonymize_lead(store, tenant_id, lead_id, body.reason, actor_id=user.actor_id)
    return ok(lead)


# Owners


@router.get("/owners")
def list_owners(
    tenant_id: str,
    status: Optional[str] = Query(None),
    page: Optional[Pagination] = Depends(pagination),
    _: CurrentUser = Depends(require_tenant_access),
    store: DocumentStore = Depends(get_document_store),
):
    return ok(owners.list_owners(store, tenant_id, status=status, page=page))


@router.post("/owners", status_code=201)
def create_owner(
    tenant_id: str,
    body: OwnerPayload,
    user: CurrentUser = Depends(require_tenant_access),
    store: DocumentStore = Depends(get_document_store),
):
    return ok(owners.create_owner(store, tenant_id, payload(body), actor_id=user.actor_id))


@router.get("/owners/{owner_id}")
def read_owner(
    tenant_id: str,
    owner_id: str,
    _: CurrentUser = Depends(require_tenant_access),
    store: DocumentStore = Depends(get_document_store),
):
    return ok(owners.get_owner(store, tenant_id, owner_id))


@router.put("/owners/{owner_id}")
def update_owner(
    tenant_id: str,
    owner_id: str,
    body: OwnerPayload,
    user: CurrentUser = Depends(require_tenant_access),
    store: DocumentStore = Depends(get_document_store),
):
    owner = owners.update_owner(store, tenant_id, owner_id, payload(body), actor_id=user.actor_id)
    return ok(owner)


@router.delete("/owners/{owner_id}")
def delete_owner(
    tenant_id: str,
    owner_id: str,
    user: CurrentUser = Depends(require_manager),
    store: DocumentStore = Depends(get_document_store),
):
    owners.delete_owner(store, tenant_id, owner_id, actor_id=user.actor_id)
    return message("Owner deleted successfully")


@router.post("/owners/{owner_id}/revoke-consent")
def revoke_owner_consent(
    tenant_id: str,
    owner_id: str,
    _: CurrentUser = Depends(require_tenant_access),
    store: DocumentStore = Depends(get_document_store),
):
    return ok(owners.revoke_consent(store, tenant_id, owner_id))


@router.post("/owners/{owner_id}/anonymize")
def anonymize_owner(
    tenant_id: str,
    owner_id: str,
    body: AnonymizeRequest,
    user: CurrentUser = Depends(require_manager),
    store: DocumentStore = Depends(get_document_store),
):
    owner = owners.anonymize_owner(store, tenant_id, owner_id, body.reason, actor_id=user.actor_id)
    return ok(owner)


# Brokers


@router.get("/brokers")
def list_brokers(
    tenant_id: str,
    active: Optional[bool] = Query(None),
    page: Optional[Pagination] = Depends(pagination),
    _: CurrentUser = Depends(require_permission("brokers.view")),
    store: DocumentStore = Depends(get_document_store),
):
    return ok(users.list_brokers(store, tenant_id, active=active, page=page))


@router.get("/brokers/{broker_id}")
def read_broker(
    tenant_id: str,
    broker_id: str,
    _: CurrentUser = Depends(require_tenant_access),
    store: DocumentStore = Depends(get_document_store),
):
    return ok(users.get_broker(store, tenant_id, broker_id))


@router.put("/brokers/{broker_id}")
def update_broker(
    tenant_id: str,
    broker_id: str,
    body: BrokerUpdate,
    user: CurrentUser = Depends(require_permission("brokers.edit")),
    store: DocumentStore = Depends(get_document_store),
):
    users.get_broker(store, tenant_id, broker_id)
    users.update_user(store, tenant_id, broker_id, payload(body), actor_id=user.actor_id)
    return ok(users.get_broker(store, tenant_id, broker_id))


@router.post("/brokers/{broker_id}/deactivate")
def deactivate_broker(
    tenant_id: str,
    broker_id: str,
    user: CurrentUser = Depends(require_permission("brokers.edit")),
    store: DocumentStore = Depends(get_document_store),
):
    users.get_broker(store, tenant_id, broker_id)
    users.set_user_active(store, tenant_id, broker_id, False, actor_id=user.actor_id)
    return ok(users.get_broker(store, tenant_id, broker_id))


@router.get("/brokers/{broker_id}/property-roles")
def list_broker_property_roles(
    tenant_id: str,
    broker_id: str,
    _: CurrentUser = Depends(require_tenant_access),
    store: DocumentStore = Depends(get_document_store),
):
    users.get_broker(store, tenant_id, broker_id)
    return ok(property_broker_roles.list_broker_roles(store, tenant_id, broker_id))


# Activity log


@router.get("/activity-logs")
def list_activity_logs(
    tenant_id: str,
    event_type: Optional[str] = Query(None),
    actor_type: Optional[str] = Query(None),
    actor_id: Optional[str] = Query(None),
    entity_id: Optional[str] = Query(None),
    request_id: Optional[str] = Query(None),
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    page: Optional[Pagination] = Depends(pagination),
    _: CurrentUser = Depends(require_manager),
    store: DocumentStore = Depends(get_document_store),
):
    logs = activity_log.list_activity_logs(
        store,
        tenant_id,
        event_type=event_type,
        actor_type=actor_type,
        actor_id=actor_id,
        entity_id=entity_id,
        request_id=request_id,
        start=start,
        end=end,
        page=page,
    )
    return ok(logs)


@router.get("/activity-logs/entity/{entity_id}")
def entity_timeline(
    tenant_id: str,
    entity_id: str,
    page: Optional[Pagination] = Depends(pagination),
    _: CurrentUser = Depends(require_tenant_access),
    store: DocumentStore = Depends(get_document_store),
):
    return ok(activity_log.entity_timeline(store, tenant_id, entity_id, page=page))
