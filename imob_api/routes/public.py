"""
Unauthenticated routes backing the public property site.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from imob_api.dependencies import get_document_store
from imob_api.documents import DocumentStore
from imob_api.middleware import client_ip, strict_rate_limit
from imob_api.routes.common import ok, pagination, payload
from imob_api.schemas import PublicFormLead, PublicWhatsAppLead
from imob_api.services import properties, public_leads, users
from imob_api.security import CurrentUser, get_optional_user
from imob_api.services.common import Pagination

router = APIRouter(prefix="/public", tags=["public"])

PRIVATE_PROPERTY_FIELDS = ("owner_id", "external_id")


def _visitor(user: Optional[CurrentUser]) -> dict:
    if not user:
        return {}
    return {"visitor_tenant_id": user.tenant_id, "visitor_id": user.actor_id}


def property_filters(
    transaction_type: Optional[str] = Query(None),
    property_type: Optional[str] = Query(None),
    city: Optional[str] = Query(None),
    neighborhood: Optional[str] = Query(None),
    min_price: Optional[float] = Query(None, ge=0),
    max_price: Optional[float] = Query(None, ge=0),
    bedrooms: Optional[int] = Query(None, ge=0),
    parking_spaces: Optional[int] = Query(None, ge=0),
    min_area: Optional[float] = Query(None, ge=0),
    max_area: Optional[float] = Query(None, ge=0),
) -> properties.PublicPropertyFilters:
    return properties.PublicPropertyFilters(
        transaction_type=transaction_type,
        property_type=property_type,
        city=city,
        neighborhood=neighborhood,
        min_price=min_price,
        max_price=max_price,
        bedrooms=bedrooms,
        parking_spaces=parking_spaces,
        min_area=min_area,
        max_area=max_area,
    )


@router.get("/properties")
def list_public_properties(
    tenant_id: Optional[str] = Query(None),
    criteria: properties.PublicPropertyFilters = Depends(property_filters),
    page: Optional[Pagination] = Depends(pagination),
    store: DocumentStore = Depends(get_document_store),
):
    results = properties.list_public_properties(store, criteria, tenant_id=tenant_id, page=page)
    return ok(results, exclude=PRIVATE_PROPERTY_FIELDS)


@router.get("/properties/featured")
def list_featured_properties(
    limit: int = Query(properties.FEATURED_LIMIT, ge=1, le=50),
    store: DocumentStore = Depends(get_document_store),
):
    return ok(properties.list_featured_properties(store, limit), exclude=PRIVATE_PROPERTY_FIELDS)


@router.get("/properties/{property_id}")
def read_public_property(property_id: str, store: DocumentStore = Depends(get_document_store)):
    prop = properties.get_public_property(store, property_id)
    return ok(prop, exclude=PRIVATE_PROPERTY_FIELDS)


@router.get("/brokers/{broker_id}")
def read_public_broker(broker_id: str, store: DocumentStore = Depends(get_document_store)):
    broker = users.find_public_broker(store, broker_id)
    return ok(users.public_broker_profile(broker))


@router.get("/brokers/{broker_id}/properties")
def list_broker_properties(
    broker_id: str,
    page: Optional[Pagination] = Depends(pagination),
    store: DocumentStore = Depends(get_document_store),
):
    broker = users.find_public_broker(store, broker_id)
    results = properties.list_public_properties(
        store, tenant_id=broker.tenant_id, captador_id=broker.id, page=page
    )
    return ok(results, exclude=PRIVATE_PROPERTY_FIELDS)


@router.post(
    "/properties/{property_id}/leads/whatsapp",
    status_code=201,
    dependencies=[Depends(strict_rate_limit)],
)
def create_whatsapp_lead(
    property_id: str,
    request: Request,
    body: Optional[PublicWhatsAppLead] = None,
    visitor: Optional[CurrentUser] = Depends(get_optional_user),
    store: DocumentStore = Depends(get_document_store),
):
    data = payload(body) if body else {}
    return public_leads.create_whatsapp_lead(
        store, property_id, data, client_ip=client_ip(request), **_visitor(visitor)
    )


@router.post(
    "/properties/{property_id}/leads/form",
    status_code=201,
    dependencies=[Depends(strict_rate_limit)],
)
def create_form_lead(
    property_id: str,
    body: PublicFormLead,
    request: Request,
    visitor: Optional[CurrentUser] = Depends(get_optional_user),
    store: DocumentStore = Depends(get_document_store),
):
    return public_leads.create_form_lead(
        store, property_id, payload(body), client_ip=client_ip(request), **_visitor(visitor)
    )
