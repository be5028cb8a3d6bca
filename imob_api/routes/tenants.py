"""
Tenant management, restricted to platform admins.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from imob_api.dependencies import get_document_store
from imob_api.documents import DocumentStore
from imob_api.routes.common import message, ok, payload
from imob_api.schemas import TenantCreate, TenantUpdate
from imob_api.security import CurrentUser, require_platform_admin
from imob_api.services import tenants
from imob_api.services.common import get_tenant

router = APIRouter(prefix="/tenants", tags=["tenants"])


@router.post("", status_code=201)
def create_tenant(
    body: TenantCreate,
    user: CurrentUser = Depends(require_platform_admin),
    store: DocumentStore = Depends(get_document_store),
):
    tenant = tenants.create_tenant(store, payload(body), actor_id=user.actor_id)
    return ok(tenant)


@router.get("")
def list_tenants(
    active_only: bool = Query(False),
    _: CurrentUser = Depends(require_platform_admin),
    store: DocumentStore = Depends(get_document_store),
):
    return ok(tenants.list_tenants(store, active_only=active_only))


@router.get("/slug/{slug}")
def get_tenant_by_slug(
    slug: str,
    _: CurrentUser = Depends(require_platform_admin),
    store: DocumentStore = Depends(get_document_store),
):
    return ok(tenants.get_tenant_by_slug(store, slug))


@router.get("/{tenant_id}")
def read_tenant(
    tenant_id: str,
    _: CurrentUser = Depends(require_platform_admin),
    store: DocumentStore = Depends(get_document_store),
):
    return ok(get_tenant(store, tenant_id))


@router.put("/{tenant_id}")
def update_tenant(
    tenant_id: str,
    body: TenantUpdate,
    user: CurrentUser = Depends(require_platform_admin),
    store: DocumentStore = Depends(get_document_store),
):
    return ok(tenants.update_tenant(store, tenant_id, payload(body), actor_id=user.actor_id))


@router.delete("/{tenant_id}")
def delete_tenant(
    tenant_id: str,
    user: CurrentUser = Depends(require_platform_admin),
    store: DocumentStore = Depends(get_document_store),
):
    tenants.delete_tenant(store, tenant_id, actor_id=user.actor_id)
    return message("Tenant deleted successfully")


@router.post("/{tenant_id}/activate")
def activate_tenant(
    tenant_id: str,
    user: CurrentUser = Depends(require_platform_admin),
    store: DocumentStore = Depends(get_document_store),
):
    return ok(tenants.set_tenant_active(store, tenant_id, True, actor_id=user.actor_id))


@router.post("/{tenant_id}/deactivate")
def deactivate_tenant(
    tenant_id: str,
    user: CurrentUser = Depends(require_platform_admin),
    store: DocumentStore = Depends(get_document_store),
):
    return ok(tenants.set_tenant_active(store, tenant_id, False, actor_id=user.actor_id))
