"""
Tenant administration: team members, broker creation and permissions.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from imob_api.dependencies import get_document_store
from imob_api.documents import DocumentStore
from imob_api.errors import ValidationError
from imob_api.routes.common import ok, pagination, payload
from imob_api.schemas import BrokerCreate, PermissionChange, UserCreate, UserUpdate
from imob_api.security import CurrentUser, require_permission
from imob_api.services import users
from imob_api.services.common import Pagination

router = APIRouter(prefix="/admin/{tenant_id}", tags=["admin"])


@router.post("/brokers", status_code=201)
def create_broker(
    tenant_id: str,
    body: BrokerCreate,
    user: CurrentUser = Depends(require_permission("brokers.create")),
    store: DocumentStore = Depends(get_document_store),
):
    data = payload(body)
    if data.pop("tenant_id", None) not in (None, "", tenant_id):
        raise ValidationError("tenant_id in body does not match the URL")
    broker = users.create_broker(store, tenant_id, data, actor_id=user.actor_id)
    return ok(broker)


@router.post("/users", status_code=201)
def create_user(
    tenant_id: str,
    body: UserCreate,
    user: CurrentUser = Depends(require_permission("users.create")),
    store: DocumentStore = Depends(get_document_store),
):
    return ok(users.create_user(store, tenant_id, payload(body), actor_id=user.actor_id))


@router.get("/users")
def list_users(
    tenant_id: str,
    role: Optional[str] = Query(None),
    active: Optional[bool] = Query(None),
    page: Optional[Pagination] = Depends(pagination),
    _: CurrentUser = Depends(require_permission("users.view")),
    store: DocumentStore = Depends(get_document_store),
):
    return ok(users.list_users(store, tenant_id, role=role, active=active, page=page))


@router.get("/users/{user_id}")
def read_user(
    tenant_id: str,
    user_id: str,
    _: CurrentUser = Depends(require_permission("users.view")),
    store: DocumentStore = Depends(get_document_store),
):
    return ok(users.get_user(store, tenant_id, user_id))


@router.put("/users/{user_id}")
def update_user(
    tenant_id: str,
    user_id: str,
    body: UserUpdate,
    user: CurrentUser = Depends(require_permission("users.edit")),
    store: DocumentStore = Depends(get_document_store),
):
    return ok(users.update_user(store, tenant_id, user_id, payload(body), actor_id=user.actor_id))


@router.post("/users/{user_id}/activate")
def activate_user(
    tenant_id: str,
    user_id: str,
    user: CurrentUser = Depends(require_permission("users.edit")),
    store: DocumentStore = Depends(get_document_store),
):
    return ok(users.set_user_active(store, tenant_id, user_id, True, actor_id=user.actor_id))


@router.post("/users/{user_id}/deactivate")
def deactivate_user(
    tenant_id: str,
    user_id: str,
    user: CurrentUser = Depends(require_permission("users.edit")),
    store: DocumentStore = Depends(get_document_store),
):
    if user_id == user.user_id:
        raise ValidationError("you cannot deactivate your own account")
    return ok(users.set_user_active(store, tenant_id, user_id, False, actor_id=user.actor_id))


@router.post("/users/{user_id}/permissions")
def grant_permission(
    tenant_id: str,
    user_id: str,
    body: PermissionChange,
    _: CurrentUser = Depends(require_permission("users.edit")),
    store: DocumentStore = Depends(get_document_store),
):
    return ok(users.set_permission(store, tenant_id, user_id, body.permission, True))


@router.delete("/users/{user_id}/permissions/{permission}")
def revoke_permission(
    tenant_id: str,
    user_id: str,
    permission: str,
    _: CurrentUser = Depends(require_permission("users.edit")),
    store: DocumentStore = Depends(get_document_store),
):
    return ok(users.set_permission(store, tenant_id, user_id, permission, False))
