"""
Request authentication and tenant authorization dependencies.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from fastapi import Depends, Request

from imob_api.auth import AuthClient
from imob_api.dependencies import get_auth_client, get_document_store
from imob_api.documents import DocumentStore
from imob_api.errors import AuthenticationError, ForbiddenError, NotFoundError
from imob_api.services.common import get_tenant
from shared.firebase_constants import USERS_COLLECTION, tenant_document, tenant_path
from shared.types import FULL_ACCESS_ROLES, Tenant

logger = logging.getLogger(__name__)


@dataclass
class CurrentUser:
    """Identity of the caller, taken from the verified Firebase ID token claims."""

    uid: str
    email: str = ""
    tenant_id: str = ""
    role: str = ""
    user_id: str = ""
    broker_id: str = ""
    permissions: list[str] = field(default_factory=list)
    is_platform_admin: bool = False

    @property
    def actor_id(self) -> str:
        return self.user_id or self.uid

    def has_permission(self, permission: str) -> bool:
        if self.role in FULL_ACCESS_ROLES:
            return True
        return permission in self.permissions


def _bearer_token(request: Request) -> str:
    header = request.headers.get("Authorization")
    if not header:
        raise AuthenticationError("missing authorization header")
    scheme, _, token = header.partition(" ")
    if scheme != "Bearer" or not token.strip():
        raise AuthenticationError(
            "invalid authorization header format. Expected: Bearer <token>"
        )
    return token.strip()


def _load_user(
    store: DocumentStore, auth_client: AuthClient, token: str
) -> CurrentUser:
    claims = auth_client.verify_id_token(token)
    user = CurrentUser(
        uid=claims.get("uid", ""),
        email=claims.get("email", ""),
        tenant_id=claims.get("tenant_id", ""),
        role=claims.get("role", ""),
        user_id=claims.get("user_id", ""),
        broker_id=claims.get("broker_id", ""),
    )
    if user.tenant_id:
        tenant_doc = store.get(tenant_path(user.tenant_id))
        user.is_platform_admin = bool(tenant_doc and tenant_doc.data.get("is_platform_admin"))
        if user.user_id:
            user_doc = store.get(tenant_document(user.tenant_id, USERS_COLLECTION, user.user_id))
            if user_doc:
                user.permissions = list(user_doc.data.get("permissions") or [])
    return user


def get_current_user(
    request: Request,
    store: DocumentStore = Depends(get_document_store),
    auth_client: AuthClient = Depends(get_auth_client),
) -> CurrentUser:
    user = _load_user(store, auth_client, _bearer_token(request))
    request.state.user = user
    return user


def get_optional_user(
    request: Request,
    store: DocumentStore = Depends(get_document_store),
    auth_client: AuthClient = Depends(get_auth_client),
) -> Optional[CurrentUser]:
    """Like get_current_user, but anonymous or invalid callers yield None."""
    if not request.headers.get("Authorization"):
        return None
    try:
        return get_current_user(request, store, auth_client)
    except AuthenticationError:
        logger.debug("Ignoring invalid credentials on optional-auth route %s", request.url.path)
        return None


def require_platform_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not user.is_platform_admin:
        raise ForbiddenError("platform admin access required")
    return user


def check_tenant_access(store: DocumentStore, user: CurrentUser, tenant_id: str) -> Tenant:
    try:
        tenant = get_tenant(store, tenant_id)
    except NotFoundError:
        raise NotFoundError("tenant not found") from None
    if not tenant.is_active:
        raise ForbiddenError("tenant is not active")
    if user.tenant_id != tenant_id and not user.is_platform_admin:
        logger.warning(
            "User %s of tenant %s denied access to tenant %s", user.uid, user.tenant_id, tenant_id
        )
        raise ForbiddenError("access denied to this tenant")
    return tenant


def require_tenant_access(
    tenant_id: str,
    user: CurrentUser = Depends(get_current_user),
    store: DocumentStore = Depends(get_document_store),
) -> CurrentUser:
    """Path dependency for routes under `/{tenant_id}` and `/admin/{tenant_id}`."""
    check_tenant_access(store, user, tenant_id)
    return user


def require_permission(permission: str):
    def dependency(user: CurrentUser = Depends(require_tenant_access)) -> CurrentUser:
        if not (user.has_permission(permission) or user.is_platform_admin):
            raise ForbiddenError("insufficient permissions")
        return user

    return dependency


def require_roles(*roles: str):
    def dependency(user: CurrentUser = Depends(require_tenant_access)) -> CurrentUser:
        if user.role not in roles and not user.is_platform_admin:
            raise ForbiddenError("insufficient permissions")
        return user

    return dependency

