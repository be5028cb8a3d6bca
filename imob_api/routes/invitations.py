"""
User invitations: admin-side management and the public verify/accept flow.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from imob_api.auth import AuthClient
from imob_api.config import Settings, get_settings
from imob_api.dependencies import get_auth_client, get_document_store, get_mailer
from imob_api.documents import DocumentStore
from imob_api.mailer import Mailer
from imob_api.routes.common import message, ok, payload
from imob_api.schemas import InvitationAccept, InvitationCreate
from imob_api.security import CurrentUser, require_permission
from imob_api.services import invitations

router = APIRouter(tags=["invitations"])

HIDDEN_FIELDS = ("token",)


@router.post("/admin/{tenant_id}/users/invite", status_code=201)
def invite_user(
    tenant_id: str,
    body: InvitationCreate,
    user: CurrentUser = Depends(require_permission("users.create")),
    store: DocumentStore = Depends(get_document_store),
    mailer: Mailer = Depends(get_mailer),
    settings: Settings = Depends(get_settings),
):
    invitation = invitations.invite_user(
        store,
        tenant_id,
        payload(body),
        inviter_uid=user.uid,
        settings=settings,
        mailer=mailer,
    )
    return {
        "success": True,
        "invitation_id": invitation.id,
        "message": f"Invitation sent to {invitation.email}",
    }


@router.get("/admin/{tenant_id}/users/invitations")
def list_invitations(
    tenant_id: str,
    status: Optional[str] = Query(None),
    _: CurrentUser = Depends(require_permission("users.view")),
    store: DocumentStore = Depends(get_document_store),
):
    return ok(invitations.list_invitations(store, tenant_id, status), exclude=HIDDEN_FIELDS)


@router.delete("/admin/{tenant_id}/users/invitations/{invitation_id}")
def cancel_invitation(
    tenant_id: str,
    invitation_id: str,
    user: CurrentUser = Depends(require_permission("users.create")),
    store: DocumentStore = Depends(get_document_store),
):
    invitations.cancel_invitation(store, tenant_id, invitation_id, actor_id=user.actor_id)
    return message("Invitation cancelled successfully")


@router.post("/admin/{tenant_id}/users/invitations/{invitation_id}/resend")
def resend_invitation(
    tenant_id: str,
    invitation_id: str,
    _: CurrentUser = Depends(require_permission("users.create")),
    store: DocumentStore = Depends(get_document_store),
    mailer: Mailer = Depends(get_mailer),
    settings: Settings = Depends(get_settings),
):
    invitation = invitations.resend_invitation(
        store, tenant_id, invitation_id, settings=settings, mailer=mailer
    )
    return ok(invitation, exclude=HIDDEN_FIELDS, message=f"Invitation resent to {invitation.email}")


@router.get("/invitations/{token}/verify")
def verify_invitation(token: str, store: DocumentStore = Depends(get_document_store)):
    return invitations.verify_invitation(store, token)


@router.post("/invitations/{token}/accept")
def accept_invitation(
    token: str,
    body: InvitationAccept,
    store: DocumentStore = Depends(get_document_store),
    auth_client: AuthClient = Depends(get_auth_client),
):
    return invitations.accept_invitation(store, auth_client, token, body.password)
