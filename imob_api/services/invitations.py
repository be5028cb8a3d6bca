"""
Team invitations: an admin invites someone by email, the invitee sets a
password through the emailed link and becomes a user of the tenant.
"""

from __future__ import annotations

import logging
import secrets
from datetime import timedelta
from typing import Optional

from imob_api.auth import AuthClient
from imob_api.config import Settings
from imob_api.documents import DocumentStore, utc_now
from imob_api.errors import ConflictError, ValidationError
from imob_api.mailer import Mailer, send_invitation_email
from imob_api.services.activity_log import record_activity
from imob_api.services.common import (
    get_tenant,
    get_tenant_record,
    parse_enum,
    require,
    to_record,
    validated,
)
from imob_api.services.users import create_user, find_user_by_email
from shared import validators
from shared.firebase_constants import (
    USER_INVITATIONS_COLLECTION,
    USERS_COLLECTION,
    tenant_collection,
    tenant_document,
)
from shared.types import (
    BROKER_ROLES,
    ActorType,
    InvitationStatus,
    UserInvitation,
    UserRole,
    default_permissions,
)

logger = logging.getLogger(__name__)


def _invitations_path(tenant_id: str) -> str:
    return tenant_collection(tenant_id, USER_INVITATIONS_COLLECTION)


def _invitation_path(tenant_id: str, invitation_id: str) -> str:
    return tenant_document(tenant_id, USER_INVITATIONS_COLLECTION, invitation_id)


def generate_token() -> str:
    return secrets.token_hex(32)


def user_claims(tenant_id: str, user_id: str, role: str) -> dict:
    return {"tenant_id": tenant_id, "role": str(role), "user_id": user_id, "broker_id": user_id}


def _inviter_name(store: DocumentStore, tenant_id: str, inviter_uid: str) -> str:
    if not inviter_uid:
        return "Administrador"
    docs = store.query(
        tenant_collection(tenant_id, USERS_COLLECTION),
        [("firebase_uid", "==", inviter_uid)],
        limit=1,
    )
    return docs[0].data.get("name", "Administrador") if docs else "Administrador"


def _send_email(
    store: DocumentStore,
    invitation: UserInvitation,
    *,
    mailer: Optional[Mailer],
    settings: Settings,
) -> bool:
    if mailer is None:
        return False
    tenant = get_tenant(store, invitation.tenant_id)
    return send_invitation_email(
        mailer,
        frontend_url=settings.frontend_url,
        from_name=settings.email_from_name,
        email=invitation.email,
        name=invitation.name,
        token=invitation.token,
        tenant_name=tenant.name,
        inviter_name=_inviter_name(store, invitation.tenant_id, invitation.invited_by),
        role=str(invitation.role),
        expires_at=invitation.expires_at,
    )


def invite_user(
    store: DocumentStore,
    tenant_id: str,
    data: dict,
    *,
    inviter_uid: str,
    settings: Settings,
    mailer: Optional[Mailer] = None,
) -> UserInvitation:
    get_tenant(store, tenant_id)
    email = validated(validators.validate_email, require(data.get("email"), "email is required"))
    name = require((data.get("name") or "").strip(), "name is required")
    role = parse_enum(UserRole, data.get("role") or UserRole.BROKER, "role")
    creci = data.get("creci") or ""
    if role in BROKER_ROLES:
        creci = validated(validators.validate_creci, require(creci, "creci is required for brokers"))
    phone = validated(validators.validate_phone, data["phone"]) if data.get("phone") else ""

    if find_user_by_email(store, tenant_id, email):
        raise ConflictError("a user with this email already exists in this tenant")
    pending = store.query(
        _invitations_path(tenant_id),
        [("email", "==", email), ("status", "==", InvitationStatus.PENDING.value)],
        limit=1,
    )
    if pending:
        raise ConflictError("a pending invitation already exists for this email")

    now = utc_now()
    doc = store.create(
        _invitations_path(tenant_id),
        {
            "tenant_id": tenant_id,
            "email": email,
            "name": name,
            "phone": phone,
            "role": role.value,
            "permissions": list(data.get("permissions") or default_permissions(role)),
            "creci": creci,
            "token": generate_token(),
            "status": InvitationStatus.PENDING.value,
            "invited_by": inviter_uid,
            "expires_at": now + timedelta(days=settings.invitation_ttl_days),
            "created_at": now,
            "updated_at": now,
        },
    )
    invitation = to_record(UserInvitation, doc)
    if not _send_email(store, invitation, mailer=mailer, settings=settings):
        logger.warning("Invitation %s created but the email was not sent", invitation.id)
    record_activity(
        store,
        tenant_id,
        "user_invited",
        actor_type=ActorType.USER,
        actor_id=inviter_uid,
        metadata={"email": email, "role": role.value, "invitation_id": invitation.id},
    )
    return invitation


def _find_by_token(store: DocumentStore, token: str) -> Optional[UserInvitation]:
    if not token:
        return None
    docs = store.collection_group(USER_INVITATIONS_COLLECTION, [("token", "==", token)], limit=1)
    if not docs:
        return None
    invitation = to_record(UserInvitation, docs[0])
    if not invitation.tenant_id:
        invitation.tenant_id = docs[0].tenant_id
    return invitation


def _check_usable(store: DocumentStore, invitation: Optional[UserInvitation]) -> Optional[str]:
    """Returns why the invitation cannot be used, or None. Marks stale ones expired."""
    if invitation is None:
        return "Invalid invitation token"
    if invitation.status != InvitationStatus.PENDING:
        return f"Invitation is {invitation.status}"
    if invitation.expires_at and invitation.expires_at < utc_now():
        store.update(
            _invitation_path(invitation.tenant_id, invitation.id),
            {"status": InvitationStatus.EXPIRED.value, "updated_at": utc_now()},
        )
        return "Invitation has expired"
    return None


def public_invitation(store: DocumentStore, invitation: UserInvitation) -> dict:
    tenant = get_tenant(store, invitation.tenant_id)
    return {
        "id": invitation.id,
        "email": invitation.email,
        "name": invitation.name,
        "role": str(invitation.role),
        "tenant_id": invitation.tenant_id,
        "tenant_name": tenant.name,
        "expires_at": invitation.expires_at.isoformat() if invitation.expires_at else None,
    }


def verify_invitation(store: DocumentStore, token: str) -> dict:
    invitation = _find_by_token(store, token)
    problem = _check_usable(store, invitation)
    if problem:
        return {"valid": False, "message": problem}
    return {"valid": True, "invitation": public_invitation(store, invitation)}


def accept_invitation(
    store: DocumentStore, auth_client: AuthClient, token: str, password: str
) -> dict:
    invitation = _find_by_token(store, token)
    problem = _check_usable(store, invitation)
    if problem:
        raise ValidationError(problem)
    validated(validators.validate_password, password)
    tenant_id = invitation.tenant_id

    auth_user = auth_client.create_user(
        email=invitation.email,
        password=password,
        display_name=invitation.name,
        email_verified=True,
    )
    try:
        user = create_user(
            store,
            tenant_id,
            {
                "name": invitation.name,
                "email": invitation.email,
                "phone": invitation.phone or None,
                "role": str(invitation.role),
                "permissions": invitation.permissions,
                "creci": invitation.creci or None,
            },
            firebase_uid=auth_user.uid,
        )
    except Exception:
        logger.exception("Creating user for invitation %s failed, removing auth user", invitation.id)
        auth_client.delete_user(auth_user.uid)
        raise

    claims = user_claims(tenant_id, user.id, str(user.role))
    auth_client.set_custom_user_claims(auth_user.uid, claims)
    now = utc_now()
    store.update(
        _invitation_path(tenant_id, invitation.id),
        {
            "status": InvitationStatus.ACCEPTED.value,
            "accepted_at": now,
            "user_id": user.id,
            "updated_at": now,
        },
    )
    record_activity(
        store,
        tenant_id,
        "invitation_accepted",
        actor_type=ActorType.USER,
        actor_id=auth_user.uid,
        metadata={"user_id": user.id, "invitation_id": invitation.id},
    )
    return {
        "user_id": user.id,
        "tenant_id": tenant_id,
        "firebase_token": auth_client.create_custom_token(auth_user.uid, claims),
        "message": "Invitation accepted successfully",
    }


def get_invitation(store: DocumentStore, tenant_id: str, invitation_id: str) -> UserInvitation:
    return get_tenant_record(
        store,
        UserInvitation,
        tenant_id,
        USER_INVITATIONS_COLLECTION,
        invitation_id,
        "invitation not found",
    )


def list_invitations(
    store: DocumentStore, tenant_id: str, status: Optional[str] = None
) -> list[UserInvitation]:
    filters = []
    if status:
        filters.append(("status", "==", parse_enum(InvitationStatus, status, "status").value))
    docs = store.query(
        _invitations_path(tenant_id), filters, order_by="created_at", descending=True
    )
    return [to_record(UserInvitation, doc) for doc in docs]


def cancel_invitation(
    store: DocumentStore, tenant_id: str, invitation_id: str, *, actor_id: str = ""
) -> UserInvitation:
    invitation = get_invitation(store, tenant_id, invitation_id)
    if invitation.status != InvitationStatus.PENDING:
        raise ValidationError(f"Cannot cancel {invitation.status} invitation")
    store.update(
        _invitation_path(tenant_id, invitation_id),
        {"status": InvitationStatus.CANCELLED.value, "updated_at": utc_now()},
    )
    record_activity(
        store,
        tenant_id,
        "invitation_cancelled",
        actor_type=ActorType.USER if actor_id else ActorType.SYSTEM,
        actor_id=actor_id,
        metadata={"invitation_id": invitation_id, "email": invitation.email},
    )
    return get_invitation(store, tenant_id, invitation_id)


def resend_invitation(
    store: DocumentStore,
    tenant_id: str,
    invitation_id: str,
    *,
    settings: Settings,
    mailer: Optional[Mailer] = None,
) -> UserInvitation:
    invitation = get_invitation(store, tenant_id, invitation_id)
    if invitation.status != InvitationStatus.PENDING:
        raise ValidationError(f"Cannot resend {invitation.status} invitation")
    now = utc_now()
    store.update(
        _invitation_path(tenant_id, invitation_id),
        {
            "token": generate_token(),
            "expires_at": now + timedelta(days=settings.invitation_ttl_days),
            "updated_at": now,
        },
    )
    invitation = get_invitation(store, tenant_id, invitation_id)
    if not _send_email(store, invitation, mailer=mailer, settings=settings):
        logger.warning("Invitation %s renewed but the email was not sent", invitation_id)
    return invitation
