"""
Owner confirmation links.

An operator sends the owner a one-time link; the owner opens a public page and
confirms the property is still available, no longer available, or at a new
price. Only the sha256 of the token is stored.
"""

from __future__ import annotations

import hashlib
import logging
import secrets
from datetime import timedelta
from typing import Optional

from imob_api.documents import DocumentStore, utc_now
from imob_api.errors import NotFoundError, ValidationError
from imob_api.mailer import Mailer, send_owner_confirmation_email
from imob_api.services.activity_log import record_activity
from imob_api.services.common import get_tenant, parse_enum, to_record
from imob_api.services.owners import get_owner
from imob_api.services.properties import get_property, update_property
from shared.firebase_constants import (
    OWNER_CONFIRMATION_TOKENS_COLLECTION,
    PROPERTIES_COLLECTION,
    tenant_collection,
    tenant_document,
)
from shared.string_utils import mask_email, mask_name, mask_phone
from shared.types import (
    ActorType,
    ConfirmationAction,
    OwnerConfirmationToken,
    PropertyStatus,
    TransactionType,
)

logger = logging.getLogger(__name__)

DEFAULT_TTL_DAYS = 7
PAGE_NOT_FOUND = "token not found or expired"
SUBMIT_NOT_FOUND = "token not found, expired, or already used"
THANK_YOU_MESSAGE = "Obrigado! Informação atualizada com sucesso."


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _tokens_path(tenant_id: str) -> str:
    return tenant_collection(tenant_id, OWNER_CONFIRMATION_TOKENS_COLLECTION)


def create_confirmation_link(
    store: DocumentStore,
    tenant_id: str,
    property_id: str,
    *,
    actor_id: str,
    base_url: str,
    delivery_hint: str = "",
    ttl_days: int = DEFAULT_TTL_DAYS,
    mailer: Optional[Mailer] = None,
) -> dict:
    """
    Creates a token for a property and returns the raw token and its URL.

    The raw token is only available here; it is emailed to the owner when a
    mailer is given and the owner has an email.
    """
    tenant = get_tenant(store, tenant_id)
    prop = get_property(store, tenant_id, property_id)
    owner = get_owner(store, tenant_id, prop.owner_id) if prop.owner_id else None

    token = secrets.token_urlsafe(32)
    now = utc_now()
    expires_at = now + timedelta(days=ttl_days)
    data = {
        "tenant_id": tenant_id,
        "property_id": property_id,
        "owner_id": owner.id if owner else None,
        "token_hash": hash_token(token),
        "expires_at": expires_at,
        "created_by_actor_id": actor_id,
        "created_by_actor_type": ActorType.USER.value,
        "delivery_hint": delivery_hint,
        "created_at": now,
    }
    if owner:
        data["owner_snapshot"] = {
            "name": mask_name(owner.name),
            "phone": mask_phone(owner.phone),
            "email": mask_email(owner.email),
        }
    doc = store.create(_tokens_path(tenant_id), data)

    confirm_url = f"{base_url.rstrip('/')}/confirmar/{token}?tenant_id={tenant_id}"
    email_sent = False
    if mailer is not None and owner and owner.email:
        email_sent = send_owner_confirmation_email(
            mailer,
            email=owner.email,
            owner_name=owner.name,
            tenant_name=tenant.name,
            property_title=prop.title,
            reference=prop.reference,
            confirm_url=confirm_url,
            expires_at=expires_at,
        )
        if not email_sent:
            logger.warning("Owner confirmation email for property %s not sent", property_id)

    record_activity(
        store,
        tenant_id,
        "owner_confirmation_link_created",
        actor_type=ActorType.USER,
        actor_id=actor_id,
        metadata={"property_id": property_id, "token_id": doc.id},
    )
    return {
        "token_id": doc.id,
        "token": token,
        "confirm_url": confirm_url,
        "expires_at": expires_at.isoformat(),
        "email_sent": email_sent,
    }


def _find_valid_token(
    store: DocumentStore, tenant_id: str, token: str, *, allow_used: bool
) -> Optional[OwnerConfirmationToken]:
    if not token or not tenant_id:
        return None
    docs = store.query(_tokens_path(tenant_id), [("token_hash", "==", hash_token(token))], limit=1)
    if not docs:
        return None
    record = to_record(OwnerConfirmationToken, docs[0])
    if record.expires_at and record.expires_at < utc_now():
        return None
    if record.used_at and not allow_used:
        return None
    return record


def get_confirmation_page(store: DocumentStore, tenant_id: str, token: str) -> dict:
    record = _find_valid_token(store, tenant_id, token, allow_used=True)
    if record is None:
        raise NotFoundError(PAGE_NOT_FOUND)
    try:
        prop = get_property(store, tenant_id, record.property_id)
    except NotFoundError:
        raise NotFoundError(PAGE_NOT_FOUND) from None
    snapshot = record.owner_snapshot
    return {
        "property": {
            "id": prop.id,
            "title": prop.title,
            "reference": prop.reference,
            "city": prop.city,
            "neighborhood": prop.neighborhood,
            "price_amount": prop.price_amount,
            "status": str(prop.status),
        },
        "owner": {"name": snapshot.name, "phone": snapshot.phone, "email": snapshot.email}
        if snapshot
        else None,
        "expires_at": record.expires_at.isoformat() if record.expires_at else None,
        "already_used": record.used_at is not None,
    }


def submit_confirmation(
    store: DocumentStore,
    tenant_id: str,
    token: str,
    action: str,
    price_amount: Optional[float] = None,
) -> None:
    action = parse_enum(ConfirmationAction, action, "action")
    if action == ConfirmationAction.CONFIRM_PRICE:
        if price_amount is None:
            raise ValidationError("price_amount is required when action is confirm_price")
        if price_amount <= 0:
            raise ValidationError("price_amount must be greater than zero")

    record = _find_valid_token(store, tenant_id, token, allow_used=False)
    if record is None:
        raise NotFoundError(SUBMIT_NOT_FOUND)

    prop = get_property(store, tenant_id, record.property_id)
    if action == ConfirmationAction.CONFIRM_UNAVAILABLE:
        updates = {"status": PropertyStatus.UNAVAILABLE.value}
    else:
        updates = {"status": PropertyStatus.AVAILABLE.value}
    if action == ConfirmationAction.CONFIRM_PRICE:
        price_field = "rental_price" if prop.transaction_type == TransactionType.RENT else "sale_price"
        updates[price_field] = price_amount
    now = utc_now()
    update_property(store, tenant_id, prop.id, updates, actor_type=ActorType.OWNER)
    store.update(
        tenant_document(tenant_id, PROPERTIES_COLLECTION, prop.id), {"last_confirmed_at": now}
    )
    store.update(
        tenant_document(tenant_id, OWNER_CONFIRMATION_TOKENS_COLLECTION, record.id),
        {"used_at": now, "last_action": action.value},
    )
    record_activity(
        store,
        tenant_id,
        f"owner_{action.value}",
        actor_type=ActorType.OWNER,
        actor_id=record.owner_id or "",
        metadata={
            "property_id": prop.id,
            "action": action.value,
            "price_amount": price_amount,
        },
    )
