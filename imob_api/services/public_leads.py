"""
Lead capture from the public property site.

The visitor only knows the property id, so the tenant is resolved from the
property. WhatsApp clicks carry implicit consent (the site shows the consent
text next to the button); form submissions must tick the consent box.
"""

from __future__ import annotations

import logging
from urllib.parse import quote

from imob_api.documents import DocumentStore
from imob_api.errors import ValidationError
from imob_api.services.common import get_tenant
from imob_api.services.leads import create_lead
from imob_api.services.properties import get_public_property
from imob_api.services.property_broker_roles import get_originating_broker, get_primary_broker
from shared import validators
from shared.firebase_constants import USERS_COLLECTION, tenant_document
from shared.types import ActorType, LeadChannel, Property

logger = logging.getLogger(__name__)

PUBLIC_CONSENT_TEXT = (
    "Concordo com a Política de Privacidade e autorizo o uso dos meus dados "
    "para contato sobre este imóvel."
)
WHATSAPP_DEFAULT_NAME = "Lead via WhatsApp"
WHATSAPP_DEFAULT_PHONE = "WhatsApp"
FORM_SUCCESS_MESSAGE = "Lead criado com sucesso. O corretor entrará em contato em breve."

_TRACKING_FIELDS = ("utm_source", "utm_campaign", "utm_medium", "referrer")


def _broker_phone(store: DocumentStore, prop: Property) -> str:
    role = get_originating_broker(store, prop.tenant_id, prop.id) or get_primary_broker(
        store, prop.tenant_id, prop.id
    )
    if role is None:
        return ""
    doc = store.get(tenant_document(prop.tenant_id, USERS_COLLECTION, role.broker_id))
    return (doc.data.get("phone") or "") if doc else ""


def whatsapp_number(store: DocumentStore, prop: Property) -> str:
    """Digits with country code of whoever answers for the property, or ''."""
    phone = _broker_phone(store, prop) or get_tenant(store, prop.tenant_id).phone
    digits = validators.only_digits(phone or "")
    if not digits:
        return ""
    return digits if digits.startswith("55") and len(digits) > 11 else f"55{digits}"


def whatsapp_message(prop: Property) -> str:
    text = f"Olá! Tenho interesse no imóvel {prop.title}"
    if prop.reference:
        text += f" (ref. {prop.reference})"
    return text + "."


def whatsapp_link(store: DocumentStore, prop: Property) -> dict:
    text = whatsapp_message(prop)
    number = whatsapp_number(store, prop)
    if not number:
        logger.warning("No WhatsApp number for property %s of tenant %s", prop.id, prop.tenant_id)
    return {"url": f"https://wa.me/{number}?text={quote(text)}", "message": text}


def _tracking(data: dict) -> dict:
    return {key: data.get(key) for key in _TRACKING_FIELDS if data.get(key)}


def _actor(prop: Property, visitor_tenant_id: str, visitor_id: str) -> dict:
    """Signed-in members of the owning tenant are credited; everyone else is the site."""
    if visitor_id and visitor_tenant_id == prop.tenant_id:
        return {"actor_type": ActorType.USER, "actor_id": visitor_id}
    return {"actor_type": ActorType.SYSTEM}


def create_whatsapp_lead(
    store: DocumentStore,
    property_id: str,
    data: dict,
    *,
    client_ip: str = "",
    visitor_tenant_id: str = "",
    visitor_id: str = "",
) -> dict:
    prop = get_public_property(store, property_id)
    lead = create_lead(
        store,
        prop.tenant_id,
        {
            "property_id": prop.id,
            "name": data.get("name") or WHATSAPP_DEFAULT_NAME,
            "phone": data.get("phone") or WHATSAPP_DEFAULT_PHONE,
            "message": data.get("message"),
            "channel": LeadChannel.WHATSAPP.value,
            "consent_given": True,
            "consent_text": PUBLIC_CONSENT_TEXT,
            "consent_ip": client_ip,
            **_tracking(data),
        },
        **_actor(prop, visitor_tenant_id, visitor_id),
    )
    link = whatsapp_link(store, prop)
    return {
        "success": True,
        "lead_id": lead.id,
        "whatsapp_url": link["url"],
        "message": link["message"],
    }


def create_form_lead(
    store: DocumentStore,
    property_id: str,
    data: dict,
    *,
    client_ip: str = "",
    visitor_tenant_id: str = "",
    visitor_id: str = "",
) -> dict:
    if not data.get("consent_given"):
        raise ValidationError("consent_given must be true (LGPD compliance)")
    if not (data.get("name") or "").strip():
        raise ValidationError("name is required")
    if not data.get("email") and not data.get("phone"):
        raise ValidationError("email or phone is required")
    prop = get_public_property(store, property_id)
    lead = create_lead(
        store,
        prop.tenant_id,
        {
            "property_id": prop.id,
            "name": data["name"].strip(),
            "email": data.get("email"),
            "phone": data.get("phone"),
            "message": data.get("message"),
            "channel": LeadChannel.FORM.value,
            "consent_given": True,
            "consent_text": data.get("consent_text") or PUBLIC_CONSENT_TEXT,
            "consent_ip": client_ip,
            **_tracking(data),
        },
        **_actor(prop, visitor_tenant_id, visitor_id),
    )
    return {"success": True, "lead_id": lead.id, "message": FORM_SUCCESS_MESSAGE}
