"""
Self-service signup, login and token refresh.

Signup creates three things (auth user, tenant, first user) and removes what
it already created when a later step fails.
"""

from __future__ import annotations

import logging
import time

from imob_api.auth import AuthClient
from imob_api.documents import DocumentStore, utc_now
from imob_api.errors import (
    AuthenticationError,
    ConflictError,
    ForbiddenError,
    ValidationError,
)
from imob_api.services.activity_log import record_activity
from imob_api.services.common import get_tenant, require, validated
from imob_api.services.invitations import user_claims
from imob_api.services.users import find_user_by_firebase_uid
from shared import validators
from shared.firebase_constants import (
    TENANTS_COLLECTION,
    USERS_COLLECTION,
    tenant_collection,
    tenant_path,
)
from shared.string_utils import generate_slug
from shared.types import ADMIN_PERMISSIONS, BusinessType, TenantType, UserRole

logger = logging.getLogger(__name__)

PJ_BUSINESS_TYPES = (
    BusinessType.IMOBILIARIA,
    BusinessType.INCORPORADORA,
    BusinessType.CONSTRUTORA,
    BusinessType.LOTEADORA,
)


def _require_creci_kind(creci: str, kind: str, message: str) -> str:
    creci = validated(validators.validate_creci, creci)
    if validators.creci_kind(creci) != kind:
        raise ValidationError(message)
    return creci


def validate_signup(data: dict) -> dict:
    """Checks the signup form and returns the normalized fields to persist."""
    email = validated(validators.validate_email, require(data.get("email"), "email is required"))
    password = validated(validators.validate_password, data.get("password") or "")
    name = require((data.get("name") or "").strip(), "name is required")
    phone = validated(validators.normalize_phone_e164, require(data.get("phone"), "phone is required"))
    tenant_name = require((data.get("tenant_name") or "").strip(), "tenant_name is required")
    tenant_type = data.get("tenant_type")
    if tenant_type not in (TenantType.PF, TenantType.PJ):
        raise ValidationError("tenant_type must be 'pf' or 'pj'")

    document = data.get("document") or ""
    tenant_creci = (data.get("tenant_creci") or "").strip()
    is_user_broker = bool(data.get("is_user_broker"))
    user_creci = (data.get("user_creci") or "").strip()

    if tenant_type == TenantType.PF:
        document = validated(validators.validate_cpf, document)
        require(tenant_creci, "CRECI-F é obrigatório para corretor autônomo")
        tenant_creci = _require_creci_kind(
            tenant_creci, "F", "Corretor autônomo requer CRECI-F (Pessoa Física)"
        )
        business_type = BusinessType.CORRETOR_AUTONOMO
        is_user_broker = True
        user_creci = tenant_creci
    else:
        document = validated(validators.validate_cnpj, document)
        business_type = data.get("business_type")
        require(business_type, "business_type é obrigatório para PJ")
        if business_type not in PJ_BUSINESS_TYPES:
            raise ValidationError("business_type inválido")
        if business_type == BusinessType.IMOBILIARIA:
            require(tenant_creci, "CRECI-J é obrigatório para imobiliária")
            tenant_creci = _require_creci_kind(
                tenant_creci, "J", "Imobiliária requer CRECI-J (Pessoa Jurídica)"
            )
        elif tenant_creci:
            tenant_creci = validated(validators.validate_creci, tenant_creci)
        if is_user_broker:
            require(user_creci, "CRECI é obrigatório para corretores")
            user_creci = _require_creci_kind(
                user_creci, "F", "Admin corretor precisa de CRECI-F individual"
            )
        else:
            user_creci = ""

    return {
        "email": email,
        "password": password,
        "name": name,
        "phone": phone,
        "tenant_name": tenant_name,
        "tenant_type": str(tenant_type),
        "document": document,
        "document_type": "cpf" if tenant_type == TenantType.PF else "cnpj",
        "business_type": str(business_type),
        "tenant_creci": tenant_creci,
        "is_user_broker": is_user_broker,
        "user_creci": user_creci,
    }


def signup(store: DocumentStore, auth_client: AuthClient, data: dict) -> dict:
    fields = validate_signup(data)
    if auth_client.get_user_by_email(fields["email"]):
        raise ConflictError("Email already registered")

    auth_user = auth_client.create_user(
        email=fields["email"], password=fields["password"], display_name=fields["name"]
    )
    now = utc_now()
    tenant_id = store.new_id()
    try:
        store.create(
            TENANTS_COLLECTION,
            {
                "name": fields["tenant_name"],
                "slug": f"{generate_slug(fields['tenant_name'])}-{int(time.time())}",
                "tenant_type": fields["tenant_type"],
                "document": fields["document"],
                "document_type": fields["document_type"],
                "business_type": fields["business_type"],
                "creci": fields["tenant_creci"],
                "email": fields["email"],
                "phone": fields["phone"],
                "country": "BR",
                "settings": {},
                "subscription_plan": "full",
                "subscription_status": "active",
                "subscription_started_at": now,
                "is_active": True,
                "is_platform_admin": False,
                "created_at": now,
                "updated_at": now,
            },
            doc_id=tenant_id,
        )
    except Exception:
        logger.exception("Creating tenant for %s failed, removing auth user", fields["email"])
        auth_client.delete_user(auth_user.uid)
        raise

    role = UserRole.BROKER_ADMIN if fields["is_user_broker"] else UserRole.ADMIN
    try:
        user_doc = store.create(
            tenant_collection(tenant_id, USERS_COLLECTION),
            {
                "tenant_id": tenant_id,
                "firebase_uid": auth_user.uid,
                "name": fields["name"],
                "email": fields["email"],
                "phone": fields["phone"],
                "creci": fields["user_creci"],
                "role": role.value,
                "is_active": True,
                "permissions": list(ADMIN_PERMISSIONS),
                "created_at": now,
                "updated_at": now,
            },
        )
    except Exception:
        logger.exception("Creating user for tenant %s failed, rolling back signup", tenant_id)
        store.delete(tenant_path(tenant_id))
        auth_client.delete_user(auth_user.uid)
        raise

    claims = user_claims(tenant_id, user_doc.id, role.value)
    auth_client.set_custom_user_claims(auth_user.uid, claims)
    token = auth_client.create_custom_token(auth_user.uid)

    record_activity(
        store,
        tenant_id,
        "tenant_created",
        metadata={
            "tenant_type": fields["tenant_type"],
            "business_type": fields["business_type"],
            "has_creci": bool(fields["tenant_creci"]),
        },
    )
    if fields["is_user_broker"]:
        record_activity(
            store,
            tenant_id,
            "broker_created",
            metadata={"broker_id": user_doc.id, "creci": fields["user_creci"]},
        )
    else:
        record_activity(store, tenant_id, "user_created", metadata={"user_id": user_doc.id})
    logger.info("Signup complete: tenant %s, user %s", tenant_id, user_doc.id)

    return {
        "tenant_id": tenant_id,
        "broker_id": user_doc.id,
        "firebase_token": token,
        "user": {
            "uid": auth_user.uid,
            "email": fields["email"],
            "name": fields["name"],
            "role": role.value,
        },
    }


def login(store: DocumentStore, auth_client: AuthClient, email: str, password: str) -> dict:
    """
    Checks the credentials with the auth provider and exchanges them for a
    custom token carrying tenant claims.
    """
    email = (email or "").strip().lower()
    if not email or not password:
        raise AuthenticationError("Invalid credentials")
    uid = auth_client.verify_password(email, password)
    auth_user = auth_client.get_user(uid)
    if not auth_user:
        raise AuthenticationError("Invalid credentials")

    user = find_user_by_firebase_uid(store, auth_user.uid)
    if not user:
        logger.warning("No user document for firebase uid %s", auth_user.uid)
        raise AuthenticationError("User not found. Please contact your administrator.")
    if not user.is_active:
        raise ForbiddenError("Account is inactive")

    tenant = get_tenant(store, user.tenant_id)
    if not tenant.is_active:
        raise ForbiddenError("Tenant account is inactive")

    claims = user_claims(user.tenant_id, user.id, str(user.role))
    token = auth_client.create_custom_token(auth_user.uid, claims)
    logger.info("Login for user %s (tenant %s, role %s)", user.id, user.tenant_id, user.role)
    return {
        "firebase_token": token,
        "tenant_id": user.tenant_id,
        "is_platform_admin": tenant.is_platform_admin,
        "broker": {
            "id": user.id,
            "name": user.name,
            "email": user.email,
            "role": str(user.role),
        },
    }


def refresh(store: DocumentStore, auth_client: AuthClient, firebase_uid: str) -> dict:
    user = find_user_by_firebase_uid(store, firebase_uid)
    if not user:
        raise AuthenticationError("User not found. Please contact your administrator.")
    if not user.is_active:
        raise ForbiddenError("Account is inactive")
    tenant = get_tenant(store, user.tenant_id)
    if not tenant.is_active:
        raise ForbiddenError("Tenant account is inactive")

    claims = user_claims(user.tenant_id, user.id, str(user.role))
    return {
        "firebase_token": auth_client.create_custom_token(firebase_uid, claims),
        "tenant_id": user.tenant_id,
        "broker_id": user.id,
    }
