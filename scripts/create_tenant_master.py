"""
Create the platform admin tenant and move an existing admin user into it.

The user document is copied (same id) from its current tenant into
`tenants/tenant_master` and the Firebase custom claims are rewritten so the
next ID token carries the platform tenant.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from imob_api.auth import AuthClient
from imob_api.dependencies import get_auth_client, get_document_store
from imob_api.documents import DocumentStore, utc_now
from imob_api.errors import NotFoundError
from shared.firebase_constants import (
    TENANT_MASTER_ID,
    USERS_COLLECTION,
    tenant_document,
    tenant_path,
)
from shared.string_utils import generate_slug
from shared.types import UserRole

logger = logging.getLogger(__name__)


def create_tenant_master(
    store: DocumentStore,
    auth: AuthClient,
    *,
    source_tenant_id: str,
    user_id: str,
    firebase_uid: Optional[str] = None,
    tenant_data: Optional[dict] = None,
    dry_run: bool = False,
) -> dict:
    """
    Returns the custom claims set on the user.

    Raises:
        NotFoundError: If the user document does not exist in `source_tenant_id`.
    """
    user_doc = store.get(tenant_document(source_tenant_id, USERS_COLLECTION, user_id))
    if not user_doc:
        raise NotFoundError(f"user {user_id} not found in tenant {source_tenant_id}")
    firebase_uid = firebase_uid or user_doc.data.get("firebase_uid")
    if not firebase_uid:
        raise NotFoundError(f"user {user_id} has no firebase_uid")

    now = utc_now()
    tenant = dict(tenant_data or {})
    tenant.setdefault("name", "Platform Admin")
    tenant.setdefault("slug", generate_slug(tenant["name"]))
    tenant.update(
        {
            "is_active": True,
            "is_platform_admin": True,
            "created_at": now,
            "updated_at": now,
        }
    )
    user = dict(user_doc.data)
    user.update(
        {
            "tenant_id": TENANT_MASTER_ID,
            "role": UserRole.ADMIN.value,
            "firebase_uid": firebase_uid,
            "updated_at": now,
        }
    )
    claims = {"tenant_id": TENANT_MASTER_ID, "user_id": user_id, "role": UserRole.ADMIN.value}

    logger.info("Creating %s (%s)", tenant_path(TENANT_MASTER_ID), tenant["name"])
    logger.info("Copying user %s from tenant %s", user_id, source_tenant_id)
    if dry_run:
        return claims
    store.set(tenant_path(TENANT_MASTER_ID), tenant, merge=True)
    store.set(tenant_document(TENANT_MASTER_ID, USERS_COLLECTION, user_id), user)
    auth.set_custom_user_claims(firebase_uid, claims)
    logger.info("Custom claims for %s: %s", firebase_uid, claims)
    return claims


def main() -> int:
    parser = argparse.ArgumentParser(description="Create the platform admin tenant")
    parser.add_argument("--source-tenant", required=True, help="Tenant the admin user lives in now")
    parser.add_argument("--user-id", required=True, help="User document id")
    parser.add_argument("--firebase-uid", default=None, help="Defaults to the user's firebase_uid")
    parser.add_argument("--name", default="Platform Admin", help="Tenant display name")
    parser.add_argument("--email", default="", help="Tenant contact email")
    parser.add_argument("--phone", default="", help="Tenant contact phone")
    parser.add_argument("--document", default="", help="Tenant CNPJ")
    parser.add_argument("--dry-run", action="store_true", help="Log the changes without writing")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(message)s")
    tenant_data = {"name": args.name, "email": args.email, "phone": args.phone}
    if args.document:
        tenant_data.update({"document": args.document, "document_type": "cnpj"})
    try:
        create_tenant_master(
            get_document_store(),
            get_auth_client(),
            source_tenant_id=args.source_tenant,
            user_id=args.user_id,
            firebase_uid=args.firebase_uid,
            tenant_data={k: v for k, v in tenant_data.items() if v},
            dry_run=args.dry_run,
        )
    except NotFoundError as exc:
        logger.error("%s", exc.message)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
