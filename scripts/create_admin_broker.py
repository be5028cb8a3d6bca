"""
Give an existing Firebase Auth account admin access to a tenant.

The account must already exist in Firebase Auth. An existing user document
for the account is promoted to admin; otherwise one is created.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from imob_api.auth import AuthClient
from imob_api.dependencies import get_auth_client, get_document_store
from imob_api.documents import DocumentStore, utc_now
from imob_api.errors import NotFoundError
from imob_api.services.common import get_tenant
from imob_api.services.invitations import user_claims
from shared.firebase_constants import USERS_COLLECTION, tenant_collection
from shared.types import UserRole, default_permissions

logger = logging.getLogger(__name__)


def create_admin(
    store: DocumentStore, auth: AuthClient, tenant_id: str, email: str, *, dry_run: bool = False
) -> str:
    """
    Returns the user document id.

    Raises:
        NotFoundError: If the tenant or the Firebase account does not exist.
    """
    get_tenant(store, tenant_id)
    auth_user = auth.get_user_by_email(email)
    if not auth_user:
        raise NotFoundError(f"no Firebase Auth account for {email}; create it first")
    logger.info("Found Firebase user %s (uid %s)", auth_user.email, auth_user.uid)

    users_path = tenant_collection(tenant_id, USERS_COLLECTION)
    now = utc_now()
    existing = store.query(users_path, [("firebase_uid", "==", auth_user.uid)], limit=1)
    if existing:
        user_id = existing[0].id
        logger.info("User %s already exists, promoting to admin", user_id)
        if not dry_run:
            store.update(
                existing[0].path,
                {
                    "role": UserRole.ADMIN.value,
                    "permissions": default_permissions(UserRole.ADMIN),
                    "is_active": True,
                    "updated_at": now,
                },
            )
    else:
        data = {
            "tenant_id": tenant_id,
            "firebase_uid": auth_user.uid,
            "name": auth_user.display_name or "Admin",
            "email": auth_user.email.lower(),
            "phone": auth_user.phone_number or "",
            "role": UserRole.ADMIN.value,
            "permissions": default_permissions(UserRole.ADMIN),
            "is_active": True,
            "created_at": now,
            "updated_at": now,
        }
        if dry_run:
            logger.info("Would create admin user %s", data["email"])
            return ""
        user_id = store.create(users_path, data).id
        logger.info("Created admin user %s", user_id)

    if not dry_run:
        auth.set_custom_user_claims(
            auth_user.uid, user_claims(tenant_id, user_id, UserRole.ADMIN.value)
        )
    return user_id


def main() -> int:
    parser = argparse.ArgumentParser(description="Create or promote a tenant admin")
    parser.add_argument("email", help="Email of an existing Firebase Auth account")
    parser.add_argument("--tenant-id", required=True)
    parser.add_argument("--dry-run", action="store_true", help="Log the changes without writing")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(message)s")
    try:
        create_admin(
            get_document_store(), get_auth_client(), args.tenant_id, args.email, dry_run=args.dry_run
        )
    except NotFoundError as exc:
        logger.error("%s", exc.message)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
