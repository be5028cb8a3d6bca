"""
Move legacy broker documents without a valid CRECI into the users collection.

Those records belong to staff (admins and managers) that were created as
brokers before the two were split. Brokers with a valid CRECI stay put.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from imob_api.dependencies import get_document_store
from imob_api.documents import DocumentStore
from shared import validators
from shared.firebase_constants import (
    BROKERS_COLLECTION,
    TENANTS_COLLECTION,
    USERS_COLLECTION,
    tenant_collection,
)
from shared.types import UserRole, default_permissions

logger = logging.getLogger(__name__)

COPIED_FIELDS = (
    "firebase_uid",
    "name",
    "email",
    "phone",
    "document",
    "document_type",
    "is_active",
    "photo_url",
    "created_at",
    "updated_at",
)


def map_broker_role(role: str) -> str:
    """A broker without a CRECI is staff: broker_admin/admin -> admin, anything else -> manager."""
    if role in (UserRole.BROKER_ADMIN, UserRole.ADMIN):
        return UserRole.ADMIN.value
    if role in (UserRole.MANAGER, UserRole.BROKER):
        return UserRole.MANAGER.value
    return UserRole.ADMIN.value


def broker_to_user(tenant_id: str, broker: dict) -> dict:
    user = {key: broker[key] for key in COPIED_FIELDS if key in broker}
    role = map_broker_role(broker.get("role", ""))
    user.update(
        {
            "tenant_id": broker.get("tenant_id") or tenant_id,
            "role": role,
            "permissions": default_permissions(role),
        }
    )
    return user


def migrate_brokers_to_users(
    store: DocumentStore, *, dry_run: bool = False
) -> tuple[int, int, int]:
    """Returns (brokers scanned, migrated, kept)."""
    scanned = migrated = kept = 0
    for tenant in store.query(TENANTS_COLLECTION):
        for broker in store.query(tenant_collection(tenant.id, BROKERS_COLLECTION)):
            scanned += 1
            if validators.is_valid_creci(broker.data.get("creci")):
                kept += 1
                continue
            user = broker_to_user(tenant.id, broker.data)
            logger.info(
                "[%s] %s (%s): broker -> user with role %s",
                tenant.id,
                broker.data.get("name", ""),
                broker.id,
                user["role"],
            )
            migrated += 1
            if dry_run:
                continue
            created = store.create(tenant_collection(tenant.id, USERS_COLLECTION), user)
            store.delete(broker.path)
            logger.info("Created user %s", created.id)
    return scanned, migrated, kept


def main() -> int:
    parser = argparse.ArgumentParser(description="Move brokers without CRECI into users")
    parser.add_argument("--dry-run", action="store_true", help="Log the changes without writing")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(message)s")
    scanned, migrated, kept = migrate_brokers_to_users(get_document_store(), dry_run=args.dry_run)
    logger.info("Brokers: %d scanned, %d migrated, %d kept", scanned, migrated, kept)
    return 0


if __name__ == "__main__":
    sys.exit(main())
