"""
Give the broker role to every user that holds a CRECI.
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
from imob_api.documents import DocumentStore, utc_now
from shared.firebase_constants import TENANTS_COLLECTION, USERS_COLLECTION, tenant_collection
from shared.types import UserRole

logger = logging.getLogger(__name__)


def update_brokers_role(store: DocumentStore, *, dry_run: bool = False) -> int:
    updated = 0
    for tenant in store.query(TENANTS_COLLECTION):
        for user in store.query(tenant_collection(tenant.id, USERS_COLLECTION)):
            if not (user.data.get("creci") or "").strip():
                continue
            role = user.data.get("role") or "unknown"
            if role == UserRole.BROKER:
                continue
            logger.info(
                "[%s] %s (%s): %s -> broker",
                tenant.data.get("name") or tenant.id,
                user.data.get("name", ""),
                user.id,
                role,
            )
            updated += 1
            if not dry_run:
                store.update(user.path, {"role": UserRole.BROKER.value, "updated_at": utc_now()})
    return updated


def main() -> int:
    parser = argparse.ArgumentParser(description="Set role=broker on users with a CRECI")
    parser.add_argument("--dry-run", action="store_true", help="Log the changes without writing")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(message)s")
    updated = update_brokers_role(get_document_store(), dry_run=args.dry_run)
    logger.info("Updated %d users", updated)
    return 0


if __name__ == "__main__":
    sys.exit(main())
