"""
Set the broker role on a list of users of one tenant.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Iterable

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from imob_api.dependencies import get_document_store
from imob_api.documents import DocumentStore, utc_now
from shared.firebase_constants import USERS_COLLECTION, tenant_document
from shared.types import UserRole

logger = logging.getLogger(__name__)


def batch_update_roles(
    store: DocumentStore,
    tenant_id: str,
    user_ids: Iterable[str],
    *,
    role: str = UserRole.BROKER.value,
    dry_run: bool = False,
) -> tuple[int, int]:
    """Returns (updated, missing)."""
    updated = missing = 0
    for user_id in user_ids:
        path = tenant_document(tenant_id, USERS_COLLECTION, user_id)
        doc = store.get(path)
        if not doc:
            logger.warning("User %s not found in tenant %s", user_id, tenant_id)
            missing += 1
            continue
        logger.info("%s (%s): %s -> %s", doc.data.get("name", ""), user_id, doc.data.get("role"), role)
        updated += 1
        if not dry_run:
            store.update(path, {"role": role, "updated_at": utc_now()})
    return updated, missing


def main() -> int:
    parser = argparse.ArgumentParser(description="Set the role of several users at once")
    parser.add_argument("--tenant-id", required=True)
    parser.add_argument("user_ids", nargs="+", help="User document ids")
    parser.add_argument(
        "--role",
        default=UserRole.BROKER.value,
        choices=[role.value for role in UserRole],
    )
    parser.add_argument("--dry-run", action="store_true", help="Log the changes without writing")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(message)s")
    updated, missing = batch_update_roles(
        get_document_store(), args.tenant_id, args.user_ids, role=args.role, dry_run=args.dry_run
    )
    logger.info("Updated %d users, %d not found", updated, missing)
    return 1 if missing else 0


if __name__ == "__main__":
    sys.exit(main())
