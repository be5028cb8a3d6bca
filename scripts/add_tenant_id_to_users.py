"""
Backfill `tenant_id` on user documents that were written without it.
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
from shared.firebase_constants import USERS_COLLECTION

logger = logging.getLogger(__name__)


def add_tenant_id(store: DocumentStore, *, dry_run: bool = False) -> tuple[int, int]:
    """Returns (updated, skipped). The tenant comes from the document path."""
    updated = skipped = 0
    for doc in store.collection_group(USERS_COLLECTION):
        if doc.data.get("tenant_id") or not doc.tenant_id:
            skipped += 1
            continue
        logger.info("%s -> tenant_id=%s", doc.path, doc.tenant_id)
        updated += 1
        if not dry_run:
            store.update(doc.path, {"tenant_id": doc.tenant_id, "updated_at": utc_now()})
    return updated, skipped


def main() -> int:
    parser = argparse.ArgumentParser(description="Fill missing tenant_id on users")
    parser.add_argument("--dry-run", action="store_true", help="Log the changes without writing")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(message)s")
    updated, skipped = add_tenant_id(get_document_store(), dry_run=args.dry_run)
    logger.info("Updated %d users, skipped %d", updated, skipped)
    return 0


if __name__ == "__main__":
    sys.exit(main())
