"""
Repair user and legacy broker documents whose `tenant_id` does not match the
tenant they are stored under. Login reads the field, so a wrong value locks
the person out.
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

from imob_api.dependencies import get_document_store
from imob_api.documents import DocumentStore, utc_now
from shared.firebase_constants import BROKERS_COLLECTION, USERS_COLLECTION, tenant_collection

logger = logging.getLogger(__name__)


def fix_broker_tenant(
    store: DocumentStore,
    tenant_id: str,
    *,
    broker_id: Optional[str] = None,
    dry_run: bool = False,
) -> int:
    fixed = 0
    for collection in (USERS_COLLECTION, BROKERS_COLLECTION):
        for doc in store.query(tenant_collection(tenant_id, collection)):
            if broker_id and doc.id != broker_id:
                continue
            if doc.data.get("tenant_id") == tenant_id:
                continue
            logger.info("%s: tenant_id %r -> %r", doc.path, doc.data.get("tenant_id"), tenant_id)
            fixed += 1
            if not dry_run:
                store.update(doc.path, {"tenant_id": tenant_id, "updated_at": utc_now()})
    return fixed


def main() -> int:
    parser = argparse.ArgumentParser(description="Fix tenant_id on a tenant's users and brokers")
    parser.add_argument("--tenant-id", required=True)
    parser.add_argument("--broker-id", default=None, help="Only fix this document")
    parser.add_argument("--dry-run", action="store_true", help="Log the changes without writing")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(message)s")
    fixed = fix_broker_tenant(
        get_document_store(), args.tenant_id, broker_id=args.broker_id, dry_run=args.dry_run
    )
    logger.info("Fixed %d documents", fixed)
    return 0


if __name__ == "__main__":
    sys.exit(main())
