"""
Create originating broker roles for properties that only carry `captador_id`.
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import dataclass
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from imob_api.dependencies import get_document_store
from imob_api.documents import DocumentStore
from imob_api.errors import ImobError, NotFoundError
from imob_api.services import property_broker_roles
from shared.firebase_constants import PROPERTIES_COLLECTION, TENANTS_COLLECTION, tenant_collection
from shared.types import BrokerPropertyRole

logger = logging.getLogger(__name__)


@dataclass
class RoleMigrationSummary:
    created: int = 0
    skipped: int = 0
    errors: int = 0


def _has_originating_role(store: DocumentStore, tenant_id: str, property_id: str, broker_id: str) -> bool:
    try:
        property_broker_roles.find_role(
            store, tenant_id, property_id, broker_id, BrokerPropertyRole.ORIGINATING
        )
    except NotFoundError:
        return False
    return True


def migrate_broker_roles(store: DocumentStore, *, dry_run: bool = False) -> RoleMigrationSummary:
    summary = RoleMigrationSummary()
    for tenant in store.query(TENANTS_COLLECTION):
        for prop in store.query(tenant_collection(tenant.id, PROPERTIES_COLLECTION)):
            broker_id = prop.data.get("captador_id")
            if not broker_id or _has_originating_role(store, tenant.id, prop.id, broker_id):
                summary.skipped += 1
                continue
            logger.info("[%s] property %s: originating broker %s", tenant.id, prop.id, broker_id)
            if dry_run:
                summary.created += 1
                continue
            try:
                property_broker_roles.assign_broker(
                    store, tenant.id, prop.id, broker_id, BrokerPropertyRole.ORIGINATING
                )
            except ImobError as exc:
                logger.error("Property %s: %s", prop.id, exc.message)
                summary.errors += 1
            else:
                summary.created += 1
    return summary


def main() -> int:
    parser = argparse.ArgumentParser(description="Create originating broker roles from captador_id")
    parser.add_argument("--dry-run", action="store_true", help="Log the changes without writing")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(message)s")
    summary = migrate_broker_roles(get_document_store(), dry_run=args.dry_run)
    logger.info(
        "Roles: %d created, %d skipped, %d errors", summary.created, summary.skipped, summary.errors
    )
    return 1 if summary.errors else 0


if __name__ == "__main__":
    sys.exit(main())
