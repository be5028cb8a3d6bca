"""
Backfill tenant_type, business_type and subscription fields on old tenants.

pf/pj is inferred from the tenant document type; business_type defaults to
corretor_autonomo for pf and imobiliaria for pj. Already migrated tenants
(with a tenant_type) are skipped.
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
from imob_api.documents import DocumentStore, utc_now
from imob_api.errors import ImobError
from shared.firebase_constants import TENANTS_COLLECTION
from shared.types import BusinessType, DocumentType, TenantType

logger = logging.getLogger(__name__)


@dataclass
class MigrationSummary:
    total: int = 0
    success: int = 0
    skipped: int = 0
    errors: int = 0


def tenant_type_updates(data: dict) -> dict:
    tenant_type = TenantType.PF if data.get("document_type") == DocumentType.CPF else TenantType.PJ
    business_type = data.get("business_type") or (
        BusinessType.CORRETOR_AUTONOMO if tenant_type == TenantType.PF else BusinessType.IMOBILIARIA
    )
    return {
        "tenant_type": tenant_type.value,
        "business_type": str(business_type),
        "subscription_plan": "full",
        "subscription_status": "active",
        "subscription_started_at": utc_now(),
    }


def migrate_tenant_types(store: DocumentStore, *, dry_run: bool = False) -> MigrationSummary:
    summary = MigrationSummary()
    for doc in store.query(TENANTS_COLLECTION):
        summary.total += 1
        if doc.data.get("tenant_type"):
            summary.skipped += 1
            continue
        updates = tenant_type_updates(doc.data)
        logger.info(
            "%s (%s): tenant_type=%s business_type=%s",
            doc.data.get("name", ""),
            doc.id,
            updates["tenant_type"],
            updates["business_type"],
        )
        if dry_run:
            summary.success += 1
            continue
        try:
            store.update(doc.path, updates)
        except ImobError as exc:
            logger.error("Failed to migrate tenant %s: %s", doc.id, exc.message)
            summary.errors += 1
        else:
            summary.success += 1
    return summary


def main() -> int:
    parser = argparse.ArgumentParser(description="Backfill tenant types")
    parser.add_argument("--dry-run", action="store_true", help="Log the changes without writing")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(message)s")
    summary = migrate_tenant_types(get_document_store(), dry_run=args.dry_run)
    logger.info(
        "Tenants: %d total, %d migrated, %d skipped, %d errors",
        summary.total,
        summary.success,
        summary.skipped,
        summary.errors,
    )
    return 1 if summary.errors else 0


if __name__ == "__main__":
    sys.exit(main())
