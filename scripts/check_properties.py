"""
Diagnose where a tenant's properties live and what one property looks like.

Properties are stored under `tenants/{id}/properties`; very old data was
written to a root `properties` collection instead, which the API never reads.
"""

from __future__ import annotations

import argparse
import logging
import sys
from collections import Counter
from pathlib import Path
from typing import Optional

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from imob_api.dependencies import get_document_store
from imob_api.documents import DocumentStore
from shared.firebase_constants import PROPERTIES_COLLECTION, tenant_collection, tenant_document

logger = logging.getLogger(__name__)


def property_report(
    store: DocumentStore, tenant_id: str, property_id: Optional[str] = None
) -> dict:
    nested = store.query(tenant_collection(tenant_id, PROPERTIES_COLLECTION))
    root = store.query(PROPERTIES_COLLECTION, [("tenant_id", "==", tenant_id)])
    report = {
        "tenant_properties": len(nested),
        "root_properties": len(root),
        "by_visibility": dict(Counter(doc.data.get("visibility", "") for doc in nested)),
        "by_status": dict(Counter(doc.data.get("status", "") for doc in nested)),
        "property": None,
    }
    if property_id:
        doc = store.get(tenant_document(tenant_id, PROPERTIES_COLLECTION, property_id))
        report["property"] = doc.data if doc else None
    return report


def main() -> int:
    parser = argparse.ArgumentParser(description="Inspect a tenant's properties")
    parser.add_argument("--tenant-id", required=True)
    parser.add_argument("--property-id", default=None, help="Also dump this property")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(message)s")
    report = property_report(get_document_store(), args.tenant_id, args.property_id)
    logger.info("tenants/%s/properties: %d", args.tenant_id, report["tenant_properties"])
    logger.info("properties (root, tenant_id=%s): %d", args.tenant_id, report["root_properties"])
    logger.info("By visibility: %s", report["by_visibility"])
    logger.info("By status: %s", report["by_status"])
    if args.property_id:
        if report["property"] is None:
            logger.info("Property %s not found", args.property_id)
            return 1
        for key, value in sorted(report["property"].items()):
            logger.info("  %s: %s", key, value)
    return 0


if __name__ == "__main__":
    sys.exit(main())
