"""
Print a quick summary of a tenant's leads: total, a sample, and counts by
status and channel.
"""

from __future__ import annotations

import argparse
import logging
import sys
from collections import Counter
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from imob_api.dependencies import get_document_store
from imob_api.documents import DocumentStore
from shared.firebase_constants import LEADS_COLLECTION, tenant_collection

logger = logging.getLogger(__name__)


def lead_report(store: DocumentStore, tenant_id: str, sample_size: int = 5) -> dict:
    docs = store.query(tenant_collection(tenant_id, LEADS_COLLECTION))
    return {
        "total": len(docs),
        "by_status": dict(Counter(doc.data.get("status", "") for doc in docs)),
        "by_channel": dict(Counter(doc.data.get("channel", "") for doc in docs)),
        "sample": [
            {
                "id": doc.id,
                "name": doc.data.get("name", ""),
                "property_id": doc.data.get("property_id", ""),
                "channel": doc.data.get("channel", ""),
            }
            for doc in docs[:sample_size]
        ],
    }


def main() -> int:
    parser = argparse.ArgumentParser(description="Summarize a tenant's leads")
    parser.add_argument("--tenant-id", required=True)
    parser.add_argument("--sample", type=int, default=5, help="How many leads to print")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(message)s")
    report = lead_report(get_document_store(), args.tenant_id, args.sample)
    logger.info("Leads in tenant %s: %d", args.tenant_id, report["total"])
    for lead in report["sample"]:
        logger.info("  %(id)s  %(name)s  property=%(property_id)s  channel=%(channel)s", lead)
    logger.info("By status: %s", report["by_status"])
    logger.info("By channel: %s", report["by_channel"])
    return 0


if __name__ == "__main__":
    sys.exit(main())
