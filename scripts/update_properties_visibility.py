"""
Make every property visible on the public site.

Early tenants imported their catalogue before visibility existed; this flips
every property that is not public yet.
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
from shared.firebase_constants import PROPERTIES_COLLECTION
from shared.types import PropertyVisibility

logger = logging.getLogger(__name__)


def update_visibility(store: DocumentStore, *, dry_run: bool = False) -> tuple[int, int]:
    """Returns (properties scanned, properties updated)."""
    docs = store.collection_group(PROPERTIES_COLLECTION)
    updated = 0
    for doc in docs:
        if doc.data.get("visibility") == PropertyVisibility.PUBLIC:
            continue
        logger.info("%s: %s -> public", doc.path, doc.data.get("visibility") or "(unset)")
        updated += 1
        if not dry_run:
            store.update(
                doc.path,
                {"visibility": PropertyVisibility.PUBLIC.value, "updated_at": utc_now()},
            )
    return len(docs), updated


def main() -> int:
    parser = argparse.ArgumentParser(description="Set every property's visibility to public")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report what would change without writing",
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(message)s")
    total, updated = update_visibility(get_document_store(), dry_run=args.dry_run)
    logger.info("Scanned %d properties, updated %d", total, updated)
    return 0


if __name__ == "__main__":
    sys.exit(main())
