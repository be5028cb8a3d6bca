"""
Copy captador names from a property spreadsheet onto existing properties.

The sheet is the same .xlsx export the import accepts; only the reference
and captador columns are read.
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
from import_pipeline.normalize import FeedError, clean_text, record_reference
from import_pipeline.spreadsheet import parse_spreadsheet
from shared.firebase_constants import PROPERTIES_COLLECTION

logger = logging.getLogger(__name__)


def captadores_by_reference(rows: list[dict]) -> dict[str, str]:
    mapping = {}
    for row in rows:
        reference = record_reference(row)
        captador = clean_text(row.get("captador_name"))
        if reference and captador:
            mapping[reference] = captador
    return mapping


def migrate_captador(
    store: DocumentStore, captadores: dict[str, str], *, dry_run: bool = False
) -> tuple[int, int]:
    """Returns (updated, skipped)."""
    updated = skipped = 0
    for doc in store.collection_group(PROPERTIES_COLLECTION):
        reference = doc.data.get("reference") or ""
        captador = captadores.get(reference)
        if not captador or doc.data.get("captador_name") == captador:
            skipped += 1
            continue
        logger.info("%s: captador '%s'", reference, captador)
        updated += 1
        if not dry_run:
            store.update(doc.path, {"captador_name": captador})
    return updated, skipped


def main() -> int:
    parser = argparse.ArgumentParser(description="Backfill captador_name from a spreadsheet")
    parser.add_argument("xlsx_path", help="Path to the .xlsx property export")
    parser.add_argument("--dry-run", action="store_true", help="Log the changes without writing")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(message)s")
    try:
        rows = parse_spreadsheet(Path(args.xlsx_path).read_bytes())
    except FeedError as exc:
        logger.error("Cannot read %s: %s", args.xlsx_path, exc.message)
        return 1
    captadores = captadores_by_reference(rows)
    logger.info("Found %d references with a captador in %s", len(captadores), args.xlsx_path)
    updated, skipped = migrate_captador(get_document_store(), captadores, dry_run=args.dry_run)
    logger.info("Updated %d properties, skipped %d", updated, skipped)
    return 0


if __name__ == "__main__":
    sys.exit(main())
