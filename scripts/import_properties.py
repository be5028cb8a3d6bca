"""
Upload a property feed to the API and wait for the import to finish.

Example:
    python scripts/import_properties.py --tenant-id t1 --token "$ID_TOKEN" \
        --xml feed.xml --xls proprietarios.xlsx
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from imob_api.client import ImportClient, ImportClientError, ImportResult

logger = logging.getLogger(__name__)


def report(result: ImportResult) -> None:
    logger.info("Batch %s %s", result.batch_id, "completed" if result.success else "failed")
    logger.info(
        "Records: %d, created: %d, updated: %d, errors: %d",
        result.total,
        result.imported,
        result.updated,
        result.failed,
    )
    if result.duration is not None:
        logger.info("Duration: %.1fs", result.duration)
    for error in result.errors:
        logger.info("  [%s] %s", error["field"], error["message"])


def main() -> int:
    parser = argparse.ArgumentParser(description="Import properties through the API")
    parser.add_argument("--tenant-id", required=True)
    parser.add_argument("--xml", default=None, help="XML listings feed")
    parser.add_argument("--xls", default=None, help=".xlsx spreadsheet with owners and captadores")
    parser.add_argument("--source", default="union", choices=["union", "other"])
    parser.add_argument("--created-by", default=None)
    parser.add_argument(
        "--base-url",
        default=os.environ.get("IMOB_API_URL", "http://localhost:8080"),
    )
    parser.add_argument(
        "--token",
        default=os.environ.get("IMOB_ID_TOKEN"),
        help="Firebase ID token (defaults to $IMOB_ID_TOKEN)",
    )
    parser.add_argument("--poll-interval", type=float, default=2.0)
    parser.add_argument("--timeout", type=float, default=None, help="Give up after this many seconds")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(message)s")
    if not args.token:
        parser.error("an ID token is required (--token or IMOB_ID_TOKEN)")
    if not args.xml and not args.xls:
        parser.error("pass --xml, --xls or both")

    client = ImportClient(args.base_url, args.token)
    try:
        result = client.import_properties(
            args.tenant_id,
            xml_path=args.xml,
            xls_path=args.xls,
            source=args.source,
            created_by=args.created_by,
            poll_interval=args.poll_interval,
            timeout=args.timeout,
        )
    except ImportClientError as exc:
        logger.error("Import failed: %s", exc.message)
        return 1
    report(result)
    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(main())
