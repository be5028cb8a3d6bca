"""
Worker loop that processes queued property import batches.

Run it as a separate process next to the API:

    python -m imob_api.worker
"""

from __future__ import annotations

import logging
import time
from typing import Optional

from imob_api.config import get_settings
from imob_api.db import BatchErrorRecord, BatchLedger, BatchRecord
from imob_api.dependencies import (
    get_batch_ledger,
    get_document_store,
    get_queue_client,
    get_storage_client,
)
from imob_api.documents import DocumentStore
from imob_api.queue import BatchQueue
from imob_api.services.activity_log import record_activity
from imob_api.storage import StorageClient
from import_pipeline.import_pipeline import run_import
from import_pipeline.normalize import FeedError
from shared.types import ActorType, ImportBatchStatus

logger = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO)

STAGE_LOADING_FILES = "LOADING_FILES"
STAGE_IMPORTING = "IMPORTING"
STAGE_COMPLETED = "COMPLETED"
STAGE_FAILED = "FAILED"


def _load_file(storage: StorageClient, batch: BatchRecord, field_name: str) -> Optional[bytes]:
    info = (batch.files or {}).get(field_name)
    if not info:
        return None
    return storage.get_bytes(info["path"])


def _fail(db: BatchLedger, batch: BatchRecord, error: BatchErrorRecord) -> None:
    db.add_batch_error(batch.batch_id, error)
    db.update_batch_progress(
        batch.batch_id,
        status=ImportBatchStatus.FAILED,
        stage=STAGE_FAILED,
        counters={"total_errors": len(db.list_batch_errors(batch.batch_id))},
        completed_at=time.time(),
    )


def process_batch(
    batch: BatchRecord,
    db: BatchLedger,
    store: DocumentStore,
    storage: StorageClient,
) -> None:
    """
    Runs the import for a claimed batch and records the outcome in the ledger.

    Unreadable input files fail the batch with a single error. Any other
    exception also fails the batch and is re-raised for the caller to log.
    """
    logger.info("[%s] Processing import batch for tenant %s", batch.batch_id, batch.tenant_id)
    db.update_batch_progress(
        batch.batch_id,
        status=ImportBatchStatus.PROCESSING,
        stage=STAGE_LOADING_FILES,
        progress_percent=0.0,
        started_at=time.time(),
    )

    def report(done: int, total: int) -> None:
        db.update_batch_progress(
            batch.batch_id,
            progress_percent=round(100.0 * done / total, 1) if total else 100.0,
        )

    try:
        xml_bytes = _load_file(storage, batch, "xml")
        xls_bytes = _load_file(storage, batch, "xls")
        db.update_batch_progress(batch.batch_id, stage=STAGE_IMPORTING)
        summary = run_import(
            store,
            batch.tenant_id,
            xml_bytes=xml_bytes,
            xls_bytes=xls_bytes,
            source=batch.source,
            created_by=batch.created_by,
            batch_id=batch.batch_id,
            on_progress=report,
        )
    except FeedError as exc:
        logger.warning("[%s] Import failed: %s", batch.batch_id, exc.message)
        _fail(db, batch, BatchErrorRecord(error_type=exc.error_type, error_message=exc.message))
        return
    except Exception as exc:
        logger.exception("[%s] Import crashed", batch.batch_id)
        _fail(db, batch, BatchErrorRecord(error_type="internal_error", error_message=str(exc)))
        raise

    for issue in summary.issues:
        db.add_batch_error(
            batch.batch_id,
            BatchErrorRecord(
                error_type=issue.error_type,
                error_message=issue.error_message,
                record_reference=issue.record_reference,
                row_number=issue.row_number,
            ),
        )
    counters = {
        "total_xml_records": summary.total_records,
        "total_properties_created": summary.created,
        "total_properties_matched_existing": summary.matched_existing,
        "total_errors": summary.errors,
    }
    db.update_batch_progress(
        batch.batch_id,
        status=ImportBatchStatus.COMPLETED,
        stage=STAGE_COMPLETED,
        progress_percent=100.0,
        counters=counters,
        completed_at=time.time(),
    )
    record_activity(
        store,
        batch.tenant_id,
        "import_batch_completed",
        actor_type=ActorType.SYSTEM,
        metadata={"batch_id": batch.batch_id, **counters},
    )
    logger.info("[%s] Import batch completed: %s", batch.batch_id, counters)


def process_next(
    *,
    db: Optional[BatchLedger] = None,
    queue: Optional[BatchQueue] = None,
    store: Optional[DocumentStore] = None,
    storage: Optional[StorageClient] = None,
    block: bool = True,
    timeout: Optional[int] = None,
) -> bool:
    """
    Fetch and process one batch from the queue (or the ledger). Returns True if processed.
    """
    db = db or get_batch_ledger()
    queue = queue or get_queue_client()
    store = store or get_document_store()
    storage = storage or get_storage_client()

    batch_id = queue.dequeue(block=block, timeout=timeout)
    if not batch_id:
        # Batches whose queue message was lost are still pending in the ledger.
        batch = db.claim_next_pending_batch()
        if not batch:
            return False
        process_batch(batch, db, store, storage)
        return True

    try:
        batch = db.claim_batch(batch_id)
        if not batch:
            logger.warning("Batch %s from queue is missing or already claimed", batch_id)
            return False
        process_batch(batch, db, store, storage)
        return True
    finally:
        queue.ack(batch_id)


def run_loop(poll_interval_seconds: Optional[float] = None) -> None:
    """
    Blocking loop intended to be run under systemd/supervisor.
    """
    settings = get_settings()
    poll_interval_seconds = poll_interval_seconds or settings.import_poll_interval_seconds
    db = get_batch_ledger()
    queue = get_queue_client()
    restored = queue.restore_unacked()
    if restored:
        logger.info("Put %d unfinished import batches back on the queue", restored)
    while True:
        try:
            requeued = db.requeue_stale_locks(
                lock_timeout_seconds=settings.import_lock_timeout_seconds
            )
            if requeued:
                logger.info("Requeued %d stale import batches", requeued)
        except Exception:
            logger.exception("Failed to requeue stale locks")
        try:
            processed = process_next(
                db=db, queue=queue, block=True, timeout=max(int(poll_interval_seconds), 1)
            )
        except Exception:
            # Already marked failed by process_batch; keep serving other batches.
            logger.exception("Import batch processing failed")
            processed = True
        if not processed:
            time.sleep(poll_interval_seconds)


if __name__ == "__main__":
    run_loop()
