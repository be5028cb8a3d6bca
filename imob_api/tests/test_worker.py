import time
import unittest
from unittest.mock import patch

from imob_api import worker
from imob_api.db import InMemoryBatchLedger
from imob_api.documents import InMemoryDocumentStore
from imob_api.queue import InMemoryBatchQueue
from imob_api.services import imports, tenants
from imob_api.storage import InMemoryStorageClient
from shared.types import ImportBatchStatus

FEED = b"""<Imoveis>
  <Imovel><CodigoImovel>AP-001</CodigoImovel><PrecoVenda>500000</PrecoVenda></Imovel>
</Imoveis>"""


class WorkerTests(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryDocumentStore()
        self.ledger = InMemoryBatchLedger()
        self.queue = InMemoryBatchQueue()
        self.storage = InMemoryStorageClient()
        self.tenant = tenants.create_tenant(self.store, {"name": "Imobiliária Teste"})

    def queue_batch(self, files):
        return imports.create_import_batch(
            self.store, self.ledger, self.storage, self.queue, self.tenant.id, files=files
        )

    def process_next(self):
        return worker.process_next(
            db=self.ledger, queue=self.queue, store=self.store, storage=self.storage, block=False
        )

    def test_unreadable_feed_fails_batch(self):
        batch = self.queue_batch({"xml": ("feed.xml", b"<Imoveis><Imovel>")})
        self.assertTrue(self.process_next())

        batch = self.ledger.get_batch(batch.batch_id)
        self.assertEqual(batch.status, ImportBatchStatus.FAILED)
        self.assertEqual(batch.stage, worker.STAGE_FAILED)
        self.assertEqual(batch.total_errors, 1)
        errors = self.ledger.list_batch_errors(batch.batch_id)
        self.assertEqual(errors[0].error_type, "parse_error")

    def test_lost_queue_message_falls_back_to_ledger(self):
        batch = self.queue_batch({"xml": ("feed.xml", FEED)})
        self.queue.reset()
        self.assertTrue(self.process_next())
        self.assertEqual(self.ledger.get_batch(batch.batch_id).status, ImportBatchStatus.COMPLETED)
        self.assertFalse(self.process_next())

    def test_claimed_batch_from_queue_is_skipped(self):
        batch = self.queue_batch({"xml": ("feed.xml", FEED)})
        self.ledger.claim_batch(batch.batch_id)
        self.assertFalse(self.process_next())

    def test_unexpected_error_marks_batch_failed(self):
        batch = self.queue_batch({"xml": ("feed.xml", FEED)})
        with patch.object(worker, "run_import", side_effect=RuntimeError("boom")):
            with self.assertRaises(RuntimeError):
                self.process_next()

        batch = self.ledger.get_batch(batch.batch_id)
        self.assertEqual(batch.status, ImportBatchStatus.FAILED)
        errors = self.ledger.list_batch_errors(batch.batch_id)
        self.assertEqual([(e.error_type, e.error_message) for e in errors], [("internal_error", "boom")])

    def test_processed_ids_are_acked(self):
        self.queue_batch({"xml": ("feed.xml", FEED)})
        self.assertTrue(self.process_next())
        self.assertEqual(self.queue.in_flight, [])

        batch = self.queue_batch({"xml": ("feed.xml", FEED)})
        with patch.object(worker, "run_import", side_effect=RuntimeError("boom")):
            with self.assertRaises(RuntimeError):
                self.process_next()
        self.assertEqual(self.queue.in_flight, [])
        self.assertEqual(self.ledger.get_batch(batch.batch_id).status, ImportBatchStatus.FAILED)

    def test_unacked_ids_are_restored(self):
        batch = self.queue_batch({"xml": ("feed.xml", FEED)})
        self.assertEqual(self.queue.dequeue(block=False), batch.batch_id)
        self.assertEqual(self.queue.items, [])

        self.assertEqual(self.queue.restore_unacked(), 1)
        self.assertEqual(self.queue.items, [batch.batch_id])
        self.assertTrue(self.process_next())
        self.assertEqual(self.ledger.get_batch(batch.batch_id).status, ImportBatchStatus.COMPLETED)

    def test_stale_claims_are_requeued(self):
        batch = self.queue_batch({"xml": ("feed.xml", FEED)})
        claimed = self.ledger.claim_batch(batch.batch_id)
        claimed.locked_at = time.time() - 1000
        self.assertEqual(self.ledger.requeue_stale_locks(lock_timeout_seconds=900), 1)
        self.assertEqual(self.ledger.get_batch(batch.batch_id).status, ImportBatchStatus.PENDING)
        self.assertEqual(self.ledger.requeue_stale_locks(lock_timeout_seconds=900), 0)


if __name__ == "__main__":
    unittest.main()
