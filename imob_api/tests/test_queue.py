import unittest
from unittest import mock

from redis import exceptions as redis_exceptions

from imob_api.queue import RedisBatchQueue


class RedisBatchQueueTests(unittest.TestCase):
    def setUp(self):
        self.redis = mock.Mock()
        self.queue = RedisBatchQueue("redis://localhost:6379/0", queue_key="jobs", client=self.redis)

    def test_enqueue_pushes_to_tail(self):
        self.queue.enqueue("batch-1")
        self.redis.rpush.assert_called_once_with("jobs", "batch-1")

    def test_dequeue_moves_to_processing(self):
        self.redis.blmove.return_value = b"batch-1"
        self.assertEqual(self.queue.dequeue(timeout=5), "batch-1")
        self.redis.blmove.assert_called_once_with("jobs", "jobs:processing", 5, "LEFT", "RIGHT")

        self.redis.lmove.return_value = None
        self.assertIsNone(self.queue.dequeue(block=False))
        self.redis.lmove.assert_called_once_with("jobs", "jobs:processing", "LEFT", "RIGHT")

    def test_ack_removes_from_processing(self):
        self.queue.ack("batch-1")
        self.redis.lrem.assert_called_once_with("jobs:processing", 1, "batch-1")

    def test_restore_unacked(self):
        self.redis.lmove.side_effect = [b"batch-2", b"batch-1", None]
        self.assertEqual(self.queue.restore_unacked(), 2)
        self.redis.lmove.assert_called_with("jobs:processing", "jobs", "RIGHT", "LEFT")

    @mock.patch("imob_api.queue.redis.Redis.from_url")
    def test_dropped_connection_reconnects(self, from_url):
        fresh = mock.Mock()
        from_url.return_value = fresh
        self.redis.blmove.side_effect = redis_exceptions.ConnectionError("gone")

        self.assertIsNone(self.queue.dequeue(timeout=1))
        from_url.assert_called_once_with("redis://localhost:6379/0")
        self.assertIs(self.queue.client, fresh)


if __name__ == "__main__":
    unittest.main()
