"""
Queue of import batch ids waiting for a worker.

A dequeued id moves to an in-flight list until the worker acks it, so a
worker that dies mid-batch leaves the id behind for `restore_unacked` to put
back at the head of the queue. The ledger stays the source of truth for batch
state; the queue only decides which batch a worker picks up next.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol

import redis
from redis import exceptions as redis_exceptions

logger = logging.getLogger(__name__)


class BatchQueue(Protocol):
    def enqueue(self, batch_id: str) -> None:
        ...

    def dequeue(self, *, block: bool = True, timeout: int | None = None) -> Optional[str]:
        """Moves the next batch id to the in-flight list and returns it."""
        ...

    def ack(self, batch_id: str) -> None:
        """Drops a finished batch id from the in-flight list."""
        ...

    def restore_unacked(self) -> int:
        """Puts in-flight ids back at the head of the queue; returns how many."""
        ...


class InMemoryBatchQueue:
    def __init__(self):
        self.items: list[str] = []
        self.in_flight: list[str] = []

    def enqueue(self, batch_id: str) -> None:
        self.items.append(batch_id)

    def dequeue(self, *, block: bool = True, timeout: int | None = None) -> Optional[str]:
        if not self.items:
            return None
        batch_id = self.items.pop(0)
        self.in_flight.append(batch_id)
        return batch_id

    def ack(self, batch_id: str) -> None:
        if batch_id in self.in_flight:
            self.in_flight.remove(batch_id)

    def restore_unacked(self) -> int:
        restored = len(self.in_flight)
        self.items[:0] = self.in_flight
        self.in_flight.clear()
        return restored

    def reset(self) -> None:
        """Clear all queued and in-flight ids (useful in tests)."""
        self.items.clear()
        self.in_flight.clear()


class RedisBatchQueue:
    """
    Redis lists: producers RPUSH onto `queue_key`, workers LMOVE the head
    onto `<queue_key>:processing` and LREM it from there once done.
    """

    def __init__(self, url: str, queue_key: str = "imob:import_batches", client=None):
        self.url = url
        self.queue_key = queue_key
        self.processing_key = f"{queue_key}:processing"
        self.client = client or redis.Redis.from_url(url)

    def _reconnect(self, exc: Exception) -> None:
        # Managed Redis drops idle connections.
        logger.warning("Redis connection lost (%s), reconnecting", exc)
        self.client = redis.Redis.from_url(self.url)

    def enqueue(self, batch_id: str) -> None:
        self.client.rpush(self.queue_key, batch_id)

    def dequeue(self, *, block: bool = True, timeout: int | None = None) -> Optional[str]:
        try:
            if block:
                batch_id = self.client.blmove(
                    self.queue_key, self.processing_key, timeout or 0, "LEFT", "RIGHT"
                )
            else:
                batch_id = self.client.lmove(self.queue_key, self.processing_key, "LEFT", "RIGHT")
        except (redis_exceptions.ConnectionError, redis_exceptions.TimeoutError) as exc:
            self._reconnect(exc)
            return None
        if batch_id is None:
            return None
        return batch_id.decode("utf-8") if isinstance(batch_id, bytes) else batch_id

    def ack(self, batch_id: str) -> None:
        try:
            self.client.lrem(self.processing_key, 1, batch_id)
        except (redis_exceptions.ConnectionError, redis_exceptions.TimeoutError) as exc:
            # A leftover id fails to claim after restore and is dropped then.
            self._reconnect(exc)

    def restore_unacked(self) -> int:
        restored = 0
        while self.client.lmove(self.processing_key, self.queue_key, "RIGHT", "LEFT") is not None:
            restored += 1
        return restored
