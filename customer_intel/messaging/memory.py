"""
In-Memory Message Bus

Per-queue FIFO queues with receive counts and dead-letter lists, for
tests and in-process runs.
"""

from __future__ import annotations

import json
import logging
from collections import Counter, deque
from dataclasses import dataclass, field
from typing import Any, Mapping
from uuid import uuid4

from customer_intel.messaging.base import MessageBus

logger = logging.getLogger(__name__)


@dataclass
class Envelope:
    """A message plus its delivery bookkeeping."""

    queue: str
    payload: dict[str, Any]
    message_id: str = field(default_factory=lambda: uuid4().hex)
    receive_count: int = 0


@dataclass(frozen=True)
class DeadLetter:
    envelope: Envelope
    reason: str


class InMemoryMessageBus(MessageBus):
    """
    Message bus held in process memory.

    Payloads are round-tripped through JSON on publish, so anything that
    would not survive a real queue fails here too.
    """

    def __init__(self) -> None:
        self._queues: dict[str, deque[Envelope]] = {}
        self._dead_letters: dict[str, list[DeadLetter]] = {}
        self.published: Counter[str] = Counter()

    async def publish(self, queue: str, payload: Mapping[str, Any]) -> str:
        envelope = Envelope(queue=queue, payload=json.loads(json.dumps(dict(payload))))
        self._queues.setdefault(queue, deque()).append(envelope)
        self.published[queue] += 1
        logger.debug(f"Published {envelope.message_id} to {queue}")
        return envelope.message_id

    def receive(self, queue: str, max_messages: int = 10) -> list[Envelope]:
        """Take up to max_messages from the head of a queue, counting the receive."""
        pending = self._queues.get(queue)
        received: list[Envelope] = []
        while pending and len(received) < max_messages:
            envelope = pending.popleft()
            envelope.receive_count += 1
            received.append(envelope)
        return received

    def requeue(self, envelope: Envelope) -> None:
        """Put a failed message back at the tail for redelivery."""
        self._queues.setdefault(envelope.queue, deque()).append(envelope)

    def dead_letter(self, envelope: Envelope, reason: str) -> None:
        self._dead_letters.setdefault(envelope.queue, []).append(DeadLetter(envelope, reason))

    def pending(self, queue: str | None = None) -> int:
        if queue is not None:
            return len(self._queues.get(queue, ()))
        return sum(len(q) for q in self._queues.values())

    def peek(self, queue: str) -> list[dict[str, Any]]:
        """Payloads waiting on a queue, oldest first, without receiving them."""
        return [envelope.payload for envelope in self._queues.get(queue, ())]

    def dead_letters(self, queue: str | None = None) -> list[DeadLetter]:
        if queue is not None:
            return list(self._dead_letters.get(queue, []))
        return [letter for letters in self._dead_letters.values() for letter in letters]
