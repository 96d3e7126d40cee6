"""
Queue Worker

Drives handlers from an InMemoryMessageBus and applies the delivery
policy a hosted queue would:

    - handler succeeds                  -> message is done
    - handler raises InvalidInput       -> dead-lettered on first receive
    - handler raises anything else      -> redelivered until max_receive_count
                                           receives have happened, then dead-lettered

Messages within one batch are processed sequentially.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping

from customer_intel.errors import InvalidInput
from customer_intel.messaging.memory import Envelope, InMemoryMessageBus

logger = logging.getLogger(__name__)

Handler = Callable[[dict[str, Any]], Awaitable[Any]]


@dataclass
class WorkerMetrics:
    processed: int = 0
    failed: int = 0
    retries: int = 0
    dead_lettered: int = 0


class QueueWorker:
    """
    Consumes the queues that have handlers, in handler registration order.

    Args:
        bus: Bus to consume from
        handlers: Queue name -> async handler taking the raw payload
        max_receive_count: Receives before a failing message is dead-lettered
        batch_size: Messages taken from one queue per round
    """

    def __init__(
        self,
        bus: InMemoryMessageBus,
        handlers: Mapping[str, Handler],
        *,
        max_receive_count: int = 3,
        batch_size: int = 10,
    ) -> None:
        if max_receive_count < 1:
            raise ValueError("max_receive_count must be at least 1")
        self.bus = bus
        self.handlers = dict(handlers)
        self.max_receive_count = max_receive_count
        self.batch_size = batch_size
        self.metrics = WorkerMetrics()

    async def run_once(self) -> int:
        """One round over every handled queue. Returns messages received."""
        received = 0
        for queue, handler in self.handlers.items():
            for envelope in self.bus.receive(queue, self.batch_size):
                received += 1
                await self._process(envelope, handler)
        return received

    async def drain(self, max_rounds: int = 1000) -> int:
        """Run rounds until every handled queue is empty. Returns rounds run."""
        for round_number in range(1, max_rounds + 1):
            await self.run_once()
            if not any(self.bus.pending(queue) for queue in self.handlers):
                return round_number
        raise RuntimeError(f"Queues still busy after {max_rounds} rounds")

    async def _process(self, envelope: Envelope, handler: Handler) -> None:
        try:
            await handler(envelope.payload)
            self.metrics.processed += 1
        except InvalidInput as e:
            self.metrics.failed += 1
            self.metrics.dead_lettered += 1
            logger.error(f"Dead-lettering {envelope.message_id} from {envelope.queue}: {e}")
            self.bus.dead_letter(envelope, str(e))
        except Exception as e:
            self.metrics.failed += 1
            if envelope.receive_count >= self.max_receive_count:
                self.metrics.dead_lettered += 1
                logger.error(
                    f"Dead-lettering {envelope.message_id} from {envelope.queue} "
                    f"after {envelope.receive_count} receives: {e!r}"
                )
                self.bus.dead_letter(envelope, repr(e))
            else:
                self.metrics.retries += 1
                logger.warning(
                    f"Handler for {envelope.queue} failed on receive "
                    f"{envelope.receive_count}/{self.max_receive_count}: {e!r}"
                )
                self.bus.requeue(envelope)
