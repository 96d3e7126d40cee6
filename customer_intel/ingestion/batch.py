"""
Batch Polling State Machine

Drives an external ingestion batch to a terminal state.

States:
    SUBMITTED -> POLLING -> COMPLETED | FAILED | TIMED_OUT

    POLLING checks the batch status; PENDING waits a fixed interval and
    checks again. FAILED covers both failed and cancelled batches.
    TIMED_OUT is reached after exactly max_attempts checks that all
    returned PENDING.

BatchPollHandler consumes the batch-poll queue: COMPLETED publishes the
market-analysis continuation with the submission context and the
resolved storage area id; FAILED and TIMED_OUT go to operator-alerts.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Mapping

from customer_intel.errors import InvalidInput, StorageAreaError
from customer_intel.messaging import queues
from customer_intel.messaging.base import MessageBus
from customer_intel.providers.base import StorageAreaProvider
from customer_intel.types.messages import BatchPollMessage, MarketAnalysisMessage, OperatorAlert
from customer_intel.types.results import BatchOutcome, BatchState, BatchStatus
from customer_intel.types.validation import validate_message

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[Any]]


class BatchPoller:
    """
    Bounded fixed-interval poller.

    Args:
        storage_areas: Provider reporting batch status
        interval_seconds: Delay between status checks
        max_attempts: Status checks before TIMED_OUT
        sleep: Awaitable delay (injected by tests)
    """

    def __init__(
        self,
        storage_areas: StorageAreaProvider,
        *,
        interval_seconds: float = 10.0,
        max_attempts: int = 30,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._storage_areas = storage_areas
        self._interval = interval_seconds
        self._max_attempts = max_attempts
        self._sleep = sleep

    async def poll(self, storage_area_id: str, batch_id: str) -> BatchOutcome:
        state = BatchState.SUBMITTED
        logger.debug(f"Batch {batch_id}: {state.value} -> {BatchState.POLLING.value}")
        state = BatchState.POLLING

        status: BatchStatus | None = None
        for attempt in range(1, self._max_attempts + 1):
            status = await self._storage_areas.batch_status(storage_area_id, batch_id)

            if status is BatchStatus.COMPLETED:
                state = BatchState.COMPLETED
            elif status in (BatchStatus.FAILED, BatchStatus.CANCELLED):
                state = BatchState.FAILED

            if state.terminal:
                logger.info(f"Batch {batch_id} {state.value} after {attempt} check(s)")
                return BatchOutcome(batch_id=batch_id, state=state, attempts=attempt, last_status=status)

            if attempt < self._max_attempts:
                await self._sleep(self._interval)

        logger.warning(f"Batch {batch_id} still pending after {self._max_attempts} checks")
        return BatchOutcome(
            batch_id=batch_id,
            state=BatchState.TIMED_OUT,
            attempts=self._max_attempts,
            last_status=status,
        )


class BatchPollHandler:
    """Handler for the batch-poll queue."""

    name = "batch-poll"

    def __init__(self, poller: BatchPoller, storage_areas: StorageAreaProvider, bus: MessageBus) -> None:
        self._poller = poller
        self._storage_areas = storage_areas
        self._bus = bus

    async def _resolve_storage_area_id(self, message: BatchPollMessage) -> str:
        if message.storage_area_id:
            return message.storage_area_id
        area = await self._storage_areas.find_by_name(message.storage_area_name)
        if area is None:
            raise StorageAreaError(f"Storage area not found: {message.storage_area_name}")
        return area.id

    async def __call__(self, payload: Mapping[str, Any]) -> BatchOutcome:
        validation = validate_message(BatchPollMessage, payload)
        if not validation.ok or validation.value is None:
            raise InvalidInput(self.name, validation.issues)
        message = validation.value

        storage_area_id = await self._resolve_storage_area_id(message)
        outcome = await self._poller.poll(storage_area_id, message.batch_id)

        if outcome.state is BatchState.COMPLETED:
            continuation = MarketAnalysisMessage.model_validate(
                {**message.context.to_payload(), "storage_area_id": storage_area_id}
            )
            await self._bus.publish(queues.MARKET_ANALYSIS, continuation.to_payload())
        else:
            logger.error(
                f"Batch {message.batch_id} for {message.context.domain} ended "
                f"{outcome.state.value} after {outcome.attempts} check(s)"
            )
            alert = OperatorAlert(
                batch_id=message.batch_id,
                state=outcome.state.value,
                attempts=outcome.attempts,
                storage_area_name=message.storage_area_name,
                context=message.context.to_payload(),
            )
            await self._bus.publish(queues.OPERATOR_ALERTS, alert.to_payload())

        return outcome
