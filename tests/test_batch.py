"""Tests for the batch polling state machine and the batch-poll handler."""

from unittest.mock import AsyncMock

import pytest

from conftest import FakeStorageAreas
from customer_intel.errors import InvalidInput
from customer_intel.ingestion.batch import BatchPoller, BatchPollHandler
from customer_intel.messaging import queues
from customer_intel.messaging.memory import InMemoryMessageBus
from customer_intel.types.results import BatchState, BatchStatus

CONTEXT = {
    "domain": "beta.com",
    "legal_name": "Beta AG",
    "customer_domain": "acme.com",
    "subject_type": "competitor",
    "industries": ["Industrial Coatings"],
    "markets": ["DE"],
}


class TestBatchPoller:
    """Test terminal states and the attempt bound."""

    @pytest.mark.asyncio
    async def test_completed(self):
        """A completed batch ends COMPLETED on the check that saw it."""
        areas = FakeStorageAreas([BatchStatus.PENDING, BatchStatus.COMPLETED])
        sleep = AsyncMock()

        outcome = await BatchPoller(areas, interval_seconds=2.0, max_attempts=5, sleep=sleep).poll("vs_1", "b1")

        assert outcome.state is BatchState.COMPLETED
        assert outcome.attempts == 2
        sleep.assert_awaited_once_with(2.0)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [BatchStatus.FAILED, BatchStatus.CANCELLED])
    async def test_failed_and_cancelled(self, status):
        """Failed and cancelled batches both end FAILED."""
        areas = FakeStorageAreas([status])

        outcome = await BatchPoller(areas, max_attempts=5, sleep=AsyncMock()).poll("vs_1", "b1")

        assert outcome.state is BatchState.FAILED
        assert outcome.last_status is status
        assert outcome.attempts == 1

    @pytest.mark.asyncio
    async def test_times_out_after_max_attempts(self):
        """A batch pending on every check times out after exactly max_attempts checks."""
        areas = FakeStorageAreas([BatchStatus.PENDING] * 10)
        sleep = AsyncMock()

        outcome = await BatchPoller(areas, interval_seconds=1.0, max_attempts=4, sleep=sleep).poll("vs_1", "b1")

        assert outcome.state is BatchState.TIMED_OUT
        assert outcome.attempts == 4
        assert areas.status_checks == 4
        assert sleep.await_count == 3

    def test_max_attempts_must_be_positive(self):
        """At least one status check is required."""
        with pytest.raises(ValueError):
            BatchPoller(FakeStorageAreas(), max_attempts=0)

    def test_terminal_states(self):
        """Only COMPLETED, FAILED and TIMED_OUT are terminal."""
        assert {state for state in BatchState if state.terminal} == {
            BatchState.COMPLETED,
            BatchState.FAILED,
            BatchState.TIMED_OUT,
        }


class TestBatchPollHandler:
    """Test continuation and operator alerts."""

    @pytest.mark.asyncio
    async def test_completed_continues_to_market_analysis(self):
        """A completed batch publishes the market-analysis continuation with the context."""
        areas = FakeStorageAreas([BatchStatus.COMPLETED])
        bus = InMemoryMessageBus()
        handler = BatchPollHandler(BatchPoller(areas, sleep=AsyncMock()), areas, bus)

        await handler({
            "storage_area_id": "vs_9",
            "storage_area_name": "news/beta.com",
            "batch_id": "b1",
            "context": CONTEXT,
        })

        [continuation] = bus.peek(queues.MARKET_ANALYSIS)
        assert continuation["storage_area_id"] == "vs_9"
        assert continuation["domain"] == "beta.com"
        assert continuation["customer_domain"] == "acme.com"
        assert continuation["subject_type"] == "competitor"
        assert bus.pending(queues.OPERATOR_ALERTS) == 0

    @pytest.mark.asyncio
    async def test_storage_area_resolved_by_name(self):
        """Without an id the storage area is looked up by name."""
        areas = FakeStorageAreas([BatchStatus.COMPLETED])
        area = await areas.create("news/beta.com")
        bus = InMemoryMessageBus()
        handler = BatchPollHandler(BatchPoller(areas, sleep=AsyncMock()), areas, bus)

        await handler({"storageAreaName": "news/beta.com", "batchId": "b1", "context": CONTEXT})

        assert bus.peek(queues.MARKET_ANALYSIS)[0]["storage_area_id"] == area.id

    @pytest.mark.asyncio
    async def test_timeout_alerts_operators(self):
        """A timed-out batch goes to operator-alerts and does not continue."""
        areas = FakeStorageAreas([BatchStatus.PENDING] * 3)
        bus = InMemoryMessageBus()
        handler = BatchPollHandler(BatchPoller(areas, max_attempts=3, sleep=AsyncMock()), areas, bus)

        outcome = await handler({
            "storage_area_id": "vs_9",
            "storage_area_name": "news/beta.com",
            "batch_id": "b1",
            "context": CONTEXT,
        })

        assert outcome.state is BatchState.TIMED_OUT
        [alert] = bus.peek(queues.OPERATOR_ALERTS)
        assert alert["state"] == "timed_out"
        assert alert["attempts"] == 3
        assert alert["context"]["domain"] == "beta.com"
        assert bus.pending(queues.MARKET_ANALYSIS) == 0

    @pytest.mark.asyncio
    async def test_invalid_payload(self):
        """A payload without batch id is invalid input."""
        areas = FakeStorageAreas()
        handler = BatchPollHandler(BatchPoller(areas, sleep=AsyncMock()), areas, InMemoryMessageBus())

        with pytest.raises(InvalidInput):
            await handler({"storage_area_name": "news/beta.com", "context": CONTEXT})
