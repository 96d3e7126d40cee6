"""End-to-end run of the whole pipeline against in-memory fakes."""

import pytest

from conftest import no_sleep
from customer_intel.messaging import queues
from customer_intel.pipeline.wiring import build_pipeline
from customer_intel.storage import collections
from customer_intel.storage.base import identity_of
from customer_intel.types.company import Competitor, CompetitorList
from customer_intel.types.results import BatchStatus

EXPECTED_COUNTS = {
    collections.MASTER_DATA: 4,
    collections.ASSESSMENT: 4,
    collections.COMPETITORS: 1,
    collections.NEWS: 4,
    collections.MARKET_ANALYSIS: 4,
    collections.COMPETITION_ANALYSIS: 3,
    collections.IT_STRATEGY: 1,
    collections.SERVICE_MATCHING: 1,
    collections.MEETING_PREP: 1,
}


@pytest.fixture
def pipeline(deps, llm):
    """Pipeline whose customer has three competitors (plus a repeat and itself)."""
    llm.responders[CompetitorList] = lambda prompt: CompetitorList(competitors=[
        Competitor(legal_name="Beta AG", domain="beta.com"),
        Competitor(legal_name="Gamma SE", domain="gamma.com"),
        Competitor(legal_name="Delta GmbH", domain="delta.com"),
        Competitor(legal_name="Beta AG", domain="Beta.com"),
        Competitor(legal_name="Acme GmbH", domain="acme.com"),
    ])
    return build_pipeline(deps, sleep=no_sleep)


async def _counts(store) -> dict[str, int]:
    return {name: await store.count(name) for name in EXPECTED_COUNTS}


async def _competitor_links(store) -> list[str]:
    return sorted(await store.links_from(
        collections.MASTER_DATA, identity_of("acme.com"), "competing_companies"
    ))


class TestPipelineEndToEnd:
    """Test that one customer submission converges to a briefing."""

    @pytest.mark.asyncio
    async def test_research_converges(self, pipeline, store, bus):
        """Every stage stores the expected number of entities and nothing is dead-lettered."""
        metrics = await pipeline.research("acme.com", "Acme GmbH")

        assert await _counts(store) == EXPECTED_COUNTS
        assert metrics.dead_lettered == 0
        assert bus.dead_letters() == []
        assert bus.pending(queues.OPERATOR_ALERTS) == 0

        briefing = await store.get_by_key(collections.MEETING_PREP, "acme.com")
        assert briefing.customer_legal_name == "Acme GmbH"

        competitors = await store.links_from(
            collections.MASTER_DATA, identity_of("acme.com"), "competing_companies"
        )
        assert sorted(competitors) == sorted(identity_of(d) for d in ("beta.com", "gamma.com", "delta.com"))

    @pytest.mark.asyncio
    async def test_competitor_analyses_point_at_customer(self, pipeline, store):
        """Competitor market analyses remember which customer they were run for."""
        await pipeline.research("acme.com", "Acme GmbH")

        beta = await store.get_by_key(collections.MARKET_ANALYSIS, "beta.com")
        assert beta.subject_type == "competitor"
        assert beta.customer_domain == "acme.com"
        assert beta.storage_area_id is not None

        comparisons = await store.find(collections.COMPETITION_ANALYSIS, where={"customer_domain": "acme.com"})
        assert sorted(c.competitor_domain for c in comparisons) == ["beta.com", "delta.com", "gamma.com"]

    @pytest.mark.asyncio
    async def test_ingestion_uses_fallback_for_missing_documents(self, pipeline, storage_areas):
        """Each company gets a news storage area with fetched and fallback documents."""
        await pipeline.research("acme.com", "Acme GmbH")

        assert sorted(storage_areas.created) == sorted(
            f"news/{d}" for d in ("acme.com", "beta.com", "gamma.com", "delta.com")
        )
        texts = [text for _, text in storage_areas.uploads.values()]
        assert len(texts) == 8
        assert sum(text.startswith("# Brief") for text in texts) == 4

    @pytest.mark.asyncio
    async def test_redelivery_creates_no_duplicates(self, pipeline, store, bus, llm):
        """Submitting the same customer again finds everything and re-emits downstream messages."""
        await pipeline.research("acme.com", "Acme GmbH")
        generation_calls = len(llm.calls)
        assessments_published = bus.published[queues.ASSESSMENT]
        links_before = await _competitor_links(store)

        metrics = await pipeline.research("acme.com", "Acme GmbH")

        assert await _counts(store) == EXPECTED_COUNTS
        assert metrics.dead_lettered == 0
        assert len(llm.calls) == generation_calls
        assert bus.published[queues.ASSESSMENT] == 2 * assessments_published
        assert bus.published[queues.INGESTION] == 4
        assert await _competitor_links(store) == links_before
        assert len(links_before) == 3

    @pytest.mark.asyncio
    async def test_timed_out_batch_alerts_and_stops_branch(self, pipeline, store, bus, storage_areas, config):
        """A batch that never completes raises an operator alert instead of continuing."""
        config.batch_poll_max_attempts = 2
        pipeline = build_pipeline(pipeline.deps, sleep=no_sleep)
        storage_areas.statuses = [BatchStatus.PENDING, BatchStatus.PENDING]

        metrics = await pipeline.research("acme.com", "Acme GmbH")

        assert metrics.dead_lettered == 0
        [alert] = bus.peek(queues.OPERATOR_ALERTS)
        assert alert["state"] == "timed_out"
        assert alert["context"]["domain"] == "acme.com"
        assert await store.get_by_key(collections.MARKET_ANALYSIS, "acme.com") is None
        assert await store.count(collections.MARKET_ANALYSIS) == 3
        assert await store.count(collections.IT_STRATEGY) == 0
