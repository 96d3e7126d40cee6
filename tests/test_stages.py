"""Tests for the individual pipeline stages."""

from dataclasses import replace

import numpy as np
import pytest

from conftest import FakeEmbeddings, master_data_for, no_sleep
from customer_intel.messaging import queues
from customer_intel.pipeline.stages.market_analysis import lens_text
from customer_intel.pipeline.wiring import build_pipeline
from customer_intel.storage import collections
from customer_intel.storage.base import identity_of
from customer_intel.storage.collections import declare_collections
from customer_intel.storage.parquet.backend import ParquetEntityStore
from customer_intel.types.analysis import (
    CompetitionAnalysisDraft,
    ITStrategyDraft,
    MarketAnalysis,
    MarketAnalysisDraft,
    MeetingPrepDraft,
    ServiceMatchingDraft,
)
from customer_intel.types.company import Competitor, CompetitorList, CompetitorSet, NewsDigest, NewsList
from customer_intel.types.results import StageOutcome

CUSTOMER = {"domain": "acme.com", "legal_name": "Acme GmbH"}
MARKET = {**CUSTOMER, "industries": ["Industrial Coatings"], "markets": ["DE"]}
COMPETITOR_MARKET = {
    "domain": "beta.com",
    "legal_name": "Beta AG",
    "customer_domain": "acme.com",
    "subject_type": "competitor",
    "industries": ["Industrial Coatings"],
    "markets": ["DE"],
}
PAIR = {
    "customer_domain": "acme.com",
    "competitor_domain": "beta.com",
    "customer_legal_name": "Acme GmbH",
    "competitor_legal_name": "Beta AG",
}


@pytest.fixture
def pipeline(deps):
    """Wired pipeline over the fakes."""
    return build_pipeline(deps, sleep=no_sleep)


async def run(pipeline, queue, payload):
    return await pipeline.orchestrator.run(pipeline.stages[queue], payload)


async def seed_master(store, domain, legal_name):
    await store.put(
        collections.MASTER_DATA,
        master_data_for(f"for the company {legal_name} with the domain {domain}.\n"),
    )


async def seed_analysis(store, embeddings, domain, customer_domain="acme.com", storage_area_id=None):
    analysis = MarketAnalysis(
        analysis=f"Market analysis of {domain}: demand for low-emission coatings rises.",
        domain=domain,
        subject_type="customer" if domain == customer_domain else "competitor",
        customer_domain=customer_domain,
        storage_area_id=storage_area_id,
    )
    vector = await embeddings.embed_single(analysis.analysis)
    await store.put(
        collections.MARKET_ANALYSIS,
        analysis,
        {collections.ANALYSIS_TEXT: vector, collections.COMPETITION_LENS: vector},
    )


class TestCompanyStages:
    """Test master data and assessment."""

    @pytest.mark.asyncio
    async def test_master_data_uses_message_domain(self, pipeline, store, llm):
        """The stored domain is the requested one and an assessment message follows."""
        result = await run(pipeline, queues.MASTER_DATA, {"domain": "ACME.com", "legal_name": "Acme GmbH"})

        stored = await store.get_by_key(collections.MASTER_DATA, "acme.com")
        assert stored.domain == "acme.com"
        assert [m.queue for m in result.messages] == [queues.ASSESSMENT]
        assert llm.calls[0]["tools"] == [{"type": "web_search_preview"}]

    @pytest.mark.asyncio
    async def test_assessment_for_customer(self, pipeline, store):
        """A customer's assessment continues to competition and news."""
        await seed_master(store, "acme.com", "Acme GmbH")

        result = await run(pipeline, queues.ASSESSMENT, CUSTOMER)

        assert [m.queue for m in result.messages] == [queues.COMPETITION, queues.NEWS]
        competition = result.messages[0].payload
        assert competition["revenue_in_mio"] == 420.0
        assert competition["markets"] == ["DE", "AT"]
        assert result.links_created == 1

    @pytest.mark.asyncio
    async def test_assessment_for_competitor(self, pipeline, store):
        """A competitor's assessment only continues to news."""
        result = await run(pipeline, queues.ASSESSMENT, {
            "domain": "beta.com",
            "legal_name": "Beta AG",
            "customer_domain": "acme.com",
            "subject_type": "competitor",
        })

        assert [m.queue for m in result.messages] == [queues.NEWS]
        assert result.messages[0].payload["customer_domain"] == "acme.com"

    def test_assessment_model(self, pipeline, llm, config):
        """The assessment stage switches to its own model."""
        assert config.llm_model_assessment in llm.models


class TestCompetitionStage:
    """Test competitor discovery."""

    @pytest.mark.asyncio
    async def test_customer_fans_out(self, pipeline, store, llm):
        """Discovered competitors become assessment messages."""
        llm.responders[CompetitorList] = lambda prompt: CompetitorList(competitors=[
            Competitor(legal_name="Beta AG", domain="beta.com"),
            Competitor(legal_name="Beta AG", domain="BETA.com"),
        ])
        await seed_master(store, "acme.com", "Acme GmbH")

        result = await run(pipeline, queues.COMPETITION, {**MARKET, "revenue_in_mio": 420.0})

        stored = await store.get_by_key(collections.COMPETITORS, "acme.com")
        assert isinstance(stored, CompetitorSet)
        assert len(stored.competitors) == 2
        assert [m.payload["domain"] for m in result.messages] == ["beta.com"]

    @pytest.mark.asyncio
    async def test_competitor_does_not_fan_out(self, pipeline, store, llm):
        """A competitor's competition message never expands."""
        llm.responders[CompetitorList] = lambda prompt: CompetitorList(competitors=[
            Competitor(legal_name="Gamma SE", domain="gamma.com"),
        ])

        result = await run(pipeline, queues.COMPETITION, {**COMPETITOR_MARKET, "revenue_in_mio": 100.0})

        assert result.messages == []
        assert await store.get_by_key(collections.MASTER_DATA, "gamma.com") is None

    @pytest.mark.asyncio
    async def test_no_competitors_after_market_analysis(self, pipeline, store, llm, embeddings):
        """An empty competitor set stored after the market analysis continues to IT strategy."""
        llm.responders[CompetitorList] = lambda prompt: CompetitorList(competitors=[
            Competitor(legal_name="Acme GmbH", domain="ACME.com"),
        ])
        await seed_master(store, "acme.com", "Acme GmbH")
        await seed_analysis(store, embeddings, "acme.com")
        waiting = await run(pipeline, queues.MARKET_ANALYSIS, MARKET)

        result = await run(pipeline, queues.COMPETITION, {**MARKET, "revenue_in_mio": 420.0})

        assert waiting.messages == []
        assert [m.queue for m in result.messages] == [queues.IT_STRATEGY]
        assert result.messages[0].payload["customer_domain"] == "acme.com"

    @pytest.mark.asyncio
    async def test_no_competitors_before_market_analysis(self, pipeline, store):
        """Without a market analysis an empty competitor set leaves IT strategy to that branch."""
        await seed_master(store, "acme.com", "Acme GmbH")

        result = await run(pipeline, queues.COMPETITION, {**MARKET, "revenue_in_mio": 420.0})

        assert result.messages == []

    @pytest.mark.asyncio
    async def test_redelivery_on_parquet_store_keeps_links(self, deps, llm, tmp_path):
        """Processing the same competition message twice leaves one link per competitor."""
        llm.responders[CompetitorList] = lambda prompt: CompetitorList(competitors=[
            Competitor(legal_name="Beta AG", domain="beta.com"),
            Competitor(legal_name="Gamma SE", domain="gamma.com"),
        ])
        parquet = ParquetEntityStore(tmp_path / "store")
        await parquet.initialize()
        await declare_collections(parquet)
        await seed_master(parquet, "acme.com", "Acme GmbH")
        pipeline = build_pipeline(replace(deps, store=parquet), sleep=no_sleep)
        payload = {**MARKET, "revenue_in_mio": 420.0}

        first = await run(pipeline, queues.COMPETITION, payload)
        second = await run(pipeline, queues.COMPETITION, payload)

        assert second.outcome == StageOutcome.FOUND
        assert first.messages == second.messages
        linked = await parquet.links_from(collections.MASTER_DATA, identity_of("acme.com"), "competing_companies")
        assert sorted(linked) == sorted([identity_of("beta.com"), identity_of("gamma.com")])
        assert await parquet.count(collections.MASTER_DATA) == 3
        await parquet.close()


class TestNewsStage:
    """Test news collection and the ingestion hand-off."""

    @pytest.mark.asyncio
    async def test_deduplicates_and_caps(self, pipeline, store, llm, config):
        """Items are unique per source and capped."""
        config.news_max_items = 2
        llm.responders[NewsList] = lambda prompt: NewsList.model_validate({"items": [
            {"source": f"https://news.example/ok/{i % 3}", "summary": f"Item {i}", "published": "2025-01-01"}
            for i in range(6)
        ]})

        result = await run(pipeline, queues.NEWS, MARKET)

        digest = await store.get_by_key(collections.NEWS, "acme.com")
        assert isinstance(digest, NewsDigest)
        assert [item.summary for item in digest.items] == ["Item 0", "Item 1"]
        assert digest.storage_area_name == "news/acme.com"

        [ingestion] = result.messages
        assert ingestion.queue == queues.INGESTION
        assert [d["fallback"] for d in ingestion.payload["documents"]] == ["Item 0", "Item 1"]
        assert ingestion.payload["context"]["domain"] == "acme.com"

    @pytest.mark.asyncio
    async def test_existing_analysis_skips_ingestion(self, pipeline, store, embeddings):
        """With a stored market analysis the continuation is published directly."""
        await seed_analysis(store, embeddings, "acme.com", storage_area_id="vs_7")

        result = await run(pipeline, queues.NEWS, MARKET)

        [continuation] = result.messages
        assert continuation.queue == queues.MARKET_ANALYSIS
        assert continuation.payload["storage_area_id"] == "vs_7"


class TestMarketAnalysisStage:
    """Test vectors, tools and the convergence step."""

    @pytest.mark.asyncio
    async def test_vectors_and_tools(self, pipeline, store, llm, embeddings, config):
        """The lens vector is the mean of the wrapped chunk embeddings."""
        await run(pipeline, queues.MARKET_ANALYSIS, {**MARKET, "storage_area_id": "vs_1"})

        call = llm.calls_for(MarketAnalysisDraft)[0]
        assert {"type": "file_search", "vector_store_ids": ["vs_1"]} in call["tools"]

        stored = await store.get_by_key(collections.MARKET_ANALYSIS, "acme.com")
        assert stored.storage_area_id == "vs_1"
        lens_inputs = [text for text in embeddings.texts if text.startswith("Evidence: ")]
        assert len(lens_inputs) > 1

        expected = np.mean([FakeEmbeddings()._vector(text) for text in lens_inputs], axis=0).tolist()
        [(entity, score)] = await store.search(
            collections.MARKET_ANALYSIS, collections.COMPETITION_LENS, expected, limit=1
        )
        assert entity.domain == "acme.com"
        assert score == pytest.approx(1.0)

    def test_lens_text(self):
        """Chunks are wrapped in the comparison prompt."""
        assert lens_text("growth").startswith("Evidence: growth. Task: compare")

    @pytest.mark.asyncio
    async def test_competitor_waits_for_customer(self, pipeline, store):
        """A competitor's analysis triggers nothing until the customer's exists."""
        result = await run(pipeline, queues.MARKET_ANALYSIS, COMPETITOR_MARKET)
        assert result.messages == []

    @pytest.mark.asyncio
    async def test_competitor_completes_join(self, pipeline, store, embeddings):
        """The branch finishing last triggers the comparison."""
        await seed_master(store, "acme.com", "Acme GmbH")
        await seed_master(store, "beta.com", "Beta AG")
        await seed_analysis(store, embeddings, "acme.com")

        result = await run(pipeline, queues.MARKET_ANALYSIS, COMPETITOR_MARKET)

        [trigger] = result.messages
        assert trigger.queue == queues.COMPETITION_ANALYSIS
        assert trigger.payload["competitor_domain"] == "beta.com"

    @pytest.mark.asyncio
    async def test_customer_without_competitors(self, pipeline, store):
        """An empty competitor set continues to IT strategy."""
        await store.put(
            collections.COMPETITORS,
            CompetitorSet(customer_domain="acme.com", customer_legal_name="Acme GmbH", competitors=[]),
        )

        result = await run(pipeline, queues.MARKET_ANALYSIS, MARKET)

        assert [m.queue for m in result.messages] == [queues.IT_STRATEGY]

    @pytest.mark.asyncio
    async def test_customer_before_competitor_set(self, pipeline):
        """Without a competitor set the customer branch waits."""
        result = await run(pipeline, queues.MARKET_ANALYSIS, MARKET)
        assert result.messages == []


class TestCompetitionAnalysisStage:
    """Test the gated comparison."""

    @pytest.mark.asyncio
    async def test_dropped_without_both_analyses(self, pipeline, store, embeddings):
        """A missing market analysis drops the message."""
        await seed_analysis(store, embeddings, "acme.com")

        result = await run(pipeline, queues.COMPETITION_ANALYSIS, PAIR)

        assert result.outcome is StageOutcome.DROPPED
        assert await store.count(collections.COMPETITION_ANALYSIS) == 0

    @pytest.mark.asyncio
    async def test_generates_linked_comparison(self, pipeline, store, llm, embeddings):
        """Both analyses present yields a linked comparison and an IT strategy trigger."""
        await seed_master(store, "acme.com", "Acme GmbH")
        await seed_master(store, "beta.com", "Beta AG")
        await seed_analysis(store, embeddings, "acme.com", storage_area_id="vs_a")
        await seed_analysis(store, embeddings, "beta.com", storage_area_id="vs_a")

        result = await run(pipeline, queues.COMPETITION_ANALYSIS, PAIR)

        assert result.outcome is StageOutcome.GENERATED
        assert result.links_created == 2
        assert [m.queue for m in result.messages] == [queues.IT_STRATEGY]

        call = llm.calls_for(CompetitionAnalysisDraft)[0]
        assert call["tools"][0] == {"type": "file_search", "vector_store_ids": ["vs_a"]}
        assert call["tools"][-1] == {"type": "web_search_preview"}
        assert "Market analysis of acme.com" in call["prompt"]
        assert "Market analysis of beta.com" in call["prompt"]

        stored = await store.get_by_key(collections.COMPETITION_ANALYSIS, "acme.com|beta.com")
        assert stored.competition_id == "acme.com|beta.com"
        linked = await store.links_from(collections.MASTER_DATA, identity_of("acme.com"), "competition_analysis")
        assert linked == [identity_of("acme.com|beta.com")]


class TestITStrategyStage:
    """Test evidence assembly and the vendor catalog switch."""

    @pytest.mark.asyncio
    async def test_evidence_and_propagation(self, pipeline, store, llm, embeddings):
        """Strategies get retrieved evidence and continue to service matching."""
        await seed_master(store, "acme.com", "Acme GmbH")
        await seed_analysis(store, embeddings, "acme.com")

        result = await run(pipeline, queues.IT_STRATEGY, {"customer_domain": "acme.com"})

        prompt = llm.calls_for(ITStrategyDraft)[0]["prompt"]
        assert "acme.com-market-analysis" in prompt
        [matching] = result.messages
        assert matching.queue == queues.SERVICE_MATCHING
        assert matching.payload["it_strategy_id"] == "acme.com"
        assert matching.payload["vendor_catalog_storage_id"] == "vs_catalog"

    @pytest.mark.asyncio
    async def test_fallback_evidence(self, pipeline, store, llm):
        """Without vectors the customer's own analysis is the only evidence."""
        await seed_master(store, "acme.com", "Acme GmbH")
        await store.put(
            collections.MARKET_ANALYSIS,
            MarketAnalysis(analysis="Plain analysis.", domain="acme.com", subject_type="customer", customer_domain="acme.com"),
        )

        await run(pipeline, queues.IT_STRATEGY, {"customer_domain": "acme.com"})

        prompt = llm.calls_for(ITStrategyDraft)[0]["prompt"]
        assert '"id": "acme.com-market-analysis"' in prompt
        assert "Plain analysis." in prompt

    @pytest.mark.asyncio
    async def test_no_vendor_catalog(self, pipeline, store, embeddings, config):
        """Without a vendor catalog nothing follows the strategy."""
        config.vendor_catalog_storage_id = None
        await seed_master(store, "acme.com", "Acme GmbH")
        await seed_analysis(store, embeddings, "acme.com")

        result = await run(pipeline, queues.IT_STRATEGY, {"customer_domain": "acme.com"})

        assert result.outcome is StageOutcome.GENERATED
        assert result.messages == []

    @pytest.mark.asyncio
    async def test_dropped_without_market_analysis(self, pipeline, store):
        """The customer's market analysis is required."""
        await seed_master(store, "acme.com", "Acme GmbH")
        result = await run(pipeline, queues.IT_STRATEGY, {"customer_domain": "acme.com"})
        assert result.outcome is StageOutcome.DROPPED


class TestBriefingStages:
    """Test service matching and meeting preparation."""

    async def _seed_strategy(self, pipeline, store, embeddings):
        await seed_master(store, "acme.com", "Acme GmbH")
        await seed_analysis(store, embeddings, "acme.com")
        await run(pipeline, queues.IT_STRATEGY, {"customer_domain": "acme.com"})

    @pytest.mark.asyncio
    async def test_service_matching_searches_catalog_only(self, pipeline, store, llm, embeddings):
        """Service matching retrieves from the vendor catalog and nothing else."""
        await self._seed_strategy(pipeline, store, embeddings)

        result = await run(pipeline, queues.SERVICE_MATCHING, {
            "customer_domain": "acme.com",
            "customer_legal_name": "Acme GmbH",
            "it_strategy_id": "acme.com",
            "vendor_catalog_storage_id": "vs_vendor",
        })

        call = llm.calls_for(ServiceMatchingDraft)[0]
        assert call["tools"] == [{"type": "file_search", "vector_store_ids": ["vs_vendor"]}]
        assert [m.queue for m in result.messages] == [queues.MEETING_PREP]
        assert result.messages[0].payload["service_matching_id"] == "acme.com"

    @pytest.mark.asyncio
    async def test_service_matching_without_catalog(self, pipeline, store, embeddings, config):
        """No catalog in the message or configuration drops the message."""
        await self._seed_strategy(pipeline, store, embeddings)
        config.vendor_catalog_storage_id = None

        result = await run(pipeline, queues.SERVICE_MATCHING, {
            "customer_domain": "acme.com",
            "customer_legal_name": "Acme GmbH",
            "it_strategy_id": "acme.com",
        })

        assert result.outcome is StageOutcome.DROPPED

    @pytest.mark.asyncio
    async def test_meeting_prep_is_terminal(self, pipeline, store, llm, embeddings):
        """Meeting preparation uses no tools and publishes nothing."""
        await self._seed_strategy(pipeline, store, embeddings)
        await run(pipeline, queues.SERVICE_MATCHING, {
            "customer_domain": "acme.com",
            "customer_legal_name": "Acme GmbH",
            "it_strategy_id": "acme.com",
        })

        result = await run(pipeline, queues.MEETING_PREP, {
            "customer_domain": "acme.com",
            "customer_legal_name": "Acme GmbH",
            "it_strategy_id": "acme.com",
            "service_matching_id": "acme.com",
        })

        assert result.outcome is StageOutcome.GENERATED
        assert result.messages == []
        assert llm.calls_for(MeetingPrepDraft)[0]["tools"] is None

    @pytest.mark.asyncio
    async def test_meeting_prep_needs_service_matching(self, pipeline, store, embeddings):
        """Meeting preparation is dropped until service matching exists."""
        await self._seed_strategy(pipeline, store, embeddings)

        result = await run(pipeline, queues.MEETING_PREP, {
            "customer_domain": "acme.com",
            "customer_legal_name": "Acme GmbH",
            "it_strategy_id": "acme.com",
            "service_matching_id": "acme.com",
        })

        assert result.outcome is StageOutcome.DROPPED
