"""
Market Analysis Stage

Writes the market and demand narrative for one company, retrieving from
the company's ingested news when a storage area is known.

Vector slots:
    analysis_text     embedding of the narrative
    competition_lens  mean embedding of the narrative's chunks, each chunk
                      wrapped in a customer-vs-competitor comparison prompt

Propagation is the convergence step of the pipeline:
    competitor  -> try the join with its customer
    customer    -> try the join with every competitor in its CompetitorSet;
                   an empty set goes straight to it-strategy
"""

from __future__ import annotations

import logging

import numpy as np
from pydantic import BaseModel

from customer_intel.ingestion.chunking import chunk_words
from customer_intel.messaging import queues
from customer_intel.pipeline.convergence import ConvergenceGate
from customer_intel.pipeline.deps import PipelineDeps
from customer_intel.pipeline.orchestrator import Generated, Stage
from customer_intel.pipeline.stages.company import RESEARCH_SYSTEM_PROMPT
from customer_intel.providers.base import Tool, file_search_tool, web_search_tool
from customer_intel.storage import collections
from customer_intel.storage.base import normalize_key
from customer_intel.types.analysis import MarketAnalysis, MarketAnalysisDraft
from customer_intel.types.company import CompetitorSet
from customer_intel.types.messages import ITStrategyMessage, MarketAnalysisMessage
from customer_intel.types.results import LinkSpec, OutboundMessage

logger = logging.getLogger(__name__)


def _create_market_analysis_prompt(message: MarketAnalysisMessage) -> str:
    markets = ", ".join(message.markets) or "not specified"
    industries = ", ".join(message.industries) or "not specified"
    return f"""Produce a thorough market and demand analysis for the company "{message.legal_name}" (domain: {message.domain}).

The goal is to understand the company's industry environment, structural market
dynamics and evolving customer demands as a foundation for later strategic and
competitive analysis.

SCOPE:
- Geography: {markets}
- Time horizon: current state and emerging trends over the next 2-3 years
- Industry context: {industries}

METHOD:
1. Market context: business model, value chain position, products and end markets,
   customer types, approximate scale and maturity.
2. Customer demand patterns: price pressure, reliability, customization, speed,
   sustainability, compliance, digital interfaces, data transparency.
3. Market and industry trends: economic, regulatory, supply chain, labor, cost
   structures, technology. Separate well-established trends from early signals.
4. Implications: how these shifts change what customers expect from companies
   like "{message.legal_name}" (operational, commercial, organizational).

GUIDELINES:
- Prioritize verifiable facts; state assumptions where you reason instead.
- No references to competitors, no initiatives, roadmaps or solutions.
- Cite sources by title, publisher, URL and publication date. No tool citation ids."""


def lens_text(chunk: str) -> str:
    """A chunk as seen by a customer-vs-competitor comparison."""
    return (
        f"Evidence: {chunk}. Task: compare strengths, weaknesses, niches, trends, "
        "and expectations for customer vs competitor."
    )


class MarketAnalysisStage(Stage[MarketAnalysisMessage]):
    name = "market-analysis"
    queue = queues.MARKET_ANALYSIS
    collection = collections.MARKET_ANALYSIS
    request_model = MarketAnalysisMessage

    def __init__(self, deps: PipelineDeps, gate: ConvergenceGate):
        self.deps = deps
        self.gate = gate
        self.llm = deps.llm_for(deps.config.llm_model)

    def natural_key(self, message: MarketAnalysisMessage) -> str:
        return message.domain

    async def generate(self, message: MarketAnalysisMessage) -> Generated:
        tools: list[Tool] = [web_search_tool()]
        if message.storage_area_id:
            tools.append(file_search_tool([message.storage_area_id]))

        draft = await self.llm.generate_structured(
            _create_market_analysis_prompt(message),
            MarketAnalysisDraft,
            system=RESEARCH_SYSTEM_PROMPT,
            tools=tools,
        )
        assert message.customer_domain is not None
        entity = MarketAnalysis(
            analysis=draft.analysis,
            domain=message.domain,
            subject_type=message.subject_type,
            customer_domain=message.customer_domain,
            storage_area_id=message.storage_area_id,
        )
        return Generated(entity, await self._vectors(entity.analysis))

    async def _vectors(self, analysis: str) -> dict[str, list[float]]:
        embeddings = self.deps.embeddings
        vectors = {collections.ANALYSIS_TEXT: await embeddings.embed_single(analysis)}

        chunks = chunk_words(
            analysis,
            max_words=self.deps.config.chunk_max_words,
            overlap_words=self.deps.config.chunk_overlap_words,
        )
        if chunks:
            lens = await embeddings.embed([lens_text(chunk.text) for chunk in chunks])
            vectors[collections.COMPETITION_LENS] = np.mean(np.asarray(lens, dtype=float), axis=0).tolist()
            logger.debug(f"Competition lens from {len(chunks)} chunk(s)")
        return vectors

    def links(self, message: MarketAnalysisMessage, entity: BaseModel) -> list[LinkSpec]:
        return [LinkSpec(
            collection=collections.MASTER_DATA,
            from_key=message.domain,
            relation="market_analysis",
            to_key=message.domain,
        )]

    async def propagate(self, message: MarketAnalysisMessage, entity: BaseModel) -> list[OutboundMessage]:
        domain = normalize_key(message.domain)

        if message.subject_type == "competitor":
            assert message.customer_domain is not None
            trigger = await self.gate.comparison_trigger(message.customer_domain, domain)
            return [trigger] if trigger is not None else []

        competitor_set = await self.deps.store.get_by_key(collections.COMPETITORS, domain)
        if not isinstance(competitor_set, CompetitorSet):
            logger.info(f"No competitor set for {domain} yet, competitor branches will trigger comparisons")
            return []

        competitors = sorted({
            normalize_key(c.domain) for c in competitor_set.competitors
        } - {domain})
        if not competitors:
            logger.info(f"{domain} has no competitors, continuing to IT strategy")
            strategy = ITStrategyMessage(customer_domain=domain, subject_type="customer")
            return [OutboundMessage(queue=queues.IT_STRATEGY, payload=strategy.to_payload())]

        outbound: list[OutboundMessage] = []
        for competitor in competitors:
            trigger = await self.gate.comparison_trigger(domain, competitor)
            if trigger is not None:
                outbound.append(trigger)
        return outbound
