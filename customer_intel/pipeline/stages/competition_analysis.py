"""
Competition Analysis Stage

Compares a customer with one competitor. Gated on both market analyses:
if either is missing the message is dropped, and the sibling branch's
own join attempt re-triggers the comparison later.

Context per company is its market analysis plus up to five
competition_lens neighbours (filtered to the company) and up to three
prior comparisons, concatenated under a character cap. The generation
call may search both companies' storage areas and the web.
"""

from __future__ import annotations

import json
import logging

from pydantic import BaseModel

from customer_intel.messaging import queues
from customer_intel.pipeline.context import concat_context
from customer_intel.pipeline.convergence import ConvergenceGate
from customer_intel.pipeline.deps import PipelineDeps
from customer_intel.pipeline.orchestrator import Generated, Stage
from customer_intel.providers.base import Tool, file_search_tool, web_search_tool
from customer_intel.storage import collections
from customer_intel.storage.base import pair_key
from customer_intel.types.analysis import (
    CompetitionAnalysis,
    CompetitionAnalysisDraft,
    MarketAnalysis,
)
from customer_intel.types.messages import CompetitionAnalysisMessage, ITStrategyMessage
from customer_intel.types.results import LinkSpec, OutboundMessage

logger = logging.getLogger(__name__)

COMPARISON_QUESTION = (
    "Compare competitive strengths and weaknesses, niche positioning, market trends, "
    "and customer expectations for customer vs competitor."
)

LENS_NEIGHBOURS = 5
PRIOR_ANALYSES = 3

COMPETITION_SYSTEM_PROMPT = "You are a competitive intelligence analyst preparing a customer meeting."


def _create_competition_analysis_prompt(
    message: CompetitionAnalysisMessage,
    customer_context: str,
    competitor_context: str,
) -> str:
    payload = {
        "customer": {
            "domain": message.customer_domain,
            "legal_name": message.customer_legal_name,
            "market_analysis": customer_context,
        },
        "competitor": {
            "domain": message.competitor_domain,
            "legal_name": message.competitor_legal_name,
            "market_analysis": competitor_context,
        },
    }
    return f"""Compare the customer with the competitor.

CONTEXT:
{json.dumps(payload, indent=2)}

COVER:
- Summary of the comparison
- Strengths: where the customer is ahead
- Weaknesses: where the competitor is ahead
- Niche positioning
- Impact of market trends on both
- Alignment with customer expectations
- Sources used

RULES:
- Use file search over both companies' documents and web search to confirm facts.
- analysis must not exceed 3500 characters and summary must not exceed 1200 characters.
- Cite sources by title and URL. No tool citation ids or placeholders.
- Return a single valid JSON object only."""


def _with_prior(company_context: str, prior_context: str) -> str:
    return "\n\n".join(part for part in (company_context, prior_context) if part)


class CompetitionAnalysisStage(Stage[CompetitionAnalysisMessage]):
    name = "competition-analysis"
    queue = queues.COMPETITION_ANALYSIS
    collection = collections.COMPETITION_ANALYSIS
    request_model = CompetitionAnalysisMessage

    def __init__(self, deps: PipelineDeps, gate: ConvergenceGate):
        self.deps = deps
        self.gate = gate
        self.llm = deps.llm_for(deps.config.llm_model)

    def natural_key(self, message: CompetitionAnalysisMessage) -> str:
        return pair_key(message.customer_domain, message.competitor_domain)

    async def generate(self, message: CompetitionAnalysisMessage) -> Generated:
        customer_ma, competitor_ma = await self.gate.gather([
            (collections.MARKET_ANALYSIS, message.customer_domain),
            (collections.MARKET_ANALYSIS, message.competitor_domain),
        ])
        assert isinstance(customer_ma, MarketAnalysis) and isinstance(competitor_ma, MarketAnalysis)

        config = self.deps.config
        query = await self.deps.embeddings.embed_single(COMPARISON_QUESTION)
        prior = await self._prior_analyses(query)
        prior_context = concat_context(prior, config.max_prior_context_chars)

        customer_context = _with_prior(
            await self._company_context(customer_ma, query, config.max_analysis_chars), prior_context
        )
        competitor_context = _with_prior(
            await self._company_context(competitor_ma, query, config.max_analysis_chars), prior_context
        )

        draft = await self.llm.generate_structured(
            _create_competition_analysis_prompt(message, customer_context, competitor_context),
            CompetitionAnalysisDraft,
            system=COMPETITION_SYSTEM_PROMPT,
            tools=self._tools(message, customer_ma, competitor_ma),
        )

        entity = CompetitionAnalysis(
            **draft.model_dump(),
            competition_id=self.natural_key(message),
            customer_domain=message.customer_domain,
            competitor_domain=message.competitor_domain,
            customer_legal_name=message.customer_legal_name,
            competitor_legal_name=message.competitor_legal_name,
        )
        vector = await self.deps.embeddings.embed_single(entity.analysis)
        return Generated(entity, {collections.ANALYSIS_TEXT: vector})

    async def _company_context(self, analysis: MarketAnalysis, query: list[float], max_chars: int) -> str:
        neighbours = await self.deps.store.search(
            collections.MARKET_ANALYSIS,
            collections.COMPETITION_LENS,
            query,
            limit=LENS_NEIGHBOURS,
            where={"domain": analysis.domain},
        )
        extras = [
            entity.analysis
            for entity, _ in neighbours
            if isinstance(entity, MarketAnalysis) and entity.analysis != analysis.analysis
        ]
        return concat_context([analysis.analysis, *extras], max_chars)

    async def _prior_analyses(self, query: list[float]) -> list[str]:
        hits = await self.deps.store.search(
            collections.COMPETITION_ANALYSIS,
            collections.ANALYSIS_TEXT,
            query,
            limit=PRIOR_ANALYSES,
        )
        return [entity.analysis for entity, _ in hits if isinstance(entity, CompetitionAnalysis)]

    def _tools(
        self,
        message: CompetitionAnalysisMessage,
        customer_ma: MarketAnalysis,
        competitor_ma: MarketAnalysis,
    ) -> list[Tool]:
        area_ids = [
            area_id
            for area_id in (
                message.customer_storage_area_id or customer_ma.storage_area_id,
                message.competitor_storage_area_id or competitor_ma.storage_area_id,
            )
            if area_id
        ]
        tools: list[Tool] = []
        if area_ids:
            tools.append(file_search_tool(list(dict.fromkeys(area_ids))))
        tools.append(web_search_tool())
        return tools

    def links(self, message: CompetitionAnalysisMessage, entity: BaseModel) -> list[LinkSpec]:
        key = self.natural_key(message)
        return [
            LinkSpec(
                collection=collections.MASTER_DATA,
                from_key=message.customer_domain,
                relation="competition_analysis",
                to_key=key,
            ),
            LinkSpec(
                collection=collections.COMPETITION_ANALYSIS,
                from_key=key,
                relation="competitor_master_data",
                to_key=message.competitor_domain,
            ),
        ]

    async def propagate(self, message: CompetitionAnalysisMessage, entity: BaseModel) -> list[OutboundMessage]:
        strategy = ITStrategyMessage(customer_domain=message.customer_domain, subject_type="customer")
        return [OutboundMessage(queue=queues.IT_STRATEGY, payload=strategy.to_payload())]
