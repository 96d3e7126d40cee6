"""
IT Strategy Stage

Derives business-driven IT strategies for a customer from its profile,
its market analysis, the competition analyses stored so far and a set of
retrieved evidence excerpts. Strategies cite evidence ids.

Evidence:
    - up to 8 analysis_text neighbours of the customer's market analysis
    - up to 2 per compared competitor
    - first excerpt per source, at most max_evidence items of evidence_chars
    - none found: one excerpt of the customer's own market analysis

Every competition analysis re-triggers this stage; the first trigger
generates, later ones find the stored strategy and only propagate.
"""

from __future__ import annotations

import json
import logging

from pydantic import BaseModel

from customer_intel.messaging import queues
from customer_intel.pipeline.context import select_evidence, truncate
from customer_intel.pipeline.convergence import ConvergenceGate
from customer_intel.pipeline.deps import PipelineDeps
from customer_intel.pipeline.orchestrator import Generated, Stage
from customer_intel.providers.base import web_search_tool
from customer_intel.storage import collections
from customer_intel.types.analysis import (
    CompetitionAnalysis,
    EvidenceItem,
    ITStrategy,
    ITStrategyDraft,
    MarketAnalysis,
)
from customer_intel.types.company import MasterData
from customer_intel.types.messages import ITStrategyMessage, ServiceMatchingMessage
from customer_intel.types.results import LinkSpec, OutboundMessage

logger = logging.getLogger(__name__)

EVIDENCE_QUERY = (
    "Evidence for IT strategy: competitive strengths/weaknesses, market positioning, "
    "trend alignment, innovation posture, customer expectations."
)

MAX_COMPETITION_ANALYSES = 8
CUSTOMER_EVIDENCE = 8
COMPETITOR_EVIDENCE = 2

STRATEGY_SYSTEM_PROMPT = (
    "You are a senior enterprise IT strategist advising the executive board. "
    "You do NOT sell services and you do NOT propose vendors."
)


def _create_strategy_prompt(
    master: MasterData,
    analysis: MarketAnalysis,
    comparisons: list[CompetitionAnalysis],
    evidence: list[EvidenceItem],
) -> str:
    summaries = [
        {
            "competitor_domain": c.competitor_domain,
            "competitor_legal_name": c.competitor_legal_name,
            "summary": c.summary,
            "strengths": c.strengths,
            "weaknesses": c.weaknesses,
        }
        for c in comparisons
    ]
    return f"""CONTEXT:
- Customer: {master.legal_name} ({master.domain})
- Company profile: {master.model_dump_json(indent=2)}
- Market analysis: {analysis.analysis}
- Competition analyses: {json.dumps(summaries, indent=2)}
- Evidence excerpts: {json.dumps([item.model_dump() for item in evidence], indent=2)}

TASK:
Derive business-driven IT strategies that amplify competitive strengths,
compensate structural weaknesses and open new niches.

RULES:
- Every strategy cites at least one evidence id from the excerpts above.
- No vendors, products or selling language. No buzzwords.
- time_horizon is one of: short, mid, long.
- strength_amplification, weakness_compensation and new_niche_differentiation
  list strategy ids."""


class ITStrategyStage(Stage[ITStrategyMessage]):
    name = "it-strategy"
    queue = queues.IT_STRATEGY
    collection = collections.IT_STRATEGY
    request_model = ITStrategyMessage

    def __init__(self, deps: PipelineDeps, gate: ConvergenceGate):
        self.deps = deps
        self.gate = gate
        self.llm = deps.llm_for(deps.config.llm_model_strategy)

    def natural_key(self, message: ITStrategyMessage) -> str:
        return message.customer_domain

    async def generate(self, message: ITStrategyMessage) -> Generated:
        master, analysis = await self.gate.gather([
            (collections.MASTER_DATA, message.customer_domain),
            (collections.MARKET_ANALYSIS, message.customer_domain),
        ])
        assert isinstance(master, MasterData) and isinstance(analysis, MarketAnalysis)

        comparisons = [
            entity
            for entity in await self.deps.store.find(
                collections.COMPETITION_ANALYSIS,
                where={"customer_domain": message.customer_domain},
                limit=MAX_COMPETITION_ANALYSES,
            )
            if isinstance(entity, CompetitionAnalysis)
        ]
        evidence = await self._collect_evidence(analysis, comparisons)

        draft = await self.llm.generate_structured(
            _create_strategy_prompt(master, analysis, comparisons, evidence),
            ITStrategyDraft,
            system=STRATEGY_SYSTEM_PROMPT,
            tools=[web_search_tool()],
        )
        logger.info(
            f"{len(draft.strategies)} strategies for {message.customer_domain} from "
            f"{len(comparisons)} comparison(s) and {len(evidence)} evidence item(s)"
        )
        return Generated(ITStrategy(
            **draft.model_dump(),
            customer_domain=message.customer_domain,
            customer_legal_name=master.legal_name,
            subject_type=message.subject_type,
        ))

    async def _collect_evidence(
        self,
        analysis: MarketAnalysis,
        comparisons: list[CompetitionAnalysis],
    ) -> list[EvidenceItem]:
        query = await self.deps.embeddings.embed_single(EVIDENCE_QUERY)

        candidates = await self._market_evidence(analysis.domain, query, CUSTOMER_EVIDENCE)
        for comparison in comparisons:
            candidates.extend(
                await self._market_evidence(comparison.competitor_domain, query, COMPETITOR_EVIDENCE)
            )

        config = self.deps.config
        evidence = select_evidence(
            candidates, max_items=config.max_evidence, max_chars=config.evidence_chars
        )
        if not evidence:
            logger.info(f"No retrieved evidence for {analysis.domain}, using its market analysis")
            evidence = [EvidenceItem(
                id=f"{analysis.domain}-market-analysis",
                source=analysis.domain,
                text=truncate(analysis.analysis, config.evidence_chars),
            )]
        return evidence

    async def _market_evidence(self, domain: str, query: list[float], limit: int) -> list[EvidenceItem]:
        hits = await self.deps.store.search(
            collections.MARKET_ANALYSIS,
            collections.ANALYSIS_TEXT,
            query,
            limit=limit,
            where={"domain": domain},
        )
        return [
            EvidenceItem(id=f"{entity.domain}-market-analysis", source=entity.domain, text=entity.analysis)
            for entity, _ in hits
            if isinstance(entity, MarketAnalysis)
        ]

    def links(self, message: ITStrategyMessage, entity: BaseModel) -> list[LinkSpec]:
        return [LinkSpec(
            collection=collections.MASTER_DATA,
            from_key=message.customer_domain,
            relation="it_strategy",
            to_key=message.customer_domain,
        )]

    async def propagate(self, message: ITStrategyMessage, entity: BaseModel) -> list[OutboundMessage]:
        assert isinstance(entity, ITStrategy)
        vendor_catalog = self.deps.config.vendor_catalog_storage_id
        if not vendor_catalog:
            logger.warning(
                f"No vendor catalog storage area configured, skipping service matching for {message.customer_domain}"
            )
            return []

        matching = ServiceMatchingMessage(
            customer_domain=entity.customer_domain,
            customer_legal_name=entity.customer_legal_name,
            it_strategy_id=entity.customer_domain,
            vendor_catalog_storage_id=vendor_catalog,
            subject_type=message.subject_type,
        )
        return [OutboundMessage(queue=queues.SERVICE_MATCHING, payload=matching.to_payload())]
