"""
Competition Stage

Discovers a customer's direct competitors and fans them out into the
pipeline. Keyed by customer_domain; fan-out runs on every delivery so a
re-delivered message re-emits the competitor assessment messages.
"""

from __future__ import annotations

import logging

from pydantic import BaseModel

from customer_intel.messaging import queues
from customer_intel.pipeline.deps import PipelineDeps
from customer_intel.pipeline.fanout import FanOutController
from customer_intel.pipeline.orchestrator import Generated, Stage
from customer_intel.pipeline.stages.company import RESEARCH_SYSTEM_PROMPT
from customer_intel.providers.base import web_search_tool
from customer_intel.storage import collections
from customer_intel.storage.base import normalize_key
from customer_intel.types.company import CompetitorList, CompetitorSet
from customer_intel.types.messages import CompetitionMessage, ITStrategyMessage
from customer_intel.types.results import OutboundMessage

logger = logging.getLogger(__name__)


def _create_competition_prompt(message: CompetitionMessage) -> str:
    industries = ", ".join(message.industries) or "unknown"
    markets = ", ".join(message.markets) or "unknown"
    return f"""Find companies competing with {message.legal_name} (domain {message.domain}).

A competitor must satisfy ALL of:
1. Operates in the same industry segments: {industries}
2. Competes in the same geographic markets: {markets}
3. Has comparable scale: revenue within about 0.5x to 2x of {message.revenue_in_mio} Mio EUR
4. Is an independent company, or a clearly identified business unit of a conglomerate

PROCESS:
A. Identify the company's core segments, product lines and end markets from official sources.
B. Search for competitors in those segments and markets. Prefer annual reports, investor
   decks, industry publications and credible business databases; avoid listicles.
C. Keep the 8-12 best matches.

RULES:
- The overlap must be specific (product lines or business segments), not "same broad industry".
- Return each competitor's legal name and primary web domain.
- Never return {message.domain} itself."""


class CompetitionStage(Stage[CompetitionMessage]):
    name = "competition"
    queue = queues.COMPETITION
    collection = collections.COMPETITORS
    request_model = CompetitionMessage

    def __init__(self, deps: PipelineDeps, fanout: FanOutController):
        self.deps = deps
        self.fanout = fanout
        self.llm = deps.llm_for(deps.config.llm_model)

    def natural_key(self, message: CompetitionMessage) -> str:
        assert message.customer_domain is not None
        return message.customer_domain

    async def generate(self, message: CompetitionMessage) -> Generated:
        found = await self.llm.generate_structured(
            _create_competition_prompt(message),
            CompetitorList,
            system=RESEARCH_SYSTEM_PROMPT,
            tools=[web_search_tool()],
        )
        return Generated(CompetitorSet(
            customer_domain=self.natural_key(message),
            customer_legal_name=message.legal_name,
            competitors=found.competitors,
        ))

    async def propagate(self, message: CompetitionMessage, entity: BaseModel) -> list[OutboundMessage]:
        assert isinstance(entity, CompetitorSet)
        if message.subject_type != "customer":
            logger.info(f"Not fanning out competitors of competitor {message.domain}")
            return []
        result = await self.fanout.expand(entity)
        if result.messages:
            return result.messages

        customer = normalize_key(self.natural_key(message))
        analysis = await self.deps.store.get_by_key(collections.MARKET_ANALYSIS, customer)
        if analysis is None:
            logger.info(f"{customer} has no competitors, market analysis will continue to IT strategy")
            return []
        logger.info(f"{customer} has no competitors and a market analysis, continuing to IT strategy")
        strategy = ITStrategyMessage(customer_domain=customer, subject_type="customer")
        return [OutboundMessage(queue=queues.IT_STRATEGY, payload=strategy.to_payload())]
