"""
Company Stages

master-data:  MasterData for a domain, then an assessment message
assessment:   Assessment for a domain, then competition (customers only) and news
"""

from __future__ import annotations

import logging

from pydantic import BaseModel

from customer_intel.messaging import queues
from customer_intel.pipeline.deps import PipelineDeps
from customer_intel.pipeline.orchestrator import Generated, Stage
from customer_intel.providers.base import web_search_tool
from customer_intel.storage import collections
from customer_intel.types.company import Assessment, MasterData
from customer_intel.types.messages import CompanyMessage, CompetitionMessage, MarketMessage
from customer_intel.types.results import LinkSpec, OutboundMessage

logger = logging.getLogger(__name__)

RESEARCH_SYSTEM_PROMPT = "You are a research assistant to help prepare customer meetings."


def _create_master_data_prompt(message: CompanyMessage) -> str:
    return f"""Look up and verify master data for the company {message.legal_name} with the domain {message.domain}.

OBJECTIVES:
- Retrieve accurate, up-to-date master data from authoritative public sources.
- Prefer primary sources (official website, annual report, filings, press releases).
- Use secondary sources (business databases, reputable news) only to confirm or fill gaps.
- Resolve conflicting information by choosing the most reliable source.

METHOD:
1. Identify the company's official web presence via the given domain.
2. Cross-check key facts with at least one independent, reputable source.
3. If data is missing or uncertain, give the best estimate.

OUTPUT:
- Structured factual content only. Do not invent values.
- Use "{message.domain}" as the domain."""


def _create_assessment_prompt(message: CompanyMessage) -> str:
    return f"""Research the company {message.legal_name} with the domain {message.domain}.

Prioritize hard, verifiable facts. Where facts are unavailable, derive reasoned
estimates from current industry benchmarks.

OBJECTIVES:
- Strongly prefer recent sources; flag older sources used for foundational facts.
- Prefer primary sources (official website, annual reports, filings, official registers).
- Resolve conflicts by choosing the most reliable and recent source.

METHOD:
1. Confirm the official web presence and disambiguate from similarly named entities.
2. Collect hard facts first: revenue, growth, employees, markets, industries.
3. Infer digital maturity (low, medium, high) from recent website and press content.
4. For figures rarely disclosed (IT employees, IT spend), estimate from industry ratios
   (IT staff as share of workforce, IT spend as share of revenue) and lower the confidence.

OUTPUT:
- Every figure carries its source, citation, reference date and a confidence in [0, 1].
- Markets are ISO 3166-1 alpha-2 country codes.
- Use "{message.domain}" as the domain."""


class MasterDataStage(Stage[CompanyMessage]):
    name = "master-data"
    queue = queues.MASTER_DATA
    collection = collections.MASTER_DATA
    request_model = CompanyMessage

    def __init__(self, deps: PipelineDeps):
        self.deps = deps
        self.llm = deps.llm_for(deps.config.llm_model)

    def natural_key(self, message: CompanyMessage) -> str:
        return message.domain

    async def generate(self, message: CompanyMessage) -> Generated:
        draft = await self.llm.generate_structured(
            _create_master_data_prompt(message),
            MasterData,
            system=RESEARCH_SYSTEM_PROMPT,
            tools=[web_search_tool()],
        )
        return Generated(draft.model_copy(update={"domain": message.domain}))

    async def propagate(self, message: CompanyMessage, entity: BaseModel) -> list[OutboundMessage]:
        return [OutboundMessage(queue=queues.ASSESSMENT, payload=message.to_payload())]


class AssessmentStage(Stage[CompanyMessage]):
    name = "assessment"
    queue = queues.ASSESSMENT
    collection = collections.ASSESSMENT
    request_model = CompanyMessage

    def __init__(self, deps: PipelineDeps):
        self.deps = deps
        self.llm = deps.llm_for(deps.config.llm_model_assessment)

    def natural_key(self, message: CompanyMessage) -> str:
        return message.domain

    async def generate(self, message: CompanyMessage) -> Generated:
        draft = await self.llm.generate_structured(
            _create_assessment_prompt(message),
            Assessment,
            system=RESEARCH_SYSTEM_PROMPT,
            tools=[web_search_tool()],
        )
        return Generated(draft.model_copy(update={"domain": message.domain}))

    def links(self, message: CompanyMessage, entity: BaseModel) -> list[LinkSpec]:
        return [LinkSpec(
            collection=collections.MASTER_DATA,
            from_key=message.domain,
            relation="assessment",
            to_key=message.domain,
        )]

    async def propagate(self, message: CompanyMessage, entity: BaseModel) -> list[OutboundMessage]:
        assert isinstance(entity, Assessment)
        market = MarketMessage.model_validate({
            **message.to_payload(),
            "industries": entity.industries.value,
            "markets": entity.markets.value,
        })
        outbound = [OutboundMessage(queue=queues.NEWS, payload=market.to_payload())]

        if message.subject_type == "customer":
            competition = CompetitionMessage.model_validate({
                **market.to_payload(),
                "revenue_in_mio": entity.revenue_in_mio.value,
            })
            outbound.insert(0, OutboundMessage(queue=queues.COMPETITION, payload=competition.to_payload()))
        else:
            logger.debug(f"{message.domain} is a competitor of {message.customer_domain}, no competition search")

        return outbound
