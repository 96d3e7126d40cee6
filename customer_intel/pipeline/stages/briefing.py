"""
Briefing Stages

service-matching:  maps each IT strategy to services in the vendor catalog
                   (file search over the catalog's storage area only)
meeting-prep:      executive briefing, questions and POC ideas (terminal)
"""

from __future__ import annotations

import json
import logging

from pydantic import BaseModel

from customer_intel.errors import MissingPrerequisite
from customer_intel.messaging import queues
from customer_intel.pipeline.convergence import ConvergenceGate
from customer_intel.pipeline.deps import PipelineDeps
from customer_intel.pipeline.orchestrator import Generated, Stage
from customer_intel.providers.base import file_search_tool
from customer_intel.storage import collections
from customer_intel.types.analysis import (
    ITStrategy,
    MeetingPrep,
    MeetingPrepDraft,
    ServiceMatching,
    ServiceMatchingDraft,
)
from customer_intel.types.company import MasterData
from customer_intel.types.messages import MeetingPrepMessage, ServiceMatchingMessage
from customer_intel.types.results import LinkSpec, OutboundMessage

logger = logging.getLogger(__name__)

VENDOR_CATALOG = "VendorCatalog"

MATCHING_SYSTEM_PROMPT = (
    "You are a solution architect at an IT service provider. "
    "You align client IT strategies with existing services only."
)

MEETING_SYSTEM_PROMPT = (
    "You are a senior sales engineer preparing an executive meeting. "
    "You seek insight and trust, not closing."
)


def _strategies_json(strategy: ITStrategy) -> str:
    return json.dumps([s.model_dump() for s in strategy.strategies], indent=2)


def _create_matching_prompt(master: MasterData, strategy: ITStrategy) -> str:
    return f"""CONTEXT:
- Customer: {master.legal_name} ({master.domain})
- Company profile: {master.model_dump_json(indent=2)}
- IT strategies: {_strategies_json(strategy)}

TASK:
- For each IT strategy, find supporting services in the vendor catalog using file search.
- Explain the value contribution briefly.
- Give entry-level engagement ideas.
- Call out gaps explicitly.

RULES:
- Do NOT invent services. Only use what file search returns.
- Keep rationales short and concrete.
- If nothing matches, supporting_services is [] and gaps is ["no matching service"]."""


def _create_meeting_prompt(master: MasterData, strategy: ITStrategy, matching: ServiceMatching) -> str:
    matches = json.dumps([m.model_dump() for m in matching.matches], indent=2)
    return f"""CONTEXT:
- Customer: {master.legal_name} ({master.domain})
- Company profile: {master.model_dump_json(indent=2)}
- IT strategies: {_strategies_json(strategy)}
- Service matches: {matches}

TASK:
Prepare the meeting briefing: executive context, strategic hypotheses, questions
(each tied to a strategy), strategic impulses and low-risk POC ideas
(objective, scope, success criteria).

RULES:
- No generic sales language.
- Do not introduce services that are not in the service matches.
- Focus on the 3-5 most relevant strategies.
- Every question names the strategy it examines.
- POCs are exploratory and low-risk."""


class ServiceMatchingStage(Stage[ServiceMatchingMessage]):
    name = "service-matching"
    queue = queues.SERVICE_MATCHING
    collection = collections.SERVICE_MATCHING
    request_model = ServiceMatchingMessage

    def __init__(self, deps: PipelineDeps, gate: ConvergenceGate):
        self.deps = deps
        self.gate = gate
        self.llm = deps.llm_for(deps.config.llm_model_briefing)

    def natural_key(self, message: ServiceMatchingMessage) -> str:
        return message.customer_domain

    def _vendor_catalog(self, message: ServiceMatchingMessage) -> str:
        vendor_catalog = message.vendor_catalog_storage_id or self.deps.config.vendor_catalog_storage_id
        if not vendor_catalog:
            raise MissingPrerequisite(VENDOR_CATALOG, message.customer_domain)
        return vendor_catalog

    async def generate(self, message: ServiceMatchingMessage) -> Generated:
        vendor_catalog = self._vendor_catalog(message)
        master, strategy = await self.gate.gather([
            (collections.MASTER_DATA, message.customer_domain),
            (collections.IT_STRATEGY, message.it_strategy_id),
        ])
        assert isinstance(master, MasterData) and isinstance(strategy, ITStrategy)

        draft = await self.llm.generate_structured(
            _create_matching_prompt(master, strategy),
            ServiceMatchingDraft,
            system=MATCHING_SYSTEM_PROMPT,
            tools=[file_search_tool([vendor_catalog])],
        )
        return Generated(ServiceMatching(
            **draft.model_dump(),
            customer_domain=message.customer_domain,
            customer_legal_name=message.customer_legal_name,
            it_strategy_id=message.it_strategy_id,
            vendor_catalog_storage_id=vendor_catalog,
        ))

    def links(self, message: ServiceMatchingMessage, entity: BaseModel) -> list[LinkSpec]:
        return [LinkSpec(
            collection=collections.MASTER_DATA,
            from_key=message.customer_domain,
            relation="service_matching",
            to_key=message.customer_domain,
        )]

    async def propagate(self, message: ServiceMatchingMessage, entity: BaseModel) -> list[OutboundMessage]:
        assert isinstance(entity, ServiceMatching)
        prep = MeetingPrepMessage(
            customer_domain=entity.customer_domain,
            customer_legal_name=entity.customer_legal_name,
            it_strategy_id=entity.it_strategy_id,
            service_matching_id=entity.customer_domain,
            subject_type=message.subject_type,
        )
        return [OutboundMessage(queue=queues.MEETING_PREP, payload=prep.to_payload())]


class MeetingPrepStage(Stage[MeetingPrepMessage]):
    name = "meeting-prep"
    queue = queues.MEETING_PREP
    collection = collections.MEETING_PREP
    request_model = MeetingPrepMessage

    def __init__(self, deps: PipelineDeps, gate: ConvergenceGate):
        self.deps = deps
        self.gate = gate
        self.llm = deps.llm_for(deps.config.llm_model_briefing)

    def natural_key(self, message: MeetingPrepMessage) -> str:
        return message.customer_domain

    async def generate(self, message: MeetingPrepMessage) -> Generated:
        master, strategy, matching = await self.gate.gather([
            (collections.MASTER_DATA, message.customer_domain),
            (collections.IT_STRATEGY, message.it_strategy_id),
            (collections.SERVICE_MATCHING, message.service_matching_id),
        ])
        assert isinstance(master, MasterData)
        assert isinstance(strategy, ITStrategy) and isinstance(matching, ServiceMatching)

        draft = await self.llm.generate_structured(
            _create_meeting_prompt(master, strategy, matching),
            MeetingPrepDraft,
            system=MEETING_SYSTEM_PROMPT,
        )
        return Generated(MeetingPrep(
            **draft.model_dump(),
            customer_domain=message.customer_domain,
            customer_legal_name=message.customer_legal_name,
            it_strategy_id=message.it_strategy_id,
            service_matching_id=message.service_matching_id,
        ))

    def links(self, message: MeetingPrepMessage, entity: BaseModel) -> list[LinkSpec]:
        return [LinkSpec(
            collection=collections.MASTER_DATA,
            from_key=message.customer_domain,
            relation="meeting_prep",
            to_key=message.customer_domain,
        )]
