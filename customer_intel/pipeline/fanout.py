"""
Fan-out Controller

Expands a customer's CompetitorSet into one pipeline run per competitor.

For each discovered competitor:
    - skip repeats of a domain already seen in this set (and the customer itself)
    - ensure its MasterData exists, generating it when absent
    - link customer MasterData -competing_companies-> competitor MasterData
    - enqueue an assessment message tagged subject_type="competitor"
      with customer_domain pointing back at the customer

The width is unbounded: one message per distinct competitor domain.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from customer_intel.errors import MissingPrerequisite
from customer_intel.messaging import queues
from customer_intel.pipeline.orchestrator import Stage, find_or_generate
from customer_intel.storage import collections
from customer_intel.storage.base import EntityStore, identity_of, normalize_key
from customer_intel.types.company import CompetitorSet
from customer_intel.types.messages import CompanyMessage
from customer_intel.types.results import OutboundMessage, StageOutcome

logger = logging.getLogger(__name__)


@dataclass
class FanOutResult:
    """
    What one expansion did.

    Attributes:
        messages: Assessment messages to publish, one per distinct competitor
        outcomes: Competitor domain -> whether its MasterData was found or generated
        linked: Competitor domains linked from the customer
    """

    messages: list[OutboundMessage] = field(default_factory=list)
    outcomes: dict[str, StageOutcome] = field(default_factory=dict)
    linked: list[str] = field(default_factory=list)


class FanOutController:
    """
    Args:
        store: Entity store
        master_data: Stage used to generate a competitor's MasterData
    """

    def __init__(self, store: EntityStore, master_data: Stage[CompanyMessage]):
        self.store = store
        self.master_data = master_data

    async def expand(self, competitor_set: CompetitorSet) -> FanOutResult:
        result = FanOutResult()
        customer = normalize_key(competitor_set.customer_domain)
        seen = {customer}

        for competitor in competitor_set.competitors:
            domain = normalize_key(competitor.domain)
            if domain in seen:
                logger.debug(f"Skipping repeated competitor {domain} of {customer}")
                continue
            seen.add(domain)

            message = CompanyMessage(
                domain=domain,
                legal_name=competitor.legal_name,
                customer_domain=customer,
                subject_type="competitor",
            )
            resolved = await find_or_generate(
                self.store,
                collections.MASTER_DATA,
                domain,
                lambda message=message: self.master_data.generate(message),
            )
            result.outcomes[domain] = resolved.outcome

            try:
                await self.store.link(
                    collections.MASTER_DATA,
                    identity_of(customer),
                    "competing_companies",
                    resolved.entity_id,
                )
            except MissingPrerequisite as e:
                logger.warning(f"Not linking {customer} -> {domain}: {e}")
            else:
                result.linked.append(domain)

            result.messages.append(
                OutboundMessage(queue=queues.ASSESSMENT, payload=message.to_payload())
            )

        logger.info(
            f"Fan-out for {customer}: {len(result.messages)} competitor(s) "
            f"from {len(competitor_set.competitors)} discovered"
        )
        return result
