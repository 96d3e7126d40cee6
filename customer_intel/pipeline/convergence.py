"""
Convergence Gate

Guards stages that join artifacts from independent branches, such as a
comparison of a customer's and a competitor's market analyses.

Policy:
    - gather() fetches every required artifact and raises
      MissingPrerequisite for the first one absent; the orchestrator
      drops the message without retry
    - comparison_trigger() is the join attempt each branch makes when it
      completes. The customer's market analysis tries every competitor
      and each competitor's market analysis tries its customer, so
      whichever branch finishes last emits the trigger

No join state is kept. If the sibling is stored just after a join
attempt has looked for it, the comparison waits for another delivery of
either branch.
"""

from __future__ import annotations

import logging
from typing import Sequence

from pydantic import BaseModel

from customer_intel.errors import MissingPrerequisite
from customer_intel.messaging import queues
from customer_intel.storage import collections
from customer_intel.storage.base import EntityStore
from customer_intel.types.analysis import MarketAnalysis
from customer_intel.types.company import MasterData
from customer_intel.types.messages import CompetitionAnalysisMessage
from customer_intel.types.results import OutboundMessage

logger = logging.getLogger(__name__)


class ConvergenceGate:
    def __init__(self, store: EntityStore):
        self.store = store

    async def gather(self, requirements: Sequence[tuple[str, str]]) -> list[BaseModel]:
        """
        Fetch (collection, natural key) requirements in order.

        Raises:
            MissingPrerequisite: For the first requirement not stored yet
        """
        found: list[BaseModel] = []
        for collection, key in requirements:
            entity = await self.store.get_by_key(collection, key)
            if entity is None:
                raise MissingPrerequisite(collection, key)
            found.append(entity)
        return found

    async def comparison_trigger(
        self, customer_domain: str, competitor_domain: str
    ) -> OutboundMessage | None:
        """
        The competition-analysis message for a pair, once both sides are ready.

        Returns None (and logs) while either market analysis or master
        data record is missing.
        """
        try:
            customer_md, competitor_md, customer_ma, competitor_ma = await self.gather([
                (collections.MASTER_DATA, customer_domain),
                (collections.MASTER_DATA, competitor_domain),
                (collections.MARKET_ANALYSIS, customer_domain),
                (collections.MARKET_ANALYSIS, competitor_domain),
            ])
        except MissingPrerequisite as e:
            logger.info(f"Comparison {customer_domain} vs {competitor_domain} not ready: {e}")
            return None

        assert isinstance(customer_md, MasterData) and isinstance(competitor_md, MasterData)
        assert isinstance(customer_ma, MarketAnalysis) and isinstance(competitor_ma, MarketAnalysis)

        message = CompetitionAnalysisMessage(
            customer_domain=customer_md.domain,
            competitor_domain=competitor_md.domain,
            customer_legal_name=customer_md.legal_name,
            competitor_legal_name=competitor_md.legal_name,
            customer_storage_area_id=customer_ma.storage_area_id,
            competitor_storage_area_id=competitor_ma.storage_area_id,
        )
        logger.info(f"Comparison {customer_domain} vs {competitor_domain} ready, triggering")
        return OutboundMessage(queue=queues.COMPETITION_ANALYSIS, payload=message.to_payload())
