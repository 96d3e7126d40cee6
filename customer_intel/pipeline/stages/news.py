"""
News Stage

Collects recent news about a company and hands the articles to the
ingestion path, whose completed batch continues into market analysis.

When the company's market analysis is already stored, the documents have
been ingested before and the continuation is published directly with the
storage area the analysis was built from.
"""

from __future__ import annotations

import logging

from pydantic import BaseModel

from customer_intel.messaging import queues
from customer_intel.pipeline.deps import PipelineDeps
from customer_intel.pipeline.orchestrator import Generated, Stage
from customer_intel.pipeline.stages.company import RESEARCH_SYSTEM_PROMPT
from customer_intel.providers.base import web_search_tool
from customer_intel.storage import collections
from customer_intel.types.analysis import MarketAnalysis
from customer_intel.types.company import NewsDigest, NewsList
from customer_intel.types.messages import (
    IngestionDocument,
    IngestionMessage,
    MarketAnalysisMessage,
    MarketMessage,
)
from customer_intel.types.results import LinkSpec, OutboundMessage

logger = logging.getLogger(__name__)


def storage_area_name(domain: str) -> str:
    return f"news/{domain}"


def _create_news_prompt(message: MarketMessage, max_items: int) -> str:
    return f"""Search the public internet for news about the company "{message.legal_name}" (domain: {message.domain}).

FOCUS AREAS:
- Organizational changes (leadership, restructuring, M&A, hiring initiatives)
- New products, goods or services
- Retrospectives on major initiatives
- Roadmap or strategic announcements
- IT-related updates (platform changes, system rollouts, cloud migration, security events)

SOURCE RULES:
- Public, non-paywalled sources only (company website, press releases, reputable media).
- Avoid low-quality listicles and scraped aggregators.

OUTPUT RULES:
- At most {max_items} items, each with a clear publication date.
- One item per source URL.
- Keep each summary under 600 characters."""


class NewsStage(Stage[MarketMessage]):
    name = "news"
    queue = queues.NEWS
    collection = collections.NEWS
    request_model = MarketMessage

    def __init__(self, deps: PipelineDeps):
        self.deps = deps
        self.llm = deps.llm_for(deps.config.llm_model)

    def natural_key(self, message: MarketMessage) -> str:
        return message.domain

    async def generate(self, message: MarketMessage) -> Generated:
        max_items = self.deps.config.news_max_items
        found = await self.llm.generate_structured(
            _create_news_prompt(message, max_items),
            NewsList,
            system=RESEARCH_SYSTEM_PROMPT,
            tools=[web_search_tool()],
        )

        items = []
        seen: set[str] = set()
        for item in found.items:
            if item.source in seen:
                continue
            seen.add(item.source)
            items.append(item)

        if len(items) > max_items:
            logger.debug(f"Keeping {max_items} of {len(items)} news items for {message.domain}")
        return Generated(NewsDigest(
            domain=message.domain,
            items=items[:max_items],
            storage_area_name=storage_area_name(message.domain),
        ))

    def links(self, message: MarketMessage, entity: BaseModel) -> list[LinkSpec]:
        return [LinkSpec(
            collection=collections.MASTER_DATA,
            from_key=message.domain,
            relation="news",
            to_key=message.domain,
        )]

    async def propagate(self, message: MarketMessage, entity: BaseModel) -> list[OutboundMessage]:
        assert isinstance(entity, NewsDigest)

        analysis = await self.deps.store.get_by_key(collections.MARKET_ANALYSIS, message.domain)
        if isinstance(analysis, MarketAnalysis):
            logger.info(f"Market analysis for {message.domain} exists, skipping ingestion")
            continuation = MarketAnalysisMessage.model_validate(
                {**message.to_payload(), "storage_area_id": analysis.storage_area_id}
            )
            return [OutboundMessage(queue=queues.MARKET_ANALYSIS, payload=continuation.to_payload())]

        ingestion = IngestionMessage(
            context=message,
            storage_area_name=entity.storage_area_name,
            documents=[
                IngestionDocument(url=item.source, fallback=item.summary, type="news")
                for item in entity.items
            ],
        )
        return [OutboundMessage(queue=queues.INGESTION, payload=ingestion.to_payload())]
