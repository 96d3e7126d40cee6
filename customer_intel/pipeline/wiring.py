"""
Pipeline Wiring

Builds the stages and queue handlers from a PipelineDeps, and opens the
default runtime (OpenAI providers, in-memory bus, configured store).

Usage:
    deps = await open_runtime(IntelConfig(), memory=True)
    pipeline = build_pipeline(deps)
    metrics = await pipeline.research("acme.com", "Acme GmbH")
    await deps.close()
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from customer_intel.config import IntelConfig
from customer_intel.ingestion.batch import BatchPoller, BatchPollHandler, Sleep
from customer_intel.ingestion.fetch import DocumentFetcher
from customer_intel.ingestion.loader import DocumentIngestor
from customer_intel.ingestion.storage_areas import StorageAreaResolver
from customer_intel.messaging import queues
from customer_intel.messaging.memory import InMemoryMessageBus
from customer_intel.messaging.worker import Handler, QueueWorker, WorkerMetrics
from customer_intel.pipeline.convergence import ConvergenceGate
from customer_intel.pipeline.deps import PipelineDeps
from customer_intel.pipeline.fanout import FanOutController
from customer_intel.pipeline.orchestrator import Stage, StageOrchestrator
from customer_intel.pipeline.stages import (
    AssessmentStage,
    CompetitionAnalysisStage,
    CompetitionStage,
    ITStrategyStage,
    MarketAnalysisStage,
    MasterDataStage,
    MeetingPrepStage,
    NewsStage,
    ServiceMatchingStage,
)
from customer_intel.storage.base import EntityStore
from customer_intel.storage.collections import declare_collections
from customer_intel.storage.memory import MemoryEntityStore
from customer_intel.storage.parquet.backend import ParquetEntityStore
from customer_intel.types.messages import CompanyMessage

logger = logging.getLogger(__name__)


@dataclass
class Pipeline:
    """
    The wired pipeline.

    Attributes:
        deps: Shared collaborators
        orchestrator: Runs the orchestrated stages
        stages: Orchestrated stages by queue
        handlers: Every queue handler, upstream queues first
    """

    deps: PipelineDeps
    orchestrator: StageOrchestrator
    stages: dict[str, Stage[Any]]
    handlers: dict[str, Handler]

    def worker(self, bus: InMemoryMessageBus | None = None) -> QueueWorker:
        bus = bus if bus is not None else self.deps.bus
        if not isinstance(bus, InMemoryMessageBus):
            raise TypeError("The in-process worker needs an InMemoryMessageBus")
        return QueueWorker(bus, self.handlers, max_receive_count=self.deps.config.max_receive_count)

    async def submit(self, domain: str, legal_name: str) -> str:
        """Publish a master-data message for a customer."""
        message = CompanyMessage(domain=domain, legal_name=legal_name)
        return await self.deps.bus.publish(queues.MASTER_DATA, message.to_payload())

    async def research(self, domain: str, legal_name: str, max_rounds: int = 1000) -> WorkerMetrics:
        """Submit a customer and drain every queue in-process."""
        worker = self.worker()
        await self.submit(domain, legal_name)
        rounds = await worker.drain(max_rounds=max_rounds)
        logger.info(
            f"Research for {domain} settled after {rounds} round(s): "
            f"{worker.metrics.processed} processed, {worker.metrics.dead_lettered} dead-lettered"
        )
        return worker.metrics


def build_pipeline(deps: PipelineDeps, *, sleep: Sleep = asyncio.sleep) -> Pipeline:
    """Wire every stage and handler against one set of collaborators."""
    orchestrator = StageOrchestrator(deps.store, deps.bus)
    gate = ConvergenceGate(deps.store)
    master_data = MasterDataStage(deps)
    fanout = FanOutController(deps.store, master_data)

    stages: list[Stage[Any]] = [
        master_data,
        AssessmentStage(deps),
        CompetitionStage(deps, fanout),
        NewsStage(deps),
        MarketAnalysisStage(deps, gate),
        CompetitionAnalysisStage(deps, gate),
        ITStrategyStage(deps, gate),
        ServiceMatchingStage(deps, gate),
        MeetingPrepStage(deps, gate),
    ]

    resolver = StorageAreaResolver(deps.storage_areas, deps.storage_area_cache)
    poller = BatchPoller(
        deps.storage_areas,
        interval_seconds=deps.config.batch_poll_interval_seconds,
        max_attempts=deps.config.batch_poll_max_attempts,
        sleep=sleep,
    )

    handlers: dict[str, Handler] = {stage.queue: orchestrator.handler(stage) for stage in stages}
    handlers[queues.INGESTION] = DocumentIngestor(
        deps.fetcher, deps.llm, resolver, deps.storage_areas, deps.bus
    )
    handlers[queues.BATCH_POLL] = BatchPollHandler(poller, deps.storage_areas, deps.bus)

    return Pipeline(
        deps=deps,
        orchestrator=orchestrator,
        stages={stage.queue: stage for stage in stages},
        handlers={queue: handlers[queue] for queue in queues.PIPELINE_QUEUES},
    )


async def open_store(config: IntelConfig, *, memory: bool = False) -> EntityStore:
    """Initialize the configured store and declare every collection."""
    store: EntityStore
    if memory or config.store_backend == "memory":
        store = MemoryEntityStore()
    else:
        store = ParquetEntityStore(config.store_path)
    await store.initialize()
    await declare_collections(store)
    return store


async def open_runtime(config: IntelConfig, *, memory: bool = False) -> PipelineDeps:
    """Default collaborators: OpenAI providers, an in-memory bus and the configured store."""
    from customer_intel.providers.embedding import OpenAIEmbeddingProvider
    from customer_intel.providers.llm import OpenAILLMProvider
    from customer_intel.providers.storage_area import OpenAIStorageAreaProvider

    return PipelineDeps(
        config=config,
        store=await open_store(config, memory=memory),
        bus=InMemoryMessageBus(),
        llm=OpenAILLMProvider(api_key=config.openai_api_key, model=config.llm_model),
        embeddings=OpenAIEmbeddingProvider(
            api_key=config.openai_api_key,
            model=config.embedding_model,
            dimensions=config.embedding_dimensions,
        ),
        storage_areas=OpenAIStorageAreaProvider(api_key=config.openai_api_key),
        fetcher=DocumentFetcher(timeout_seconds=config.fetch_timeout_seconds),
    )
