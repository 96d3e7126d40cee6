"""
Shared fakes and fixtures.

The fakes stand in for the external generation, embedding and storage
area services so stage logic runs without network access.
"""

import hashlib
import re
from typing import Any, Callable

import httpx
import pytest
import pytest_asyncio
from pydantic import BaseModel

from customer_intel.config import IntelConfig
from customer_intel.ingestion.fetch import DocumentFetcher
from customer_intel.messaging.memory import InMemoryMessageBus
from customer_intel.pipeline.deps import PipelineDeps
from customer_intel.providers.base import (
    EmbeddingProvider,
    LLMProvider,
    StorageArea,
    StorageAreaProvider,
)
from customer_intel.storage.collections import declare_collections
from customer_intel.storage.memory import MemoryEntityStore
from customer_intel.types.analysis import (
    CompetitionAnalysisDraft,
    ITStrategyDraft,
    MarketAnalysisDraft,
    MeetingPrepDraft,
    ServiceMatchingDraft,
)
from customer_intel.types.company import Assessment, CompetitorList, MasterData, NewsList
from customer_intel.types.results import BatchStatus

Responder = Callable[[str], BaseModel]

_COMPANY = re.compile(r"for the company (.+?) with the domain (\S+)\.(?:\s|$)")


def estimate(value: Any, confidence: float = 0.8) -> dict[str, Any]:
    return {
        "value": value,
        "source": "Annual report",
        "citation": "https://example.com/annual-report",
        "date": "2024-12-31",
        "confidence": confidence,
    }


def master_data_for(prompt: str) -> MasterData:
    match = _COMPANY.search(prompt)
    legal_name, domain = match.groups() if match else ("Unknown GmbH", "unknown.example")
    return MasterData.model_validate({
        "domain": domain,
        "legal_name": legal_name,
        "country_code": "de",
        "address": {
            "street": "Hauptstrasse 1",
            "city": "Stuttgart",
            "postal_code": "70173",
            "region": "Baden-Wuerttemberg",
            "country": "Germany",
        },
    })


def assessment_for(prompt: str) -> Assessment:
    return Assessment.model_validate({
        "domain": "placeholder.example",
        "revenue_in_mio": estimate(420.0),
        "revenue_growth": estimate(3.5),
        "number_of_employees": estimate(1800),
        "number_of_it_employees": estimate(60, confidence=0.4),
        "it_spend_in_mio": estimate(9.5, confidence=0.4),
        "digital_maturity": estimate("medium"),
        "industry_specific_constraints": estimate(["REACH compliance"]),
        "markets": estimate(["DE", "AT"]),
        "industries": estimate(["Industrial Coatings"]),
    })


def news_for(prompt: str) -> NewsList:
    return NewsList.model_validate({
        "items": [
            {
                "source": "https://news.example/ok/plant-opening",
                "summary": "The company opened a new plant near Stuttgart.",
                "published": "2025-03-01",
            },
            {
                "source": "https://news.example/gone/erp-rollout",
                "summary": "An ERP rollout was completed across all sites.",
                "published": "2025-02-11",
            },
        ]
    })


def market_analysis_for(prompt: str) -> MarketAnalysisDraft:
    sentence = "Demand for low-emission coatings keeps rising while price pressure grows. "
    return MarketAnalysisDraft(analysis=sentence * 30)


def competition_analysis_for(prompt: str) -> CompetitionAnalysisDraft:
    return CompetitionAnalysisDraft(
        analysis="The customer leads on service depth; the competitor leads on price.",
        summary="Close rivals with different positioning.",
        strengths=["Service network"],
        weaknesses=["Price level"],
        niche_positioning="Premium industrial segment",
        market_trend_impact="Sustainability rules favour the customer.",
        customer_expectation_alignment="Both meet delivery expectations.",
        sources=[{"title": "Annual report", "url": "https://example.com/annual-report"}],
    )


def it_strategy_for(prompt: str) -> ITStrategyDraft:
    return ITStrategyDraft.model_validate({
        "strategies": [
            {
                "id": "S1",
                "name": "Connected service platform",
                "intent": "Extend the service lead with remote diagnostics",
                "competitive_rationale": "Service depth is the main strength",
                "business_capability_impact": "Faster field service",
                "it_capability_implications": "IoT data platform",
                "risk_if_not_pursued": "Competitors close the service gap",
                "time_horizon": "mid",
                "evidence_ids": ["acme.com-market-analysis"],
            }
        ],
        "strength_amplification": ["S1"],
        "weakness_compensation": [],
        "new_niche_differentiation": [],
        "sources": [],
    })


def service_matching_for(prompt: str) -> ServiceMatchingDraft:
    return ServiceMatchingDraft.model_validate({
        "matches": [
            {
                "strategy_name": "Connected service platform",
                "supporting_services": ["IoT Starter Kit"],
                "value_contribution": "Shortens time to first telemetry",
                "entry_level_engagement_ideas": ["Two-week discovery workshop"],
                "gaps": [],
            }
        ]
    })


def meeting_prep_for(prompt: str) -> MeetingPrepDraft:
    return MeetingPrepDraft.model_validate({
        "executive_briefing": "Acme leads on service and is under price pressure.",
        "strategic_hypotheses": ["Remote diagnostics protect margins"],
        "questions": [
            {"question": "Where do service calls cost the most?", "strategy_name": "Connected service platform"}
        ],
        "strategic_impulses": ["Treat service data as a product"],
        "poc_ideas": [
            {"objective": "Prove remote diagnosis", "scope": "One plant", "success_criteria": ["10% fewer site visits"]}
        ],
    })


DEFAULT_RESPONDERS: dict[type[BaseModel], Responder] = {
    MasterData: master_data_for,
    Assessment: assessment_for,
    NewsList: news_for,
    MarketAnalysisDraft: market_analysis_for,
    CompetitionAnalysisDraft: competition_analysis_for,
    ITStrategyDraft: it_strategy_for,
    ServiceMatchingDraft: service_matching_for,
    MeetingPrepDraft: meeting_prep_for,
    CompetitorList: lambda prompt: CompetitorList(competitors=[]),
}


class FakeLLM(LLMProvider):
    """LLM provider answering structured calls from per-schema responders."""

    def __init__(self, responders: dict[type[BaseModel], Responder] | None = None):
        self.responders = {**DEFAULT_RESPONDERS, **(responders or {})}
        self.calls: list[dict[str, Any]] = []
        self.models: list[str] = []

    async def generate(self, prompt, *, system=None, temperature=0.0, max_tokens=4096, tools=None) -> str:
        self.calls.append({"schema": None, "prompt": prompt, "tools": tools})
        return "# Brief\n\nExpanded from the summary."

    async def generate_structured(self, prompt, schema, *, system=None, tools=None):
        self.calls.append({"schema": schema, "prompt": prompt, "tools": tools})
        return self.responders[schema](prompt)

    def calls_for(self, schema: type[BaseModel]) -> list[dict[str, Any]]:
        return [call for call in self.calls if call["schema"] is schema]

    @property
    def model_name(self) -> str:
        return "fake-model"

    def with_model(self, model: str) -> "FakeLLM":
        self.models.append(model)
        return self


class FakeEmbeddings(EmbeddingProvider):
    """Deterministic embeddings derived from a hash of the text."""

    def __init__(self, dims: int = 8):
        self._dims = dims
        self.texts: list[str] = []

    def _vector(self, text: str) -> list[float]:
        digest = hashlib.sha256(text.encode("utf-8")).digest()
        return [1.0 + digest[i] / 255 for i in range(self._dims)]

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.texts.extend(texts)
        return [self._vector(text) for text in texts]

    async def embed_single(self, text: str) -> list[float]:
        self.texts.append(text)
        return self._vector(text)

    @property
    def dimensions(self) -> int:
        return self._dims

    @property
    def model_name(self) -> str:
        return "fake-embeddings"


class FakeStorageAreas(StorageAreaProvider):
    """Storage areas kept in a dict; batches report the queued statuses in order."""

    def __init__(self, statuses: list[BatchStatus] | None = None):
        self.areas: dict[str, StorageArea] = {}
        self.uploads: dict[str, tuple[str, str]] = {}
        self.batches: dict[str, tuple[str, list[str]]] = {}
        self.statuses = list(statuses or [])
        self.status_checks = 0
        self.created: list[str] = []

    async def find_by_name(self, name: str) -> StorageArea | None:
        return self.areas.get(name)

    async def create(self, name: str) -> StorageArea:
        area = StorageArea(id=f"vs_{len(self.areas) + 1}", name=name)
        self.areas[name] = area
        self.created.append(name)
        return area

    async def upload_text(self, filename: str, text: str) -> str:
        file_id = f"file_{len(self.uploads) + 1}"
        self.uploads[file_id] = (filename, text)
        return file_id

    async def create_batch(self, storage_area_id: str, file_ids: list[str]) -> str:
        batch_id = f"batch_{len(self.batches) + 1}"
        self.batches[batch_id] = (storage_area_id, list(file_ids))
        return batch_id

    async def batch_status(self, storage_area_id: str, batch_id: str) -> BatchStatus:
        self.status_checks += 1
        if self.statuses:
            return self.statuses.pop(0)
        return BatchStatus.COMPLETED


def _news_transport(request: httpx.Request) -> httpx.Response:
    if "/ok/" in request.url.path:
        return httpx.Response(
            200,
            headers={"content-type": "text/html"},
            text="<html><body><nav>Menu</nav><p>New plant opened.</p></body></html>",
        )
    return httpx.Response(404)


def mock_fetcher(handler: Callable[[httpx.Request], httpx.Response] = _news_transport) -> DocumentFetcher:
    return DocumentFetcher(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


async def no_sleep(seconds: float) -> None:
    return None


# -----------------------------------------------------------------------------
# Fixtures
# -----------------------------------------------------------------------------


@pytest.fixture
def config(monkeypatch) -> IntelConfig:
    """Configuration isolated from the caller's environment."""
    for name in (
        "CUSTOMER_INTEL_LLM_MODEL",
        "CUSTOMER_INTEL_VENDOR_CATALOG_STORAGE_ID",
        "CUSTOMER_INTEL_MAX_RECEIVE_COUNT",
        "CUSTOMER_INTEL_STORE_BACKEND",
    ):
        monkeypatch.delenv(name, raising=False)
    return IntelConfig(
        vendor_catalog_storage_id="vs_catalog",
        batch_poll_interval_seconds=0.0,
        store_backend="memory",
    )


@pytest_asyncio.fixture
async def store() -> MemoryEntityStore:
    """In-memory store with every collection declared."""
    entity_store = MemoryEntityStore()
    await entity_store.initialize()
    await declare_collections(entity_store)
    return entity_store


@pytest.fixture
def bus() -> InMemoryMessageBus:
    return InMemoryMessageBus()


@pytest.fixture
def llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture
def embeddings() -> FakeEmbeddings:
    return FakeEmbeddings()


@pytest.fixture
def storage_areas() -> FakeStorageAreas:
    return FakeStorageAreas()


@pytest.fixture
def deps(config, store, bus, llm, embeddings, storage_areas) -> PipelineDeps:
    """Pipeline collaborators wired to the fakes."""
    return PipelineDeps(
        config=config,
        store=store,
        bus=bus,
        llm=llm,
        embeddings=embeddings,
        storage_areas=storage_areas,
        fetcher=mock_fetcher(),
    )
