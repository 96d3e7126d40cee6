"""
Stage Message Types

Flat JSON messages exchanged between pipeline stages.

Every message model:
    - accepts snake_case field names and the camelCase aliases used by
      older producers (legalName, customerDomain, subjectType, ...)
    - keeps unknown extra fields and carries them through model_dump()
    - serializes with snake_case names

Models:
    - CompanyMessage: master-data and assessment queues
    - CompetitionMessage: competition queue
    - MarketMessage: news queue; also the context captured for ingestion
    - MarketAnalysisMessage: market-analysis queue (continuation of a batch)
    - CompetitionAnalysisMessage: competition-analysis queue
    - ITStrategyMessage / ServiceMatchingMessage / MeetingPrepMessage
    - IngestionMessage / BatchPollMessage: ingestion path
    - OperatorAlert: terminal batch states surfaced to operators
"""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from customer_intel.types.company import Domain, Industry, LegalName, MarketCode, SubjectType


class StageMessage(BaseModel):
    """Base for all queue payloads."""

    model_config = ConfigDict(
        extra="allow",
        populate_by_name=True,
        alias_generator=to_camel,
        loc_by_alias=False,
    )

    def to_payload(self) -> dict[str, Any]:
        """JSON-safe dict with snake_case keys, extras included."""
        return self.model_dump(mode="json")


class CompanyMessage(StageMessage):
    domain: Domain
    legal_name: LegalName
    customer_domain: Domain | None = None
    subject_type: SubjectType = "customer"

    @model_validator(mode="after")
    def _default_customer_domain(self) -> "CompanyMessage":
        if self.customer_domain is None:
            self.customer_domain = self.domain
        return self


class MarketMessage(CompanyMessage):
    industries: list[Industry]
    markets: list[MarketCode]


class CompetitionMessage(MarketMessage):
    revenue_in_mio: float


class MarketAnalysisMessage(MarketMessage):
    storage_area_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("storage_area_id", "storageAreaId", "vectorStoreId"),
    )


class CompetitionAnalysisMessage(StageMessage):
    customer_domain: Domain
    competitor_domain: Domain
    customer_legal_name: LegalName
    competitor_legal_name: LegalName
    customer_storage_area_id: str | None = None
    competitor_storage_area_id: str | None = None


class ITStrategyMessage(StageMessage):
    customer_domain: Domain
    subject_type: SubjectType = "customer"


class ServiceMatchingMessage(StageMessage):
    customer_domain: Domain
    customer_legal_name: LegalName
    it_strategy_id: str = Field(..., min_length=1)
    vendor_catalog_storage_id: str | None = None
    subject_type: SubjectType = "customer"


class MeetingPrepMessage(StageMessage):
    customer_domain: Domain
    customer_legal_name: LegalName
    it_strategy_id: str = Field(..., min_length=1)
    service_matching_id: str = Field(..., min_length=1)
    subject_type: SubjectType = "customer"


class IngestionDocument(BaseModel):
    """A document to fetch, with the summary used when it cannot be fetched."""

    url: str = Field(..., min_length=1)
    fallback: str = Field(..., min_length=1)
    type: str = "news"


class IngestionMessage(StageMessage):
    context: MarketMessage
    storage_area_name: str = Field(..., min_length=1)
    documents: list[IngestionDocument]


class BatchPollMessage(StageMessage):
    storage_area_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("storage_area_id", "storageAreaId", "vectorStoreId"),
    )
    storage_area_name: str = Field(..., min_length=1)
    batch_id: str = Field(..., min_length=1)
    context: MarketMessage


class OperatorAlert(StageMessage):
    batch_id: str
    state: str
    attempts: int
    storage_area_name: str
    context: dict[str, Any]
