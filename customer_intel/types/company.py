"""
Company Types

Per-company entities produced by the early pipeline stages.

Storage Models:
    - MasterData: Legal identity and address of a company (key: domain)
    - Assessment: Quantitative estimates with provenance (key: domain)
    - CompetitorSet: Competitors discovered for a customer (key: customer_domain)
    - NewsDigest: Recent news items to ingest before market analysis (key: domain)

Constraint vocabulary:
    Domain / LegalName / Industry - stripped strings of length 1-255
    MarketCode - ISO 3166-1 alpha-2 country code (exactly 2 characters)
"""

from __future__ import annotations

import datetime as dt
from typing import Annotated, Generic, Literal, TypeVar

from pydantic import BaseModel, Field, StringConstraints

Domain = Annotated[
    str, StringConstraints(strip_whitespace=True, to_lower=True, min_length=1, max_length=255)
]
LegalName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]
Industry = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]
MarketCode = Annotated[
    str, StringConstraints(strip_whitespace=True, to_upper=True, min_length=2, max_length=2)
]
SubjectType = Literal["customer", "competitor"]

V = TypeVar("V")


class Address(BaseModel):
    """Postal address of a company's headquarters."""

    street: str = Field(..., description="Street and house number")
    city: str = Field(..., description="City")
    postal_code: str = Field(..., description="Postal or ZIP code")
    region: str = Field(..., description="State, province or region (empty if none)")
    country: str = Field(..., description="Country name")


class MasterData(BaseModel):
    """
    Legal master data of a company.

    Attributes:
        domain: Primary web domain, the natural key
        legal_name: Registered legal name
        country_code: ISO 3166-1 alpha-2 code of the headquarters country
        address: Headquarters address
    """

    domain: Domain = Field(..., description="Primary web domain of the company")
    legal_name: LegalName = Field(..., description="Registered legal name")
    country_code: MarketCode = Field(..., description="ISO 3166-1 alpha-2 headquarters country")
    address: Address


class Estimate(BaseModel, Generic[V]):
    """One estimated figure with the evidence behind it."""

    value: V
    source: str = Field(..., min_length=1, description="Publisher of the figure")
    citation: str = Field(..., min_length=1, description="URL or exact reference")
    date: dt.date = Field(..., description="Date the figure refers to")
    confidence: float = Field(..., ge=0.0, le=1.0, description="Confidence between 0 and 1")


class Assessment(BaseModel):
    """
    Quantitative assessment of a company.

    Every figure is an Estimate so downstream stages can weigh it by
    confidence and cite its source.
    """

    domain: Domain
    revenue_in_mio: Estimate[float] = Field(..., description="Annual revenue in millions (EUR)")
    revenue_growth: Estimate[float] = Field(..., description="Year-over-year revenue growth in percent")
    number_of_employees: Estimate[int]
    number_of_it_employees: Estimate[int]
    it_spend_in_mio: Estimate[float] = Field(..., description="Annual IT spend in millions (EUR)")
    digital_maturity: Estimate[str] = Field(..., description="low, medium or high")
    industry_specific_constraints: Estimate[list[str]]
    markets: Estimate[list[MarketCode]] = Field(..., description="Country codes the company sells in")
    industries: Estimate[list[Industry]]


class Competitor(BaseModel):
    """A competitor as discovered by the competition stage."""

    legal_name: LegalName
    domain: Domain


class CompetitorList(BaseModel):
    """Generation output of the competition stage."""

    competitors: list[Competitor] = Field(
        ..., description="Direct competitors with overlapping markets and industries"
    )


class CompetitorSet(BaseModel):
    """Competitors of one customer. Fan-out expands each entry into its own pipeline run."""

    customer_domain: Domain
    customer_legal_name: LegalName
    competitors: list[Competitor]


class NewsItem(BaseModel):
    source: str = Field(..., min_length=1, description="URL of the article")
    summary: str = Field(..., min_length=1, description="Two to three sentence summary")
    published: str = Field(..., description="Publication date, YYYY-MM-DD if known")


class NewsList(BaseModel):
    """Generation output of the news stage."""

    items: list[NewsItem]


class NewsDigest(BaseModel):
    """Recent news about a company and the storage area its documents are ingested into."""

    domain: Domain
    items: list[NewsItem]
    storage_area_name: str
