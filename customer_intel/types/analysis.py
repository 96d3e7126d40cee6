"""
Analysis Types

Entities produced by the later, retrieval-augmented pipeline stages.

Storage Models:
    - MarketAnalysis: Market narrative for one company (key: domain)
    - CompetitionAnalysis: Customer-vs-competitor comparison (key: pair key)
    - ITStrategy: IT strategies derived for a customer (key: customer_domain)
    - ServiceMatching: Vendor services mapped to strategies (key: customer_domain)
    - MeetingPrep: Briefing for a first customer meeting (key: customer_domain)

Generation Models (the schema handed to the LLM; stages add key fields):
    - MarketAnalysisDraft, CompetitionAnalysisDraft, ITStrategyDraft,
      ServiceMatchingDraft, MeetingPrepDraft
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from customer_intel.types.company import Domain, LegalName, SubjectType

# -----------------------------------------------------------------------------
# Market analysis
# -----------------------------------------------------------------------------


class MarketAnalysisDraft(BaseModel):
    analysis: str = Field(
        ...,
        min_length=1,
        description="Market analysis narrative: position, trends, customer expectations, risks",
    )


class MarketAnalysis(MarketAnalysisDraft):
    """
    Market analysis of one company.

    Stored with two vector slots: ``analysis_text`` (the narrative) and
    ``competition_lens`` (mean of the chunk embeddings seen through a
    competition-comparison prompt).
    """

    domain: Domain
    subject_type: SubjectType
    customer_domain: Domain
    storage_area_id: str | None = None


# -----------------------------------------------------------------------------
# Competition analysis
# -----------------------------------------------------------------------------


class Source(BaseModel):
    title: str
    url: str


class CompetitionAnalysisDraft(BaseModel):
    analysis: str = Field(..., max_length=3500, description="Comparison narrative")
    summary: str = Field(..., max_length=1200, description="Executive summary of the comparison")
    strengths: list[str] = Field(..., description="Where the customer is ahead")
    weaknesses: list[str] = Field(..., description="Where the competitor is ahead")
    niche_positioning: str
    market_trend_impact: str
    customer_expectation_alignment: str
    sources: list[Source]


class CompetitionAnalysis(CompetitionAnalysisDraft):
    """
    Comparison of a customer against one competitor.

    The natural key is ``competition_id``, the pair key
    ``<customer_domain>|<competitor_domain>``.
    """

    competition_id: str
    customer_domain: Domain
    competitor_domain: Domain
    customer_legal_name: LegalName
    competitor_legal_name: LegalName


# -----------------------------------------------------------------------------
# IT strategy
# -----------------------------------------------------------------------------


class Strategy(BaseModel):
    id: str = Field(..., description="Short stable identifier, e.g. S1")
    name: str
    intent: str
    competitive_rationale: str
    business_capability_impact: str
    it_capability_implications: str
    risk_if_not_pursued: str
    time_horizon: Literal["short", "mid", "long"]
    evidence_ids: list[str] = Field(..., description="Ids of the evidence items that support it")


class ITStrategyDraft(BaseModel):
    strategies: list[Strategy]
    strength_amplification: list[str] = Field(..., description="Strategy ids that amplify strengths")
    weakness_compensation: list[str] = Field(..., description="Strategy ids that compensate weaknesses")
    new_niche_differentiation: list[str] = Field(..., description="Strategy ids that open new niches")
    sources: list[Source]


class ITStrategy(ITStrategyDraft):
    customer_domain: Domain
    customer_legal_name: LegalName
    subject_type: SubjectType = "customer"


class EvidenceItem(BaseModel):
    """A retrieved excerpt handed to strategy generation."""

    id: str
    source: str
    text: str


# -----------------------------------------------------------------------------
# Service matching and meeting preparation
# -----------------------------------------------------------------------------


class ServiceMatch(BaseModel):
    strategy_name: str
    supporting_services: list[str]
    value_contribution: str
    entry_level_engagement_ideas: list[str]
    gaps: list[str]


class ServiceMatchingDraft(BaseModel):
    matches: list[ServiceMatch]


class ServiceMatching(ServiceMatchingDraft):
    customer_domain: Domain
    customer_legal_name: LegalName
    it_strategy_id: str
    vendor_catalog_storage_id: str


class MeetingQuestion(BaseModel):
    question: str
    strategy_name: str = Field(..., description="Strategy the question examines")


class PocIdea(BaseModel):
    objective: str
    scope: str
    success_criteria: list[str]


class MeetingPrepDraft(BaseModel):
    executive_briefing: str
    strategic_hypotheses: list[str]
    questions: list[MeetingQuestion]
    strategic_impulses: list[str]
    poc_ideas: list[PocIdea]


class MeetingPrep(MeetingPrepDraft):
    customer_domain: Domain
    customer_legal_name: LegalName
    it_strategy_id: str
    service_matching_id: str
