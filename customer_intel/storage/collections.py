"""
Collection Declarations

Schemas of every collection the pipeline writes, with declared relations,
vector slots and filterable properties.
"""

from __future__ import annotations

from customer_intel.storage.base import CollectionSchema, EntityStore
from customer_intel.types.analysis import (
    CompetitionAnalysis,
    ITStrategy,
    MarketAnalysis,
    MeetingPrep,
    ServiceMatching,
)
from customer_intel.types.company import Assessment, CompetitorSet, MasterData, NewsDigest

MASTER_DATA = "CompanyMasterData"
ASSESSMENT = "CompanyAssessment"
COMPETITORS = "CompetingCompanies"
NEWS = "CompanyNews"
MARKET_ANALYSIS = "MarketAnalysis"
COMPETITION_ANALYSIS = "CompetitionAnalysis"
IT_STRATEGY = "ITStrategy"
SERVICE_MATCHING = "ServiceMatching"
MEETING_PREP = "MeetingPrep"

ANALYSIS_TEXT = "analysis_text"
COMPETITION_LENS = "competition_lens"

COLLECTIONS: tuple[CollectionSchema, ...] = (
    CollectionSchema(
        name=MASTER_DATA,
        model=MasterData,
        key_field="domain",
        relations={
            "assessment": ASSESSMENT,
            "market_analysis": MARKET_ANALYSIS,
            "news": NEWS,
            "competing_companies": MASTER_DATA,
            "competition_analysis": COMPETITION_ANALYSIS,
            "it_strategy": IT_STRATEGY,
            "service_matching": SERVICE_MATCHING,
            "meeting_prep": MEETING_PREP,
        },
        filterable=("domain", "country_code"),
    ),
    CollectionSchema(name=ASSESSMENT, model=Assessment, key_field="domain", filterable=("domain",)),
    CollectionSchema(
        name=COMPETITORS,
        model=CompetitorSet,
        key_field="customer_domain",
        filterable=("customer_domain",),
    ),
    CollectionSchema(name=NEWS, model=NewsDigest, key_field="domain", filterable=("domain",)),
    CollectionSchema(
        name=MARKET_ANALYSIS,
        model=MarketAnalysis,
        key_field="domain",
        vector_slots=(ANALYSIS_TEXT, COMPETITION_LENS),
        filterable=("domain", "subject_type", "customer_domain"),
    ),
    CollectionSchema(
        name=COMPETITION_ANALYSIS,
        model=CompetitionAnalysis,
        key_field="competition_id",
        relations={"competitor_master_data": MASTER_DATA},
        vector_slots=(ANALYSIS_TEXT,),
        filterable=("customer_domain", "competitor_domain"),
    ),
    CollectionSchema(
        name=IT_STRATEGY,
        model=ITStrategy,
        key_field="customer_domain",
        filterable=("customer_domain",),
    ),
    CollectionSchema(
        name=SERVICE_MATCHING,
        model=ServiceMatching,
        key_field="customer_domain",
        filterable=("customer_domain",),
    ),
    CollectionSchema(
        name=MEETING_PREP,
        model=MeetingPrep,
        key_field="customer_domain",
        filterable=("customer_domain",),
    ),
)


async def declare_collections(store: EntityStore) -> None:
    """Declare every pipeline collection on a store."""
    for schema in COLLECTIONS:
        await store.declare(schema)
