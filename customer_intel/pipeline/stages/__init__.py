"""
Pipeline Stages

One Stage per queue, in pipeline order:

    master-data -> assessment -> competition (fan-out) / news
    news -> ingestion -> batch-poll -> market-analysis
    market-analysis -> competition-analysis (convergence) -> it-strategy
    it-strategy -> service-matching -> meeting-prep
"""

from customer_intel.pipeline.stages.briefing import MeetingPrepStage, ServiceMatchingStage
from customer_intel.pipeline.stages.company import AssessmentStage, MasterDataStage
from customer_intel.pipeline.stages.competition import CompetitionStage
from customer_intel.pipeline.stages.competition_analysis import CompetitionAnalysisStage
from customer_intel.pipeline.stages.it_strategy import ITStrategyStage
from customer_intel.pipeline.stages.market_analysis import MarketAnalysisStage
from customer_intel.pipeline.stages.news import NewsStage

__all__ = [
    "AssessmentStage",
    "CompetitionAnalysisStage",
    "CompetitionStage",
    "ITStrategyStage",
    "MarketAnalysisStage",
    "MasterDataStage",
    "MeetingPrepStage",
    "NewsStage",
    "ServiceMatchingStage",
]
