"""
Type Definitions

Pydantic models used throughout customer_intel.

Modules:
    company: MasterData, Assessment, CompetitorSet, NewsDigest and constrained string types
    analysis: MarketAnalysis, CompetitionAnalysis, ITStrategy, ServiceMatching, MeetingPrep
    messages: Queue payload models
    results: StageResult, LinkSpec, OutboundMessage, batch state machine types
    validation: validate_message() and its typed result
"""

from customer_intel.types.analysis import (
    CompetitionAnalysis,
    CompetitionAnalysisDraft,
    EvidenceItem,
    ITStrategy,
    ITStrategyDraft,
    MarketAnalysis,
    MarketAnalysisDraft,
    MeetingPrep,
    MeetingPrepDraft,
    ServiceMatching,
    ServiceMatchingDraft,
)
from customer_intel.types.company import (
    Assessment,
    Competitor,
    CompetitorList,
    CompetitorSet,
    Estimate,
    MasterData,
    NewsDigest,
    NewsItem,
    NewsList,
)
from customer_intel.types.messages import (
    BatchPollMessage,
    CompanyMessage,
    CompetitionAnalysisMessage,
    CompetitionMessage,
    IngestionDocument,
    IngestionMessage,
    ITStrategyMessage,
    MarketAnalysisMessage,
    MarketMessage,
    MeetingPrepMessage,
    OperatorAlert,
    ServiceMatchingMessage,
    StageMessage,
)
from customer_intel.types.results import (
    BatchOutcome,
    BatchState,
    BatchStatus,
    LinkSpec,
    OutboundMessage,
    StageOutcome,
    StageResult,
)
from customer_intel.types.validation import (
    IssueKind,
    ValidationIssue,
    ValidationResult,
    validate_message,
)

__all__ = [
    # Company
    "Assessment",
    "Competitor",
    "CompetitorList",
    "CompetitorSet",
    "Estimate",
    "MasterData",
    "NewsDigest",
    "NewsItem",
    "NewsList",
    # Analysis
    "CompetitionAnalysis",
    "CompetitionAnalysisDraft",
    "EvidenceItem",
    "ITStrategy",
    "ITStrategyDraft",
    "MarketAnalysis",
    "MarketAnalysisDraft",
    "MeetingPrep",
    "MeetingPrepDraft",
    "ServiceMatching",
    "ServiceMatchingDraft",
    # Messages
    "BatchPollMessage",
    "CompanyMessage",
    "CompetitionAnalysisMessage",
    "CompetitionMessage",
    "IngestionDocument",
    "IngestionMessage",
    "ITStrategyMessage",
    "MarketAnalysisMessage",
    "MarketMessage",
    "MeetingPrepMessage",
    "OperatorAlert",
    "ServiceMatchingMessage",
    "StageMessage",
    # Results
    "BatchOutcome",
    "BatchState",
    "BatchStatus",
    "LinkSpec",
    "OutboundMessage",
    "StageOutcome",
    "StageResult",
    # Validation
    "IssueKind",
    "ValidationIssue",
    "ValidationResult",
    "validate_message",
]
