"""Queue names."""

MASTER_DATA = "master-data"
ASSESSMENT = "assessment"
COMPETITION = "competition"
NEWS = "news"
INGESTION = "ingestion"
BATCH_POLL = "batch-poll"
MARKET_ANALYSIS = "market-analysis"
COMPETITION_ANALYSIS = "competition-analysis"
IT_STRATEGY = "it-strategy"
SERVICE_MATCHING = "service-matching"
MEETING_PREP = "meeting-prep"
OPERATOR_ALERTS = "operator-alerts"

# Processing order used by the in-process worker (upstream first)
PIPELINE_QUEUES = (
    MASTER_DATA,
    ASSESSMENT,
    COMPETITION,
    NEWS,
    INGESTION,
    BATCH_POLL,
    MARKET_ANALYSIS,
    COMPETITION_ANALYSIS,
    IT_STRATEGY,
    SERVICE_MATCHING,
    MEETING_PREP,
)
