"""
customer-intel - Staged Company Research Pipeline

Researches a customer from its web domain: master data, assessment,
competitors, market analyses, competitive comparisons, IT strategy,
service matching and a meeting briefing. Each stage is an idempotent
find-or-generate step driven by queue messages.

Example:
    >>> from customer_intel import IntelConfig, build_pipeline, open_runtime
    >>> deps = await open_runtime(IntelConfig(), memory=True)
    >>> pipeline = build_pipeline(deps)
    >>> await pipeline.research("acme.com", "Acme GmbH")
    >>> await deps.close()

Main Classes:
    IntelConfig: Configuration management
    StageOrchestrator: Find-or-generate-then-propagate for one stage
    Pipeline: Wired stages and queue handlers
"""

__version__ = "0.1.0"


# Public API - lazy imports to avoid loading optional dependencies
def __getattr__(name: str):
    """Lazy import public API components."""

    if name == "IntelConfig":
        from customer_intel.config.settings import IntelConfig
        return IntelConfig

    if name in ("Pipeline", "PipelineDeps", "StageOrchestrator", "build_pipeline", "open_runtime"):
        from customer_intel import pipeline
        return getattr(pipeline, name)

    if name in ("MemoryEntityStore", "ParquetEntityStore", "identity_of"):
        from customer_intel import storage
        return getattr(storage, name)

    raise AttributeError(f"module 'customer_intel' has no attribute {name!r}")


__all__ = [
    "IntelConfig",
    "MemoryEntityStore",
    "ParquetEntityStore",
    "Pipeline",
    "PipelineDeps",
    "StageOrchestrator",
    "build_pipeline",
    "identity_of",
    "open_runtime",
    "__version__",
]
