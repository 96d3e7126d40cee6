"""
Staged Pipeline

Find-or-generate-then-propagate over an at-least-once message bus.

Modules:
    orchestrator: Stage contract, find_or_generate(), StageOrchestrator
    fanout: Competitor fan-out
    convergence: Join attempts for stages that need sibling artifacts
    context: Size-bounded context and evidence assembly
    deps: PipelineDeps (collaborators passed to every stage)
    stages/: The nine orchestrated stages
    wiring: build_pipeline(), open_runtime()
"""

from customer_intel.pipeline.convergence import ConvergenceGate
from customer_intel.pipeline.deps import PipelineDeps
from customer_intel.pipeline.fanout import FanOutController, FanOutResult
from customer_intel.pipeline.orchestrator import (
    Generated,
    Stage,
    StageOrchestrator,
    find_or_generate,
)
from customer_intel.pipeline.wiring import Pipeline, build_pipeline, open_runtime, open_store

__all__ = [
    "ConvergenceGate",
    "FanOutController",
    "FanOutResult",
    "Generated",
    "Pipeline",
    "PipelineDeps",
    "Stage",
    "StageOrchestrator",
    "build_pipeline",
    "find_or_generate",
    "open_runtime",
    "open_store",
]
