"""
Result Types

Values returned by the pipeline machinery rather than stored as entities.

Pipeline Models:
    - OutboundMessage: A message to publish on a queue
    - LinkSpec: A directed edge to create between two stored entities
    - StageOutcome / StageResult: What one stage invocation did

Batch Models:
    - BatchStatus: Status reported by the external ingestion service
    - BatchState: States of the batch polling state machine
    - BatchOutcome: Terminal state reached by one polling run
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

# -----------------------------------------------------------------------------
# Pipeline Models
# -----------------------------------------------------------------------------


class OutboundMessage(BaseModel):
    queue: str
    payload: dict[str, Any]


class LinkSpec(BaseModel):
    """
    A link between two entities addressed by natural key.

    The target collection is resolved from the relation declared on the
    source collection's schema.
    """

    collection: str
    from_key: str
    relation: str
    to_key: str


class StageOutcome(str, Enum):
    GENERATED = "generated"
    """Entity was absent and this invocation stored it"""

    FOUND = "found"
    """Entity already existed; nothing was generated"""

    CONFLICT = "conflict"
    """Generated locally but another writer won; the stored winner was used"""

    DROPPED = "dropped"
    """A prerequisite was missing; nothing stored, nothing propagated"""


class StageResult(BaseModel):
    """
    Result of one stage invocation.

    Attributes:
        stage: Stage name
        outcome: Which path the find-or-generate procedure took
        key: Natural key of the entity
        entity_id: Identity of the stored entity (None when dropped)
        links_created: Links requested and accepted by the store
        messages: Messages published for downstream stages
    """

    stage: str
    outcome: StageOutcome
    key: str
    entity_id: str | None = None
    links_created: int = 0
    messages: list[OutboundMessage] = Field(default_factory=list)

    @property
    def propagated(self) -> bool:
        return bool(self.messages)


# -----------------------------------------------------------------------------
# Batch Models
# -----------------------------------------------------------------------------


class BatchStatus(str, Enum):
    """Status of an external ingestion batch."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class BatchState(str, Enum):
    """States of the batch polling state machine."""

    SUBMITTED = "submitted"
    POLLING = "polling"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"

    @property
    def terminal(self) -> bool:
        return self in (BatchState.COMPLETED, BatchState.FAILED, BatchState.TIMED_OUT)


class BatchOutcome(BaseModel):
    """
    Terminal result of polling one batch.

    Attributes:
        state: COMPLETED, FAILED or TIMED_OUT
        attempts: Status checks performed (never more than the configured maximum)
        last_status: Last status reported by the service
    """

    batch_id: str
    state: BatchState
    attempts: int
    last_status: BatchStatus | None = None
