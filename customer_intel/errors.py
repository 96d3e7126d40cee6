"""
Error Taxonomy

    IntelError            base class for everything raised by this package
    InvalidInput          malformed stage message; dead-lettered without retry
    MissingPrerequisite   a required upstream entity is absent; the message is dropped
    Conflict              an entity with the same identity already exists
    GenerationFailure     the generation service failed or returned unusable output
    StorageAreaError      an external storage area could not be resolved or used
    DocumentUnavailable   a source document could not be fetched

Stage handlers absorb Conflict and MissingPrerequisite. Everything else
reaches the worker, which applies the redelivery / dead-letter policy.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from customer_intel.types.validation import ValidationIssue


class IntelError(Exception):
    """Base class for pipeline errors."""


class InvalidInput(IntelError):
    """A message failed validation against its stage's request model."""

    def __init__(self, stage: str, issues: Sequence["ValidationIssue"]) -> None:
        self.stage = stage
        self.issues = list(issues)
        details = "; ".join(f"{issue.field}: {issue.kind.value}" for issue in self.issues)
        super().__init__(f"Invalid input for stage '{stage}': {details}")


class MissingPrerequisite(IntelError):
    """A required upstream entity has not been stored yet."""

    def __init__(self, collection: str, key: str) -> None:
        self.collection = collection
        self.key = key
        super().__init__(f"Missing prerequisite {collection}[{key}]")


class Conflict(IntelError):
    """Insert rejected because the identity is already taken."""

    def __init__(self, collection: str, entity_id: str) -> None:
        self.collection = collection
        self.entity_id = entity_id
        super().__init__(f"{collection}[{entity_id}] already exists")


class GenerationFailure(IntelError):
    """The generation service raised or produced unparseable output."""


class StorageAreaError(IntelError):
    """An external storage area operation failed."""


class DocumentUnavailable(IntelError):
    """A source document could not be fetched."""

    def __init__(self, url: str, reason: str) -> None:
        self.url = url
        self.reason = reason
        super().__init__(f"Document unavailable: {url} ({reason})")
