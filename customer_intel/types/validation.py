"""
Typed Message Validation

validate_message() turns a raw payload (JSON text, bytes or a mapping)
into a ValidationResult: either the validated model or a list of
enumerated issues. It never raises for bad input.

Example:
    >>> result = validate_message(CompanyMessage, {"domain": "acme.com"})
    >>> result.ok
    False
    >>> [(i.field, i.kind) for i in result.issues]
    [('legal_name', <IssueKind.MISSING: 'missing'>)]
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, Mapping, TypeVar

from pydantic import BaseModel, ValidationError

M = TypeVar("M", bound=BaseModel)


class IssueKind(str, Enum):
    """What is wrong with a field."""

    MISSING = "missing"
    TOO_SHORT = "too_short"
    TOO_LONG = "too_long"
    OUT_OF_RANGE = "out_of_range"
    WRONG_TYPE = "wrong_type"
    NOT_ALLOWED = "not_allowed"
    MALFORMED = "malformed"


_RANGE_ERRORS = {"greater_than", "greater_than_equal", "less_than", "less_than_equal"}
_ALLOWED_ERRORS = {"literal_error", "enum"}


def _classify(error_type: str) -> IssueKind:
    if error_type == "missing":
        return IssueKind.MISSING
    if error_type in ("string_too_short", "too_short"):
        return IssueKind.TOO_SHORT
    if error_type in ("string_too_long", "too_long"):
        return IssueKind.TOO_LONG
    if error_type in _RANGE_ERRORS:
        return IssueKind.OUT_OF_RANGE
    if error_type in _ALLOWED_ERRORS:
        return IssueKind.NOT_ALLOWED
    if error_type.startswith("json"):
        return IssueKind.MALFORMED
    return IssueKind.WRONG_TYPE


@dataclass(frozen=True)
class ValidationIssue:
    field: str
    kind: IssueKind
    message: str


@dataclass(frozen=True)
class ValidationResult(Generic[M]):
    """Outcome of validating one payload."""

    value: M | None = None
    issues: list[ValidationIssue] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.value is not None and not self.issues


def validate_message(model: type[M], payload: str | bytes | Mapping[str, Any]) -> ValidationResult[M]:
    """Validate a raw payload against a message model."""
    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload)
        except ValueError as e:
            return ValidationResult(issues=[ValidationIssue("$", IssueKind.MALFORMED, str(e))])

    if not isinstance(payload, Mapping):
        return ValidationResult(
            issues=[
                ValidationIssue("$", IssueKind.WRONG_TYPE, f"expected an object, got {type(payload).__name__}")
            ]
        )

    try:
        return ValidationResult(value=model.model_validate(dict(payload)))
    except ValidationError as e:
        issues = [
            ValidationIssue(
                field=".".join(str(part) for part in err["loc"]) or "$",
                kind=_classify(err["type"]),
                message=err["msg"],
            )
            for err in e.errors()
        ]
        return ValidationResult(issues=issues)
