"""
Incoming Record Validation

DESIGN DECISION: Validation happens once, at the edge, before anything is
written:

STRICT - required keys:
- Transaction `id` must be present and non-blank
- Partner `name` must be present and non-blank
- Typed fields must be coercible (numbers, booleans)

LENIENT - everything else:
- Missing optional fields are defaulted
- Corrupt nested lists become empty lists
- Amount logic (paid vs total, negative prices) is NOT checked

A single-record save that fails validation is rejected as a whole.
A bulk import skips the bad record and keeps going.
"""

from typing import Any, Optional, TypeVar

import pydantic
from pydantic import BaseModel

from tijarati.errors import TijaratiError
from tijarati.models.ledger import Partner, Transaction, ValidationIssue


M = TypeVar("M", bound=BaseModel)


class ValidationError(TijaratiError):
    """A request or record is missing a required field or is malformed."""

    def __init__(self, message: str, issues: Optional[list[ValidationIssue]] = None):
        self.issues = issues or []
        super().__init__(message)


def _issues_from(exc: pydantic.ValidationError) -> list[ValidationIssue]:
    issues = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ())) or "payload"
        issues.append(ValidationIssue(
            field=loc,
            issue_type=err.get("type", "invalid"),
            message=err.get("msg", "Invalid value"),
        ))
    return issues


def _summary(issues: list[ValidationIssue]) -> str:
    if not issues:
        return "Invalid payload"
    first = issues[0]
    message = first.message
    # pydantic prefixes custom ValueError messages
    if message.startswith("Value error, "):
        message = message[len("Value error, "):]
    if len(issues) == 1:
        return message
    return f"{message} (+{len(issues) - 1} more)"


class RecordValidator:
    """
    Turns loose bridge payloads into typed models.

    Stateless; one instance is shared by the dispatcher and the import
    engine.
    """

    def parse(self, model: type[M], data: Any) -> M:
        """
        Validate `data` against `model`.

        Raises:
            ValidationError: with one ValidationIssue per failing field
        """
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ValidationError(
                "Payload must be an object",
                [ValidationIssue(
                    field="payload",
                    issue_type="invalid_type",
                    message="Payload must be an object",
                )],
            )
        try:
            return model.model_validate(data)
        except pydantic.ValidationError as e:
            issues = _issues_from(e)
            raise ValidationError(_summary(issues), issues) from e

    def parse_transaction(self, data: Any) -> Transaction:
        return self.parse(Transaction, data)

    def parse_partner(self, data: Any) -> Partner:
        return self.parse(Partner, data)

    def try_parse(self, model: type[M], data: Any) -> Optional[M]:
        """Like parse(), but returns None for records an import should skip."""
        try:
            return self.parse(model, data)
        except ValidationError:
            return None
