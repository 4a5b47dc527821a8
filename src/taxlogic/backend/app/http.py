"""HTTP helper utilities shared across Flask blueprints."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from flask import current_app, jsonify

from taxlogic.backend.config.rule_pack import RulePackLoader
from taxlogic.backend.config.status import TaxRulesUnavailable

RULE_PACK_EXTENSION = "taxlogic.rule_packs"


@dataclass(frozen=True)
class ProblemResponse:
    """Lightweight representation of an RFC 7807-style error payload."""

    error: str
    status: int
    message: str | None = None
    extra: Mapping[str, Any] | None = None

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.error}
        if self.message:
            payload["message"] = self.message
        if self.extra:
            payload.update(self.extra)
        return payload

    def to_response(self) -> tuple[Any, int]:
        return jsonify(self.as_dict()), self.status


def problem_response(
    error: str,
    *,
    status: int,
    message: str | None = None,
    **extra: Any,
) -> ProblemResponse:
    """Convenience factory mirroring Flask's ``jsonify`` interface."""

    additional: Mapping[str, Any] | None = extra or None
    return ProblemResponse(error=error, status=status, message=message, extra=additional)


def rules_unavailable_problem(error: TaxRulesUnavailable) -> ProblemResponse:
    """Describe a refused operation with the year, state and operation involved."""

    return problem_response(
        "tax_rules_unavailable",
        status=409,
        message=str(error),
        year=error.status.year,
        state=error.status.state,
        operation=error.operation,
    )


def current_loader() -> RulePackLoader:
    """Return the rule pack loader owned by the running application."""

    return current_app.extensions[RULE_PACK_EXTENSION]


__all__ = [
    "ProblemResponse",
    "RULE_PACK_EXTENSION",
    "current_loader",
    "problem_response",
    "rules_unavailable_problem",
]
