"""Validate raw rule pack documents and surface every issue in one pass."""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from pydantic import ValidationError

from .schema import Issue, SchemaViolation, TaxRulePack


def format_issue_path(location: Iterable[int | str]) -> str:
    """Render a pydantic error location as ``taxBrackets[2].min``."""

    rendered = ""
    for part in location:
        if isinstance(part, int):
            rendered += f"[{part}]"
        elif rendered:
            rendered += f".{part}"
        else:
            rendered = str(part)
    return rendered


def issues_from_validation_error(error: ValidationError) -> list[Issue]:
    """Convert structural pydantic errors into located issues."""

    return [
        Issue(format_issue_path(entry["loc"]), entry["msg"])
        for entry in error.errors(include_url=False)
    ]


def validate_rule_pack(raw: Mapping[str, Any] | Any) -> TaxRulePack:
    """Return a validated rule pack or raise :class:`SchemaViolation`.

    Structural checks (types, ranges and required keys) run first and are all
    collected. When the structure is sound, the cross-field invariants
    (bracket and pendler table continuity) run and are reported as one batch.
    """

    if not isinstance(raw, Mapping):
        raise SchemaViolation([Issue("", "Rule pack must define a mapping at the top level")])

    try:
        return TaxRulePack.model_validate(raw)
    except ValidationError as error:
        raise SchemaViolation(issues_from_validation_error(error)) from error


def rule_pack_issues(raw: Mapping[str, Any] | Any) -> list[Issue]:
    """Return the issues found in ``raw`` without raising."""

    try:
        validate_rule_pack(raw)
    except SchemaViolation as violation:
        return list(violation.issues)
    return []


__all__ = [
    "format_issue_path",
    "issues_from_validation_error",
    "rule_pack_issues",
    "validate_rule_pack",
]
