"""Typed input and output models shared by the calculation service and routes.

Inputs are validated pydantic models built from camelCase payloads. Results are
frozen models that serialise back to camelCase so downstream consumers read the
same vocabulary the rule packs use.
"""

from __future__ import annotations

from pydantic import ValidationError

from .profile import (
    ChildInfo,
    DeductionsInfo,
    FamilyInfo,
    HomeOfficeInfo,
    IncomeInfo,
    PendlerInfo,
    PersonalInfo,
    TaxProfile,
)
from .result import (
    Absetzbetraege,
    BreakdownItem,
    DeductionBreakdown,
    HomeOfficeBreakdown,
    MedicalBreakdown,
    PendlerBreakdown,
    Recommendation,
    TaxAnalysis,
    TaxCalculationResult,
)


def format_validation_error(error: ValidationError) -> str:
    """Return a concise human-readable description of validation issues."""

    messages: list[str] = []
    for issue in error.errors(include_url=False):
        location = ".".join(str(part) for part in issue.get("loc", ()))
        message = issue.get("msg", "Invalid value")
        if "greater than or equal to 0" in message.lower():
            message = "value cannot be negative"
        if location:
            messages.append(f"{location}: {message}")
        else:
            messages.append(message)

    details = "; ".join(messages) if messages else str(error)
    return f"Invalid tax profile: {details}"


__all__ = [
    "Absetzbetraege",
    "BreakdownItem",
    "ChildInfo",
    "DeductionBreakdown",
    "DeductionsInfo",
    "FamilyInfo",
    "HomeOfficeBreakdown",
    "IncomeInfo",
    "MedicalBreakdown",
    "PendlerBreakdown",
    "PendlerInfo",
    "PersonalInfo",
    "Recommendation",
    "TaxAnalysis",
    "TaxCalculationResult",
    "TaxProfile",
    "format_validation_error",
]
