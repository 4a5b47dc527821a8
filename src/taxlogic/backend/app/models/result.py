"""Frozen models for calculation results, serialised with camelCase keys."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

PendlerType = Literal["klein", "gross", "none"]
Priority = Literal["high", "medium", "low"]


class ResultModel(BaseModel):
    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )


class BreakdownItem(ResultModel):
    """A deduction line: the amount applied and a localized rationale."""

    amount: float
    details: str


class PendlerBreakdown(BreakdownItem):
    type: PendlerType


class HomeOfficeBreakdown(BreakdownItem):
    days: int


class MedicalBreakdown(BreakdownItem):
    """Deductible medical costs after the income-based self-retention."""

    self_retention: float
    rate: float


class DeductionBreakdown(ResultModel):
    pendlerpauschale: PendlerBreakdown
    home_office: HomeOfficeBreakdown
    work_equipment: BreakdownItem
    education: BreakdownItem
    church_tax: BreakdownItem
    donations: BreakdownItem
    medical_expenses: MedicalBreakdown
    childcare: BreakdownItem


class Absetzbetraege(ResultModel):
    """Tax credits subtracted from the progressive tax."""

    verkehrsabsetzbetrag: float
    arbeitnehmerabsetzbetrag: float
    alleinverdienerabsetzbetrag: float
    alleinerzieherabsetzbetrag: float
    familienbonus: float
    total: float


class Recommendation(ResultModel):
    category: str
    title: str
    description: str
    potential_savings: float
    priority: Priority


class TaxAnalysis(ResultModel):
    """Advisory output; never feeds back into the computed figures."""

    summary: str
    tax_bracket: str
    effective_tax_rate: float
    unused_potential: float
    recommendations: tuple[Recommendation, ...] = ()
    warnings: tuple[str, ...] = ()


class TaxCalculationResult(ResultModel):
    """Full outcome of a calculation for one profile and rule pack."""

    tax_year: int
    locale: str
    gross_income: float
    taxable_income: float
    total_werbungskosten: float
    total_sonderausgaben: float
    total_aussergewoehnliche_belastungen: float
    werbungskosten_pauschale: float
    effective_werbungskosten: float
    effective_deductions: float
    breakdown: DeductionBreakdown
    absetzbetraege: Absetzbetraege
    progressive_tax: float
    calculated_tax: float
    withheld_tax: float
    estimated_refund: float
    estimated_backpayment: float
    analysis: TaxAnalysis
    calculated_at: datetime

    def to_payload(self) -> dict[str, Any]:
        """Return the JSON-ready representation used by the HTTP layer."""

        return self.model_dump(mode="json", by_alias=True)


__all__ = [
    "Absetzbetraege",
    "BreakdownItem",
    "DeductionBreakdown",
    "HomeOfficeBreakdown",
    "MedicalBreakdown",
    "PendlerBreakdown",
    "PendlerType",
    "Priority",
    "Recommendation",
    "ResultModel",
    "TaxAnalysis",
    "TaxCalculationResult",
]
