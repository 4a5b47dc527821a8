"""Pydantic models describing the yearly tax rule pack schema."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from typing import Any, Sequence

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

DEFAULT_STALE_AFTER_DAYS = 35


class RulePackError(Exception):
    """Base class for rule pack configuration and authoring defects."""


@dataclass(frozen=True)
class Issue:
    """A single schema or invariant violation located by its document path."""

    path: str
    message: str

    def __str__(self) -> str:
        return f"{self.path}: {self.message}" if self.path else self.message


class SchemaViolation(RulePackError):
    """Raised with every structural or invariant issue found in a rule pack."""

    def __init__(self, issues: Sequence[Issue]) -> None:
        self.issues: tuple[Issue, ...] = tuple(issues)
        summary = "; ".join(str(issue) for issue in self.issues)
        super().__init__(f"Tax rule pack failed validation ({len(self.issues)} issue(s)): {summary}")


class ImmutableModel(BaseModel):
    """Base class that freezes instances and rejects unknown fields."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)


def _amount(**kwargs: Any) -> Any:
    return Field(ge=0, allow_inf_nan=False, **kwargs)


def _rate(**kwargs: Any) -> Any:
    return Field(ge=0, le=1, allow_inf_nan=False, **kwargs)


class TaxBracket(ImmutableModel):
    """Represents a single progressive tax bracket."""

    min: float = _amount()
    max: float | None = _amount()
    rate: float = _rate()

    @property
    def is_open_ended(self) -> bool:
        return self.max is None


class PendlerBracket(ImmutableModel):
    """Distance band of a commuter allowance table."""

    min_km: float = _amount(alias="minKm")
    max_km: float | None = _amount(alias="maxKm")
    amount: float = _amount()

    def matches(self, distance: float) -> bool:
        if distance < self.min_km:
            return False
        return self.max_km is None or distance < self.max_km


class TieredFamilyCredit(ImmutableModel):
    """Credit that grows with the number of children."""

    first_child: float = _amount(alias="firstChild")
    second_child_increment: float = _amount(alias="secondChildIncrement")
    additional_child_increment: float = _amount(alias="additionalChildIncrement")

    def amount_for_children(self, children: int) -> float:
        if children <= 0:
            return 0.0
        total = self.first_child
        if children >= 2:
            total += self.second_child_increment
        if children >= 3:
            total += (children - 2) * self.additional_child_increment
        return total


class CreditConfig(ImmutableModel):
    """Flat allowances and tax credits (Absetzbeträge)."""

    werbungskosten_pauschale: float = _amount(alias="werbungskostenPauschale")
    verkehrsabsetzbetrag: float = _amount()
    arbeitnehmerabsetzbetrag: float = _amount()
    church_tax_max: float = _amount(alias="churchTaxMax")
    familienbonus_per_child: float = _amount(alias="familienbonusPerChild")
    familienbonus_per_child_adult: float = _amount(alias="familienbonusPerChildAdult")
    alleinverdiener: TieredFamilyCredit
    alleinerzieher: TieredFamilyCredit


class HomeOfficeConfig(ImmutableModel):
    """Daily home office allowance with day and amount caps."""

    per_day: float = _amount(alias="perDay")
    max_amount: float = _amount(alias="maxAmount")
    max_days: float = _amount(alias="maxDays")


class ChildcareConfig(ImmutableModel):
    """Per-child childcare deduction limits."""

    max_per_child: float = _amount(alias="maxPerChild")
    shared_custody_factor: float = _rate(alias="sharedCustodyFactor")
    max_age: float = _amount(alias="maxAge")


class MedicalConfig(ImmutableModel):
    """Self-retention (Selbstbehalt) rates for extraordinary medical costs."""

    default_self_retention_rate: float = _rate(alias="defaultSelfRetentionRate")
    many_children_self_retention_rate: float = _rate(alias="manyChildrenSelfRetentionRate")
    single_with_two_children_rate: float = _rate(alias="singleWithTwoChildrenRate")
    single_with_three_or_more_children_rate: float = _rate(
        alias="singleWithThreeOrMoreChildrenRate"
    )
    disability_rate: float = _rate(alias="disabilityRate")


class PendlerConfig(ImmutableModel):
    """Small and large commuter allowance tables."""

    klein: tuple[PendlerBracket, ...] = Field(min_length=1)
    gross: tuple[PendlerBracket, ...] = Field(min_length=1)

    def table(self, kind: str) -> tuple[PendlerBracket, ...]:
        return self.klein if kind == "klein" else self.gross


class RulePackMetadata(ImmutableModel):
    """Provenance information for a rule pack."""

    law_year: int = Field(alias="lawYear", ge=2000, le=2100)
    verification_status: str = Field(alias="verificationStatus", min_length=1, max_length=200)
    notes: str | None = Field(default=None, max_length=2000)
    sources: tuple[str, ...] = Field(min_length=1)

    @field_validator("sources")
    @classmethod
    def _require_absolute_urls(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        for source in value:
            if not source.startswith(("http://", "https://")):
                raise ValueError(f"source URL must be absolute: {source!r}")
        return value


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class TaxRulePack(ImmutableModel):
    """Structured representation of one tax year's rules."""

    year: int = Field(ge=2000, le=2100)
    version: str = Field(min_length=1, max_length=100)
    verified_at: datetime = Field(alias="verifiedAt")
    stale_after_days: int = Field(
        default=DEFAULT_STALE_AFTER_DAYS, alias="staleAfterDays", ge=1, le=365
    )
    metadata: RulePackMetadata
    tax_brackets: tuple[TaxBracket, ...] = Field(alias="taxBrackets", min_length=2)
    credits: CreditConfig
    home_office: HomeOfficeConfig = Field(alias="homeOffice")
    childcare: ChildcareConfig
    medical: MedicalConfig
    pendlerpauschale: PendlerConfig

    @field_validator("verified_at", mode="before")
    @classmethod
    def _coerce_verified_at(cls, value: Any) -> Any:
        # YAML turns unquoted ISO dates into ``date`` objects.
        if isinstance(value, date) and not isinstance(value, datetime):
            return datetime.combine(value, time.min, tzinfo=timezone.utc)
        if isinstance(value, str) and len(value) == 10:
            try:
                parsed = date.fromisoformat(value)
            except ValueError as exc:
                raise ValueError(f"verifiedAt is not a valid date: {value!r}") from exc
            return datetime.combine(parsed, time.min, tzinfo=timezone.utc)
        return value

    @field_validator("verified_at")
    @classmethod
    def _normalise_verified_at(cls, value: datetime) -> datetime:
        return _as_utc(value)

    @model_validator(mode="after")
    def _check_invariants(self) -> TaxRulePack:
        issues = collect_invariant_issues(self)
        if issues:
            # SchemaViolation is not a ValueError, so pydantic re-raises it as is.
            raise SchemaViolation(issues)
        return self


def _bracket_issues(brackets: Sequence[TaxBracket]) -> list[Issue]:
    issues: list[Issue] = []
    previous_max: float | None = None
    last_index = len(brackets) - 1

    for index, bracket in enumerate(brackets):
        scope = f"taxBrackets[{index}]"
        if index == 0 and bracket.min != 0:
            issues.append(Issue(f"{scope}.min", "First tax bracket must start at 0"))
        if bracket.max is not None and bracket.max <= bracket.min:
            issues.append(Issue(f"{scope}.max", "Tax bracket max must be greater than min"))
        if bracket.max is None and index != last_index:
            issues.append(Issue(f"{scope}.max", "Only the final tax bracket may be open-ended"))
        if index > 0 and previous_max is not None and bracket.min != previous_max:
            issues.append(Issue(f"{scope}.min", "Tax brackets must be continuous"))
        previous_max = bracket.max

    return issues


def _pendler_issues(name: str, table: Sequence[PendlerBracket]) -> list[Issue]:
    issues: list[Issue] = []
    previous_max: float | None = None
    last_index = len(table) - 1

    for index, entry in enumerate(table):
        scope = f"pendlerpauschale.{name}[{index}]"
        if entry.max_km is not None and entry.max_km <= entry.min_km:
            issues.append(
                Issue(f"{scope}.maxKm", "Pendler bracket maxKm must be greater than minKm")
            )
        if entry.max_km is None and index != last_index:
            issues.append(
                Issue(f"{scope}.maxKm", f'Only the final entry of pendler table "{name}" may be open-ended')
            )
        if index > 0 and previous_max is not None and entry.min_km != previous_max:
            issues.append(Issue(f"{scope}.minKm", f'Pendler table "{name}" must be continuous'))
        previous_max = entry.max_km

    return issues


def collect_invariant_issues(pack: TaxRulePack) -> list[Issue]:
    """Return every cross-field invariant violated by ``pack``."""

    issues = _bracket_issues(pack.tax_brackets)
    issues.extend(_pendler_issues("klein", pack.pendlerpauschale.klein))
    issues.extend(_pendler_issues("gross", pack.pendlerpauschale.gross))
    return issues


__all__ = [
    "ChildcareConfig",
    "CreditConfig",
    "DEFAULT_STALE_AFTER_DAYS",
    "HomeOfficeConfig",
    "ImmutableModel",
    "Issue",
    "MedicalConfig",
    "PendlerBracket",
    "PendlerConfig",
    "RulePackError",
    "RulePackMetadata",
    "SchemaViolation",
    "TaxBracket",
    "TaxRulePack",
    "TieredFamilyCredit",
    "collect_invariant_issues",
]
