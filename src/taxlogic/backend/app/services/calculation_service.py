"""Orchestrate profile validation, rule pack gating and the tax calculation.

``calculate_tax`` is the pure entry point: it receives an already-resolved rule
pack and never re-checks freshness. ``calculate_tax_for_year`` is what callers
use when they only know the year; it refuses to compute unless the year's rules
are ``ok``. Profiling hooks live here so the calculator modules can focus on
their own arithmetic.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Mapping
from contextlib import contextmanager
from datetime import datetime, timezone
from time import perf_counter
from typing import Any

from pydantic import ValidationError

from taxlogic.backend.app.localization import get_translator
from taxlogic.backend.app.models import (
    TaxCalculationResult,
    TaxProfile,
    format_validation_error,
)
from taxlogic.backend.config.rule_pack import RulePackLoader, get_default_loader
from taxlogic.backend.config.schema import TaxRulePack
from taxlogic.backend.config.status import ensure_rules_ok

from .calculators import (
    RulePackContractError,
    build_analysis,
    calculate_absetzbetraege,
    calculate_breakdown,
    calculate_progressive_tax,
    round_currency,
)
from .summary import SummaryFacts, SummaryGenerator, generate_summary, resolve_summary_timeout

_LOGGER = logging.getLogger(__name__)

CALCULATE_OPERATION = "calculate tax"


def _profiling_enabled() -> bool:
    """Return ``True`` when calculation profiling should be captured."""

    flag = os.getenv("TAXLOGIC_PROFILE_CALCULATIONS", "")
    return flag.strip().lower() in {"1", "true", "yes", "on"}


@contextmanager
def _profile_section(name: str, store: dict[str, float] | None):
    """Capture the duration of a named section when profiling is enabled."""

    if store is None:
        yield
        return

    start = perf_counter()
    try:
        yield
    finally:
        store[name] = perf_counter() - start


def parse_profile(payload: TaxProfile | Mapping[str, Any]) -> TaxProfile:
    """Return a validated profile, raising ``ValueError`` with readable issues."""

    if isinstance(payload, TaxProfile):
        return payload
    if not isinstance(payload, Mapping):
        raise ValueError("Tax profile must be a mapping")
    try:
        return TaxProfile.model_validate(payload)
    except ValidationError as exc:
        raise ValueError(format_validation_error(exc)) from exc


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def calculate_tax(
    profile: TaxProfile | Mapping[str, Any],
    rule_pack: TaxRulePack,
    *,
    summary_generator: SummaryGenerator | None = None,
    locale: str | None = None,
    summary_timeout: float | None = None,
    clock: Callable[[], datetime] | None = None,
) -> TaxCalculationResult:
    """Compute deductions, credits, tax and the refund or backpayment.

    The rule pack is trusted: callers gate on its status before calling. The
    summary generator only ever affects ``analysis.summary``.
    """

    profile = parse_profile(profile)
    if not rule_pack.tax_brackets:
        raise RulePackContractError("Rule pack defines no tax brackets")
    if profile.tax_year != rule_pack.year:
        raise RulePackContractError(
            f"Profile tax year {profile.tax_year} does not match rule pack year {rule_pack.year}"
        )

    translator = get_translator(locale)
    timings: dict[str, float] | None = {} if _profiling_enabled() else None
    overall_start = perf_counter() if timings is not None else None

    with _profile_section("breakdown", timings):
        breakdown = calculate_breakdown(profile, rule_pack, translator)

    with _profile_section("absetzbetraege", timings):
        absetzbetraege = calculate_absetzbetraege(profile, rule_pack.credits)

    total_werbungskosten = round_currency(
        breakdown.pendlerpauschale.amount
        + breakdown.home_office.amount
        + breakdown.work_equipment.amount
        + breakdown.education.amount
    )
    total_sonderausgaben = round_currency(breakdown.church_tax.amount + breakdown.donations.amount)
    total_aussergewoehnliche = round_currency(
        breakdown.medical_expenses.amount + breakdown.childcare.amount
    )
    pauschale = rule_pack.credits.werbungskosten_pauschale
    effective_werbungskosten = max(total_werbungskosten, pauschale)
    effective_deductions = round_currency(
        effective_werbungskosten + total_sonderausgaben + total_aussergewoehnliche
    )

    gross_income = profile.income.gross_income
    taxable_income = round_currency(max(0.0, gross_income - effective_deductions))

    with _profile_section("progressive_tax", timings):
        progressive_tax = calculate_progressive_tax(taxable_income, rule_pack.tax_brackets)

    calculated_tax = round_currency(max(0.0, progressive_tax - absetzbetraege.total))
    withheld_tax = profile.income.withheld_tax
    difference = round_currency(withheld_tax - calculated_tax)
    estimated_refund = max(0.0, difference)
    estimated_backpayment = max(0.0, -difference)

    facts = SummaryFacts(
        tax_year=profile.tax_year,
        gross_income=gross_income,
        effective_deductions=effective_deductions,
        estimated_refund=estimated_refund,
        estimated_backpayment=estimated_backpayment,
    )
    timeout = summary_timeout if summary_timeout is not None else resolve_summary_timeout()

    with _profile_section("summary", timings):
        summary = generate_summary(facts, translator, summary_generator, timeout)

    with _profile_section("analysis", timings):
        analysis = build_analysis(
            profile,
            rule_pack,
            summary=summary,
            taxable_income=taxable_income,
            total_werbungskosten=total_werbungskosten,
            progressive_tax=progressive_tax,
            estimated_refund=estimated_refund,
            translator=translator,
        )

    if timings is not None and overall_start is not None:
        timings["total"] = perf_counter() - overall_start
        _LOGGER.debug(
            "calculate_tax timings (ms): %s",
            {name: round(duration * 1000, 3) for name, duration in timings.items()},
        )

    return TaxCalculationResult(
        tax_year=profile.tax_year,
        locale=translator.locale,
        gross_income=gross_income,
        taxable_income=taxable_income,
        total_werbungskosten=total_werbungskosten,
        total_sonderausgaben=total_sonderausgaben,
        total_aussergewoehnliche_belastungen=total_aussergewoehnliche,
        werbungskosten_pauschale=pauschale,
        effective_werbungskosten=effective_werbungskosten,
        effective_deductions=effective_deductions,
        breakdown=breakdown,
        absetzbetraege=absetzbetraege,
        progressive_tax=progressive_tax,
        calculated_tax=calculated_tax,
        withheld_tax=withheld_tax,
        estimated_refund=estimated_refund,
        estimated_backpayment=estimated_backpayment,
        analysis=analysis,
        calculated_at=(clock or _utc_now)(),
    )


def calculate_tax_for_year(
    profile: TaxProfile | Mapping[str, Any],
    *,
    loader: RulePackLoader | None = None,
    now: datetime | None = None,
    summary_generator: SummaryGenerator | None = None,
    locale: str | None = None,
    summary_timeout: float | None = None,
    clock: Callable[[], datetime] | None = None,
) -> TaxCalculationResult:
    """Gate on the rule pack status for the profile's year, then calculate.

    Raises :class:`~taxlogic.backend.config.status.TaxRulesUnavailable` when
    the year's rules are not ``ok``.
    """

    profile = parse_profile(profile)
    loader = loader or get_default_loader()
    ensure_rules_ok(profile.tax_year, CALCULATE_OPERATION, now=now, loader=loader)
    rule_pack = loader.load_rule_pack(profile.tax_year)

    return calculate_tax(
        profile,
        rule_pack,
        summary_generator=summary_generator,
        locale=locale,
        summary_timeout=summary_timeout,
        clock=clock,
    )


__all__ = ["CALCULATE_OPERATION", "calculate_tax", "calculate_tax_for_year", "parse_profile"]
