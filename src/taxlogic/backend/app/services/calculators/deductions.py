"""Deduction breakdown: Werbungskosten, Sonderausgaben and extraordinary burdens."""

from __future__ import annotations

from collections.abc import Sequence

from taxlogic.backend.app.localization import Translator
from taxlogic.backend.app.models import (
    BreakdownItem,
    ChildInfo,
    DeductionBreakdown,
    HomeOfficeBreakdown,
    MedicalBreakdown,
    PendlerBreakdown,
    PendlerInfo,
    TaxProfile,
)
from taxlogic.backend.config.schema import (
    ChildcareConfig,
    HomeOfficeConfig,
    MedicalConfig,
    PendlerConfig,
    TaxRulePack,
)

from .utils import age_at, format_amount, format_percentage, round_half_up, year_end

MIN_PENDLER_DISTANCE_KM = 2
FULL_YEAR_WORKING_DAYS = 220


def calculate_pendlerpauschale(
    info: PendlerInfo, config: PendlerConfig, translator: Translator
) -> PendlerBreakdown:
    """Commuter allowance from the small or large table, pro-rated by days."""

    if info.distance < MIN_PENDLER_DISTANCE_KM:
        return PendlerBreakdown(
            amount=0.0, type="none", details=translator("breakdown.pendler.short_distance")
        )

    kind = "klein" if info.public_transport_feasible else "gross"
    for bracket in config.table(kind):
        if not bracket.matches(info.distance):
            continue

        work_days = min(info.days_per_year, FULL_YEAR_WORKING_DAYS)
        amount = round_half_up(bracket.amount * work_days / FULL_YEAR_WORKING_DAYS)
        return PendlerBreakdown(
            amount=amount,
            type=kind,
            details=translator.format(
                f"breakdown.pendler.{kind}",
                distance=format_amount(info.distance),
                days=work_days,
            ),
        )

    return PendlerBreakdown(
        amount=0.0, type="none", details=translator("breakdown.pendler.not_applicable")
    )


def calculate_home_office(
    days: int, config: HomeOfficeConfig, translator: Translator
) -> HomeOfficeBreakdown:
    eligible_days = int(min(days, config.max_days))
    amount = min(eligible_days * config.per_day, config.max_amount)
    return HomeOfficeBreakdown(
        amount=amount,
        days=eligible_days,
        details=translator.format(
            "breakdown.home_office",
            days=eligible_days,
            per_day=format_amount(config.per_day),
            amount=format_amount(amount),
        ),
    )


def calculate_church_tax(claimed: float, cap: float, translator: Translator) -> BreakdownItem:
    amount = min(claimed, cap)
    if amount < claimed:
        details = translator.format("breakdown.church_tax.capped", cap=format_amount(cap))
    else:
        details = translator("breakdown.church_tax.full")
    return BreakdownItem(amount=amount, details=details)


def self_retention_rate(profile: TaxProfile, config: MedicalConfig) -> float:
    """Select the Selbstbehalt rate from disability and family situation."""

    if profile.personal_info.has_disability:
        return config.disability_rate

    family = profile.family
    child_count = family.child_count
    if family.single_earner or family.single_parent:
        if child_count >= 3:
            return config.single_with_three_or_more_children_rate
        if child_count == 2:
            return config.single_with_two_children_rate
        return config.default_self_retention_rate

    if child_count > 3:
        return config.many_children_self_retention_rate
    return config.default_self_retention_rate


def calculate_medical_expenses(
    profile: TaxProfile, config: MedicalConfig, translator: Translator
) -> MedicalBreakdown:
    expenses = profile.deductions.medical_expenses
    rate = self_retention_rate(profile, config)
    self_retention = profile.income.gross_income * rate
    deductible = max(0.0, expenses - self_retention)

    if rate == 0:
        retention_label = translator("breakdown.medical.no_retention")
    else:
        retention_label = translator.format(
            "breakdown.medical.retention",
            amount=format_amount(round_half_up(self_retention)),
            rate=format_percentage(rate),
        )

    return MedicalBreakdown(
        amount=deductible,
        self_retention=self_retention,
        rate=rate,
        details=translator.format(
            "breakdown.medical.details",
            retention=retention_label,
            deductible=format_amount(round_half_up(deductible)),
        ),
    )


def childcare_limit(
    children: Sequence[ChildInfo], config: ChildcareConfig, tax_year: int
) -> float:
    """Maximum deductible childcare for children below the age limit at year end."""

    reference = year_end(tax_year)
    limit = 0.0
    for child in children:
        if age_at(child.birth_date, reference) >= config.max_age:
            continue
        if child.in_household:
            limit += config.max_per_child
        else:
            limit += round_half_up(config.max_per_child * config.shared_custody_factor)
    return limit


def calculate_childcare(
    profile: TaxProfile, config: ChildcareConfig, translator: Translator
) -> BreakdownItem:
    limit = childcare_limit(profile.family.children, config, profile.tax_year)
    return BreakdownItem(
        amount=min(profile.deductions.childcare_expenses, limit),
        details=translator.format(
            "breakdown.childcare",
            max_per_child=format_amount(config.max_per_child),
            max_age=format_amount(config.max_age),
        ),
    )


def calculate_breakdown(
    profile: TaxProfile, rule_pack: TaxRulePack, translator: Translator
) -> DeductionBreakdown:
    """Return every deduction line with the rule pack's caps applied."""

    deductions = profile.deductions
    return DeductionBreakdown(
        pendlerpauschale=calculate_pendlerpauschale(
            deductions.pendlerpauschale, rule_pack.pendlerpauschale, translator
        ),
        home_office=calculate_home_office(
            deductions.home_office.days, rule_pack.home_office, translator
        ),
        work_equipment=BreakdownItem(
            amount=deductions.work_equipment,
            details=translator("breakdown.work_equipment"),
        ),
        education=BreakdownItem(
            amount=deductions.education,
            details=translator("breakdown.education"),
        ),
        church_tax=calculate_church_tax(
            deductions.church_tax, rule_pack.credits.church_tax_max, translator
        ),
        donations=BreakdownItem(
            amount=deductions.donations,
            details=translator("breakdown.donations"),
        ),
        medical_expenses=calculate_medical_expenses(profile, rule_pack.medical, translator),
        childcare=calculate_childcare(profile, rule_pack.childcare, translator),
    )


__all__ = [
    "FULL_YEAR_WORKING_DAYS",
    "MIN_PENDLER_DISTANCE_KM",
    "calculate_breakdown",
    "calculate_childcare",
    "calculate_church_tax",
    "calculate_home_office",
    "calculate_medical_expenses",
    "calculate_pendlerpauschale",
    "childcare_limit",
    "self_retention_rate",
]
