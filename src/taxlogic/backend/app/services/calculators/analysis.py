"""Advisory analysis: bracket label, effective rate, recommendations and warnings.

Nothing in here changes the computed figures. The helpers read the finished
numbers and the rule pack and describe where the taxpayer stands and which
claims may be worth a second look.
"""

from __future__ import annotations

from collections.abc import Sequence

from taxlogic.backend.app.localization import Translator
from taxlogic.backend.app.models import Recommendation, TaxAnalysis, TaxProfile
from taxlogic.backend.config.schema import TaxBracket, TaxRulePack

from .utils import format_amount, format_percentage, marginal_bracket, round_currency, round_half_up

LARGE_PENDLER_ESTIMATED_SAVINGS = 500.0
UNCLAIMED_WERBUNGSKOSTEN_ESTIMATE = 500.0
HIGH_REFUND_THRESHOLD = 5000.0
HIGH_MEDICAL_SHARE = 0.1


def describe_tax_bracket(
    taxable_income: float, brackets: Sequence[TaxBracket], translator: Translator
) -> str:
    bracket = marginal_bracket(taxable_income, brackets)
    if bracket is None:
        return translator("analysis.bracket.unknown")

    upper = (
        translator("analysis.bracket.open")
        if bracket.max is None
        else format_amount(bracket.max)
    )
    return translator.format(
        "analysis.bracket",
        rate=format_percentage(bracket.rate),
        lower=format_amount(bracket.min),
        upper=upper,
    )


def effective_tax_rate(progressive_tax: float, gross_income: float) -> float:
    """Progressive tax, before Absetzbeträge, as a percentage of gross income."""

    if gross_income <= 0:
        return 0.0
    return round_half_up(progressive_tax / gross_income * 100, 2)


def unused_potential(
    profile: TaxProfile, total_werbungskosten: float, rule_pack: TaxRulePack
) -> float:
    """Rough amount of deductions the taxpayer may have left unclaimed."""

    home_office = rule_pack.home_office
    potential = 0.0
    if profile.deductions.home_office.days < home_office.max_days:
        potential += (home_office.max_days - profile.deductions.home_office.days) * home_office.per_day
    if total_werbungskosten == 0:
        potential += UNCLAIMED_WERBUNGSKOSTEN_ESTIMATE
    return round_currency(potential)


def build_recommendations(
    profile: TaxProfile,
    total_werbungskosten: float,
    marginal_rate: float,
    rule_pack: TaxRulePack,
    translator: Translator,
) -> tuple[Recommendation, ...]:
    recommendations: list[Recommendation] = []
    deductions = profile.deductions
    pauschale = rule_pack.credits.werbungskosten_pauschale
    home_office = rule_pack.home_office

    if total_werbungskosten < pauschale:
        recommendations.append(
            Recommendation(
                category=translator("recommendation.werbungskosten.category"),
                title=translator("recommendation.werbungskosten.title"),
                description=translator.format(
                    "recommendation.werbungskosten.description",
                    total=format_amount(total_werbungskosten),
                    pauschale=format_amount(pauschale),
                ),
                potential_savings=round_currency((pauschale - total_werbungskosten) * marginal_rate),
                priority="high",
            )
        )

    if deductions.home_office.days < home_office.max_days:
        additional_days = int(home_office.max_days - deductions.home_office.days)
        recommendations.append(
            Recommendation(
                category=translator("recommendation.home_office.category"),
                title=translator("recommendation.home_office.title"),
                description=translator.format(
                    "recommendation.home_office.description",
                    days=deductions.home_office.days,
                    additional=additional_days,
                ),
                potential_savings=round_currency(
                    additional_days * home_office.per_day * marginal_rate
                ),
                priority="medium",
            )
        )

    pendler = deductions.pendlerpauschale
    if pendler.distance > 0 and pendler.public_transport_feasible:
        recommendations.append(
            Recommendation(
                category=translator("recommendation.pendler.category"),
                title=translator("recommendation.pendler.title"),
                description=translator("recommendation.pendler.description"),
                potential_savings=LARGE_PENDLER_ESTIMATED_SAVINGS,
                priority="medium",
            )
        )

    if deductions.donations == 0:
        recommendations.append(
            Recommendation(
                category=translator("recommendation.donations.category"),
                title=translator("recommendation.donations.title"),
                description=translator("recommendation.donations.description"),
                potential_savings=0.0,
                priority="low",
            )
        )

    return tuple(recommendations)


def build_warnings(
    profile: TaxProfile, estimated_refund: float, translator: Translator
) -> tuple[str, ...]:
    warnings: list[str] = []
    if profile.income.employer_count > 1:
        warnings.append(translator("warning.multiple_employers"))
    if estimated_refund > HIGH_REFUND_THRESHOLD:
        warnings.append(translator("warning.high_refund"))
    if profile.deductions.medical_expenses > profile.income.gross_income * HIGH_MEDICAL_SHARE:
        warnings.append(translator("warning.high_medical"))
    return tuple(warnings)


def build_analysis(
    profile: TaxProfile,
    rule_pack: TaxRulePack,
    *,
    summary: str,
    taxable_income: float,
    total_werbungskosten: float,
    progressive_tax: float,
    estimated_refund: float,
    translator: Translator,
) -> TaxAnalysis:
    bracket = marginal_bracket(taxable_income, rule_pack.tax_brackets)
    marginal_rate = bracket.rate if bracket is not None else 0.0

    return TaxAnalysis(
        summary=summary,
        tax_bracket=describe_tax_bracket(taxable_income, rule_pack.tax_brackets, translator),
        effective_tax_rate=effective_tax_rate(progressive_tax, profile.income.gross_income),
        unused_potential=unused_potential(profile, total_werbungskosten, rule_pack),
        recommendations=build_recommendations(
            profile, total_werbungskosten, marginal_rate, rule_pack, translator
        ),
        warnings=build_warnings(profile, estimated_refund, translator),
    )


__all__ = [
    "HIGH_MEDICAL_SHARE",
    "HIGH_REFUND_THRESHOLD",
    "build_analysis",
    "build_recommendations",
    "build_warnings",
    "describe_tax_bracket",
    "effective_tax_rate",
    "unused_potential",
]
