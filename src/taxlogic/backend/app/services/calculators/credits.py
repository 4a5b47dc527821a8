"""Tax credits (Absetzbeträge) derived from the family situation."""

from __future__ import annotations

from taxlogic.backend.app.models import Absetzbetraege, TaxProfile
from taxlogic.backend.config.schema import CreditConfig

from .utils import age_at, round_currency, year_end

FAMILIENBONUS_ADULT_AGE = 18
FAMILIENBONUS_MAX_AGE = 24


def calculate_familienbonus(profile: TaxProfile, credits: CreditConfig) -> float:
    """Familienbonus Plus per child receiving family allowance, banded by age."""

    reference = year_end(profile.tax_year)
    total = 0.0
    for child in profile.family.children:
        if not child.receiving_family_allowance:
            continue
        age = age_at(child.birth_date, reference)
        if age < FAMILIENBONUS_ADULT_AGE:
            total += credits.familienbonus_per_child
        elif age < FAMILIENBONUS_MAX_AGE:
            total += credits.familienbonus_per_child_adult
    return total


def calculate_absetzbetraege(profile: TaxProfile, credits: CreditConfig) -> Absetzbetraege:
    family = profile.family
    child_count = family.child_count

    alleinverdiener = (
        credits.alleinverdiener.amount_for_children(child_count) if family.single_earner else 0.0
    )
    alleinerzieher = (
        credits.alleinerzieher.amount_for_children(child_count) if family.single_parent else 0.0
    )
    familienbonus = round_currency(calculate_familienbonus(profile, credits))

    total = (
        credits.verkehrsabsetzbetrag
        + credits.arbeitnehmerabsetzbetrag
        + alleinverdiener
        + alleinerzieher
        + familienbonus
    )
    return Absetzbetraege(
        verkehrsabsetzbetrag=credits.verkehrsabsetzbetrag,
        arbeitnehmerabsetzbetrag=credits.arbeitnehmerabsetzbetrag,
        alleinverdienerabsetzbetrag=alleinverdiener,
        alleinerzieherabsetzbetrag=alleinerzieher,
        familienbonus=familienbonus,
        total=round_currency(total),
    )


__all__ = [
    "FAMILIENBONUS_ADULT_AGE",
    "FAMILIENBONUS_MAX_AGE",
    "calculate_absetzbetraege",
    "calculate_familienbonus",
]
