"""Utility helpers for calculator modules."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from taxlogic.backend.config.schema import RulePackError, TaxBracket


class RulePackContractError(RulePackError):
    """Raised when the calculator is handed a pack it cannot compute with."""


def round_half_up(value: float, places: int = 0) -> float:
    """Round ``value`` to ``places`` decimals, halves away from zero."""

    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def round_currency(value: float) -> float:
    """Round monetary amounts to cents."""

    return round_half_up(value, 2)


def format_percentage(value: float) -> str:
    """Return a human-readable percentage label for ``value``."""

    percentage = round(value * 100, 4)
    if float(int(percentage)) == percentage:
        return f"{int(percentage)}%"
    return f"{percentage:.2f}%"


def format_amount(value: float) -> str:
    """Render an amount without decimals when it is whole, else with cents."""

    rounded = round_currency(value)
    if rounded.is_integer():
        return str(int(rounded))
    return f"{rounded:.2f}"


def year_end(year: int) -> date:
    return date(year, 12, 31)


def age_at(birth_date: date, reference: date) -> int:
    """Completed years of age on ``reference`` (calendar comparison)."""

    age = reference.year - birth_date.year
    if (reference.month, reference.day) < (birth_date.month, birth_date.day):
        age -= 1
    return age


def calculate_progressive_tax(amount: float, brackets: Sequence[TaxBracket]) -> float:
    """Walk ``brackets`` in order and return the tax on ``amount`` in cents."""

    if not brackets:
        raise RulePackContractError("Rule pack defines no tax brackets")

    total = 0.0
    remaining = max(0.0, amount)

    for bracket in brackets:
        if remaining <= 0:
            break

        if bracket.max is None:
            portion = remaining
        else:
            portion = min(remaining, bracket.max - bracket.min)

        total += portion * bracket.rate
        remaining -= portion

    return round_currency(total)


def marginal_bracket(amount: float, brackets: Sequence[TaxBracket]) -> TaxBracket | None:
    """Return the bracket whose range contains ``amount``."""

    for bracket in brackets:
        if amount >= bracket.min and (bracket.max is None or amount < bracket.max):
            return bracket
    return None


__all__ = [
    "RulePackContractError",
    "age_at",
    "calculate_progressive_tax",
    "format_amount",
    "format_percentage",
    "marginal_bracket",
    "round_currency",
    "round_half_up",
    "year_end",
]
