"""Domain-specific calculation helpers."""

from .analysis import build_analysis
from .credits import calculate_absetzbetraege
from .deductions import calculate_breakdown
from .utils import (
    RulePackContractError,
    age_at,
    calculate_progressive_tax,
    format_amount,
    format_percentage,
    round_currency,
    round_half_up,
)

__all__ = [
    "RulePackContractError",
    "age_at",
    "build_analysis",
    "calculate_absetzbetraege",
    "calculate_breakdown",
    "calculate_progressive_tax",
    "format_amount",
    "format_percentage",
    "round_currency",
    "round_half_up",
]
