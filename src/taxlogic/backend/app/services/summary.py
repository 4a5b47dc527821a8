"""Best-effort narrative summaries for calculation results.

A :class:`SummaryGenerator` is any object able to turn a prompt into prose,
typically a language-model client. It is optional and advisory: it runs on a
daemon worker thread with a bounded timeout, and any failure, timeout or empty answer
falls back to a templated sentence built from the computed figures.
"""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from taxlogic.backend.app.localization import Translator

from .calculators import format_amount

_LOGGER = logging.getLogger(__name__)

SUMMARY_TIMEOUT_ENV = "TAXLOGIC_SUMMARY_TIMEOUT"
DEFAULT_SUMMARY_TIMEOUT = 10.0


@runtime_checkable
class SummaryGenerator(Protocol):
    def generate_summary(self, prompt: str, context: Mapping[str, Any]) -> str:
        ...


@dataclass(frozen=True)
class SummaryFacts:
    """Figures quoted in the summary, already rounded."""

    tax_year: int
    gross_income: float
    effective_deductions: float
    estimated_refund: float
    estimated_backpayment: float


def resolve_summary_timeout(raw: str | None = None) -> float:
    """Return the configured timeout in seconds, ignoring malformed values."""

    value = os.getenv(SUMMARY_TIMEOUT_ENV) if raw is None else raw
    if value is None or not value.strip():
        return DEFAULT_SUMMARY_TIMEOUT

    try:
        timeout = float(value)
    except ValueError:
        _LOGGER.warning(
            "Ignoring %s=%r: not a number; using %.1fs",
            SUMMARY_TIMEOUT_ENV,
            value,
            DEFAULT_SUMMARY_TIMEOUT,
        )
        return DEFAULT_SUMMARY_TIMEOUT

    if not timeout > 0 or timeout == float("inf"):
        _LOGGER.warning(
            "Ignoring %s=%r: must be a positive number of seconds; using %.1fs",
            SUMMARY_TIMEOUT_ENV,
            value,
            DEFAULT_SUMMARY_TIMEOUT,
        )
        return DEFAULT_SUMMARY_TIMEOUT
    return timeout


def fallback_summary(facts: SummaryFacts, translator: Translator) -> str:
    """Deterministic summary sentence used whenever no generated text is available."""

    if facts.estimated_backpayment > 0:
        key, amount = "analysis.summary.backpayment", facts.estimated_backpayment
    else:
        key, amount = "analysis.summary.refund", facts.estimated_refund
    return translator.format(
        key,
        gross=format_amount(facts.gross_income),
        deductions=format_amount(facts.effective_deductions),
        amount=format_amount(amount),
    )


def build_summary_prompt(facts: SummaryFacts, translator: Translator) -> str:
    return translator.format(
        "analysis.summary.prompt",
        year=facts.tax_year,
        gross=format_amount(facts.gross_income),
        deductions=format_amount(facts.effective_deductions),
        refund=format_amount(facts.estimated_refund),
        backpayment=format_amount(facts.estimated_backpayment),
    )


def build_summary_context(facts: SummaryFacts, translator: Translator) -> dict[str, Any]:
    return {
        "systemPrompt": translator("analysis.summary.system"),
        "locale": translator.locale,
        "taxYear": facts.tax_year,
        "grossIncome": facts.gross_income,
        "effectiveDeductions": facts.effective_deductions,
        "estimatedRefund": facts.estimated_refund,
        "estimatedBackpayment": facts.estimated_backpayment,
    }


def generate_summary(
    facts: SummaryFacts,
    translator: Translator,
    generator: SummaryGenerator | None = None,
    timeout: float = DEFAULT_SUMMARY_TIMEOUT,
) -> str:
    """Return generated prose for ``facts`` or the templated fallback."""

    fallback = fallback_summary(facts, translator)
    if generator is None:
        return fallback

    prompt = build_summary_prompt(facts, translator)
    context = build_summary_context(facts, translator)

    outcome: dict[str, Any] = {}

    def _run() -> None:
        try:
            outcome["text"] = generator.generate_summary(prompt, context)
        except Exception as error:
            outcome["error"] = error

    # A hung generator must not block interpreter exit.
    worker = threading.Thread(target=_run, name="taxlogic-summary", daemon=True)
    worker.start()
    worker.join(timeout)

    if worker.is_alive():
        _LOGGER.warning("Summary generator timed out after %.1fs; using templated summary", timeout)
        return fallback
    if "error" in outcome:
        error = outcome["error"]
        _LOGGER.warning(
            "Summary generator failed; using templated summary",
            exc_info=(type(error), error, error.__traceback__),
        )
        return fallback

    text = outcome.get("text")
    if not isinstance(text, str) or not text.strip():
        _LOGGER.warning("Summary generator returned no text; using templated summary")
        return fallback
    return text.strip()


__all__ = [
    "DEFAULT_SUMMARY_TIMEOUT",
    "SUMMARY_TIMEOUT_ENV",
    "SummaryFacts",
    "SummaryGenerator",
    "build_summary_context",
    "build_summary_prompt",
    "fallback_summary",
    "generate_summary",
    "resolve_summary_timeout",
]
