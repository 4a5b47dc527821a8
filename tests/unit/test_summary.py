"""Tests for the best-effort summary generator wrapper."""

from __future__ import annotations

import logging
import os
import subprocess
import sys
import textwrap
import threading
from pathlib import Path
from collections.abc import Mapping
from typing import Any

import pytest

from taxlogic.backend.app.localization import get_translator
from taxlogic.backend.app.services.calculation_service import calculate_tax
from taxlogic.backend.app.services.summary import (
    DEFAULT_SUMMARY_TIMEOUT,
    SummaryFacts,
    SummaryGenerator,
    fallback_summary,
    generate_summary,
    resolve_summary_timeout,
)
from taxlogic.backend.config.schema import TaxRulePack

FACTS = SummaryFacts(
    tax_year=2024,
    gross_income=35_000,
    effective_deductions=132,
    estimated_refund=612.1,
    estimated_backpayment=0,
)


class RecordingGenerator:
    def __init__(self, reply: str = "Kurze Zusammenfassung.") -> None:
        self.reply = reply
        self.calls: list[tuple[str, Mapping[str, Any]]] = []

    def generate_summary(self, prompt: str, context: Mapping[str, Any]) -> str:
        self.calls.append((prompt, context))
        return self.reply


class FailingGenerator:
    def generate_summary(self, prompt: str, context: Mapping[str, Any]) -> str:
        raise ConnectionError("provider unavailable")


class BlockingGenerator:
    def __init__(self) -> None:
        self.release = threading.Event()

    def generate_summary(self, prompt: str, context: Mapping[str, Any]) -> str:
        self.release.wait(5)
        return "too late"


def test_generators_satisfy_protocol() -> None:
    assert isinstance(RecordingGenerator(), SummaryGenerator)


def test_generated_text_is_used() -> None:
    generator = RecordingGenerator("  Eine Rückerstattung ist zu erwarten.  ")

    summary = generate_summary(FACTS, get_translator("de"), generator, timeout=1)

    assert summary == "Eine Rückerstattung ist zu erwarten."
    prompt, context = generator.calls[0]
    assert "Steuerberechnung 2024" in prompt
    assert context["taxYear"] == 2024
    assert context["systemPrompt"].startswith("Du bist")


def test_no_generator_uses_template() -> None:
    summary = generate_summary(FACTS, get_translator("en"))

    assert summary == (
        "With a gross income of EUR 35000 and deductions of EUR 132, "
        "the estimated refund is EUR 612.10."
    )


def test_backpayment_template() -> None:
    facts = SummaryFacts(2024, 35_000, 132, 0, 250)

    assert "Nachzahlung von EUR 250" in fallback_summary(facts, get_translator("de"))


def test_failing_generator_falls_back(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING):
        summary = generate_summary(FACTS, get_translator("de"), FailingGenerator(), timeout=1)

    assert summary == fallback_summary(FACTS, get_translator("de"))
    assert "Summary generator failed" in caplog.text


def test_slow_generator_times_out(caplog: pytest.LogCaptureFixture) -> None:
    generator = BlockingGenerator()
    try:
        with caplog.at_level(logging.WARNING):
            summary = generate_summary(FACTS, get_translator("de"), generator, timeout=0.05)
    finally:
        generator.release.set()

    assert summary == fallback_summary(FACTS, get_translator("de"))
    assert "timed out" in caplog.text


def test_hung_generator_does_not_block_interpreter_exit() -> None:
    src = Path(__file__).resolve().parents[2] / "src"
    script = textwrap.dedent(
        """
        import sys, threading
        sys.path.insert(0, sys.argv[1])
        from taxlogic.backend.app.localization import get_translator
        from taxlogic.backend.app.services.summary import SummaryFacts, generate_summary

        class Hung:
            def generate_summary(self, prompt, context):
                threading.Event().wait()

        facts = SummaryFacts(2024, 35000, 132, 612.1, 0)
        print(generate_summary(facts, get_translator("de"), Hung(), timeout=0.1))
        """
    )

    completed = subprocess.run(
        [sys.executable, "-c", script, str(src)],
        capture_output=True,
        encoding="utf-8",
        env={**os.environ, "PYTHONIOENCODING": "utf-8"},
        timeout=10,
        check=True,
    )

    assert "Bruttoeinkommen von EUR 35000" in completed.stdout


def test_timed_out_worker_is_a_daemon_thread() -> None:
    generator = BlockingGenerator()
    try:
        generate_summary(FACTS, get_translator("de"), generator, timeout=0.05)
        workers = [t for t in threading.enumerate() if t.name == "taxlogic-summary"]
        assert workers
        assert all(worker.daemon for worker in workers)
    finally:
        generator.release.set()


def test_blank_reply_falls_back() -> None:
    summary = generate_summary(FACTS, get_translator("de"), RecordingGenerator("   "), timeout=1)

    assert summary == fallback_summary(FACTS, get_translator("de"))


def test_generator_failure_never_changes_figures(rule_pack: TaxRulePack) -> None:
    profile = {"taxYear": 2024, "income": {"grossIncome": 48_000, "withheldTax": 9_000}}

    baseline = calculate_tax(profile, rule_pack)
    degraded = calculate_tax(profile, rule_pack, summary_generator=FailingGenerator())
    enriched = calculate_tax(profile, rule_pack, summary_generator=RecordingGenerator("Text"))

    assert degraded.calculated_tax == baseline.calculated_tax == enriched.calculated_tax
    assert degraded.analysis.summary == baseline.analysis.summary
    assert enriched.analysis.summary == "Text"


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("2.5", 2.5), ("", DEFAULT_SUMMARY_TIMEOUT), ("soon", DEFAULT_SUMMARY_TIMEOUT), ("0", DEFAULT_SUMMARY_TIMEOUT)],
)
def test_resolve_summary_timeout(raw: str, expected: float) -> None:
    assert resolve_summary_timeout(raw) == expected


def test_summary_timeout_reads_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TAXLOGIC_SUMMARY_TIMEOUT", "3")

    assert resolve_summary_timeout() == 3
