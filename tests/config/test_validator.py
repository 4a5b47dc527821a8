"""Tests covering rule pack schema validation and invariant reporting."""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any

import pytest
from pydantic import ValidationError

from taxlogic.backend.config.schema import DEFAULT_STALE_AFTER_DAYS, SchemaViolation
from taxlogic.backend.config.validator import (
    format_issue_path,
    rule_pack_issues,
    validate_rule_pack,
)


def _issue_paths(raw: Any) -> list[str]:
    return [issue.path for issue in rule_pack_issues(raw)]


@pytest.mark.parametrize("year", [2024, 2025, 2026])
def test_shipped_rule_packs_validate(packaged_packs: dict[int, dict[str, Any]], year: int) -> None:
    pack = validate_rule_pack(packaged_packs[year])

    assert pack.year == year
    assert pack.tax_brackets[0].min == 0
    assert pack.tax_brackets[-1].is_open_ended
    assert rule_pack_issues(packaged_packs[year]) == []


def test_stale_after_days_defaults_when_absent(raw_pack: dict[str, Any]) -> None:
    raw_pack.pop("staleAfterDays")

    assert validate_rule_pack(raw_pack).stale_after_days == DEFAULT_STALE_AFTER_DAYS


def test_verified_at_date_is_midnight_utc(raw_pack: dict[str, Any]) -> None:
    raw_pack["verifiedAt"] = date(2024, 3, 1)

    pack = validate_rule_pack(raw_pack)

    assert pack.verified_at == datetime(2024, 3, 1, tzinfo=timezone.utc)


def test_verified_at_datetime_is_normalised_to_utc(raw_pack: dict[str, Any]) -> None:
    raw_pack["verifiedAt"] = "2024-03-01T12:00:00+02:00"

    pack = validate_rule_pack(raw_pack)

    assert pack.verified_at == datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)


def test_unparsable_verified_at_is_reported(raw_pack: dict[str, Any]) -> None:
    raw_pack["verifiedAt"] = "2024-13-45"

    assert "verifiedAt" in _issue_paths(raw_pack)


def test_bracket_discontinuity_is_located(raw_pack: dict[str, Any]) -> None:
    raw_pack["taxBrackets"][2]["min"] = 20000

    with pytest.raises(SchemaViolation) as excinfo:
        validate_rule_pack(raw_pack)

    issues = excinfo.value.issues
    assert [issue.path for issue in issues] == ["taxBrackets[2].min"]
    assert "continuous" in issues[0].message


def test_first_bracket_must_start_at_zero(raw_pack: dict[str, Any]) -> None:
    raw_pack["taxBrackets"][0]["min"] = 100

    assert "taxBrackets[0].min" in _issue_paths(raw_pack)


def test_bracket_max_must_exceed_min(raw_pack: dict[str, Any]) -> None:
    raw_pack["taxBrackets"][1]["max"] = raw_pack["taxBrackets"][1]["min"]

    assert "taxBrackets[1].max" in _issue_paths(raw_pack)


def test_only_final_bracket_may_be_open_ended(raw_pack: dict[str, Any]) -> None:
    raw_pack["taxBrackets"][3]["max"] = None

    assert "taxBrackets[3].max" in _issue_paths(raw_pack)


def test_invariant_issues_are_reported_as_one_batch(raw_pack: dict[str, Any]) -> None:
    raw_pack["taxBrackets"][0]["min"] = 5
    raw_pack["pendlerpauschale"]["gross"][2]["minKm"] = 45
    raw_pack["pendlerpauschale"]["klein"][0]["maxKm"] = 10

    paths = _issue_paths(raw_pack)

    assert "taxBrackets[0].min" in paths
    assert "pendlerpauschale.gross[2].minKm" in paths
    assert "pendlerpauschale.klein[0].maxKm" in paths


def test_structural_issues_are_collected_together(raw_pack: dict[str, Any]) -> None:
    raw_pack["taxBrackets"][1]["rate"] = 1.5
    raw_pack["credits"]["churchTaxMax"] = -1
    raw_pack.pop("homeOffice")

    paths = _issue_paths(raw_pack)

    assert "taxBrackets[1].rate" in paths
    assert "credits.churchTaxMax" in paths
    assert "homeOffice" in paths


def test_unknown_keys_are_rejected(raw_pack: dict[str, Any]) -> None:
    raw_pack["credits"]["kinderabsetzbetrag"] = 700

    assert "credits.kinderabsetzbetrag" in _issue_paths(raw_pack)


def test_single_bracket_is_rejected(raw_pack: dict[str, Any]) -> None:
    raw_pack["taxBrackets"] = [{"min": 0, "max": None, "rate": 0.2}]

    assert "taxBrackets" in _issue_paths(raw_pack)


def test_relative_source_urls_are_rejected(raw_pack: dict[str, Any]) -> None:
    raw_pack["metadata"]["sources"] = ["bmf.gv.at/steuertarif"]

    assert "metadata.sources" in _issue_paths(raw_pack)


def test_non_mapping_document_is_rejected() -> None:
    with pytest.raises(SchemaViolation) as excinfo:
        validate_rule_pack(["not", "a", "pack"])

    assert excinfo.value.issues[0].path == ""


def test_validated_pack_is_immutable(raw_pack: dict[str, Any]) -> None:
    pack = validate_rule_pack(raw_pack)

    with pytest.raises(ValidationError):
        pack.year = 2030  # type: ignore[misc]


def test_format_issue_path_renders_indices() -> None:
    assert format_issue_path(("taxBrackets", 2, "min")) == "taxBrackets[2].min"
    assert format_issue_path(("pendlerpauschale", "gross", 0, "maxKm")) == (
        "pendlerpauschale.gross[0].maxKm"
    )
    assert format_issue_path(()) == ""
