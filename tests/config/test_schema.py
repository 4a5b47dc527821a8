"""Unit coverage for helpers on the rule pack models."""

from __future__ import annotations

import pytest

from taxlogic.backend.config.schema import (
    Issue,
    PendlerBracket,
    SchemaViolation,
    TaxRulePack,
    TieredFamilyCredit,
)


def test_pendler_bracket_matches_half_open_range() -> None:
    bracket = PendlerBracket(min_km=20, max_km=40, amount=1476)

    assert bracket.matches(20)
    assert bracket.matches(39.9)
    assert not bracket.matches(40)
    assert not bracket.matches(19.5)


def test_open_ended_pendler_bracket_matches_any_longer_distance() -> None:
    bracket = PendlerBracket.model_validate({"minKm": 60, "maxKm": None, "amount": 3672})

    assert bracket.matches(60)
    assert bracket.matches(500)


@pytest.mark.parametrize(
    ("children", "expected"),
    [(0, 0.0), (1, 572.0), (2, 776.0), (3, 1031.0), (5, 1541.0)],
)
def test_tiered_family_credit_grows_with_children(children: int, expected: float) -> None:
    credit = TieredFamilyCredit(
        first_child=572, second_child_increment=204, additional_child_increment=255
    )

    assert credit.amount_for_children(children) == pytest.approx(expected)


def test_pendler_config_selects_table(rule_pack: TaxRulePack) -> None:
    pendler = rule_pack.pendlerpauschale

    assert pendler.table("klein") is pendler.klein
    assert pendler.table("gross") is pendler.gross


def test_schema_violation_message_lists_every_issue() -> None:
    violation = SchemaViolation(
        [Issue("taxBrackets[0].min", "First tax bracket must start at 0"), Issue("", "broken")]
    )

    assert len(violation.issues) == 2
    assert "2 issue(s)" in str(violation)
    assert "taxBrackets[0].min: First tax bracket must start at 0" in str(violation)
    assert str(violation.issues[1]) == "broken"
