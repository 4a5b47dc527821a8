"""Classify rule packs as usable, stale, missing or invalid.

Statuses are computed fresh on every call so freshness is always measured
against the supplied ``now``. Cheap syntactic checks (integer year, supported
year) run before any file is read.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from numbers import Integral
from typing import Any, Iterable, Literal

from .rule_pack import RulePackLoader, RulePackMissing, get_default_loader
from .schema import RulePackError

TaxRuleState = Literal["ok", "stale", "missing", "invalid", "unsupportedYear"]


@dataclass(frozen=True)
class TaxRuleStatus:
    """Outcome of a rule pack status query."""

    year: Any
    state: TaxRuleState
    message: str
    supported_years: tuple[int, ...] = field(default_factory=tuple)
    pack_path: str | None = None
    verified_at: datetime | None = None
    days_since_verification: int | None = None

    @property
    def is_ok(self) -> bool:
        return self.state == "ok"

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "year": self.year,
            "state": self.state,
            "message": self.message,
            "supported_years": list(self.supported_years),
        }
        if self.pack_path is not None:
            payload["pack_path"] = self.pack_path
        if self.verified_at is not None:
            payload["verified_at"] = self.verified_at.isoformat()
        if self.days_since_verification is not None:
            payload["days_since_verification"] = self.days_since_verification
        return payload


class TaxRulesUnavailable(RulePackError):
    """Raised when an operation is attempted for a year whose rules are not ``ok``."""

    def __init__(self, status: TaxRuleStatus, operation: str) -> None:
        self.status = status
        self.operation = operation
        super().__init__(
            f"Cannot {operation} for tax year {status.year}: "
            f"tax rules are {status.state} ({status.message})"
        )


def _normalise_year(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, Integral):
        return int(value)
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def _normalise_now(now: datetime | None) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now


def days_since_verification(verified_at: datetime, now: datetime | None = None) -> int:
    """Whole days elapsed between ``verified_at`` and ``now`` (floored)."""

    return (_normalise_now(now) - verified_at) // timedelta(days=1)


def get_status(
    year: Any,
    now: datetime | None = None,
    loader: RulePackLoader | None = None,
) -> TaxRuleStatus:
    """Return the status of the rule pack for ``year``. Never raises."""

    loader = loader or get_default_loader()
    normalised = _normalise_year(year)

    try:
        supported_years = loader.list_supported_years()
    except (RulePackError, OSError) as error:
        state: TaxRuleState = "missing" if normalised is not None else "invalid"
        return TaxRuleStatus(year=year, state=state, message=str(error))

    if normalised is None:
        return TaxRuleStatus(
            year=year,
            state="invalid",
            message=f"Tax year must be an integer. Received: {year!r}",
            supported_years=supported_years,
        )

    if normalised not in supported_years:
        listed = ", ".join(str(entry) for entry in supported_years) or "(none)"
        return TaxRuleStatus(
            year=normalised,
            state="unsupportedYear",
            message=f"Unsupported tax year {normalised}. Supported years: {listed}",
            supported_years=supported_years,
        )

    pack_path = str(loader.rule_pack_path(normalised))
    try:
        pack = loader.load_rule_pack(normalised)
    except RulePackMissing as error:
        return TaxRuleStatus(
            year=normalised,
            state="missing",
            message=str(error),
            supported_years=supported_years,
            pack_path=pack_path,
        )
    except (RulePackError, OSError) as error:
        return TaxRuleStatus(
            year=normalised,
            state="invalid",
            message=str(error),
            supported_years=supported_years,
            pack_path=pack_path,
        )

    days = days_since_verification(pack.verified_at, now)
    limit = pack.stale_after_days

    if days > limit:
        return TaxRuleStatus(
            year=normalised,
            state="stale",
            message=f"Tax rules for {normalised} are stale ({days} days old, max {limit})",
            supported_years=supported_years,
            pack_path=pack_path,
            verified_at=pack.verified_at,
            days_since_verification=days,
        )

    return TaxRuleStatus(
        year=normalised,
        state="ok",
        message=f"Tax rules for {normalised} are valid",
        supported_years=supported_years,
        pack_path=pack_path,
        verified_at=pack.verified_at,
        days_since_verification=days,
    )


def get_all_statuses(
    years: Iterable[Any] | None = None,
    now: datetime | None = None,
    loader: RulePackLoader | None = None,
) -> list[TaxRuleStatus]:
    """Return statuses for ``years`` (defaults to every supported year)."""

    loader = loader or get_default_loader()
    if years is None:
        try:
            years = loader.list_supported_years()
        except (RulePackError, OSError):
            years = ()
    moment = _normalise_now(now)
    return [get_status(year, moment, loader) for year in years]


def ensure_rules_ok(
    year: Any,
    operation: str,
    now: datetime | None = None,
    loader: RulePackLoader | None = None,
) -> TaxRuleStatus:
    """Return the ``ok`` status for ``year`` or refuse ``operation``."""

    status = get_status(year, now, loader)
    if not status.is_ok:
        raise TaxRulesUnavailable(status, operation)
    return status


__all__ = [
    "TaxRuleState",
    "TaxRuleStatus",
    "TaxRulesUnavailable",
    "days_since_verification",
    "ensure_rules_ok",
    "get_all_statuses",
    "get_status",
]
