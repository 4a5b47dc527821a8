"""Contributor tooling for checking, verifying and rolling over rule packs."""

from __future__ import annotations

import argparse
import json
import re
from dataclasses import dataclass
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Literal, Mapping, Sequence

import yaml

from .rule_pack import RulePackLoader, get_default_loader, load_document
from .schema import RulePackError, SchemaViolation
from .status import days_since_verification
from .validator import validate_rule_pack

REQUIRED_YEARS: tuple[int, ...] = (2024, 2025, 2026)
SOURCES_DIRECTORY_NAME = "tax-sources"
SNAPSHOT_FILENAME = "summary.yaml"

RuleCheckState = Literal["ok", "warn", "fail"]

_PATH_TOKEN = re.compile(r"([^.\[\]]+)|\[(\d+)\]")
_MISSING = object()


@dataclass(frozen=True)
class RuleCheckMessage:
    """One line of a maintenance report."""

    state: RuleCheckState
    message: str

    def render(self) -> str:
        prefix = {"ok": "[OK]", "warn": "[WARN]"}.get(self.state, "[FAIL]")
        return f"{prefix} {self.message}"


@dataclass(frozen=True)
class RulePackChange:
    """A leaf value that differs between two rule packs."""

    path: str
    before: Any
    after: Any


def has_failures(messages: Sequence[RuleCheckMessage]) -> bool:
    return any(message.state == "fail" for message in messages)


def check_rule_packs(
    loader: RulePackLoader | None = None,
    now: datetime | None = None,
    required_years: Sequence[int] = REQUIRED_YEARS,
) -> list[RuleCheckMessage]:
    """Validate every discovered pack, bypassing the loader cache."""

    loader = loader or get_default_loader()
    messages: list[RuleCheckMessage] = []
    discovered = loader.list_supported_years()

    for year in required_years:
        if year not in discovered:
            messages.append(RuleCheckMessage("fail", f"Missing tax rule pack for {year}"))

    for year in discovered:
        path = loader.rule_pack_path(year)
        try:
            pack = validate_rule_pack(loader.read_raw(year))
        except SchemaViolation as violation:
            for issue in violation.issues:
                messages.append(
                    RuleCheckMessage("fail", f"Schema validation failed for {path}: {issue}")
                )
            continue
        except RulePackError as error:
            messages.append(RuleCheckMessage("fail", str(error)))
            continue

        if pack.year != year:
            messages.append(
                RuleCheckMessage(
                    "fail",
                    f"Rule year mismatch in {path}: filename {year}, payload {pack.year}",
                )
            )

        age = days_since_verification(pack.verified_at, now)
        limit = pack.stale_after_days
        if age > limit:
            messages.append(
                RuleCheckMessage("fail", f"Rule pack {year} is stale ({age}d old, limit {limit}d)")
            )
        else:
            messages.append(RuleCheckMessage("ok", f"Rule pack {year} is valid ({age}d old)"))

    for year in discovered:
        if year not in required_years:
            messages.append(RuleCheckMessage("warn", f"Additional non-required year found: {year}"))

    return messages


def path_tokens(expression: str) -> list[str | int]:
    """Split ``credits.alleinverdiener.firstChild`` or ``taxBrackets[0].max``."""

    tokens: list[str | int] = []
    for name, index in _PATH_TOKEN.findall(expression):
        tokens.append(int(index) if index else name)
    return tokens


def get_by_path(document: Any, expression: str) -> Any:
    """Return the value at ``expression`` or ``None`` when absent."""

    cursor = document
    for token in path_tokens(expression):
        if isinstance(token, int):
            if not isinstance(cursor, list) or token >= len(cursor):
                return None
            cursor = cursor[token]
        else:
            if not isinstance(cursor, Mapping):
                return None
            cursor = cursor.get(token)
    return cursor


def snapshot_path(loader: RulePackLoader, year: int) -> Path:
    return loader.config_root / SOURCES_DIRECTORY_NAME / str(year) / SNAPSHOT_FILENAME


def _write_yaml(path: Path, payload: Mapping[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        yaml.safe_dump(dict(payload), sort_keys=False, allow_unicode=True),
        encoding="utf-8",
    )


def verify_source_snapshots(
    loader: RulePackLoader | None = None,
    required_years: Sequence[int] = REQUIRED_YEARS,
) -> list[RuleCheckMessage]:
    """Compare rule packs against the values captured from official sources."""

    loader = loader or get_default_loader()
    messages: list[RuleCheckMessage] = []
    years = [year for year in loader.list_supported_years() if year in required_years]

    for year in years:
        path = snapshot_path(loader, year)
        if not path.exists():
            messages.append(RuleCheckMessage("fail", f"Missing source snapshot for {year}: {path}"))
            continue

        try:
            pack = loader.read_raw(year)
            snapshot = load_document(path) or {}
        except RulePackError as error:
            messages.append(RuleCheckMessage("fail", str(error)))
            continue
        if not isinstance(snapshot, Mapping):
            messages.append(RuleCheckMessage("fail", f"Snapshot {path} must be a mapping"))
            continue

        if snapshot.get("year") != year:
            messages.append(
                RuleCheckMessage(
                    "fail",
                    f"Snapshot year mismatch in {path}: expected {year}, got {snapshot.get('year')}",
                )
            )

        if not snapshot.get("sources"):
            messages.append(RuleCheckMessage("fail", f"Snapshot {path} has no source URLs"))

        assertions = snapshot.get("assertions") or []
        if not assertions:
            messages.append(RuleCheckMessage("fail", f"Snapshot {path} has no assertions"))
            continue
        if not isinstance(assertions, list):
            messages.append(RuleCheckMessage("fail", f"Snapshot {path} assertions must be a list"))
            continue

        for index, assertion in enumerate(assertions):
            if not isinstance(assertion, Mapping):
                messages.append(
                    RuleCheckMessage("fail", f"Snapshot {path} assertions[{index}] must be a mapping")
                )
                continue
            expression = str(assertion.get("path", ""))
            expected = assertion.get("equals")
            actual = get_by_path(pack, expression)
            if actual != expected:
                messages.append(
                    RuleCheckMessage(
                        "fail",
                        f"Assertion failed ({year}) {expression}: "
                        f"expected {json.dumps(expected)} got {json.dumps(actual, default=str)}",
                    )
                )

        messages.append(RuleCheckMessage("ok", f"Snapshot verification completed for {year}"))

    return messages


def _flatten(value: Any, prefix: str = "") -> dict[str, Any]:
    if isinstance(value, Mapping):
        flattened: dict[str, Any] = {}
        for key, nested in value.items():
            flattened.update(_flatten(nested, f"{prefix}.{key}" if prefix else str(key)))
        return flattened
    if isinstance(value, list):
        flattened = {}
        for index, item in enumerate(value):
            flattened.update(_flatten(item, f"{prefix}[{index}]"))
        return flattened
    return {prefix: value} if prefix else {}


def diff_rule_packs(before: Mapping[str, Any], after: Mapping[str, Any]) -> list[RulePackChange]:
    """Return every leaf path whose value differs between two raw packs."""

    flat_before = _flatten(before)
    flat_after = _flatten(after)
    changes: list[RulePackChange] = []
    for path in sorted(set(flat_before) | set(flat_after)):
        old = flat_before.get(path, _MISSING)
        new = flat_after.get(path, _MISSING)
        if old != new:
            changes.append(
                RulePackChange(
                    path=path,
                    before=None if old is _MISSING else old,
                    after=None if new is _MISSING else new,
                )
            )
    return changes


def render_markdown_diff(
    from_year: int,
    to_year: int,
    changes: Sequence[RulePackChange],
    generated_at: datetime | None = None,
) -> str:
    moment = generated_at or datetime.now(timezone.utc)
    lines = [
        f"# Tax Rules Diff Report {from_year} -> {to_year}",
        "",
        f"Generated at: {moment.isoformat()}",
        "",
        "| Path | From | To |",
        "|---|---:|---:|",
    ]
    for change in changes:
        lines.append(
            f"| `{change.path}` | {json.dumps(change.before, default=str)} "
            f"| {json.dumps(change.after, default=str)} |"
        )
    if not changes:
        lines.append("| _no changes_ | - | - |")
    lines.append("")
    return "\n".join(lines)


def render_json_diff(
    from_year: int,
    to_year: int,
    changes: Sequence[RulePackChange],
    generated_at: datetime | None = None,
) -> str:
    moment = generated_at or datetime.now(timezone.utc)
    payload = {
        "fromYear": from_year,
        "toYear": to_year,
        "generatedAt": moment.isoformat(),
        "changes": [
            {"path": change.path, "from": change.before, "to": change.after}
            for change in changes
        ],
    }
    return json.dumps(payload, indent=2, default=str)


def init_year(
    from_year: int,
    to_year: int,
    loader: RulePackLoader | None = None,
    today: date | None = None,
) -> Path:
    """Clone ``from_year`` into an unverified draft pack for ``to_year``."""

    loader = loader or get_default_loader()
    source = loader.read_raw(from_year)
    target = loader.rules_directory / f"{to_year}.yaml"
    if target.exists():
        raise FileExistsError(f"Target rule pack already exists: {target}")

    stamp = (today or date.today()).isoformat()
    metadata = dict(source.get("metadata") or {})
    metadata.update(
        {
            "lawYear": to_year,
            "verificationStatus": "unverified",
            "notes": f"Draft cloned from {from_year}; validate every value for tax year {to_year}.",
        }
    )
    draft = dict(source)
    draft.update(
        {
            "year": to_year,
            "version": f"{to_year}.draft",
            "verifiedAt": stamp,
            "metadata": metadata,
        }
    )
    _write_yaml(target, draft)

    source_snapshot = snapshot_path(loader, from_year)
    snapshot: dict[str, Any] = {"assertions": []}
    if source_snapshot.exists():
        snapshot = dict(load_document(source_snapshot) or {})
    snapshot.update({"year": to_year, "capturedAt": stamp, "sources": []})
    _write_yaml(snapshot_path(loader, to_year), snapshot)

    return target


def _print_messages(messages: Sequence[RuleCheckMessage]) -> None:
    for message in messages:
        print(message.render())


def _build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Check, verify and maintain the yearly tax rule packs."
    )
    parser.add_argument(
        "--config-root",
        type=Path,
        default=None,
        help="Directory containing tax-rules/ (defaults to the usual search path)",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("check", help="Validate packs and flag stale or missing years")
    commands.add_parser("verify", help="Compare packs against captured source snapshots")

    report = commands.add_parser("report", help="Diff two rule packs")
    report.add_argument("--from", dest="from_year", type=int, default=None)
    report.add_argument("--to", dest="to_year", type=int, default=None)
    report.add_argument("--format", choices=("md", "json"), default="md")
    report.add_argument("--out", type=Path, default=None)

    rollover = commands.add_parser("init-year", help="Create a draft pack for a new year")
    rollover.add_argument("--from", dest="from_year", type=int, required=True)
    rollover.add_argument("--to", dest="to_year", type=int, required=True)

    return parser


def _run_report(loader: RulePackLoader, args: argparse.Namespace) -> int:
    years = loader.list_supported_years()
    from_year = args.from_year if args.from_year is not None else (years[-2] if len(years) > 1 else None)
    to_year = args.to_year if args.to_year is not None else (years[-1] if years else None)
    if from_year is None or to_year is None:
        print("Unable to infer years. Provide --from and --to explicitly.")
        return 1

    changes = diff_rule_packs(loader.read_raw(from_year), loader.read_raw(to_year))
    render = render_json_diff if args.format == "json" else render_markdown_diff
    report = render(from_year, to_year, changes)

    if args.out:
        args.out.write_text(report + "\n", encoding="utf-8")
        print(f"[OK] Report written to {args.out}")
    else:
        print(report)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for running rule pack maintenance from the command line."""

    parser = _build_argument_parser()
    args = parser.parse_args(argv)
    loader = RulePackLoader(args.config_root) if args.config_root else get_default_loader()

    try:
        if args.command == "check":
            messages = check_rule_packs(loader)
        elif args.command == "verify":
            messages = verify_source_snapshots(loader)
        elif args.command == "report":
            return _run_report(loader, args)
        else:
            target = init_year(args.from_year, args.to_year, loader)
            print(f"[OK] Initialized tax year {args.to_year} from {args.from_year}")
            print(f"- Rule pack: {target}")
            print(f"- Source snapshot: {snapshot_path(loader, args.to_year)}")
            return 0
    except (RulePackError, FileExistsError) as error:
        print(f"[FAIL] {error}")
        return 1

    _print_messages(messages)
    return 1 if has_failures(messages) else 0


__all__ = [
    "REQUIRED_YEARS",
    "RuleCheckMessage",
    "RulePackChange",
    "check_rule_packs",
    "diff_rule_packs",
    "get_by_path",
    "has_failures",
    "init_year",
    "main",
    "path_tokens",
    "render_json_diff",
    "render_markdown_diff",
    "verify_source_snapshots",
]


if __name__ == "__main__":  # pragma: no cover - CLI invocation
    raise SystemExit(main())
