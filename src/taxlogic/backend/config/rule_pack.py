"""Year-keyed loader and cache for tax rule packs."""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from threading import Lock
from typing import Any, Sequence

import yaml

from .schema import RulePackError, TaxRulePack
from .validator import validate_rule_pack

_LOGGER = logging.getLogger(__name__)

CONFIG_ROOT_ENV = "TAXLOGIC_CONFIG_ROOT"
RULES_DIRECTORY_NAME = "tax-rules"
PACKAGED_CONFIG_ROOT = Path(__file__).resolve().parent / "data"

_RULE_FILE_PATTERN = re.compile(r"^(\d{4})\.(?:ya?ml|json)$")
_RULE_FILE_SUFFIXES = (".yaml", ".yml", ".json")


class ConfigRootNotFound(RulePackError):
    """Raised when none of the candidate directories hold a rule pack directory."""

    def __init__(self, candidates: Sequence[Path]) -> None:
        self.candidates = tuple(candidates)
        checked = ", ".join(str(candidate) for candidate in self.candidates)
        super().__init__(
            f"Could not locate config directory with {RULES_DIRECTORY_NAME}. Checked: {checked}"
        )


class RulePackMissing(RulePackError):
    """Raised when no rule pack file exists for the requested year."""

    def __init__(self, year: int, path: Path) -> None:
        self.year = year
        self.path = path
        super().__init__(f"Tax rule pack missing for year {year}: {path}")


class RulePackParseError(RulePackError):
    """Raised when a rule pack file cannot be parsed."""


class RulePackYearMismatch(RulePackError):
    """Raised when a pack declares a different year than the one requested."""

    def __init__(self, expected: int, found: int) -> None:
        self.expected = expected
        self.found = found
        super().__init__(f"Tax rule pack year mismatch. Expected {expected}, found {found}")


def candidate_config_roots() -> list[Path]:
    """Return the ordered list of directories probed for a config root."""

    candidates: list[Path] = []
    explicit = os.getenv(CONFIG_ROOT_ENV)
    if explicit and explicit.strip():
        candidates.append(Path(explicit.strip()).expanduser().resolve())

    cwd = Path.cwd()
    candidates.extend(
        [
            cwd / "config",
            cwd / "taxlogic" / "config",
            PACKAGED_CONFIG_ROOT,
            Path(__file__).resolve().parents[4] / "config",
        ]
    )
    return candidates


def resolve_config_root(candidates: Sequence[Path] | None = None) -> Path:
    """Return the first candidate containing a ``tax-rules`` directory."""

    probed = list(candidates) if candidates is not None else candidate_config_roots()
    for candidate in probed:
        if (candidate / RULES_DIRECTORY_NAME).is_dir():
            return candidate
    raise ConfigRootNotFound(probed)


def load_document(path: Path) -> Any:
    """Parse a YAML or JSON document, reporting undecodable or malformed files."""

    try:
        with path.open("r", encoding="utf-8") as handle:
            return yaml.safe_load(handle)
    except (yaml.YAMLError, UnicodeDecodeError) as error:
        raise RulePackParseError(f"{path.name} could not be parsed: {error}") from error


class RulePackLoader:
    """Resolve tax years to validated rule packs, memoised per year.

    Packs are immutable once validated, so the cache is append-only and shared
    safely between readers. ``clear_cache`` is the only way to evict entries.
    """

    def __init__(self, config_root: Path | str | None = None) -> None:
        self._explicit_root = Path(config_root) if config_root is not None else None
        self._resolved_root: Path | None = None
        self._cache: dict[int, TaxRulePack] = {}
        self._lock = Lock()

    @property
    def config_root(self) -> Path:
        if self._resolved_root is None:
            if self._explicit_root is not None:
                self._resolved_root = resolve_config_root([self._explicit_root])
            else:
                self._resolved_root = resolve_config_root()
            _LOGGER.info("Using tax rule config root %s", self._resolved_root)
        return self._resolved_root

    @property
    def rules_directory(self) -> Path:
        return self.config_root / RULES_DIRECTORY_NAME

    def rule_pack_path(self, year: int) -> Path:
        """Return the file backing ``year``, defaulting to ``<year>.yaml``."""

        directory = self.rules_directory
        for suffix in _RULE_FILE_SUFFIXES:
            path = directory / f"{year}{suffix}"
            if path.exists():
                return path
        return directory / f"{year}.yaml"

    def list_supported_years(self) -> tuple[int, ...]:
        """Return the years with a rule pack file, sorted ascending."""

        directory = self.rules_directory
        years = {
            int(match.group(1))
            for entry in directory.iterdir()
            if entry.is_file() and (match := _RULE_FILE_PATTERN.match(entry.name))
        }
        return tuple(sorted(years))

    def read_raw(self, year: int) -> Any:
        """Return the parsed but unvalidated document for ``year``."""

        path = self.rule_pack_path(year)
        if not path.exists():
            raise RulePackMissing(year, path)
        return load_document(path)

    def load_rule_pack(self, year: int) -> TaxRulePack:
        """Load, validate and cache the rule pack for ``year``."""

        cached = self._cache.get(year)
        if cached is not None:
            _LOGGER.debug("Tax rule pack cache hit for %s", year)
            return cached

        with self._lock:
            cached = self._cache.get(year)
            if cached is not None:
                return cached

            _LOGGER.debug("Tax rule pack cache miss for %s", year)
            pack = validate_rule_pack(self.read_raw(year))
            if pack.year != year:
                raise RulePackYearMismatch(year, pack.year)

            self._cache[year] = pack
            return pack

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()
            self._resolved_root = None


_default_loader = RulePackLoader()


def get_default_loader() -> RulePackLoader:
    """Return the process-wide loader backing the module-level helpers."""

    return _default_loader


def load_rule_pack(year: int) -> TaxRulePack:
    return _default_loader.load_rule_pack(year)


def list_supported_years() -> tuple[int, ...]:
    return _default_loader.list_supported_years()


def clear_cache() -> None:
    _default_loader.clear_cache()


__all__ = [
    "CONFIG_ROOT_ENV",
    "ConfigRootNotFound",
    "PACKAGED_CONFIG_ROOT",
    "RULES_DIRECTORY_NAME",
    "RulePackLoader",
    "RulePackMissing",
    "RulePackParseError",
    "RulePackYearMismatch",
    "candidate_config_roots",
    "clear_cache",
    "get_default_loader",
    "list_supported_years",
    "load_document",
    "load_rule_pack",
    "resolve_config_root",
]
