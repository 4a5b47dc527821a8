"""Test configuration utilities and shared fixtures."""

import copy
import sys
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

# Ensure the ``src`` directory is importable when tests are executed without an
# editable install.
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

import pytest  # noqa: E402
import yaml  # noqa: E402
from flask import Flask  # noqa: E402
from flask.testing import FlaskClient  # noqa: E402

from taxlogic.backend.app import create_app  # noqa: E402
from taxlogic.backend.config.rule_pack import (  # noqa: E402
    PACKAGED_CONFIG_ROOT,
    RULES_DIRECTORY_NAME,
    RulePackLoader,
)
from taxlogic.backend.config.schema import TaxRulePack  # noqa: E402

SHIPPED_YEARS = (2024, 2025, 2026)


def _read_packaged_pack(year: int) -> dict[str, Any]:
    path = PACKAGED_CONFIG_ROOT / RULES_DIRECTORY_NAME / f"{year}.yaml"
    with path.open("r", encoding="utf-8") as handle:
        return yaml.safe_load(handle)


@pytest.fixture(scope="session")
def packaged_packs() -> dict[int, dict[str, Any]]:
    return {year: _read_packaged_pack(year) for year in SHIPPED_YEARS}


@pytest.fixture()
def raw_pack(packaged_packs: dict[int, dict[str, Any]]) -> dict[str, Any]:
    """Return a mutable copy of the 2024 pack as stored on disk."""

    return copy.deepcopy(packaged_packs[2024])


@pytest.fixture()
def write_pack(tmp_path: Path) -> Callable[..., Path]:
    """Return a helper that writes a pack document into an isolated config root."""

    rules_directory = tmp_path / "config" / RULES_DIRECTORY_NAME
    rules_directory.mkdir(parents=True, exist_ok=True)

    def _write(payload: Any, name: str | None = None) -> Path:
        filename = name or f"{payload['year']}.yaml"
        target = rules_directory / filename
        target.write_text(yaml.safe_dump(payload, sort_keys=False), encoding="utf-8")
        return target

    return _write


@pytest.fixture()
def config_root(
    tmp_path: Path,
    write_pack: Callable[..., Path],
    packaged_packs: dict[int, dict[str, Any]],
) -> Path:
    """Isolated config root holding every shipped pack, verified today."""

    stamp = datetime.now(timezone.utc).date().isoformat()
    for pack in packaged_packs.values():
        fresh = copy.deepcopy(pack)
        fresh["verifiedAt"] = stamp
        write_pack(fresh)
    return tmp_path / "config"


@pytest.fixture()
def loader(config_root: Path) -> RulePackLoader:
    return RulePackLoader(config_root)


@pytest.fixture()
def rule_pack(loader: RulePackLoader) -> TaxRulePack:
    return loader.load_rule_pack(2024)


@pytest.fixture()
def app(loader: RulePackLoader) -> Flask:
    """Return a configured Flask application bound to the isolated loader."""

    application = create_app(loader)
    application.config.update(TESTING=True)
    return application


@pytest.fixture()
def client(app: Flask) -> FlaskClient:
    """Provide a test client bound to the configured Flask app."""

    return app.test_client()
