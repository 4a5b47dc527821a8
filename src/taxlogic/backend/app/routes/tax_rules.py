"""Expose rule pack status and contents for the supported tax years."""

from __future__ import annotations

from typing import Any

from flask import Blueprint, jsonify, request

from taxlogic.backend.app.http import current_loader
from taxlogic.backend.config.schema import RulePackError
from taxlogic.backend.config.status import get_all_statuses, get_status

blueprint = Blueprint("tax_rules", __name__, url_prefix="/api/v1/tax-rules")


def _coerce_year(raw: str) -> int | str:
    """Return ``raw`` as an int when it is one, else unchanged for classification."""

    text = raw.strip()
    return int(text) if text.isdigit() else raw


def _requested_years() -> list[int | str] | None:
    values = request.args.getlist("year")
    if not values:
        return None
    return [_coerce_year(value) for value in values]


@blueprint.get("/status")
def list_statuses() -> tuple[Any, int]:
    """Return the status of every supported year, or of the ``year`` query values."""

    loader = current_loader()
    statuses = get_all_statuses(_requested_years(), loader=loader)
    try:
        supported_years = list(loader.list_supported_years())
    except (RulePackError, OSError):
        supported_years = []

    return (
        jsonify(
            {
                "supported_years": supported_years,
                "statuses": [status.as_dict() for status in statuses],
            }
        ),
        200,
    )


@blueprint.get("/<year>/status")
def year_status(year: str) -> tuple[Any, int]:
    """Return the status for a single year. Invalid years are reported, not rejected."""

    status = get_status(_coerce_year(year), loader=current_loader())
    return jsonify(status.as_dict()), 200


@blueprint.get("/<int:year>")
def show_rule_pack(year: int) -> tuple[Any, int]:
    """Return the validated rule pack for ``year`` alongside its current status."""

    loader = current_loader()
    pack = loader.load_rule_pack(year)
    status = get_status(year, loader=loader)

    return (
        jsonify(
            {
                "status": status.as_dict(),
                "rule_pack": pack.model_dump(mode="json", by_alias=True),
            }
        ),
        200,
    )
