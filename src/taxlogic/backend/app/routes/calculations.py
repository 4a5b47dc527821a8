"""REST endpoints for tax calculations."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from flask import Blueprint, Request, jsonify, request
from werkzeug.exceptions import BadRequest

from taxlogic.backend.app.http import current_loader
from taxlogic.backend.app.localization import normalise_locale
from taxlogic.backend.app.services.calculation_service import calculate_tax_for_year

blueprint = Blueprint("calculations", __name__, url_prefix="/api/v1")


def _resolve_locale(req: Request, payload: dict[str, Any]) -> str:
    """Pick the locale from the payload, the query string or ``Accept-Language``."""

    locale = payload.pop("locale", None)
    if isinstance(locale, str) and locale.strip():
        return normalise_locale(locale)

    locale_param = req.args.get("locale")
    if locale_param:
        return normalise_locale(locale_param)

    accept_language = req.headers.get("Accept-Language")
    if accept_language:
        primary = accept_language.split(",")[0].split(";")[0].strip()
        if primary:
            return normalise_locale(primary)

    return normalise_locale(None)


def parse_calculation_payload(req: Request) -> tuple[dict[str, Any], str]:
    """Extract the profile JSON object and the requested locale from ``req``."""

    data = req.get_json(silent=True)
    if data is None:
        raise BadRequest("Request body must be valid JSON")
    if not isinstance(data, Mapping):
        raise BadRequest("Request JSON must be an object")

    payload = dict(data)
    locale = _resolve_locale(req, payload)
    return payload, locale


@blueprint.post("/calculations")
def create_calculation() -> tuple[Any, int]:
    """Calculate tax for the submitted profile using the year's rule pack."""

    payload, locale = parse_calculation_payload(request)
    result = calculate_tax_for_year(payload, loader=current_loader(), locale=locale)

    return jsonify(result.to_payload()), 200
