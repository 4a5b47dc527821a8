"""Application factory for the TaxLogic rule engine API."""

from __future__ import annotations

import os
from warnings import warn

from flask import Flask, jsonify
from flask_cors import CORS
from werkzeug.exceptions import BadRequest

from taxlogic.backend.config.rule_pack import RulePackLoader, RulePackMissing
from taxlogic.backend.config.schema import RulePackError
from taxlogic.backend.config.status import TaxRulesUnavailable, get_all_statuses
from taxlogic.backend.version import get_project_version

from .http import RULE_PACK_EXTENSION, problem_response, rules_unavailable_problem
from .routes import register_routes

ALLOWED_ORIGINS_ENV = "TAXLOGIC_ALLOWED_ORIGINS"


def _parse_allowed_origins(raw: str | None) -> set[str]:
    """Convert an environment variable into a normalised set of origins."""

    if not raw:
        return set()

    return {origin.strip() for origin in raw.split(",") if origin.strip()}


def create_app(loader: RulePackLoader | None = None) -> Flask:
    """Create and configure the Flask application instance.

    Each application owns its rule pack loader (and therefore its cache); pass
    ``loader`` to point the app at a specific config root.
    """

    app = Flask(__name__)
    app.extensions[RULE_PACK_EXTENSION] = loader or RulePackLoader()

    allowed_origins = _parse_allowed_origins(os.getenv(ALLOWED_ORIGINS_ENV))
    if not allowed_origins:
        warn(
            "No allowed origins configured; cross-origin requests will be rejected.",
            stacklevel=1,
        )

    CORS(
        app,
        resources={r"/api/*": {"origins": sorted(allowed_origins)}},
        supports_credentials=False,
        methods=["GET", "OPTIONS", "POST"],
        allow_headers=["Content-Type"],
    )

    register_routes(app)

    @app.route("/health", methods=["GET"])
    def health_check():
        """Health check reporting the version and the state of every rule pack."""

        statuses = get_all_statuses(loader=app.extensions[RULE_PACK_EXTENSION])
        payload = {
            "status": "ok",
            "version": get_project_version(),
            "supported_years": [status.year for status in statuses],
            "tax_rules": {str(status.year): status.state for status in statuses},
        }
        return jsonify(payload)

    @app.errorhandler(BadRequest)
    def handle_bad_request(error: BadRequest):
        """Return consistent JSON responses for malformed payloads."""

        message = error.description or "Invalid request"
        return problem_response("bad_request", status=400, message=message).to_response()

    @app.errorhandler(ValueError)
    def handle_value_error(error: ValueError):
        """Surface profile validation errors to clients."""

        return problem_response(
            "validation_error", status=400, message=str(error)
        ).to_response()

    @app.errorhandler(TaxRulesUnavailable)
    def handle_rules_unavailable(error: TaxRulesUnavailable):
        return rules_unavailable_problem(error).to_response()

    @app.errorhandler(RulePackMissing)
    def handle_missing_rule_pack(error: RulePackMissing):
        return problem_response(
            "rule_pack_missing", status=404, message=str(error), year=error.year
        ).to_response()

    @app.errorhandler(RulePackError)
    def handle_rule_pack_error(error: RulePackError):
        """Report unusable rule packs (parse, schema or contract failures)."""

        return problem_response(
            "rule_pack_invalid", status=422, message=str(error)
        ).to_response()

    return app
