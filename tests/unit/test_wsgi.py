"""Smoke test for the WSGI entrypoint."""

from flask import Flask

from taxlogic.backend.app.http import RULE_PACK_EXTENSION
from taxlogic.backend.config.rule_pack import RulePackLoader


def test_wsgi_module_exposes_application() -> None:
    from taxlogic.backend import passenger_wsgi

    assert isinstance(passenger_wsgi.application, Flask)
    assert isinstance(passenger_wsgi.application.extensions[RULE_PACK_EXTENSION], RulePackLoader)
