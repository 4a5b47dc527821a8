"""WSGI entrypoint for serving the TaxLogic API behind Passenger or gunicorn."""

from taxlogic.backend.app import create_app

# Passenger expects a module-level variable named ``application``.
application = create_app()
