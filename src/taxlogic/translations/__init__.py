"""Packaged translation catalogues (one JSON object per locale)."""
