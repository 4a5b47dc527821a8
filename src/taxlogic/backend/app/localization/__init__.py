"""Localized rationale and advice strings for calculation results."""

from .catalog import Translator, available_locales, get_translator, normalise_locale

__all__ = ["Translator", "available_locales", "get_translator", "normalise_locale"]
