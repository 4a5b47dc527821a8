"""Project version as recorded in the installed distribution metadata."""

from __future__ import annotations

import logging
from functools import lru_cache
from importlib import metadata
from typing import Final

_LOGGER = logging.getLogger(__name__)

DISTRIBUTION_NAME: Final = "taxlogic"
UNKNOWN_VERSION: Final = "0+unknown"


@lru_cache(maxsize=1)
def get_project_version() -> str:
    """Return the installed ``taxlogic`` version or :data:`UNKNOWN_VERSION`.

    A source checkout imported without ``pip install`` has no distribution
    metadata; the health endpoint still answers and reports the marker.
    """

    try:
        return metadata.version(DISTRIBUTION_NAME)
    except metadata.PackageNotFoundError:
        _LOGGER.debug("Distribution %s is not installed; reporting %s", DISTRIBUTION_NAME, UNKNOWN_VERSION)
        return UNKNOWN_VERSION


__all__ = ["DISTRIBUTION_NAME", "UNKNOWN_VERSION", "get_project_version"]
