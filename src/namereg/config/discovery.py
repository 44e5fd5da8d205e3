"""Locate ``namereg.toml``.

The file is looked up from the working directory towards the filesystem
root, the way git finds ``.git``. ``NAMEREG_CONFIG`` names a file
directly and disables the search.
"""

from __future__ import annotations

import os
from pathlib import Path

CONFIG_FILENAME = "namereg.toml"
CONFIG_ENV_VAR = "NAMEREG_CONFIG"


def find_config(start: Path | None = None) -> Path | None:
    """Path of the governing config file, or None.

    A ``NAMEREG_CONFIG`` that points at a missing file yields None.
    """
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        candidate = Path(override)
        return candidate if candidate.is_file() else None

    here = (start or Path.cwd()).resolve()
    for directory in (here, *here.parents):
        candidate = directory / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
    return None

