# src/celerpay/env.py
from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

_LOADED = False


def load_dotenv_if_present(dotenv_path: Optional[str] = None) -> bool:
    """Load CELER_* settings from a .env file, at most once per process.

    The file is the argument if given, else $CELER_DOTENV_PATH, else ./.env.
    Variables already set in the process environment are left alone.
    Returns True only when a file was found and loaded.
    """
    global _LOADED
    if _LOADED:
        return False
    _LOADED = True

    path = Path(dotenv_path or os.getenv("CELER_DOTENV_PATH") or ".env").expanduser()
    if not path.is_file():
        return False

    return bool(load_dotenv(dotenv_path=path, override=False))
