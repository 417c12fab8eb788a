"""Best-effort JSON persistence of a session's trading state.

A missing or unreadable state file is never fatal: ``load_state`` logs the
problem and returns None so the caller starts from fresh state.
"""
from __future__ import annotations

import json
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from ..utils.logging import get_logger
from .ledger import Portfolio

LOGGER = get_logger(__name__)

STATE_VERSION = 1

PathLike = Union[str, Path]


def save_state(path: PathLike, portfolio: Portfolio, strategies=None,
               settings: Optional[Dict[str, Any]] = None,
               orders: Optional[List[Dict[str, Any]]] = None) -> Path:
    """Write portfolio, strategy configuration and settings to ``path``.

    The file is written to a temporary sibling first and then moved into
    place, so a crash mid-write leaves the previous snapshot intact.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = {
        "version": STATE_VERSION,
        "saved_at": datetime.now().isoformat(),
        "portfolio": portfolio.to_dict(),
        "strategies": strategies.to_dict() if strategies is not None else None,
        "settings": settings or {},
        "orders": orders or [],
    }
    tmp = path.with_suffix(path.suffix + ".tmp")
    with open(tmp, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, default=str)
    os.replace(tmp, path)
    LOGGER.info(f"State saved to {path}")
    return path


def load_state(path: PathLike) -> Optional[Dict[str, Any]]:
    """Read a state snapshot; None when missing, corrupt or incompatible."""
    path = Path(path)
    if not path.exists():
        return None
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except Exception as e:
        LOGGER.warning(f"Failed to load state from {path}: {e}")
        return None
    if not isinstance(data, dict) or not isinstance(data.get("portfolio"), dict):
        LOGGER.warning(f"Ignoring malformed state file {path}")
        return None
    if data.get("version", STATE_VERSION) != STATE_VERSION:
        LOGGER.warning(f"Ignoring state file {path} with version {data.get('version')}")
        return None
    return data


def restore_portfolio(data: Dict[str, Any], catalogue=None) -> Optional[Portfolio]:
    """Build a Portfolio from a loaded snapshot, or None if it is unusable."""
    try:
        return Portfolio.from_dict(data["portfolio"], catalogue=catalogue)
    except Exception as e:
        LOGGER.warning(f"Failed to restore portfolio: {e}")
        return None
