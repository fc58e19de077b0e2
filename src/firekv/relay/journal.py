from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger(__name__)

BEACON_FAILURE_KEY = "beaconFailure"


def _read(path: Path) -> dict[str, Any]:
    """Missing, empty or unreadable files read as an empty journal."""
    if not path.exists():
        return {}
    raw = path.read_text(encoding="utf-8")
    if not raw.strip():
        return {}
    try:
        data = json.loads(raw)
    except ValueError:
        logger.warning("Ignoring unreadable journal at %s", path)
        return {}
    return data if isinstance(data, dict) else {}


def _atomic_write(path: Path, payload: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    with tmp_path.open("w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, sort_keys=True)
        f.write("\n")
    tmp_path.replace(path)


class FailureJournal:
    """
    A tiny string-valued key/value file that survives process restarts.

    Used to leave a note when a fire-and-forget delete could not be delivered,
    so the next session can surface it.
    """

    def __init__(self, path: Path):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str = BEACON_FAILURE_KEY) -> Optional[str]:
        return _read(self._path).get(key)

    def set(self, note: str, key: str = BEACON_FAILURE_KEY) -> None:
        data = _read(self._path)
        data[key] = note
        _atomic_write(self._path, data)

    def remove(self, key: str = BEACON_FAILURE_KEY) -> None:
        data = _read(self._path)
        if data.pop(key, None) is not None:
            _atomic_write(self._path, data)
