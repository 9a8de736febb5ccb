"""JSON file persistence for notification state and the monitored brand list.

Both files are small, human-readable and rewritten wholesale.  Writes go to
a temporary file in the same directory and are moved into place with
``os.replace``; a process-wide lock serialises read-modify-write cycles.
Running more than one instance against the same files is not supported.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional

from .stock import BrandStatus

logger = logging.getLogger(__name__)


def _atomic_write_json(path: Path, data) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump(data, fh, indent=4, ensure_ascii=False)
            fh.write("\n")
        os.replace(tmp, path)
    except BaseException:
        if os.path.exists(tmp):
            os.unlink(tmp)
        raise


def _read_json(path: Path):
    try:
        with open(path, "r", encoding="utf-8") as fh:
            return json.load(fh)
    except FileNotFoundError:
        return None
    except ValueError:
        logger.error("Could not parse %s; treating it as empty", path)
        return None


class StateStore:
    """Last known :class:`BrandStatus` per brand."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self.lock = threading.Lock()

    def load(self) -> Dict[str, BrandStatus]:
        raw = _read_json(self.path)
        if not isinstance(raw, dict):
            return {}
        state: Dict[str, BrandStatus] = {}
        for brand, value in raw.items():
            try:
                state[str(brand)] = BrandStatus(value)
            except ValueError:
                logger.warning("Ignoring unknown status %r for brand %s", value, brand)
        return state

    def save(self, state: Mapping[str, BrandStatus]) -> None:
        data = {brand: BrandStatus(status).value for brand, status in state.items()}
        _atomic_write_json(self.path, data)
        logger.info("State saved: %s", json.dumps(data, ensure_ascii=False))

    def get(self, brand: str) -> Optional[BrandStatus]:
        return self.load().get(brand)

    def set(self, brand: str, status: BrandStatus) -> None:
        with self.lock:
            state = self.load()
            state[brand] = status
            self.save(state)

    def as_dict(self) -> Dict[str, str]:
        return {brand: status.value for brand, status in self.load().items()}


class BrandStore:
    """Monitored brands: ``brands.json`` when present, else the configured list."""

    def __init__(self, path: Path, defaults: Iterable[str] = ()):
        self.path = Path(path)
        self.defaults = [b for b in defaults if b]
        self.lock = threading.Lock()

    def load(self) -> List[str]:
        raw = _read_json(self.path)
        if isinstance(raw, dict) and isinstance(raw.get("brands"), list):
            return [str(b) for b in raw["brands"]]
        return list(self.defaults)

    def save(self, brands: Iterable[str]) -> List[str]:
        # Names are kept exactly as given; only blank entries are dropped.
        cleaned = [str(b) for b in brands if str(b).strip()]
        with self.lock:
            _atomic_write_json(self.path, {"brands": cleaned})
        logger.info("Brands updated. New count: %d", len(cleaned))
        return cleaned

    def __contains__(self, brand: str) -> bool:
        return brand in self.load()


__all__ = ["StateStore", "BrandStore"]
