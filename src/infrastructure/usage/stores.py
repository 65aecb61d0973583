"""UsageStore adapters.

- InMemoryUsageStore: process-local dict (tests, single-run scripts)
- JsonFileUsageStore: one JSON document holding every ``usage_<YYYY-MM>``
  key, rewritten atomically (temp file + rename) on each put
"""

from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path
from typing import Any

from domain.usage.errors import UsageStoreError

logger = logging.getLogger(__name__)


class InMemoryUsageStore:
    def __init__(self, initial: dict[str, dict[str, Any]] | None = None) -> None:
        self._data: dict[str, dict[str, Any]] = dict(initial or {})

    def get(self, key: str) -> dict[str, Any] | None:
        value = self._data.get(key)
        return dict(value) if value is not None else None

    def put(self, key: str, value: dict[str, Any]) -> None:
        self._data[key] = dict(value)

    def keys(self) -> list[str]:
        return sorted(self._data)


class JsonFileUsageStore:
    """Usage counters persisted across runs in a single JSON file.

    A missing file reads as empty. A file that is not a JSON object raises
    UsageStoreError rather than being silently overwritten.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

    def get(self, key: str) -> dict[str, Any] | None:
        with self._lock:
            value = self._load().get(key)
        return dict(value) if isinstance(value, dict) else None

    def put(self, key: str, value: dict[str, Any]) -> None:
        with self._lock:
            data = self._load()
            data[key] = value
            self._dump(data)

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._load())

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise UsageStoreError(f"Cannot read usage file {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise UsageStoreError(f"Usage file {self.path} does not hold a JSON object")
        return data

    def _dump(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(self.path.name + ".tmp")
        try:
            tmp.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")
            os.replace(tmp, self.path)
        except OSError as e:
            raise UsageStoreError(f"Cannot write usage file {self.path}: {e}") from e
        logger.debug("Usage counters saved to %s", self.path)
