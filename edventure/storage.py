"""
Namespaced key-value stores for session snapshots and the offline exam queue.

Values must be JSON-serializable. Each store is scoped by a namespace so the
engine never touches a concrete storage mechanism directly.
"""
import json
import logging
import os
import tempfile
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Optional

import streamlit as st

logger = logging.getLogger(__name__)


class KeyValueStore:
    """get/set/delete scoped by a namespace."""

    def __init__(self, namespace: str):
        self.namespace = namespace

    def _key(self, key: str) -> str:
        return f"{self.namespace}-{key}"

    def get(self, key: str, default: Any = None) -> Any:
        raise NotImplementedError

    def set(self, key: str, value: Any) -> None:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError


class MemoryStore(KeyValueStore):
    def __init__(self, namespace: str, data: Optional[Dict[str, Any]] = None):
        super().__init__(namespace)
        self.data: Dict[str, Any] = data if data is not None else {}

    def get(self, key: str, default: Any = None) -> Any:
        value = self.data.get(self._key(key))
        return default if value is None else json.loads(value)

    def set(self, key: str, value: Any) -> None:
        # Round-trip through JSON so tests catch values a durable store would reject
        self.data[self._key(key)] = json.dumps(value)

    def delete(self, key: str) -> None:
        self.data.pop(self._key(key), None)


class JsonFileStore(KeyValueStore):
    """One JSON file per namespace under `directory`. Writes are atomic (temp file + rename)."""

    def __init__(self, namespace: str, directory: Path):
        super().__init__(namespace)
        self.directory = Path(directory)
        self.path = self.directory / f"{namespace}.json"
        self._lock = Lock()

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Unreadable store file {self.path}, starting empty: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: Dict[str, Any]) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.directory, prefix=f".{self.namespace}-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f)
            os.replace(tmp, self.path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._read().get(key, default)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            data = self._read()
            data[key] = value
            self._write(data)

    def delete(self, key: str) -> None:
        with self._lock:
            data = self._read()
            if key in data:
                del data[key]
                self._write(data)


class StreamlitSessionStore(KeyValueStore):
    """Per-browser-session slot backed by st.session_state (survives reruns, not new tabs)."""

    def get(self, key: str, default: Any = None) -> Any:
        raw = st.session_state.get(self._key(key))
        return default if raw is None else json.loads(raw)

    def set(self, key: str, value: Any) -> None:
        st.session_state[self._key(key)] = json.dumps(value)

    def delete(self, key: str) -> None:
        if self._key(key) in st.session_state:
            del st.session_state[self._key(key)]
