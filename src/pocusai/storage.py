"""Concrete implementations for durable key/value storage.

Every repository (credentials, sessions, usage) persists through one of these
objects under a small set of logical keys. Values are JSON documents wrapped
in a versioned envelope::

    {"schema_version": 1, "data": <value>}

Bare values written before envelopes existed are read as version 0 and
migrated on the fly. Reads fail closed: anything that cannot be parsed is
treated as absent.
"""

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)

# --- Logical keys ---
USERS_KEY = "users"
CURRENT_USER_KEY = "currentUser"
SAVED_USERNAME_KEY = "savedUsername"
STAY_LOGGED_IN_KEY = "stayLoggedIn"
CHAT_SESSIONS_KEY = "chatSessions"
USAGE_COUNTERS_KEY = "usageCounters"

SCHEMA_VERSION = 1


def _v0_to_v1(key: str, value: Any) -> Any:
    # Flags used to be stored as the string "true".
    if key == STAY_LOGGED_IN_KEY and isinstance(value, str):
        return value.lower() == "true"
    return value


MIGRATIONS: Dict[int, Callable[[str, Any], Any]] = {0: _v0_to_v1}


def unwrap(key: str, document: Any) -> Any:
    """Returns the current-schema value held by a stored document."""
    if isinstance(document, dict) and "schema_version" in document:
        version = document["schema_version"]
        value = document.get("data")
    else:
        version = 0
        value = document

    if not isinstance(version, int) or version > SCHEMA_VERSION:
        raise ValueError(f"Unsupported schema version {version!r} for {key!r}")

    while version < SCHEMA_VERSION:
        value = MIGRATIONS[version](key, value)
        version += 1
    return value


def wrap(value: Any) -> Dict[str, Any]:
    return {"schema_version": SCHEMA_VERSION, "data": value}


class Storage(ABC):
    """Interface for the durable key/value store behind every repository."""

    def __init__(self, prefix: str = ""):
        self.prefix = prefix

    @abstractmethod
    def read_raw(self, key: str) -> Optional[str]:
        """Returns the serialized document for a key, or None if absent."""
        pass

    @abstractmethod
    def write_raw(self, key: str, raw: str) -> None:
        """Persists a serialized document under a key."""
        pass

    @abstractmethod
    def remove(self, key: str) -> None:
        """Deletes a key. Missing keys are ignored."""
        pass

    def get(self, key: str, default: Any = None) -> Any:
        """Loads and migrates the value stored under ``key``.

        Parameters
        ----------
        key : str
            One of the logical storage keys.
        default : Any, optional
            Returned when the key is absent or its content is unreadable.

        Returns
        -------
        Any
            The decoded value in the current schema, or ``default``.
        """
        raw = self.read_raw(key)
        if raw is None:
            return default
        try:
            return unwrap(key, json.loads(raw))
        except (ValueError, TypeError, KeyError) as e:
            logger.warning("Ignoring unreadable storage key %r: %s", key, e)
            return default

    def set(self, key: str, value: Any) -> None:
        self.write_raw(key, json.dumps(wrap(value), ensure_ascii=False))

    def scoped(self, namespace: str) -> "Scoped":
        """Returns a view whose keys are stored under ``<namespace>_<key>``."""
        return Scoped(self, namespace)


class InMemory(Storage):
    """Keeps serialized documents in a dictionary for the process lifetime."""

    def __init__(self, prefix: str = ""):
        super().__init__(prefix)
        self._data: Dict[str, str] = {}

    def read_raw(self, key: str) -> Optional[str]:
        return self._data.get(self.prefix + key)

    def write_raw(self, key: str, raw: str) -> None:
        self._data[self.prefix + key] = raw

    def remove(self, key: str) -> None:
        self._data.pop(self.prefix + key, None)


class File(Storage):
    """Stores one JSON document per key in a directory."""

    def __init__(self, base_dir: str, prefix: str = ""):
        super().__init__(prefix)
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self.base_dir / f"{self.prefix}{key}.json"

    def read_raw(self, key: str) -> Optional[str]:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Could not read %s: %s", path, e)
            return None

    def write_raw(self, key: str, raw: str) -> None:
        path = self._path(key)
        fd, tmp_path = tempfile.mkstemp(dir=self.base_dir, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(raw)
            os.replace(tmp_path, path)
        except OSError:
            Path(tmp_path).unlink(missing_ok=True)
            raise

    def remove(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)


class Scoped(Storage):
    """A namespaced view over another storage, used for per-browser keys."""

    def __init__(self, parent: Storage, namespace: str):
        super().__init__(parent.prefix)
        self.parent = parent
        self.namespace = namespace

    def _key(self, key: str) -> str:
        return f"{self.namespace}_{key}"

    def read_raw(self, key: str) -> Optional[str]:
        return self.parent.read_raw(self._key(key))

    def write_raw(self, key: str, raw: str) -> None:
        self.parent.write_raw(self._key(key), raw)

    def remove(self, key: str) -> None:
        self.parent.remove(self._key(key))
