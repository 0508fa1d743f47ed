"""
Durable key-value storage for scheduler state.

Records are stored as plain JSON-compatible structures under logical keys.
``StateRepository`` turns them into a ``SchedulerState`` on load and writes
the affected collections back after every mutation.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, TypeVar

from ..domain.exceptions import StorageError
from ..domain.models import Appointment, Consultant, ExternalEvent, User
from ..domain.state import SchedulerState

logger = logging.getLogger(__name__)

USERS_KEY = "users"
APPOINTMENTS_KEY = "appointments"
EXTERNAL_EVENTS_KEY = "external_events"

ALL_KEYS = (USERS_KEY, APPOINTMENTS_KEY, EXTERNAL_EVENTS_KEY)

T = TypeVar("T")


class KeyValueStore(Protocol):
    """Protocol describing the persistence behaviour needed by the repository."""

    def load(self, key: str) -> Optional[Any]:
        """Return the value previously saved under ``key`` or None."""

    def save(self, key: str, value: Any) -> None:
        """Persist ``value`` under ``key``; visible to the next ``load``."""


class MemoryStore:
    """Process-local store, used in tests and for throwaway sessions."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, str] = {}
        for key, value in (initial or {}).items():
            self.save(key, value)

    def load(self, key: str) -> Optional[Any]:
        raw = self._data.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    def save(self, key: str, value: Any) -> None:
        # Stored serialized so callers never share mutable structures with the store
        self._data[key] = json.dumps(value)


class JsonFileStore:
    """
    Stores each logical key as ``<key>.json`` inside a data directory.

    Writes go to a temporary file that is then moved over the target, so a
    crash mid-write never leaves a truncated record behind.
    """

    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir).expanduser()

    def _path(self, key: str) -> Path:
        return self.data_dir / f"{key}.json"

    def load(self, key: str) -> Optional[Any]:
        path = self._path(key)
        if not path.exists():
            return None

        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except json.JSONDecodeError as exc:
            raise StorageError(f"Corrupt data file {path}: {exc}") from exc

    def save(self, key: str, value: Any) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        tmp_path = path.with_suffix(".json.tmp")

        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(value, f, indent=2, ensure_ascii=False)
        os.replace(tmp_path, path)


class StateRepository:
    """
    Loads and flushes the scheduler state through a key-value store.

    The consultant roster is not persisted here; it is handed in by the
    caller (usually from configuration) on every load.
    """

    def __init__(self, store: KeyValueStore):
        self._store = store

    def load(self, consultants: Sequence[Consultant] = ()) -> SchedulerState:
        """Build a fresh state container from the stored records."""
        return SchedulerState(
            consultants=list(consultants),
            users=self._load_records(USERS_KEY, User.from_record),
            appointments=self._load_records(APPOINTMENTS_KEY, Appointment.from_record),
            external_events=self._load_records(EXTERNAL_EVENTS_KEY, ExternalEvent.from_record),
        )

    def save(self, state: SchedulerState, *keys: str) -> None:
        """
        Write collections of the state back to the store.

        Args:
            state: The state container to persist
            keys: Logical keys to write; all keys when omitted
        """
        for key in keys or ALL_KEYS:
            if key == USERS_KEY:
                records = [user.to_record() for user in state.users]
            elif key == APPOINTMENTS_KEY:
                records = [appointment.to_record() for appointment in state.appointments]
            elif key == EXTERNAL_EVENTS_KEY:
                records = [event.to_record() for event in state.external_events]
            else:
                raise ValueError(f"Unknown storage key: {key}")

            self._store.save(key, records)
            logger.debug("Saved %d %s record(s)", len(records), key)

    def _load_records(self, key: str, decode: Callable[[Dict[str, Any]], T]) -> List[T]:
        raw = self._store.load(key)
        if raw is None:
            return []
        if not isinstance(raw, list):
            raise StorageError(f"Stored value for '{key}' must be a list")

        try:
            return [decode(record) for record in raw]
        except (KeyError, TypeError, ValueError) as exc:
            raise StorageError(f"Could not decode stored '{key}' record: {exc}") from exc
