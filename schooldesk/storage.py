from __future__ import annotations

import json
import logging
import re
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable

from schooldesk.config import get_settings


logger = logging.getLogger(__name__)

ChangeListener = Callable[[list[dict[str, Any]]], None]

_SAFE_NAME = re.compile(r'^[A-Za-z0-9_.-]+$')


def _safe_name(value: str, kind: str) -> str:
    token = str(value or '').strip()
    if not token or not _SAFE_NAME.match(token) or token in {'.', '..'}:
        raise ValueError(f'invalid {kind}: {value!r}')
    return token


def write_json_atomic(path: Path, payload: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + '.tmp')
    tmp.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding='utf-8')
    tmp.replace(path)


def read_json(path: Path) -> dict[str, Any]:
    return json.loads(path.read_text(encoding='utf-8'))


def _matches(record: dict[str, Any], filters: dict[str, Any] | None) -> bool:
    for key, expected in (filters or {}).items():
        if record.get(key) != expected:
            return False
    return True


class JsonDocumentStore:
    """File-backed collections: one JSON file per record, plus an event log.

    ``subscribe`` listeners run synchronously after each ``put``/``delete`` in
    the same process with the fresh query result for their filters.
    """

    def __init__(self, root: Path | None = None):
        self.root = Path(root) if root is not None else get_settings().data_dir / 'collections'
        self.root.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()
        self._listeners: list[tuple[str, dict[str, Any] | None, ChangeListener]] = []

    def _collection_dir(self, collection: str) -> Path:
        return self.root / _safe_name(collection, 'collection')

    def _record_path(self, collection: str, record_id: str) -> Path:
        return self._collection_dir(collection) / f'{_safe_name(record_id, "record id")}.json'

    def events_path(self) -> Path:
        return self.root / 'events.jsonl'

    def get(self, collection: str, record_id: str) -> dict[str, Any] | None:
        path = self._record_path(collection, record_id)
        if not path.exists():
            return None
        with self._lock:
            return read_json(path)

    def query(self, collection: str, filters: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        folder = self._collection_dir(collection)
        if not folder.exists():
            return []
        records: list[dict[str, Any]] = []
        with self._lock:
            for path in sorted(folder.glob('*.json')):
                try:
                    record = read_json(path)
                except (OSError, json.JSONDecodeError) as exc:
                    logger.warning('Skipping unreadable record %s: %s', path, exc)
                    continue
                if _matches(record, filters):
                    records.append(record)
        return records

    def put(self, collection: str, record_id: str, record: dict[str, Any]) -> dict[str, Any]:
        payload = {**record, 'id': record_id}
        with self._lock:
            write_json_atomic(self._record_path(collection, record_id), payload)
            self._append_event(collection, 'put', record_id)
        self._notify(collection)
        return payload

    def delete(self, collection: str, record_id: str) -> bool:
        path = self._record_path(collection, record_id)
        with self._lock:
            if not path.exists():
                return False
            path.unlink()
            self._append_event(collection, 'delete', record_id)
        self._notify(collection)
        return True

    def subscribe(
        self,
        collection: str,
        filters: dict[str, Any] | None,
        on_change: ChangeListener,
    ) -> Callable[[], None]:
        entry = (collection, filters, on_change)
        with self._lock:
            self._listeners.append(entry)
        on_change(self.query(collection, filters))

        def unsubscribe() -> None:
            with self._lock:
                if entry in self._listeners:
                    self._listeners.remove(entry)

        return unsubscribe

    def _notify(self, collection: str) -> None:
        with self._lock:
            listeners = [entry for entry in self._listeners if entry[0] == collection]
        for _, filters, on_change in listeners:
            try:
                on_change(self.query(collection, filters))
            except Exception as exc:
                logger.warning('Change listener for %s failed: %s', collection, exc)

    def _append_event(self, collection: str, event: str, record_id: str) -> None:
        row = {
            'ts': datetime.now(timezone.utc).isoformat(),
            'event': event,
            'collection': collection,
            'id': record_id,
        }
        events_file = self.events_path()
        events_file.parent.mkdir(parents=True, exist_ok=True)
        with events_file.open('a', encoding='utf-8') as f:
            f.write(json.dumps(row, ensure_ascii=False) + '\n')
