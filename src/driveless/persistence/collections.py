"""Document collections backing saved routes and dashboard statistics.

Every backend stores plain JSON-compatible dicts keyed by ``id`` and supports
CRUD by id plus range queries on timestamp fields and equality queries on
flag fields.
"""

from __future__ import annotations

import copy
import logging
import threading
from datetime import datetime, timezone
from typing import Any, Optional, Protocol

from ..errors import PersistenceError
from .filesystem import FileStorage

logger = logging.getLogger(__name__)


class DocumentCollection(Protocol):
    name: str

    def insert(self, document: dict[str, Any]) -> dict[str, Any]: ...

    def get(self, document_id: str) -> Optional[dict[str, Any]]: ...

    def replace(self, document_id: str, document: dict[str, Any]) -> bool: ...

    def delete(self, document_id: str) -> bool: ...

    def delete_all(self) -> int: ...

    def all(self) -> list[dict[str, Any]]: ...

    def range(
        self, field: str, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> list[dict[str, Any]]: ...

    def where(self, field: str, value: Any) -> list[dict[str, Any]]: ...

    def count(self) -> int: ...


def as_datetime(value: Any) -> Optional[datetime]:
    """Parse stored timestamps; naive values are treated as UTC."""
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _in_window(value: Any, start: Optional[datetime], end: Optional[datetime]) -> bool:
    moment = as_datetime(value)
    if moment is None:
        return False
    if start is not None and moment < start:
        return False
    if end is not None and moment >= end:
        return False
    return True


class _LocalCollection:
    """Shared logic for collections held in this process."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._lock = threading.RLock()

    def _load(self) -> dict[str, dict[str, Any]]:
        raise NotImplementedError

    def _save(self, documents: dict[str, dict[str, Any]]) -> None:
        raise NotImplementedError

    def insert(self, document: dict[str, Any]) -> dict[str, Any]:
        document_id = document.get("id")
        if not document_id:
            raise PersistenceError(f"Document for '{self.name}' has no id.")
        with self._lock:
            documents = self._load()
            if document_id in documents:
                raise PersistenceError(f"Document '{document_id}' already exists in '{self.name}'.")
            documents[document_id] = copy.deepcopy(document)
            self._save(documents)
        return copy.deepcopy(document)

    def get(self, document_id: str) -> Optional[dict[str, Any]]:
        with self._lock:
            document = self._load().get(document_id)
        return copy.deepcopy(document) if document is not None else None

    def replace(self, document_id: str, document: dict[str, Any]) -> bool:
        with self._lock:
            documents = self._load()
            if document_id not in documents:
                return False
            documents[document_id] = copy.deepcopy({**document, "id": document_id})
            self._save(documents)
        return True

    def delete(self, document_id: str) -> bool:
        with self._lock:
            documents = self._load()
            if documents.pop(document_id, None) is None:
                return False
            self._save(documents)
        return True

    def delete_all(self) -> int:
        with self._lock:
            documents = self._load()
            removed = len(documents)
            self._save({})
        return removed

    def all(self) -> list[dict[str, Any]]:
        with self._lock:
            return [copy.deepcopy(document) for document in self._load().values()]

    def range(
        self, field: str, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> list[dict[str, Any]]:
        return [document for document in self.all() if _in_window(document.get(field), start, end)]

    def where(self, field: str, value: Any) -> list[dict[str, Any]]:
        return [document for document in self.all() if document.get(field) == value]

    def count(self) -> int:
        with self._lock:
            return len(self._load())


class InMemoryCollection(_LocalCollection):
    def __init__(self, name: str, documents: Optional[list[dict[str, Any]]] = None) -> None:
        super().__init__(name)
        self._documents: dict[str, dict[str, Any]] = {}
        for document in documents or []:
            self._documents[document["id"]] = copy.deepcopy(document)

    def _load(self) -> dict[str, dict[str, Any]]:
        return self._documents

    def _save(self, documents: dict[str, dict[str, Any]]) -> None:
        self._documents = documents


class JsonFileCollection(_LocalCollection):
    """Collection persisted as one JSON array under the data root."""

    def __init__(self, name: str, storage: FileStorage | None = None) -> None:
        super().__init__(name)
        self.storage = storage or FileStorage()
        self.path = self.storage.collection_path(name)

    def _load(self) -> dict[str, dict[str, Any]]:
        try:
            raw = self.storage.read_json(self.path, default=[])
        except (OSError, ValueError) as e:
            raise PersistenceError(f"Failed to read collection '{self.name}': {e}") from e
        return {document["id"]: document for document in raw if isinstance(document, dict) and document.get("id")}

    def _save(self, documents: dict[str, dict[str, Any]]) -> None:
        try:
            self.storage.write_json(self.path, list(documents.values()))
        except OSError as e:
            raise PersistenceError(f"Failed to write collection '{self.name}': {e}") from e


class SupabaseCollection:
    """Collection backed by a Supabase (PostgREST) table."""

    def __init__(self, client: Any, table: str) -> None:
        if client is None:
            raise PersistenceError(f"Supabase not configured - cannot open table '{table}'")
        self.client = client
        self.name = table

    def _execute(self, action: str, query: Any) -> Any:
        try:
            return query.execute()
        except Exception as e:
            logger.error(f"Supabase {action} on '{self.name}' failed: {e}")
            raise PersistenceError(f"Supabase {action} on '{self.name}' failed: {e}") from e

    def insert(self, document: dict[str, Any]) -> dict[str, Any]:
        response = self._execute("insert", self.client.table(self.name).insert(document))
        if response.data:
            return response.data[0]
        return document

    def get(self, document_id: str) -> Optional[dict[str, Any]]:
        query = self.client.table(self.name).select("*").eq("id", document_id).limit(1)
        response = self._execute("select", query)
        return response.data[0] if response.data else None

    def replace(self, document_id: str, document: dict[str, Any]) -> bool:
        payload = {**document, "id": document_id}
        response = self._execute("update", self.client.table(self.name).update(payload).eq("id", document_id))
        return bool(response.data)

    def delete(self, document_id: str) -> bool:
        response = self._execute("delete", self.client.table(self.name).delete().eq("id", document_id))
        return bool(response.data)

    def delete_all(self) -> int:
        # PostgREST refuses unfiltered deletes.
        response = self._execute("delete", self.client.table(self.name).delete().neq("id", ""))
        return len(response.data or [])

    def all(self) -> list[dict[str, Any]]:
        response = self._execute("select", self.client.table(self.name).select("*"))
        return list(response.data or [])

    def range(
        self, field: str, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> list[dict[str, Any]]:
        query = self.client.table(self.name).select("*")
        if start is not None:
            query = query.gte(field, start.isoformat())
        if end is not None:
            query = query.lt(field, end.isoformat())
        response = self._execute("range select", query)
        return list(response.data or [])

    def where(self, field: str, value: Any) -> list[dict[str, Any]]:
        response = self._execute("select", self.client.table(self.name).select("*").eq(field, value))
        return list(response.data or [])

    def count(self) -> int:
        response = self._execute("count", self.client.table(self.name).select("id", count="exact").limit(1))
        if response.count is not None:
            return int(response.count)
        return len(response.data or [])
