#!/usr/bin/env python3

import copy
import logging
import threading
from contextlib import contextmanager
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import settings
from domain.exceptions import RecordStoreError, TransientStoreError
from domain.repositories.record_store import Document, RecordStore, TransactionFn
from shared.shared import split_document_path
from shared.util import order_key

logger = logging.getLogger(__name__)


class MemoryRecordStore(RecordStore):
    """In-process record store for local development and tests.

    A single lock serializes every mutation, which gives each document the
    same isolation the Redis store gets from WATCH/MULTI and Lua scripts.
    """

    def __init__(self, documents: Optional[Mapping[str, Document]] = None, timeout: float = None):
        self.timeout = timeout if timeout is not None else settings.STORE_TIMEOUT_SECONDS
        self._documents: Dict[str, Document] = {}
        self._lock = threading.RLock()
        for path, document in (documents or {}).items():
            self.set_or_merge(path, document)

    @contextmanager
    def _locked(self, operation: str, path: str):
        if not self._lock.acquire(timeout=self.timeout):
            logger.error(f"Record store lock not acquired within {self.timeout}s for {operation}")
            raise TransientStoreError(f"Timed out waiting for {operation} on {path}")
        try:
            yield
        finally:
            self._lock.release()

    def get_document(self, path: str) -> Optional[Document]:
        split_document_path(path)
        with self._locked("get_document", path):
            document = self._documents.get(path)
            return copy.deepcopy(document) if document is not None else None

    def query(
        self,
        collection_path: str,
        order_by: str,
        descending: bool = True,
        limit: Optional[int] = None,
    ) -> List[Tuple[str, Document]]:
        prefix = f"{collection_path}/"
        with self._locked("query", collection_path):
            rows = []
            for path, document in self._documents.items():
                if not path.startswith(prefix) or "/" in path[len(prefix):]:
                    continue
                key = order_key(document.get(order_by))
                if key is None:
                    continue
                rows.append((key, path[len(prefix):], copy.deepcopy(document)))

        rows.sort(key=lambda row: (row[0], row[1]), reverse=descending)
        if limit is not None:
            rows = rows[:limit]
        return [(document_id, document) for _, document_id, document in rows]

    def run_transaction(self, path: str, update_fn: TransactionFn) -> Document:
        split_document_path(path)
        with self._locked("run_transaction", path):
            current = self._documents.get(path)
            updated = update_fn(copy.deepcopy(current) if current is not None else None)
            if not updated:
                raise RecordStoreError(f"Transaction on {path} produced an empty document")
            self._documents[path] = copy.deepcopy(dict(updated))
            return updated

    def atomic_update(
        self,
        path: str,
        increments: Optional[Mapping[str, int]] = None,
        array_appends: Optional[Mapping[str, Sequence[Any]]] = None,
        fields: Optional[Mapping[str, Any]] = None,
    ) -> None:
        split_document_path(path)
        with self._locked("atomic_update", path):
            document = copy.deepcopy(self._documents.get(path, {}))
            document.update(copy.deepcopy(dict(fields or {})))

            for field, delta in (increments or {}).items():
                current = document.get(field, 0)
                if not isinstance(current, int) or isinstance(current, bool):
                    raise RecordStoreError(f"Field {field} on {path} is not an integer")
                document[field] = current + int(delta)

            for field, values in (array_appends or {}).items():
                if not values:
                    continue
                current = document.get(field, [])
                if not isinstance(current, list):
                    raise RecordStoreError(f"Field {field} on {path} is not an array")
                document[field] = current + list(values)

            self._documents[path] = document

    def ping(self) -> bool:
        return True

    def snapshot(self) -> Dict[str, Document]:
        """Copy of every stored document keyed by path"""
        with self._locked("snapshot", "*"):
            return copy.deepcopy(self._documents)
