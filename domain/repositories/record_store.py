#!/usr/bin/env python3

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

Document = Dict[str, Any]
# Receives the current document (None when absent), returns the full replacement
TransactionFn = Callable[[Optional[Document]], Document]


class RecordStore(ABC):
    """Hierarchical document store interface.

    Paths alternate collection and document segments joined by "/",
    e.g. "datasets/D1/versions/1.0".
    """

    @abstractmethod
    def get_document(self, path: str) -> Optional[Document]:
        """Get document by path, None when absent"""
        pass

    @abstractmethod
    def query(
        self,
        collection_path: str,
        order_by: str,
        descending: bool = True,
        limit: Optional[int] = None,
    ) -> List[Tuple[str, Document]]:
        """List (document_id, document) pairs ordered by a field.

        Documents without the order field are not returned. Equal values are
        ordered by document id, in the same direction as the field.
        """
        pass

    @abstractmethod
    def run_transaction(self, path: str, update_fn: TransactionFn) -> Document:
        """Read-modify-write one document in isolation and return what was written"""
        pass

    @abstractmethod
    def atomic_update(
        self,
        path: str,
        increments: Optional[Mapping[str, int]] = None,
        array_appends: Optional[Mapping[str, Sequence[Any]]] = None,
        fields: Optional[Mapping[str, Any]] = None,
    ) -> None:
        """Apply field sets, numeric increments and array appends as one atomic mutation.

        Creates the document when absent; missing counters start from zero.
        """
        pass

    @abstractmethod
    def ping(self) -> bool:
        """Check store reachability"""
        pass

    def close(self) -> None:
        """Release connections held by the store"""
        pass

    def atomic_increment(self, path: str, field: str, delta: int = 1) -> None:
        """Atomically add delta to a numeric field"""
        self.atomic_update(path, increments={field: delta})

    def atomic_array_append(self, path: str, field: str, value: Any) -> None:
        """Atomically append a value to an array field"""
        self.atomic_update(path, array_appends={field: [value]})

    def set_or_merge(self, path: str, data: Mapping[str, Any]) -> None:
        """Merge top-level fields into a document, creating it when absent"""
        self.atomic_update(path, fields=data)
