"""
Document store interface and an in-memory implementation.

The matching engine persists weight profiles and match documents through
this interface only. Documents are plain JSON-ready dicts addressed by
(collection, document id).
"""

import copy
import logging
import threading
from abc import ABC, abstractmethod
from typing import Dict, Any, List, Optional, Iterable, Tuple

logger = logging.getLogger(__name__)


class DocumentStore(ABC):
    """Key-value document persistence grouped into collections."""

    @abstractmethod
    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Return a document or None when it does not exist."""

    @abstractmethod
    def put(self, collection: str, doc_id: str, doc: Dict[str, Any]) -> None:
        """Create or overwrite a document."""

    @abstractmethod
    def delete(self, collection: str, doc_id: str) -> bool:
        """Delete a document; returns whether it existed."""

    @abstractmethod
    def query(self, collection: str, field: str, value: Any) -> List[Dict[str, Any]]:
        """Documents whose field equals value."""

    @abstractmethod
    def list(self, collection: str) -> List[Dict[str, Any]]:
        """All documents of a collection, ordered by document id."""

    def batch_write(self, collection: str, items: Iterable[Tuple[str, Dict[str, Any]]]) -> int:
        """
        Upsert many documents.

        Args:
            collection: Target collection
            items: (doc_id, doc) pairs

        Returns:
            Number of documents written
        """
        count = 0
        for doc_id, doc in items:
            self.put(collection, doc_id, doc)
            count += 1
        return count


class InMemoryDocumentStore(DocumentStore):
    """
    Thread-safe dict-backed document store.

    Documents are deep-copied on the way in and out so callers never share
    mutable state with the store.
    """

    def __init__(self):
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._lock = threading.RLock()

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            doc = self._collections.get(collection, {}).get(doc_id)
            return copy.deepcopy(doc) if doc is not None else None

    def put(self, collection: str, doc_id: str, doc: Dict[str, Any]) -> None:
        with self._lock:
            self._collections.setdefault(collection, {})[doc_id] = copy.deepcopy(doc)

    def delete(self, collection: str, doc_id: str) -> bool:
        with self._lock:
            return self._collections.get(collection, {}).pop(doc_id, None) is not None

    def query(self, collection: str, field: str, value: Any) -> List[Dict[str, Any]]:
        with self._lock:
            docs = self._collections.get(collection, {})
            return [
                copy.deepcopy(docs[doc_id]) for doc_id in sorted(docs)
                if docs[doc_id].get(field) == value
            ]

    def list(self, collection: str) -> List[Dict[str, Any]]:
        with self._lock:
            docs = self._collections.get(collection, {})
            return [copy.deepcopy(docs[doc_id]) for doc_id in sorted(docs)]

    def batch_write(self, collection: str, items: Iterable[Tuple[str, Dict[str, Any]]]) -> int:
        items = list(items)
        with self._lock:
            target = self._collections.setdefault(collection, {})
            for doc_id, doc in items:
                target[doc_id] = copy.deepcopy(doc)
        logger.debug(f"Batch wrote {len(items)} documents to {collection}")
        return len(items)

    def count(self, collection: str) -> int:
        with self._lock:
            return len(self._collections.get(collection, {}))
