"""Document persistence."""

from .document_store import DocumentStore, InMemoryDocumentStore

__all__ = ["DocumentStore", "InMemoryDocumentStore"]
