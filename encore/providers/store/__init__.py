"""Document store providers.

SQLiteDocumentStore keeps every collection in one local SQLite file.  A
hosted document backend can replace it by implementing IDocumentStore; the
services never import a concrete store.
"""

from encore.providers.store.sqlite_document_store import SQLiteDocumentStore

__all__ = ["SQLiteDocumentStore"]
