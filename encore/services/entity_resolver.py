"""Find-or-create resolution of artists and venues from free-text names.

Concerts are logged with plain artist and venue names; this service maps
each name onto the one normalized Artist / Venue document carrying it,
creating the document the first time the name is seen.

Matching is an exact, case-sensitive comparison on ``name``: "Radiohead"
and "radiohead" are two different artists.

The lookup and the create are two separate store calls, not a
transaction.  Two concurrent first-time resolutions of the same name can
therefore both miss and both create, leaving two documents with the same
name.  Later lookups return whichever the store lists first; nothing
merges the pair.
"""

from __future__ import annotations

from typing import Any

from encore.interfaces.document_store import FieldFilter, IDocumentStore
from encore.models.entities import UNKNOWN_LOCATION
from encore.models.refs import EntityKind, EntityRef
from encore.services.connection_manager import ConnectionManager
from encore.utils.clock import now_timestamp
from encore.utils.errors import InvalidInputError
from encore.utils.logging import get_logger

_RESOLVABLE_KINDS = (EntityKind.ARTISTS, EntityKind.VENUES)


class EntityResolver:
    """Resolves artist and venue names to stable references."""

    def __init__(self, store: IDocumentStore, connection: ConnectionManager) -> None:
        self._store = store
        self._connection = connection
        self._logger = get_logger(__name__)

    async def find_or_create(self, kind: EntityKind, name: str) -> EntityRef:
        """Return the reference of the *kind* document named *name*.

        Runs under the connection manager's retry policy.  Callers already
        inside a retried operation use :meth:`resolve` instead, so the
        retry wrapper is never nested.
        """
        return await self._connection.execute_with_retry(
            lambda: self.resolve(kind, name),
            f"find_or_create_{kind.value}",
        )

    async def find_or_create_artist(self, name: str) -> EntityRef:
        return await self.find_or_create(EntityKind.ARTISTS, name)

    async def find_or_create_venue(self, name: str) -> EntityRef:
        return await self.find_or_create(EntityKind.VENUES, name)

    async def resolve(self, kind: EntityKind, name: str) -> EntityRef:
        """Look up *name* in *kind*'s collection, creating the document if absent."""
        if kind not in _RESOLVABLE_KINDS:
            msg = f"Only artists and venues can be resolved by name, got {kind.value}"
            raise InvalidInputError(msg)
        if not name or not name.strip():
            msg = f"{kind.value[:-1].capitalize()} name is required"
            raise InvalidInputError(msg)

        matches = await self._store.query(
            kind.value,
            filters=[FieldFilter(field="name", op="==", value=name)],
            limit=1,
        )
        if matches:
            return EntityRef(kind=kind, id=matches[0]["id"])

        doc_id = await self._store.add(kind.value, self._new_document(kind, name))
        self._logger.info("entity_created", kind=kind.value, entity_id=doc_id, name=name)
        return EntityRef(kind=kind, id=doc_id)

    @staticmethod
    def _new_document(kind: EntityKind, name: str) -> dict[str, Any]:
        doc: dict[str, Any] = {"name": name, "createdAt": now_timestamp()}
        if kind == EntityKind.VENUES:
            # Only the name is known when a venue is created from a logged concert.
            doc.update(city=UNKNOWN_LOCATION, state=UNKNOWN_LOCATION, country=UNKNOWN_LOCATION)
        return doc
