"""Change detection for a document collection."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Callable

from .models import Document

if TYPE_CHECKING:
    from ._client import VereinsportalClient


@dataclass(frozen=True)
class ChangeSet:
    """Documents that changed between two polls."""

    added: tuple[Document, ...] = ()
    modified: tuple[Document, ...] = ()
    removed: tuple[str, ...] = ()

    def __bool__(self) -> bool:
        return bool(self.added or self.modified or self.removed)


class CollectionWatcher:
    """Polls a collection and reports what changed since the previous poll.

    Documents are compared by their server ``updateTime``. The first poll
    reports every document as added.
    """

    def __init__(self, client: VereinsportalClient, collection: str) -> None:
        self._client = client
        self._collection = collection
        self._versions: dict[str, datetime | None] = {}

    @property
    def collection(self) -> str:
        return self._collection

    async def async_poll(self) -> ChangeSet:
        """Read the collection once and diff it against the previous read."""
        documents = await self._client.async_get_collection(self._collection)
        current = {doc.id: doc for doc in documents}

        added = tuple(doc for doc_id, doc in current.items() if doc_id not in self._versions)
        modified = tuple(
            doc
            for doc_id, doc in current.items()
            if doc_id in self._versions and self._versions[doc_id] != doc.update_time
        )
        removed = tuple(doc_id for doc_id in self._versions if doc_id not in current)

        self._versions = {doc_id: doc.update_time for doc_id, doc in current.items()}
        return ChangeSet(added=added, modified=modified, removed=removed)

    async def async_listen(
        self,
        on_change: Callable[[ChangeSet], None],
        *,
        interval: float,
    ) -> None:
        """Poll every ``interval`` seconds and call ``on_change`` for non-empty change sets.

        Runs until cancelled. Errors from the store propagate to the caller.
        """
        while True:
            changes = await self.async_poll()
            if changes:
                on_change(changes)
            await asyncio.sleep(interval)
