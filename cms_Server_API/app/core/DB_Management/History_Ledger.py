# History_Ledger.py
# Description: Append-only snapshot log for the packages collection (undo / restore).
#
# Imports
import copy
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, TYPE_CHECKING
#
# 3rd-party Libraries
from loguru import logger
#
# Local Imports
from cms_Server_API.app.core.DB_Management.Document_Store import (
    CachedCollection, CollectionFile, InputError, revive_dates, utc_now
)
if TYPE_CHECKING:
    from cms_Server_API.app.core.DB_Management.Document_Store import DocumentStore
#
########################################################################################################################
#
# Functions:

HISTORY_ACTIONS = ("create", "update", "delete", "restore", "snapshot")


def revive_history_entry(item: Dict[str, Any]) -> Dict[str, Any]:
    entry = revive_dates(item)
    if isinstance(entry.get("snapshot"), dict):
        entry["snapshot"] = revive_dates(entry["snapshot"])
    return entry


class PackageHistoryLedger(CachedCollection):
    """
    Records every package mutation as an immutable snapshot entry.

    Snapshots are post-mutation rows for create/update/restore and the pre-deletion
    row for delete, so any entry can be fed back to `restore()`.
    Entries are only removed by `clear()`, or by the optional `max_entries` cap.
    """

    def __init__(self, collection_file: CollectionFile, max_entries: int = 0,
                 clock: Callable[[], datetime] = utc_now):
        super().__init__(collection_file)
        self.max_entries = max_entries
        self._clock = clock
        self._store: Optional["DocumentStore"] = None
        self._last_id = 0

    def bind(self, store: "DocumentStore") -> None:
        self._store = store

    def _on_loaded(self, items):
        self._last_id = max([self._last_id] + [item.get("id", 0) for item in items if isinstance(item.get("id"), int)])
        return items

    def _next_entry_id(self, now: datetime) -> int:
        # Millisecond timestamps, bumped when two entries land in the same millisecond.
        self._last_id = max(int(now.timestamp() * 1000), self._last_id + 1)
        return self._last_id

    async def record(self, action: str, snapshot: Dict[str, Any]) -> Dict[str, Any]:
        if action not in HISTORY_ACTIONS:
            raise InputError(f"Unknown history action '{action}'")
        async with self._lock:
            items = await self._ensure_loaded()
            now = self._clock()
            entry = {
                "id": self._next_entry_id(now),
                "packageId": snapshot.get("id"),
                "action": action,
                "snapshot": copy.deepcopy(snapshot),
                "createdAt": now,
            }
            staged = items + [entry]
            if self.max_entries and len(staged) > self.max_entries:
                staged = staged[-self.max_entries:]
            await self._commit(staged)
            logger.debug(f"[History] Recorded '{action}' for package {entry['packageId']}")
            return copy.deepcopy(entry)

    async def list(self) -> List[Dict[str, Any]]:
        """All entries, newest first."""
        items = await self._ensure_loaded()
        ordered = sorted(items, key=lambda entry: (entry["createdAt"], entry.get("id", 0)), reverse=True)
        return [copy.deepcopy(entry) for entry in ordered]

    async def list_for_package(self, package_id: int) -> List[Dict[str, Any]]:
        return [entry for entry in await self.list() if entry.get("packageId") == package_id]

    async def clear(self) -> None:
        async with self._lock:
            await self._ensure_loaded()
            await self._commit([])
            logger.info("[History] Package history cleared")

    async def restore(self, snapshot: Dict[str, Any], action: str = "restore") -> Dict[str, Any]:
        """
        Writes `snapshot` back into the packages collection (insert if absent, overwrite
        in place if present). The restore itself is recorded, so it can be undone too.
        """
        if self._store is None:
            raise RuntimeError("History ledger is not bound to a package store")
        restored = await self._store.put(snapshot, action=action)
        logger.info(f"[History] Package {restored['id']} restored ({action})")
        return restored

    async def snapshot_all(self) -> List[Dict[str, Any]]:
        """Records a 'snapshot' entry for every live package."""
        if self._store is None:
            raise RuntimeError("History ledger is not bound to a package store")
        entries = []
        for package in await self._store.list():
            entries.append(await self.record("snapshot", package))
        return entries

#
# End of History_Ledger.py
########################################################################################################################
