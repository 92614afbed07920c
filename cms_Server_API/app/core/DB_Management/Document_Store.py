# Document_Store.py
# Description: File-backed keyed JSON document collections with lazy in-memory caching.
#
# Each entity collection (site images, packages, share links, ...) lives in one JSON array file.
# The file is loaded once per process, served from memory, and rewritten in full on every
# successful mutation. Written content is handed to the SyncQueue (if configured) so the
# remote mirror eventually receives it.
#
# Imports
import asyncio
import copy
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Tuple, TYPE_CHECKING
#
# 3rd-party Libraries
import aiofiles
import aiofiles.os
from loguru import logger
#
# Local Imports
if TYPE_CHECKING:
    from cms_Server_API.app.core.DB_Management.History_Ledger import PackageHistoryLedger
    from cms_Server_API.app.core.Sync.queue import SyncQueue
#
########################################################################################################################
#
# Exceptions:

class ContentStoreError(Exception):
    """Base exception for document store errors."""
    pass


class InputError(ContentStoreError):
    """Raised when caller-supplied fields are missing, unknown or invalid."""
    pass


class ConflictError(ContentStoreError):
    """Raised when a unique key already exists in the collection."""
    def __init__(self, message, entity=None, key=None):
        super().__init__(message)
        self.entity = entity
        self.key = key


class StoreWriteError(ContentStoreError):
    """Raised when a collection file could not be written. In-memory state is unchanged."""
    pass


########################################################################################################################
#
# Timestamp helpers:

DATE_FIELDS = ("createdAt", "updatedAt", "expiresAt", "revokedAt")
PROTECTED_FIELDS = frozenset({"id", "createdAt", "updatedAt"})


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_wire_date(value: datetime) -> str:
    """UTC, millisecond precision, 'Z' suffix (the format browsers emit for Date.toISOString)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def from_wire_date(value: str) -> datetime:
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def revive_dates(item: Dict[str, Any]) -> Dict[str, Any]:
    """Converts wire date strings back into datetimes for the known date fields."""
    if not isinstance(item, dict):
        raise ValueError(f"expected a JSON object, got {type(item).__name__}")
    out = dict(item)
    for key in DATE_FIELDS:
        value = out.get(key)
        if isinstance(value, str):
            out[key] = from_wire_date(value)
    return out


def _json_default(value: Any):
    if isinstance(value, datetime):
        return to_wire_date(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def serialize_collection(items: List[Dict[str, Any]]) -> str:
    return json.dumps(items, indent=2, ensure_ascii=False, default=_json_default)


def to_wire_document(item: Dict[str, Any]) -> Dict[str, Any]:
    """JSON-ready copy of a document (dates as wire strings, nested snapshots included)."""
    return json.loads(json.dumps(item, default=_json_default))


########################################################################################################################
#
# Schemas:

@dataclass(frozen=True)
class FieldSpec:
    name: str
    required: bool = False
    default: Any = None


@dataclass(frozen=True)
class EntitySchema:
    """
    Describes one entity collection.

    Attributes:
        name: Human readable entity name, used in logs and errors.
        filename: Collection file name (also the remote file name).
        fields: Domain fields in on-disk order. `id`, `createdAt` and `updatedAt` are implicit.
        key_field: Unique string key (e.g. "key", "code"), or None for id-only entities.
        sortable: Whether `list()` orders by `sortOrder`.
    """
    name: str
    filename: str
    fields: Tuple[FieldSpec, ...]
    key_field: Optional[str] = None
    sortable: bool = False
    field_names: FrozenSet[str] = field(init=False)
    required: Tuple[str, ...] = field(init=False)

    def __post_init__(self):
        object.__setattr__(self, "field_names", frozenset(f.name for f in self.fields))
        object.__setattr__(self, "required", tuple(f.name for f in self.fields if f.required))


########################################################################################################################
#
# Collection file:

class CollectionFile:
    """Reads and writes one JSON array file, mirroring writes to the sync queue."""

    def __init__(self, path: Path, sync_queue: Optional["SyncQueue"] = None,
                 legacy_path: Optional[Path] = None,
                 reviver: Callable[[Dict[str, Any]], Dict[str, Any]] = revive_dates):
        self.path = Path(path)
        self.filename = self.path.name
        self.sync_queue = sync_queue
        self.legacy_path = Path(legacy_path) if legacy_path else None
        self._reviver = reviver

    async def _read_path(self, path: Path) -> List[Dict[str, Any]]:
        async with aiofiles.open(path, "r", encoding="utf-8") as f:
            raw = await f.read()
        parsed = json.loads(raw)
        if not isinstance(parsed, list):
            raise ValueError(f"expected a JSON array, got {type(parsed).__name__}")
        return [self._reviver(item) for item in parsed]

    async def read(self) -> List[Dict[str, Any]]:
        """
        Loads the collection. Never raises: a missing file yields an empty list,
        unreadable or corrupt content yields an empty list and a warning.
        """
        try:
            return await self._read_path(self.path)
        except FileNotFoundError:
            if self.legacy_path is not None:
                return await self._migrate_legacy()
            return []
        except Exception as e:
            logger.warning(f"[DocumentStore] Failed to read {self.path}: {e}")
            return []

    async def _migrate_legacy(self) -> List[Dict[str, Any]]:
        try:
            items = await self._read_path(self.legacy_path)
        except FileNotFoundError:
            return []
        except Exception as e:
            logger.warning(f"[DocumentStore] Failed to read legacy file {self.legacy_path}: {e}")
            return []

        logger.info(f"[DocumentStore] Migrating {len(items)} records from {self.legacy_path} to {self.path}")
        try:
            await self.write(items)
        except StoreWriteError as e:
            logger.warning(f"[DocumentStore] Legacy migration could not be persisted: {e}")
        return items

    async def write(self, items: List[Dict[str, Any]]) -> str:
        """Serializes and atomically replaces the collection file, then enqueues it for sync."""
        content = serialize_collection(items)
        tmp_path = self.path.with_name(f".{self.path.name}.tmp")
        try:
            await aiofiles.os.makedirs(self.path.parent, exist_ok=True)
            async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
                await f.write(content)
            await aiofiles.os.replace(tmp_path, self.path)
        except OSError as e:
            logger.error(f"[DocumentStore] Failed to write {self.path}: {e}")
            raise StoreWriteError(f"Could not write collection file {self.path}: {e}") from e

        if self.sync_queue is not None:
            self.sync_queue.enqueue(self.filename, content)
        return content


########################################################################################################################
#
# Cached collection base:

class CachedCollection:
    """
    Load-once cache around a CollectionFile.

    Concurrent first readers share a single in-flight load. Mutations run under a
    per-collection lock and follow read-copy-update: the new list is staged, written,
    and only then swapped in, so a failed write leaves memory consistent with disk.
    """

    def __init__(self, collection_file: CollectionFile):
        self._file = collection_file
        self._items: Optional[List[Dict[str, Any]]] = None
        self._loading: Optional[asyncio.Future] = None
        self._lock = asyncio.Lock()

    @property
    def filename(self) -> str:
        return self._file.filename

    def _on_loaded(self, items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return items

    async def _ensure_loaded(self) -> List[Dict[str, Any]]:
        if self._items is not None:
            return self._items

        loading = self._loading
        if loading is None:
            loading = self._loading = asyncio.ensure_future(self._file.read())
        try:
            items = await asyncio.shield(loading)
        finally:
            if self._loading is loading and loading.done():
                self._loading = None

        if self._items is None:
            self._items = self._on_loaded(items)
        return self._items

    async def _commit(self, staged: List[Dict[str, Any]]) -> None:
        await self._file.write(staged)
        self._items = staged


########################################################################################################################
#
# Document store:

class DocumentStore(CachedCollection):
    """Generic keyed-JSON persistence for one entity collection."""

    def __init__(self, schema: EntitySchema, collection_file: CollectionFile,
                 ledger: Optional["PackageHistoryLedger"] = None,
                 clock: Callable[[], datetime] = utc_now):
        super().__init__(collection_file)
        self.schema = schema
        self._ledger = ledger
        self._clock = clock
        # Highest id this store has ever seen; ids are never handed out twice per process.
        self._id_ceiling = 0
        if ledger is not None:
            ledger.bind(self)

    def _on_loaded(self, items):
        self._id_ceiling = max([self._id_ceiling] + [_int_id(item) for item in items])
        return items

    def _next_id(self, items: List[Dict[str, Any]]) -> int:
        live_max = max([0] + [_int_id(item) for item in items])
        next_id = max(live_max, self._id_ceiling) + 1
        self._id_ceiling = next_id
        return next_id

    # --- validation ---
    def _clean_input(self, data: Dict[str, Any], partial: bool) -> Dict[str, Any]:
        clean = {k: v for k, v in data.items() if k not in PROTECTED_FIELDS}
        unknown = sorted(set(clean) - self.schema.field_names)
        if unknown:
            raise InputError(f"Unknown field(s) for {self.schema.name}: {', '.join(unknown)}")
        if partial:
            nulled = [name for name in self.schema.required if name in clean and clean[name] is None]
            if nulled:
                raise InputError(f"Field(s) cannot be null for {self.schema.name}: {', '.join(nulled)}")
        else:
            missing = [name for name in self.schema.required if clean.get(name) is None]
            if missing:
                raise InputError(f"Missing required field(s) for {self.schema.name}: {', '.join(missing)}")
        return clean

    def _require_key_field(self) -> str:
        if not self.schema.key_field:
            raise InputError(f"{self.schema.name} documents are not keyed")
        return self.schema.key_field

    def _check_key_free(self, items: List[Dict[str, Any]], key: Any, own_id: Optional[int] = None) -> None:
        key_field = self.schema.key_field
        if any(item.get(key_field) == key and item.get("id") != own_id for item in items):
            raise ConflictError(f"A {self.schema.name} with {key_field} '{key}' already exists",
                                entity=self.schema.name, key=key)

    def _build_record(self, doc_id: int, clean: Dict[str, Any], now: datetime) -> Dict[str, Any]:
        record: Dict[str, Any] = {"id": doc_id}
        for spec in self.schema.fields:
            value = clean.get(spec.name)
            record[spec.name] = copy.deepcopy(value if value is not None else spec.default)
        record["createdAt"] = now
        record["updatedAt"] = now
        return record

    async def _record_history(self, action: str, snapshot: Dict[str, Any]) -> None:
        if self._ledger is not None:
            await self._ledger.record(action, snapshot)

    # --- reads ---
    async def list(self) -> List[Dict[str, Any]]:
        items = await self._ensure_loaded()
        out = [copy.deepcopy(item) for item in items]
        if self.schema.sortable:
            out.sort(key=lambda item: item.get("sortOrder") or 0)
        return out

    async def find(self, predicate: Callable[[Dict[str, Any]], bool]) -> List[Dict[str, Any]]:
        return [item for item in await self.list() if predicate(item)]

    async def get_by_key(self, key: str) -> Optional[Dict[str, Any]]:
        key_field = self._require_key_field()
        items = await self._ensure_loaded()
        for item in items:
            if item.get(key_field) == key:
                return copy.deepcopy(item)
        return None

    async def get_by_id(self, doc_id: int) -> Optional[Dict[str, Any]]:
        items = await self._ensure_loaded()
        for item in items:
            if item.get("id") == doc_id:
                return copy.deepcopy(item)
        return None

    # --- writes ---
    async def create(self, data: Dict[str, Any]) -> Dict[str, Any]:
        clean = self._clean_input(data, partial=False)
        async with self._lock:
            items = await self._ensure_loaded()
            key_field = self.schema.key_field
            if key_field:
                self._check_key_free(items, clean[key_field])
            record = self._build_record(self._next_id(items), clean, self._clock())
            await self._commit(items + [record])
            logger.debug(f"[DocumentStore] Created {self.schema.name} id={record['id']}")
            await self._record_history("create", record)
            return copy.deepcopy(record)

    async def upsert_by_key(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Inserts a new keyed document or updates the existing one.

        On update the original `id` and `createdAt` are preserved; required fields are
        overwritten and optional fields keep their stored value when omitted.
        """
        key_field = self._require_key_field()
        clean = self._clean_input(data, partial=False)
        async with self._lock:
            items = await self._ensure_loaded()
            now = self._clock()
            index = next((i for i, item in enumerate(items) if item.get(key_field) == clean[key_field]), -1)
            if index == -1:
                record = self._build_record(self._next_id(items), clean, now)
                await self._commit(items + [record])
                await self._record_history("create", record)
                return copy.deepcopy(record)

            existing = items[index]
            updated = dict(existing)
            for spec in self.schema.fields:
                value = clean.get(spec.name)
                if spec.required or value is not None:
                    updated[spec.name] = copy.deepcopy(value)
                elif spec.name not in existing:
                    updated[spec.name] = copy.deepcopy(spec.default)
            updated["updatedAt"] = now
            staged = list(items)
            staged[index] = updated
            await self._commit(staged)
            await self._record_history("update", updated)
            return copy.deepcopy(updated)

    async def _update_where(self, match: Callable[[Dict[str, Any]], bool],
                            partial: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        clean = self._clean_input(partial, partial=True)
        async with self._lock:
            items = await self._ensure_loaded()
            index = next((i for i, item in enumerate(items) if match(item)), -1)
            if index == -1:
                return None
            key_field = self.schema.key_field
            if key_field and key_field in clean and clean[key_field] != items[index].get(key_field):
                self._check_key_free(items, clean[key_field], own_id=items[index].get("id"))
            updated = {**items[index], **copy.deepcopy(clean), "updatedAt": self._clock()}
            staged = list(items)
            staged[index] = updated
            await self._commit(staged)
            await self._record_history("update", updated)
            return copy.deepcopy(updated)

    async def update(self, doc_id: int, partial: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return await self._update_where(lambda item: item.get("id") == doc_id, partial)

    async def update_by_key(self, key: str, partial: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        key_field = self._require_key_field()
        if key_field in partial and partial[key_field] != key:
            raise InputError(f"Cannot change {key_field} of an existing {self.schema.name}")
        return await self._update_where(lambda item: item.get(key_field) == key, partial)

    async def _delete_where(self, match: Callable[[Dict[str, Any]], bool]) -> bool:
        async with self._lock:
            items = await self._ensure_loaded()
            removed = [item for item in items if match(item)]
            if not removed:
                return False
            await self._commit([item for item in items if not match(item)])
            for item in removed:
                await self._record_history("delete", item)
            return True

    async def delete(self, doc_id: int) -> bool:
        return await self._delete_where(lambda item: item.get("id") == doc_id)

    async def delete_by_key(self, key: str) -> bool:
        key_field = self._require_key_field()
        return await self._delete_where(lambda item: item.get(key_field) == key)

    async def put(self, document: Dict[str, Any], action: str = "restore") -> Dict[str, Any]:
        """
        Writes a full document back by id: overwrites in place when the id exists,
        appends otherwise. `updatedAt` is refreshed; `createdAt` is kept when present.

        The document is validated like a `create` payload; unknown or missing fields raise InputError.
        """
        doc_id = document.get("id")
        if not isinstance(doc_id, int) or isinstance(doc_id, bool):
            raise InputError(f"{self.schema.name} document needs an integer id to be restored")
        clean = self._clean_input(document, partial=False)
        async with self._lock:
            items = await self._ensure_loaded()
            if self.schema.key_field:
                self._check_key_free(items, clean[self.schema.key_field], own_id=doc_id)
            now = self._clock()
            record = self._build_record(doc_id, clean, now)
            record["createdAt"] = document.get("createdAt") or now
            staged = list(items)
            index = next((i for i, item in enumerate(items) if item.get("id") == doc_id), -1)
            if index == -1:
                staged.append(record)
            else:
                staged[index] = record
            await self._commit(staged)
            self._id_ceiling = max(self._id_ceiling, doc_id)
            await self._record_history(action, record)
            return copy.deepcopy(record)


def _int_id(item: Dict[str, Any]) -> int:
    value = item.get("id")
    return value if isinstance(value, int) and not isinstance(value, bool) else 0

#
# End of Document_Store.py
########################################################################################################################
