"""
Local entity store for ShiftSync.

Each collection is kept as one JSON document (a list of records, or a single
record for the company profile), so a reader always sees a whole collection.
The store owns revision stamping: every upsert sets ``updatedAt`` from the
store's clock and callers cannot choose it.
"""

import copy
import json
import sqlite3
import threading
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from shared.clock import RevisionClock
from shared.logging_config import get_store_logger
from shared.models import (DEFAULT_COMPANY, INITIAL_SETTINGS, REVISION_FIELD,
                           Collection)
from shared.utils import get_data_path, to_number

logger = get_store_logger()

CollectionRef = Union[Collection, str]


class DatabaseException(Exception):
    """Custom exception for local store operations"""
    pass


def get_db_path() -> Path:
    """Get the default local store file path in the per-user data directory"""
    return get_data_path('shiftsync.db')


def resolve_collection(collection: CollectionRef) -> Collection:
    if isinstance(collection, Collection):
        return collection
    try:
        return Collection.from_name(collection)
    except ValueError as e:
        raise DatabaseException(str(e))


def default_for(collection: Collection) -> Any:
    """Seed value returned for a collection that has never been written"""
    if collection is Collection.SETTINGS:
        return copy.deepcopy(INITIAL_SETTINGS)
    if collection is Collection.COMPANY:
        return copy.deepcopy(DEFAULT_COMPANY)
    return []


def record_key(record: Dict[str, Any], key_field: str) -> str:
    """String form of a record's identity ('' when missing)"""
    value = record.get(key_field)
    if not value:
        return ''
    return str(value)


class EntityStore:
    """Revisioned per-collection CRUD on top of a raw document backend.

    Subclasses provide ``_load``/``_save`` for raw JSON text plus the device
    settings accessors.
    """

    def __init__(self, clock=None):
        self.clock = clock or RevisionClock()
        self._lock = threading.RLock()

    # Backend hooks
    def _load(self, name: str) -> Optional[str]:
        raise NotImplementedError

    def _save(self, name: str, raw: str, stamp: int) -> None:
        raise NotImplementedError

    def get_setting(self, key: str, default: Optional[str] = None) -> Optional[str]:
        raise NotImplementedError

    def set_setting(self, key: str, value: str) -> None:
        raise NotImplementedError

    def _next_revision(self, previous: Optional[Dict[str, Any]]) -> int:
        """Fresh stamp that is newer than the record's current revision"""
        stamp = self.clock.now()
        if previous is not None:
            stamp = max(stamp, int(to_number(previous.get(REVISION_FIELD))) + 1)
        return stamp

    def _observe(self, records: List[Dict[str, Any]]) -> None:
        for record in records:
            self.clock.observe(int(to_number(record.get(REVISION_FIELD))))

    # Document level
    def _read(self, collection: Collection) -> Any:
        raw = self._load(collection.value)
        if raw is None:
            return default_for(collection)
        try:
            data = json.loads(raw)
        except ValueError as e:
            logger.error(f"Stored {collection.value} is not valid JSON, using defaults: {e}")
            return default_for(collection)

        if collection is Collection.COMPANY:
            if isinstance(data, list):
                data = data[0] if data else None
            if not isinstance(data, dict):
                logger.error(f"Stored {collection.value} is not a record, using defaults")
                return default_for(collection)
            return data

        if not isinstance(data, list):
            logger.error(f"Stored {collection.value} is not a list, using defaults")
            return default_for(collection)
        return [r for r in data if isinstance(r, dict)]

    def _write(self, collection: Collection, data: Any) -> None:
        try:
            raw = json.dumps(data, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise DatabaseException(f"{collection.value} is not JSON serializable: {e}")
        self._save(collection.value, raw, int(time.time() * 1000))

    # Public API
    def get_all(self, collection: CollectionRef) -> List[Dict[str, Any]]:
        """All records of a collection in insertion order (the company as a one-element list)"""
        coll = resolve_collection(collection)
        with self._lock:
            data = self._read(coll)
        if coll is Collection.COMPANY:
            return [data]
        return data

    def get(self, collection: CollectionRef, key: str) -> Optional[Dict[str, Any]]:
        coll = resolve_collection(collection)
        if coll is Collection.COMPANY:
            return self.get_company()
        for record in self.get_all(coll):
            if record_key(record, coll.key_field) == str(key):
                return record
        return None

    def upsert(self, collection: CollectionRef, record: Dict[str, Any]) -> Dict[str, Any]:
        """Insert or replace a record by key and stamp a fresh revision.

        Returns the stored copy. Any caller-supplied ``updatedAt`` is replaced.
        """
        coll = resolve_collection(collection)
        if coll is Collection.COMPANY:
            return self.update_company(record)

        key_field = coll.key_field
        key = record_key(record, key_field)
        if not key:
            raise DatabaseException(f"{coll.value} record is missing its key field '{key_field}'")

        stored = dict(record)
        with self._lock:
            records = self._read(coll)
            for index, existing in enumerate(records):
                if record_key(existing, key_field) == key:
                    stored[REVISION_FIELD] = self._next_revision(existing)
                    records[index] = stored
                    break
            else:
                stored[REVISION_FIELD] = self._next_revision(None)
                records.append(stored)
            self._write(coll, records)

        logger.debug(f"Upserted {coll.value} {key} at revision {stored[REVISION_FIELD]}")
        return copy.deepcopy(stored)

    def remove(self, collection: CollectionRef, key: str) -> bool:
        """Delete a record by key. Deletes carry no revision and are not synchronized."""
        coll = resolve_collection(collection)
        if coll is Collection.COMPANY:
            raise DatabaseException("The company profile cannot be removed")

        with self._lock:
            records = self._read(coll)
            remaining = [r for r in records if record_key(r, coll.key_field) != str(key)]
            if len(remaining) == len(records):
                return False
            self._write(coll, remaining)

        logger.debug(f"Removed {coll.value} {key}")
        return True

    def get_company(self) -> Dict[str, Any]:
        with self._lock:
            return self._read(Collection.COMPANY)

    def update_company(self, info: Dict[str, Any]) -> Dict[str, Any]:
        stored = dict(info)
        with self._lock:
            stored[REVISION_FIELD] = self._next_revision(self._read(Collection.COMPANY))
            self._write(Collection.COMPANY, stored)
        return copy.deepcopy(stored)

    def save_merged(self, collection: CollectionRef, records: List[Dict[str, Any]]) -> None:
        """Replace a whole collection with reconciled records, keeping their revisions.

        Only the sync engine calls this; the revisions it writes were assigned
        by some device's store when the records were last edited.
        """
        coll = resolve_collection(collection)
        with self._lock:
            if coll is Collection.COMPANY:
                company = records[0] if records else None
                if not isinstance(company, dict):
                    raise DatabaseException("Merged company profile must be a record")
                self._observe([company])
                self._write(coll, company)
            else:
                kept = [r for r in records if isinstance(r, dict)]
                self._observe(kept)
                self._write(coll, kept)


class SQLiteEntityStore(EntityStore):
    """Entity store persisted to a SQLite file on the device"""

    def __init__(self, db_path: Optional[Path] = None, clock=None):
        super().__init__(clock)
        self.db_path = Path(db_path) if db_path else get_db_path()
        self.init_database()

    def get_connection(self) -> sqlite3.Connection:
        """Get a database connection with row factory"""
        conn = sqlite3.connect(str(self.db_path))
        # Wait up to 5s on locks held by another process
        conn.execute("PRAGMA busy_timeout = 5000")
        conn.row_factory = sqlite3.Row
        return conn

    def init_database(self):
        """Initialize the database with required tables"""
        conn = self.get_connection()
        try:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS collections (
                    name TEXT PRIMARY KEY,
                    data TEXT NOT NULL,
                    updated_at INTEGER
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS settings (
                    key TEXT PRIMARY KEY,
                    value TEXT
                )
            """)
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise DatabaseException(f"Failed to initialize database: {e}")
        finally:
            conn.close()

    def _load(self, name: str) -> Optional[str]:
        conn = self.get_connection()
        try:
            row = conn.execute("SELECT data FROM collections WHERE name = ?", (name,)).fetchone()
            return row['data'] if row else None
        except sqlite3.Error as e:
            raise DatabaseException(f"Failed to read {name}: {e}")
        finally:
            conn.close()

    def _save(self, name: str, raw: str, stamp: int) -> None:
        conn = self.get_connection()
        try:
            conn.execute("""
                INSERT OR REPLACE INTO collections (name, data, updated_at) VALUES (?, ?, ?)
            """, (name, raw, stamp))
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise DatabaseException(f"Failed to write {name}: {e}")
        finally:
            conn.close()

    def get_setting(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Get a setting value from the database"""
        conn = self.get_connection()
        try:
            row = conn.execute("SELECT value FROM settings WHERE key = ?", (key,)).fetchone()
            return row['value'] if row else default
        finally:
            conn.close()

    def set_setting(self, key: str, value: str) -> None:
        """Set a setting value in the database"""
        conn = self.get_connection()
        try:
            conn.execute("""
                INSERT OR REPLACE INTO settings (key, value) VALUES (?, ?)
            """, (key, value))
            conn.commit()
        finally:
            conn.close()


class MemoryEntityStore(EntityStore):
    """Entity store held in memory; no I/O"""

    def __init__(self, clock=None):
        super().__init__(clock)
        self._documents: Dict[str, str] = {}
        self._settings: Dict[str, str] = {}

    def _load(self, name: str) -> Optional[str]:
        return self._documents.get(name)

    def _save(self, name: str, raw: str, stamp: int) -> None:
        self._documents[name] = raw

    def get_setting(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self._settings.get(key, default)

    def set_setting(self, key: str, value: str) -> None:
        self._settings[key] = value
