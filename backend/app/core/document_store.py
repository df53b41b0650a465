"""
Document Store - collection/document persistence with transactions

Every service talks to this interface instead of a concrete database:
- get / set (with shallow merge) / delete single documents
- batch writes (set_many) and collection scans (list)
- run_transaction(fn) for atomic read-modify-write (counters, one-shot tokens)

Two backends:
- PostgresDocumentStore: JSONB rows in the `documents` table (psycopg2)
- InMemoryDocumentStore: process-local dicts, for local runs and tests

Author: TM3
Date: 2026-02-10
"""
import copy
import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Tuple

from fastapi.concurrency import run_in_threadpool
from psycopg2.extras import Json, execute_values

from app.core.config import settings
from app.core.database import get_db_connection_dict_with_retry, init_documents_table
from app.core.exceptions import ConfigError

logger = logging.getLogger(__name__)


# Collection names
SALES_ORDERS = "salesOrders"
STOCK_UPDATES = "stockUpdates"
STOCK_THRESHOLDS = "stockThresholds"
OAUTH_STATES = "oauthStates"
APP_CONFIG = "appConfig"


class Transaction(ABC):
    """Handle passed to a transaction function; all calls are synchronous"""

    @abstractmethod
    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    def set(self, collection: str, doc_id: str, data: Dict[str, Any], merge: bool = False) -> None:
        ...

    @abstractmethod
    def delete(self, collection: str, doc_id: str) -> bool:
        ...


class DocumentStore(ABC):
    """Async document store interface"""

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    async def set(self, collection: str, doc_id: str, data: Dict[str, Any], merge: bool = False) -> None:
        ...

    @abstractmethod
    async def set_many(self, collection: str, docs: Dict[str, Dict[str, Any]], merge: bool = False) -> None:
        ...

    @abstractmethod
    async def delete(self, collection: str, doc_id: str) -> bool:
        ...

    @abstractmethod
    async def list(self, collection: str) -> List[Tuple[str, Dict[str, Any]]]:
        ...

    @abstractmethod
    async def delete_collection(self, collection: str) -> int:
        ...

    @abstractmethod
    async def run_transaction(self, fn: Callable[[Transaction], Any]) -> Any:
        """Run fn(tx) atomically and return its result; roll back if it raises"""
        ...


# ============================================================================
# In-memory backend
# ============================================================================

class _InMemoryTransaction(Transaction):

    def __init__(self, data: Dict[str, Dict[str, Dict[str, Any]]]):
        self._data = data
        self._writes: Dict[Tuple[str, str], Optional[Dict[str, Any]]] = {}

    def get(self, collection, doc_id):
        key = (collection, doc_id)
        if key in self._writes:
            return copy.deepcopy(self._writes[key])
        return copy.deepcopy(self._data.get(collection, {}).get(doc_id))

    def set(self, collection, doc_id, data, merge=False):
        current = self.get(collection, doc_id) if merge else None
        if current:
            current.update(copy.deepcopy(data))
            self._writes[(collection, doc_id)] = current
        else:
            self._writes[(collection, doc_id)] = copy.deepcopy(data)

    def delete(self, collection, doc_id):
        existed = self.get(collection, doc_id) is not None
        self._writes[(collection, doc_id)] = None
        return existed

    def commit(self):
        for (collection, doc_id), value in self._writes.items():
            docs = self._data.setdefault(collection, {})
            if value is None:
                docs.pop(doc_id, None)
            else:
                docs[doc_id] = value


class InMemoryDocumentStore(DocumentStore):
    """Dict-backed store; a single lock makes every call and transaction atomic"""

    def __init__(self):
        self._data: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._lock = threading.RLock()

    async def get(self, collection, doc_id):
        with self._lock:
            return copy.deepcopy(self._data.get(collection, {}).get(doc_id))

    async def set(self, collection, doc_id, data, merge=False):
        await self.set_many(collection, {doc_id: data}, merge=merge)

    async def set_many(self, collection, docs, merge=False):
        with self._lock:
            tx = _InMemoryTransaction(self._data)
            for doc_id, data in docs.items():
                tx.set(collection, doc_id, data, merge=merge)
            tx.commit()

    async def delete(self, collection, doc_id):
        with self._lock:
            return self._data.get(collection, {}).pop(doc_id, None) is not None

    async def list(self, collection):
        with self._lock:
            docs = self._data.get(collection, {})
            return [(doc_id, copy.deepcopy(data)) for doc_id, data in sorted(docs.items())]

    async def delete_collection(self, collection):
        with self._lock:
            return len(self._data.pop(collection, {}))

    async def run_transaction(self, fn):
        with self._lock:
            tx = _InMemoryTransaction(self._data)
            result = fn(tx)
            tx.commit()
            return result


# ============================================================================
# PostgreSQL backend
# ============================================================================

_UPSERT_MERGE = """
    INSERT INTO documents (collection, doc_id, data)
    VALUES %s
    ON CONFLICT (collection, doc_id) DO UPDATE SET
        data = documents.data || EXCLUDED.data,
        updated_at = NOW()
"""

_UPSERT_REPLACE = """
    INSERT INTO documents (collection, doc_id, data)
    VALUES %s
    ON CONFLICT (collection, doc_id) DO UPDATE SET
        data = EXCLUDED.data,
        updated_at = NOW()
"""


class _PostgresTransaction(Transaction):

    def __init__(self, cursor):
        self._cursor = cursor

    def get(self, collection, doc_id):
        # Serializes writers on the same key even when the row does not exist yet
        self._cursor.execute(
            "SELECT pg_advisory_xact_lock(hashtext(%s))",
            (f"{collection}/{doc_id}",)
        )
        self._cursor.execute(
            "SELECT data FROM documents WHERE collection = %s AND doc_id = %s FOR UPDATE",
            (collection, doc_id)
        )
        row = self._cursor.fetchone()
        return dict(row["data"]) if row else None

    def set(self, collection, doc_id, data, merge=False):
        execute_values(
            self._cursor,
            _UPSERT_MERGE if merge else _UPSERT_REPLACE,
            [(collection, doc_id, Json(data))]
        )

    def delete(self, collection, doc_id):
        self._cursor.execute(
            "DELETE FROM documents WHERE collection = %s AND doc_id = %s",
            (collection, doc_id)
        )
        return self._cursor.rowcount > 0


class PostgresDocumentStore(DocumentStore):
    """
    JSONB document store on PostgreSQL

    Blocking psycopg2 calls run in the threadpool so the event loop keeps
    serving requests (progress polls in particular) during a sync.
    """

    def __init__(self, database_url: str = None, create_table: bool = True):
        self.database_url = database_url or settings.DATABASE_URL
        if not self.database_url:
            raise ConfigError("DATABASE_URL is required")
        if create_table:
            init_documents_table(self.database_url)

    def _connect(self):
        return get_db_connection_dict_with_retry(database_url=self.database_url)

    def _execute(self, fn):
        conn = self._connect()
        cursor = conn.cursor()
        try:
            result = fn(cursor)
            conn.commit()
            return result
        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()

    async def get(self, collection, doc_id):
        def _get(cursor):
            cursor.execute(
                "SELECT data FROM documents WHERE collection = %s AND doc_id = %s",
                (collection, doc_id)
            )
            row = cursor.fetchone()
            return dict(row["data"]) if row else None
        return await run_in_threadpool(self._execute, _get)

    async def set(self, collection, doc_id, data, merge=False):
        await self.set_many(collection, {doc_id: data}, merge=merge)

    async def set_many(self, collection, docs, merge=False):
        if not docs:
            return
        rows = [(collection, doc_id, Json(data)) for doc_id, data in docs.items()]

        def _set_many(cursor):
            execute_values(cursor, _UPSERT_MERGE if merge else _UPSERT_REPLACE, rows)
        await run_in_threadpool(self._execute, _set_many)

    async def delete(self, collection, doc_id):
        def _delete(cursor):
            cursor.execute(
                "DELETE FROM documents WHERE collection = %s AND doc_id = %s",
                (collection, doc_id)
            )
            return cursor.rowcount > 0
        return await run_in_threadpool(self._execute, _delete)

    async def list(self, collection):
        def _list(cursor):
            cursor.execute(
                "SELECT doc_id, data FROM documents WHERE collection = %s ORDER BY doc_id",
                (collection,)
            )
            return [(row["doc_id"], dict(row["data"])) for row in cursor.fetchall()]
        return await run_in_threadpool(self._execute, _list)

    async def delete_collection(self, collection):
        def _delete_collection(cursor):
            cursor.execute("DELETE FROM documents WHERE collection = %s", (collection,))
            return cursor.rowcount
        return await run_in_threadpool(self._execute, _delete_collection)

    async def run_transaction(self, fn):
        return await run_in_threadpool(self._execute, lambda cursor: fn(_PostgresTransaction(cursor)))


# Singleton instance for easy import
_document_store: Optional[DocumentStore] = None


def get_document_store() -> DocumentStore:
    """Get the configured document store (FastAPI dependency)"""
    global _document_store
    if _document_store is None:
        if settings.DOCUMENT_STORE == "memory":
            logger.warning("Using in-memory document store - data is lost on restart")
            _document_store = InMemoryDocumentStore()
        else:
            _document_store = PostgresDocumentStore()
    return _document_store
