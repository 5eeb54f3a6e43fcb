"""
SQLite Repository - Entity storage with FTS5 search and an embedding job outbox.

Features:
- Async operations via aiosqlite
- Full-text search with FTS5 (the lexical index, kept in sync by triggers)
- Vector storage as float32 blobs alongside the source-of-truth content
- Transactional outbox of embedding jobs, deduplicated per entity
- WAL mode with separate reader/writer connections so reads never wait on writes
"""

from __future__ import annotations

import asyncio
import logging
import re
import sqlite3
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import aiosqlite
import numpy as np
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from hybridrag.config import ErrorCode, StorageError

logger = logging.getLogger(__name__)

__all__ = ["SQLiteRepository", "StoreTransaction", "build_match_query", "utcnow"]

_TOKEN_RE = re.compile(r"\w+", re.UNICODE)
_ID_SEPARATOR = "\x1f"

SCHEMA = """
    -- Searchable entities of every type (tagged by entity_type)
    CREATE TABLE IF NOT EXISTS entities (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        entity_type TEXT NOT NULL,
        parent_id INTEGER,
        root_id INTEGER,
        tenant_id TEXT,
        owner_id TEXT NOT NULL,
        visibility TEXT NOT NULL DEFAULT 'private',
        title TEXT NOT NULL DEFAULT '',
        body TEXT NOT NULL DEFAULT '',
        embedding_text TEXT NOT NULL DEFAULT '',
        embedding BLOB,
        embedding_dim INTEGER,
        embedding_generated_at TEXT,
        stale INTEGER NOT NULL DEFAULT 1,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    );

    -- FTS5 virtual table for full-text search
    CREATE VIRTUAL TABLE IF NOT EXISTS entities_fts USING fts5(
        title,
        body,
        content='entities',
        content_rowid='id',
        tokenize='porter'
    );

    -- Triggers to keep FTS in sync (vector writes do not touch the FTS index)
    CREATE TRIGGER IF NOT EXISTS entities_ai AFTER INSERT ON entities BEGIN
        INSERT INTO entities_fts(rowid, title, body)
        VALUES (new.id, new.title, new.body);
    END;

    CREATE TRIGGER IF NOT EXISTS entities_ad AFTER DELETE ON entities BEGIN
        INSERT INTO entities_fts(entities_fts, rowid, title, body)
        VALUES ('delete', old.id, old.title, old.body);
    END;

    CREATE TRIGGER IF NOT EXISTS entities_au AFTER UPDATE OF title, body ON entities BEGIN
        INSERT INTO entities_fts(entities_fts, rowid, title, body)
        VALUES ('delete', old.id, old.title, old.body);
        INSERT INTO entities_fts(rowid, title, body)
        VALUES (new.id, new.title, new.body);
    END;

    -- Tenant memberships
    CREATE TABLE IF NOT EXISTS memberships (
        principal_id TEXT NOT NULL,
        tenant_id TEXT NOT NULL,
        role TEXT NOT NULL DEFAULT 'member',
        status TEXT NOT NULL DEFAULT 'active',
        PRIMARY KEY (principal_id, tenant_id)
    );

    -- Per-list collaborator grants
    CREATE TABLE IF NOT EXISTS collaborators (
        root_id INTEGER NOT NULL,
        principal_id TEXT NOT NULL,
        permission TEXT NOT NULL DEFAULT 'read',
        PRIMARY KEY (root_id, principal_id)
    );

    -- Embedding job outbox, one row per entity
    CREATE TABLE IF NOT EXISTS embedding_jobs (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        entity_type TEXT NOT NULL,
        entity_id INTEGER NOT NULL UNIQUE,
        status TEXT NOT NULL DEFAULT 'pending',
        attempts INTEGER NOT NULL DEFAULT 0,
        last_error TEXT,
        available_at TEXT NOT NULL,
        enqueued_at TEXT NOT NULL
    );

    -- Indexes
    CREATE INDEX IF NOT EXISTS idx_entities_type ON entities(entity_type);
    CREATE INDEX IF NOT EXISTS idx_entities_root ON entities(root_id);
    CREATE INDEX IF NOT EXISTS idx_entities_parent ON entities(parent_id);
    CREATE INDEX IF NOT EXISTS idx_entities_generated ON entities(entity_type, embedding_generated_at);
    CREATE INDEX IF NOT EXISTS idx_jobs_due ON embedding_jobs(status, available_at);
    CREATE INDEX IF NOT EXISTS idx_collaborators_principal ON collaborators(principal_id);
"""

ENTITY_COLUMNS = """
    e.id, e.entity_type, e.parent_id, e.root_id, e.tenant_id, e.owner_id,
    e.visibility, e.title, e.body, e.embedding_text, e.embedding_dim,
    e.embedding_generated_at, e.stale, e.created_at, e.updated_at,
    p.title AS parent_title,
    (
        SELECT group_concat(c.principal_id, char(31))
        FROM collaborators c
        WHERE c.root_id = e.root_id
    ) AS collaborator_ids
"""


def utcnow() -> datetime:
    """Current UTC time (timezone-aware)."""
    return datetime.now(timezone.utc)


def _ts(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat()


def build_match_query(query: str) -> str | None:
    """
    Turn free text into a safe FTS5 MATCH expression.

    Every word becomes a quoted prefix term; terms are OR-ed so any matching
    word counts as a lexical hit and bm25 ranks documents matching more terms
    higher. Returns None when the text has no searchable words.
    """
    tokens = _TOKEN_RE.findall(query.lower())
    if not tokens:
        return None
    unique = list(dict.fromkeys(tokens))
    return " OR ".join(f'"{token}"*' for token in unique)


def _decode_row(row: aiosqlite.Row) -> dict[str, Any]:
    data = dict(row)
    ids = data.get("collaborator_ids")
    data["collaborator_ids"] = ids.split(_ID_SEPARATOR) if ids else []
    return data


class StoreTransaction:
    """
    Write operations bound to one open SQLite transaction.

    Obtained from ``SQLiteRepository.transaction()``; everything done through
    one instance commits or rolls back together.
    """

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def get_entity(self, entity_id: int) -> dict[str, Any] | None:
        """Read an entity inside the transaction (sees uncommitted writes)."""
        cursor = await self._conn.execute(
            f"""
            SELECT {ENTITY_COLUMNS}
            FROM entities e LEFT JOIN entities p ON p.id = e.parent_id
            WHERE e.id = ?
            """,
            (entity_id,),
        )
        row = await cursor.fetchone()
        return _decode_row(row) if row else None

    async def insert_entity(
        self,
        entity_type: str,
        owner_id: str,
        title: str,
        body: str,
        embedding_text: str,
        visibility: str,
        tenant_id: str | None = None,
        parent_id: int | None = None,
        root_id: int | None = None,
        now: datetime | None = None,
    ) -> int:
        """Insert an entity with no vector and stale=1. Returns the new id."""
        stamp = _ts(now or utcnow())
        cursor = await self._conn.execute(
            """
            INSERT INTO entities (
                entity_type, parent_id, root_id, tenant_id, owner_id, visibility,
                title, body, embedding_text, stale, created_at, updated_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, 1, ?, ?)
            """,
            (
                entity_type,
                parent_id,
                root_id,
                tenant_id,
                owner_id,
                visibility,
                title,
                body,
                embedding_text,
                stamp,
                stamp,
            ),
        )
        entity_id = cursor.lastrowid
        assert entity_id is not None
        return entity_id

    async def set_root(self, entity_id: int, root_id: int) -> None:
        """Point an entity at the list that governs its access."""
        await self._conn.execute(
            "UPDATE entities SET root_id = ? WHERE id = ?", (root_id, entity_id)
        )

    async def update_content(
        self,
        entity_id: int,
        title: str,
        body: str,
        embedding_text: str,
        now: datetime | None = None,
    ) -> None:
        """Write new content fields. Staleness is marked separately."""
        await self._conn.execute(
            """
            UPDATE entities
            SET title = ?, body = ?, embedding_text = ?, updated_at = ?
            WHERE id = ?
            """,
            (title, body, embedding_text, _ts(now or utcnow()), entity_id),
        )

    async def mark_stale(self, entity_id: int) -> None:
        """Flag the stored vector as outdated."""
        await self._conn.execute(
            "UPDATE entities SET stale = 1 WHERE id = ?", (entity_id,)
        )

    async def update_access(
        self,
        root_id: int,
        tenant_id: str | None,
        visibility: str,
        now: datetime | None = None,
    ) -> int:
        """Apply tenant/visibility to a list and everything it governs."""
        cursor = await self._conn.execute(
            """
            UPDATE entities
            SET tenant_id = ?, visibility = ?, updated_at = ?
            WHERE id = ? OR root_id = ?
            """,
            (tenant_id, visibility, _ts(now or utcnow()), root_id, root_id),
        )
        return cursor.rowcount

    async def descendant_ids(self, entity_id: int) -> list[int]:
        """Ids of every entity under ``entity_id`` (children, grandchildren, ...)."""
        cursor = await self._conn.execute(
            """
            WITH RECURSIVE tree(id) AS (
                SELECT id FROM entities WHERE parent_id = ?
                UNION
                SELECT e.id FROM entities e JOIN tree t ON e.parent_id = t.id
            )
            SELECT id FROM tree
            """,
            (entity_id,),
        )
        return [row[0] for row in await cursor.fetchall()]

    async def delete_entities(self, entity_ids: Sequence[int]) -> list[tuple[str, int]]:
        """
        Hard-delete entities, their FTS rows (via trigger) and pending jobs.

        Returns:
            (entity_type, entity_id) of every row actually deleted
        """
        if not entity_ids:
            return []
        placeholders = ",".join("?" for _ in entity_ids)
        cursor = await self._conn.execute(
            f"SELECT entity_type, id FROM entities WHERE id IN ({placeholders})",
            tuple(entity_ids),
        )
        deleted = [(row[0], row[1]) for row in await cursor.fetchall()]
        await self._conn.execute(
            f"DELETE FROM embedding_jobs WHERE entity_id IN ({placeholders})",
            tuple(entity_ids),
        )
        await self._conn.execute(
            f"DELETE FROM collaborators WHERE root_id IN ({placeholders})",
            tuple(entity_ids),
        )
        await self._conn.execute(
            f"DELETE FROM entities WHERE id IN ({placeholders})",
            tuple(entity_ids),
        )
        return deleted

    async def enqueue_job(
        self,
        entity_type: str,
        entity_id: int,
        now: datetime | None = None,
    ) -> None:
        """
        Publish an embedding work item.

        A pending job for the same entity absorbs the new request. A running
        job is flipped back to pending so the newer content gets its own pass,
        and a failed job is revived; both get a fresh attempt budget.
        """
        stamp = _ts(now or utcnow())
        await self._conn.execute(
            """
            INSERT INTO embedding_jobs (entity_type, entity_id, status, attempts, available_at, enqueued_at)
            VALUES (?, ?, 'pending', 0, ?, ?)
            ON CONFLICT(entity_id) DO UPDATE SET
                status = 'pending',
                attempts = CASE WHEN embedding_jobs.status = 'pending' THEN embedding_jobs.attempts ELSE 0 END,
                last_error = CASE WHEN embedding_jobs.status = 'pending' THEN embedding_jobs.last_error ELSE NULL END,
                available_at = CASE WHEN embedding_jobs.status = 'pending'
                    THEN min(embedding_jobs.available_at, excluded.available_at)
                    ELSE excluded.available_at END
            """,
            (entity_type, entity_id, stamp, stamp),
        )

    async def store_embedding(
        self,
        entity_id: int,
        expected_text: str,
        vector: np.ndarray,
        generated_at: datetime,
    ) -> bool:
        """
        Persist a vector and clear staleness, but only if the embedded text is
        still the entity's current text.

        Returns:
            False when the entity was deleted or its text changed meanwhile
        """
        blob = np.ascontiguousarray(vector, dtype=np.float32).tobytes()
        cursor = await self._conn.execute(
            """
            UPDATE entities
            SET embedding = ?, embedding_dim = ?, embedding_generated_at = ?, stale = 0
            WHERE id = ? AND embedding_text = ?
            """,
            (blob, int(vector.shape[-1]), _ts(generated_at), entity_id, expected_text),
        )
        return cursor.rowcount == 1

    async def upsert_membership(
        self,
        principal_id: str,
        tenant_id: str,
        status: str = "active",
        role: str = "member",
    ) -> None:
        await self._conn.execute(
            """
            INSERT INTO memberships (principal_id, tenant_id, role, status)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(principal_id, tenant_id) DO UPDATE SET
                role = excluded.role, status = excluded.status
            """,
            (principal_id, tenant_id, role, status),
        )

    async def add_collaborator(
        self,
        root_id: int,
        principal_id: str,
        permission: str = "read",
    ) -> None:
        await self._conn.execute(
            """
            INSERT INTO collaborators (root_id, principal_id, permission)
            VALUES (?, ?, ?)
            ON CONFLICT(root_id, principal_id) DO UPDATE SET permission = excluded.permission
            """,
            (root_id, principal_id, permission),
        )

    async def remove_collaborator(self, root_id: int, principal_id: str) -> None:
        await self._conn.execute(
            "DELETE FROM collaborators WHERE root_id = ? AND principal_id = ?",
            (root_id, principal_id),
        )

    # --- Job bookkeeping ---

    async def claim_jobs(self, limit: int, now: datetime) -> list[dict[str, Any]]:
        """Mark up to ``limit`` due jobs as running and return them."""
        stamp = _ts(now)
        cursor = await self._conn.execute(
            """
            SELECT id, entity_type, entity_id, attempts
            FROM embedding_jobs
            WHERE status = 'pending' AND available_at <= ?
            ORDER BY available_at, id
            LIMIT ?
            """,
            (stamp, limit),
        )
        jobs = [dict(row) for row in await cursor.fetchall()]
        if jobs:
            placeholders = ",".join("?" for _ in jobs)
            await self._conn.execute(
                f"""
                UPDATE embedding_jobs
                SET status = 'running', attempts = attempts + 1
                WHERE id IN ({placeholders})
                """,
                tuple(job["id"] for job in jobs),
            )
            for job in jobs:
                job["attempts"] += 1
        return jobs

    # A job re-enqueued while running was flipped back to pending; the
    # status guard below leaves such rows alone so the newer request survives.

    async def complete_job(self, job_id: int) -> None:
        """Drop a finished job."""
        await self._conn.execute(
            "DELETE FROM embedding_jobs WHERE id = ? AND status = 'running'",
            (job_id,),
        )

    async def reschedule_job(
        self,
        job_id: int,
        available_at: datetime,
        error: str,
    ) -> None:
        await self._conn.execute(
            """
            UPDATE embedding_jobs
            SET status = 'pending', available_at = ?, last_error = ?
            WHERE id = ? AND status = 'running'
            """,
            (_ts(available_at), error[:1000], job_id),
        )

    async def fail_job(self, job_id: int, error: str) -> None:
        await self._conn.execute(
            """
            UPDATE embedding_jobs SET status = 'failed', last_error = ?
            WHERE id = ? AND status = 'running'
            """,
            (error[:1000], job_id),
        )

    async def requeue_running_jobs(self) -> int:
        """Return jobs orphaned by a crashed worker to the queue."""
        cursor = await self._conn.execute(
            "UPDATE embedding_jobs SET status = 'pending' WHERE status = 'running'"
        )
        return cursor.rowcount

    async def enqueue_backfill(
        self,
        generated_before: datetime | None,
        now: datetime | None = None,
    ) -> int:
        """
        Enqueue every entity needing an embedding.

        Covers stale rows, rows without a vector, and (when ``generated_before``
        is given) vectors generated before that moment.
        """
        stamp = _ts(now or utcnow())
        cutoff = _ts(generated_before) if generated_before else None
        cursor = await self._conn.execute(
            """
            INSERT INTO embedding_jobs (entity_type, entity_id, status, attempts, available_at, enqueued_at)
            SELECT entity_type, id, 'pending', 0, ?, ?
            FROM entities
            WHERE stale = 1
               OR embedding IS NULL
               OR (? IS NOT NULL AND embedding_generated_at < ?)
            ON CONFLICT(entity_id) DO UPDATE SET
                status = 'pending',
                attempts = 0,
                last_error = NULL
            WHERE embedding_jobs.status = 'failed'
            """,
            (stamp, stamp, cutoff, cutoff),
        )
        return cursor.rowcount


class SQLiteRepository:
    """
    SQLite repository for searchable entities.

    Example:
        >>> repo = SQLiteRepository("data/hybridrag.db")
        >>> await repo.initialize()
        >>> async with repo.transaction() as tx:
        ...     entity_id = await tx.insert_entity("list", "u1", "Plan", "", "Plan", "private")
        >>> rows = await repo.search_fts("plan", entity_type="list")
    """

    def __init__(self, db_path: str | Path) -> None:
        """
        Initialize repository.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._writer: aiosqlite.Connection | None = None
        self._reader: aiosqlite.Connection | None = None
        self._write_lock = asyncio.Lock()

    async def _connect(self) -> aiosqlite.Connection:
        conn = await aiosqlite.connect(str(self.db_path), isolation_level=None)
        conn.row_factory = aiosqlite.Row
        await conn.execute("PRAGMA journal_mode=WAL")
        await conn.execute("PRAGMA busy_timeout=5000")
        return conn

    async def _get_writer(self) -> aiosqlite.Connection:
        """Get or create the write connection."""
        if self._writer is None:
            self._writer = await self._connect()
        return self._writer

    async def _get_reader(self) -> aiosqlite.Connection:
        """Get or create the read connection (sees committed data only)."""
        if self._reader is None:
            self._reader = await self._connect()
        return self._reader

    async def initialize(self) -> None:
        """Initialize database schema."""
        try:
            conn = await self._get_writer()
            await conn.executescript(SCHEMA)
        except sqlite3.Error as e:
            raise StorageError(
                f"Database initialization failed: {e}",
                {"db_path": str(self.db_path)},
            ) from e
        logger.info("Database initialized: %s", self.db_path)

    @retry(
        retry=retry_if_exception_type(sqlite3.OperationalError),
        stop=stop_after_attempt(5),
        wait=wait_exponential(multiplier=0.05, max=1),
        reraise=True,
    )
    async def _begin(self, conn: aiosqlite.Connection) -> None:
        # IMMEDIATE takes the write lock up front; another process holding it
        # surfaces as "database is locked".
        await conn.execute("BEGIN IMMEDIATE")

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[StoreTransaction]:
        """
        Open a write transaction.

        Example:
            >>> async with repo.transaction() as tx:
            ...     await tx.mark_stale(entity_id)
            ...     await tx.enqueue_job("list", entity_id)
        """
        async with self._write_lock:
            conn = await self._get_writer()
            try:
                await self._begin(conn)
            except sqlite3.OperationalError as e:
                raise StorageError(
                    f"Could not start transaction: {e}",
                    code=ErrorCode.STORAGE_WRITE_FAILED,
                ) from e
            try:
                yield StoreTransaction(conn)
            except BaseException:
                await conn.execute("ROLLBACK")
                raise
            else:
                await conn.execute("COMMIT")

    # --- Reads ---

    async def get_entity(
        self,
        entity_id: int,
        with_vector: bool = False,
    ) -> dict[str, Any] | None:
        """Get entity by ID, optionally with its stored vector."""
        conn = await self._get_reader()
        vector_column = ", e.embedding" if with_vector else ""
        cursor = await conn.execute(
            f"""
            SELECT {ENTITY_COLUMNS}{vector_column}
            FROM entities e LEFT JOIN entities p ON p.id = e.parent_id
            WHERE e.id = ?
            """,
            (entity_id,),
        )
        row = await cursor.fetchone()
        if not row:
            return None
        data = _decode_row(row)
        if with_vector:
            blob = data.pop("embedding")
            data["vector"] = np.frombuffer(blob, dtype=np.float32) if blob else None
        return data

    async def fetch_entities(
        self,
        entity_ids: Sequence[int],
        entity_type: str | None = None,
    ) -> list[dict[str, Any]]:
        """Load entities by id. Ids that no longer exist are silently absent."""
        if not entity_ids:
            return []
        conn = await self._get_reader()
        placeholders = ",".join("?" for _ in entity_ids)
        params: list[Any] = list(entity_ids)
        type_clause = ""
        if entity_type is not None:
            type_clause = "AND e.entity_type = ?"
            params.append(entity_type)
        cursor = await conn.execute(
            f"""
            SELECT {ENTITY_COLUMNS}
            FROM entities e LEFT JOIN entities p ON p.id = e.parent_id
            WHERE e.id IN ({placeholders}) {type_clause}
            """,
            tuple(params),
        )
        return [_decode_row(row) for row in await cursor.fetchall()]

    async def search_fts(
        self,
        query: str,
        entity_type: str,
        limit: int = 20,
    ) -> list[dict[str, Any]]:
        """
        Full-text search using FTS5.

        Args:
            query: Free-text query
            entity_type: Restrict matches to one entity type
            limit: Maximum results

        Returns:
            Dicts with 'id', 'score' (BM25, negative) and 'snippet'
        """
        match = build_match_query(query)
        if match is None:
            return []

        conn = await self._get_reader()
        cursor = await conn.execute(
            """
            SELECT e.id AS id,
                   bm25(entities_fts) AS score,
                   snippet(entities_fts, -1, '', '', '...', 24) AS snippet
            FROM entities_fts
            JOIN entities e ON entities_fts.rowid = e.id
            WHERE entities_fts MATCH ? AND e.entity_type = ?
            ORDER BY score, e.id
            LIMIT ?
            """,
            (match, entity_type, limit),
        )
        rows = await cursor.fetchall()
        return [dict(row) for row in rows]

    async def load_vectors(
        self,
        entity_type: str,
        generated_after: tuple[str, int] | None = None,
    ) -> tuple[list[int], list[np.ndarray], tuple[str, int] | None]:
        """
        Load stored vectors of one entity type.

        Args:
            entity_type: Entity type to load
            generated_after: Only vectors ordered after this
                (embedding_generated_at, id) watermark

        Returns:
            (ids, vectors, newest (embedding_generated_at, id) seen)
        """
        conn = await self._get_reader()
        sql = """
            SELECT id, embedding, embedding_generated_at
            FROM entities
            WHERE entity_type = ? AND embedding IS NOT NULL
        """
        params: list[Any] = [entity_type]
        if generated_after is not None:
            stamp, last_id = generated_after
            sql += """
              AND (embedding_generated_at > ?
                   OR (embedding_generated_at = ? AND id > ?))
            """
            params.extend([stamp, stamp, last_id])
        sql += " ORDER BY id"

        ids: list[int] = []
        vectors: list[np.ndarray] = []
        newest: tuple[str, int] | None = None
        async with conn.execute(sql, tuple(params)) as cursor:
            async for row in cursor:
                ids.append(row["id"])
                vectors.append(np.frombuffer(row["embedding"], dtype=np.float32))
                key = (row["embedding_generated_at"], row["id"])
                if newest is None or key > newest:
                    newest = key
        return ids, vectors, newest

    async def embedding_dimensions(self) -> dict[str, list[int]]:
        """Distinct stored vector dimensions per entity type."""
        conn = await self._get_reader()
        cursor = await conn.execute(
            """
            SELECT DISTINCT entity_type, embedding_dim
            FROM entities
            WHERE embedding_dim IS NOT NULL
            ORDER BY entity_type, embedding_dim
            """
        )
        dims: dict[str, list[int]] = {}
        for row in await cursor.fetchall():
            dims.setdefault(row[0], []).append(row[1])
        return dims

    async def get_memberships(self, principal_id: str) -> list[dict[str, Any]]:
        """Memberships of a principal, in any status."""
        conn = await self._get_reader()
        cursor = await conn.execute(
            "SELECT tenant_id, role, status FROM memberships WHERE principal_id = ? ORDER BY tenant_id",
            (principal_id,),
        )
        return [dict(row) for row in await cursor.fetchall()]

    async def get_job(self, entity_id: int) -> dict[str, Any] | None:
        """Outbox row for an entity, if any."""
        conn = await self._get_reader()
        cursor = await conn.execute(
            "SELECT * FROM embedding_jobs WHERE entity_id = ?", (entity_id,)
        )
        row = await cursor.fetchone()
        return dict(row) if row else None

    async def get_job_counts(self) -> dict[str, int]:
        """Number of outbox jobs per status."""
        conn = await self._get_reader()
        cursor = await conn.execute(
            "SELECT status, COUNT(*) FROM embedding_jobs GROUP BY status"
        )
        return {row[0]: row[1] for row in await cursor.fetchall()}

    async def get_entity_count(self, entity_type: str | None = None) -> int:
        """Get total entity count, optionally for one type."""
        conn = await self._get_reader()
        if entity_type:
            cursor = await conn.execute(
                "SELECT COUNT(*) FROM entities WHERE entity_type = ?", (entity_type,)
            )
        else:
            cursor = await conn.execute("SELECT COUNT(*) FROM entities")
        row = await cursor.fetchone()
        return row[0] if row else 0

    async def get_stats(self) -> dict[str, Any]:
        """Entity, staleness and job counts for health reporting."""
        conn = await self._get_reader()
        cursor = await conn.execute(
            """
            SELECT entity_type,
                   COUNT(*) AS total,
                   SUM(stale) AS stale,
                   SUM(CASE WHEN embedding IS NULL THEN 1 ELSE 0 END) AS without_vector
            FROM entities
            GROUP BY entity_type
            ORDER BY entity_type
            """
        )
        by_type = {
            row["entity_type"]: {
                "total": row["total"],
                "stale": row["stale"] or 0,
                "without_vector": row["without_vector"] or 0,
            }
            for row in await cursor.fetchall()
        }
        return {"entities": by_type, "jobs": await self.get_job_counts()}

    async def close(self) -> None:
        """Close database connections."""
        for conn in (self._reader, self._writer):
            if conn is not None:
                await conn.close()
        self._reader = None
        self._writer = None
