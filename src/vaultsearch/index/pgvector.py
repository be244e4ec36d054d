"""Read-side pgvector passage index."""

from __future__ import annotations

import logging
from contextlib import AbstractContextManager
from typing import Any, Callable, Dict, List, Optional, Sequence

from psycopg import Connection, sql

from vaultsearch.config import settings
from vaultsearch.db import get_db_connection

logger = logging.getLogger(__name__)

ConnectionFactory = Callable[[], AbstractContextManager[Connection]]

_PASSAGE_COLUMNS = sql.SQL(
    """
            p.id,
            p.content,
            p.path,
            p.title,
            p.embedding::real[] AS embedding,
            p.embedding_model,
            p.tags,
            p.extension,
            p.created_at,
            p.nchars,
            p.mtime,
            p.ctime,
            p.metadata
    """
)


def _vector_literal(values: Sequence[float]) -> str:
    # Build pgvector literal from raw floats.
    return "[" + ",".join(repr(float(value)) for value in values) + "]"


class PgVectorIndex:
    """Passages stored in a PostgreSQL table with a pgvector ``embedding`` column.

    Rows come back as dicts shaped for ``SearchHit.from_raw``; similarity
    search rows carry ``score = 1 - cosine distance``.
    """

    def __init__(
        self,
        table: Optional[str] = None,
        connection_factory: ConnectionFactory = get_db_connection,
    ) -> None:
        self.table = table or settings.passages_table
        self._connect = connection_factory

    def fetch_by_path(self, path: str) -> List[Dict[str, Any]]:
        query = sql.SQL(
            """
            SELECT {columns}
            FROM {table} AS p
            WHERE p.path = %s
            ORDER BY p.created_at NULLS LAST, p.id
            """
        ).format(columns=_PASSAGE_COLUMNS, table=sql.Identifier(self.table))

        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(query, (path,))
                rows = cur.fetchall()

        logger.debug("Fetched %s passages for %s", len(rows), path)
        return [dict(row) for row in rows]

    def vector_search(
        self,
        vector: Sequence[float],
        *,
        min_score: float,
        limit: int,
    ) -> List[Dict[str, Any]]:
        if limit <= 0:
            raise ValueError("Limit must be positive")

        query = sql.SQL(
            """
            WITH query_vec AS (
                SELECT %s::vector AS vec
            )
            SELECT {columns},
                1 - (p.embedding <=> query_vec.vec) AS score
            FROM {table} AS p, query_vec
            WHERE 1 - (p.embedding <=> query_vec.vec) >= %s
            ORDER BY p.embedding <=> query_vec.vec
            LIMIT %s
            """
        ).format(columns=_PASSAGE_COLUMNS, table=sql.Identifier(self.table))

        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(query, (_vector_literal(vector), min_score, limit))
                rows = cur.fetchall()

        return [dict(row) for row in rows]

    def ensure_schema(self, dimensions: Optional[int] = None) -> None:
        """Create the pgvector extension and passage table when missing."""

        vector_type = sql.SQL("vector({})").format(sql.Literal(dimensions)) if dimensions else sql.SQL("vector")
        statements = [
            sql.SQL("CREATE EXTENSION IF NOT EXISTS vector"),
            sql.SQL(
                """
                CREATE TABLE IF NOT EXISTS {table} (
                    id TEXT PRIMARY KEY,
                    content TEXT NOT NULL,
                    path TEXT NOT NULL,
                    title TEXT NOT NULL DEFAULT '',
                    embedding {vector_type} NOT NULL,
                    embedding_model TEXT NOT NULL DEFAULT '',
                    tags TEXT[] NOT NULL DEFAULT ARRAY[]::text[],
                    extension TEXT NOT NULL DEFAULT 'md',
                    created_at TIMESTAMPTZ,
                    nchars INTEGER NOT NULL DEFAULT 0,
                    mtime TIMESTAMPTZ,
                    ctime TIMESTAMPTZ,
                    metadata JSONB NOT NULL DEFAULT '{{}}'::jsonb
                )
                """
            ).format(table=sql.Identifier(self.table), vector_type=vector_type),
            sql.SQL("CREATE INDEX IF NOT EXISTS {index} ON {table} (path)").format(
                index=sql.Identifier(f"{self.table}_path_idx"),
                table=sql.Identifier(self.table),
            ),
        ]

        with self._connect() as conn:
            with conn.cursor() as cur:
                for statement in statements:
                    cur.execute(statement)
        logger.info("Ensured passage table %s exists", self.table)
