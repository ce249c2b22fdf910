"""
DuckDB page store.
"""

from __future__ import annotations

from pathlib import Path
from typing import Mapping

import duckdb


class DuckDBPageStore:
    """DuckDB-backed persistence for page chunk embeddings."""

    def __init__(
        self,
        db_path: str,
        *,
        read_only: bool = False,
        initialize: bool = True,
    ) -> None:
        self.db_path = str(Path(db_path).expanduser().resolve())
        self.read_only = read_only
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = duckdb.connect(self.db_path, read_only=read_only)
        if initialize and not read_only:
            self.initialize()

    def close(self) -> None:
        """Close the underlying DuckDB connection."""
        self._conn.close()

    def initialize(self) -> None:
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS pages (
                page_key VARCHAR NOT NULL,
                model_id VARCHAR NOT NULL,
                chunk_count INTEGER NOT NULL,
                stored_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                PRIMARY KEY (page_key, model_id)
            );
            """
        )
        # Rows are replaced per (page_key, model_id) inside one transaction.
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS page_chunks (
                page_key VARCHAR NOT NULL,
                model_id VARCHAR NOT NULL,
                chunk_id VARCHAR NOT NULL,
                embedding DOUBLE[] NOT NULL
            );
            """
        )

    def get(self, page_key: str, model_id: str) -> dict[str, list[float]] | None:
        row = self._conn.execute(
            "SELECT chunk_count FROM pages WHERE page_key = ? AND model_id = ?",
            [page_key, model_id],
        ).fetchone()
        if row is None:
            return None
        rows = self._conn.execute(
            """
            SELECT chunk_id, embedding
            FROM page_chunks
            WHERE page_key = ? AND model_id = ?
            ORDER BY chunk_id
            """,
            [page_key, model_id],
        ).fetchall()
        return {str(chunk_id): [float(value) for value in embedding] for chunk_id, embedding in rows}

    def put(
        self, page_key: str, model_id: str, embeddings: Mapping[str, list[float]]
    ) -> int:
        rows = [
            (page_key, model_id, chunk_id, [float(value) for value in vector])
            for chunk_id, vector in embeddings.items()
        ]
        self._conn.begin()
        try:
            self._conn.execute(
                "DELETE FROM page_chunks WHERE page_key = ? AND model_id = ?",
                [page_key, model_id],
            )
            self._conn.execute(
                """
                INSERT INTO pages (page_key, model_id, chunk_count)
                VALUES (?, ?, ?)
                ON CONFLICT(page_key, model_id) DO UPDATE SET
                    chunk_count = excluded.chunk_count,
                    stored_at = now()
                """,
                [page_key, model_id, len(rows)],
            )
            if rows:
                self._conn.executemany(
                    """
                    INSERT INTO page_chunks (page_key, model_id, chunk_id, embedding)
                    VALUES (?, ?, ?, ?)
                    """,
                    rows,
                )
        except Exception:
            self._conn.rollback()
            raise
        self._conn.commit()
        return len(rows)

    def delete(self, page_key: str, model_id: str | None = None) -> int:
        sql_filter = "page_key = ?"
        params: list[str] = [page_key]
        if model_id is not None:
            sql_filter += " AND model_id = ?"
            params.append(model_id)

        row = self._conn.execute(
            f"SELECT COUNT(*) FROM pages WHERE {sql_filter}", params
        ).fetchone()
        self._conn.begin()
        try:
            self._conn.execute(f"DELETE FROM page_chunks WHERE {sql_filter}", params)
            self._conn.execute(f"DELETE FROM pages WHERE {sql_filter}", params)
        except Exception:
            self._conn.rollback()
            raise
        self._conn.commit()
        return int(row[0]) if row else 0

    def list_pages(self) -> list[dict[str, object]]:
        rows = self._conn.execute(
            """
            SELECT page_key, model_id, chunk_count, stored_at
            FROM pages
            ORDER BY page_key ASC, model_id ASC
            """
        ).fetchall()
        results: list[dict[str, object]] = []
        for row in rows:
            results.append(
                {
                    "page_key": str(row[0]),
                    "model_id": str(row[1]),
                    "chunk_count": int(row[2]),
                    "stored_at": str(row[3]),
                }
            )
        return results
