import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..config import DEFAULT_ARCHIVE_DB_PATH
from ..models import CLAUDE_CODE, Exchange

SCHEMA_VERSION = 1


@dataclass
class ExchangeRow:
    id: str
    project: str
    timestamp: str
    user_message: str
    assistant_message: str
    archive_path: str
    line_start: int = 0
    line_end: int = 0
    embedding: Optional[bytes] = None
    embedding_model: Optional[str] = None
    indexed_at: Optional[int] = None

    @classmethod
    def from_exchange(
        cls,
        exchange: Exchange,
        embedding: Optional[bytes] = None,
        embedding_model: Optional[str] = None,
    ) -> "ExchangeRow":
        return cls(
            id=exchange.id,
            project=exchange.project,
            timestamp=exchange.timestamp,
            user_message=exchange.user_message,
            assistant_message=exchange.assistant_message,
            archive_path=exchange.archive_path,
            line_start=exchange.line_start,
            line_end=exchange.line_end,
            embedding=embedding,
            embedding_model=embedding_model,
        )

    def to_exchange(self) -> Exchange:
        return Exchange(
            id=self.id,
            project=self.project,
            timestamp=self.timestamp,
            user_message=self.user_message or "",
            assistant_message=self.assistant_message or "",
            archive_path=self.archive_path,
            line_start=self.line_start or 0,
            line_end=self.line_end or 0,
            source=CLAUDE_CODE,
        )


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so the query matches literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def date_clause(after: Optional[str], before: Optional[str], column: str = "timestamp") -> tuple[str, list]:
    """Build an inclusive date-range condition on a YYYY-MM-DD text column."""
    conditions = []
    params: list = []
    if after:
        conditions.append(f"{column} >= ?")
        params.append(after)
    if before:
        conditions.append(f"{column} <= ?")
        params.append(before)
    return " AND ".join(conditions), params


class ArchiveDatabase:
    """SQLite archive of indexed Claude Code exchanges and their embeddings.

    Opened per search and closed afterwards; use it as a context manager.
    """

    def __init__(self, db_path: Optional[Path] = None):
        self._db_path = Path(db_path) if db_path else DEFAULT_ARCHIVE_DB_PATH
        self._connection: Optional[sqlite3.Connection] = None
        self._initialized = False

    @property
    def path(self) -> Path:
        return self._db_path

    @property
    def exists(self) -> bool:
        return self._db_path.exists()

    def __enter__(self) -> "ArchiveDatabase":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def _get_connection(self) -> sqlite3.Connection:
        if self._connection is None:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            self._connection = sqlite3.connect(
                str(self._db_path),
                check_same_thread=False,
                isolation_level=None,
            )
            self._connection.row_factory = sqlite3.Row
            self._connection.execute("PRAGMA journal_mode = WAL")
        return self._connection

    def _ensure_schema(self):
        if self._initialized:
            return
        conn = self._get_connection()
        current_version = self._get_schema_version(conn)
        if current_version < SCHEMA_VERSION:
            conn.executescript(self._get_schema_sql())
            self._set_schema_version(conn, SCHEMA_VERSION)
        self._initialized = True

    def _get_schema_version(self, conn: sqlite3.Connection) -> int:
        try:
            row = conn.execute(
                "SELECT MAX(version) as v FROM schema_meta"
            ).fetchone()
            return row["v"] if row and row["v"] else 0
        except sqlite3.OperationalError:
            return 0

    def _set_schema_version(self, conn: sqlite3.Connection, version: int):
        conn.execute(
            "INSERT INTO schema_meta (version, description) VALUES (?, ?)",
            (version, f"Schema version {version}"),
        )

    def _get_schema_sql(self) -> str:
        return """
            CREATE TABLE IF NOT EXISTS schema_meta (
                version INTEGER PRIMARY KEY,
                applied_at INTEGER DEFAULT (strftime('%s', 'now')),
                description TEXT
            );

            CREATE TABLE IF NOT EXISTS index_meta (
                key TEXT PRIMARY KEY,
                value TEXT
            );

            CREATE TABLE IF NOT EXISTS exchanges (
                id TEXT PRIMARY KEY,
                project TEXT NOT NULL,
                timestamp TEXT NOT NULL,
                user_message TEXT NOT NULL DEFAULT '',
                assistant_message TEXT NOT NULL DEFAULT '',
                archive_path TEXT NOT NULL,
                line_start INTEGER DEFAULT 0,
                line_end INTEGER DEFAULT 0,
                embedding BLOB,
                embedding_model TEXT,
                indexed_at INTEGER DEFAULT (strftime('%s', 'now'))
            );

            CREATE INDEX IF NOT EXISTS idx_exchanges_timestamp ON exchanges(timestamp DESC);
            CREATE INDEX IF NOT EXISTS idx_exchanges_archive_path ON exchanges(archive_path);
            CREATE INDEX IF NOT EXISTS idx_exchanges_project ON exchanges(project);
        """

    def initialize(self):
        self._ensure_schema()

    def close(self):
        if self._connection:
            self._connection.close()
            self._connection = None
            self._initialized = False

    def upsert_exchanges(self, rows: list[ExchangeRow]) -> None:
        if not rows:
            return
        self._ensure_schema()
        conn = self._get_connection()
        conn.executemany(
            """
            INSERT INTO exchanges (
                id, project, timestamp, user_message, assistant_message,
                archive_path, line_start, line_end, embedding, embedding_model
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                project = excluded.project,
                timestamp = excluded.timestamp,
                user_message = excluded.user_message,
                assistant_message = excluded.assistant_message,
                archive_path = excluded.archive_path,
                line_start = excluded.line_start,
                line_end = excluded.line_end,
                embedding = excluded.embedding,
                embedding_model = excluded.embedding_model,
                indexed_at = strftime('%s', 'now')
            """,
            [
                (
                    r.id,
                    r.project,
                    r.timestamp,
                    r.user_message,
                    r.assistant_message,
                    r.archive_path,
                    r.line_start,
                    r.line_end,
                    r.embedding,
                    r.embedding_model,
                )
                for r in rows
            ],
        )

    def delete_exchanges_for_archive(self, archive_path: str) -> None:
        self._ensure_schema()
        conn = self._get_connection()
        conn.execute("DELETE FROM exchanges WHERE archive_path = ?", (archive_path,))

    def get_exchange(self, exchange_id: str) -> Optional[ExchangeRow]:
        self._ensure_schema()
        conn = self._get_connection()
        row = conn.execute(
            "SELECT * FROM exchanges WHERE id = ?", (exchange_id,)
        ).fetchone()
        return self._row_to_exchange(row) if row else None

    def search_text(
        self,
        query: str,
        limit: int,
        after: Optional[str] = None,
        before: Optional[str] = None,
    ) -> list[ExchangeRow]:
        """Substring match on either message, newest first."""
        self._ensure_schema()
        conn = self._get_connection()
        pattern = f"%{escape_like(query)}%"
        conditions = [
            "(user_message LIKE ? ESCAPE '\\' OR assistant_message LIKE ? ESCAPE '\\')"
        ]
        params: list = [pattern, pattern]

        date_sql, date_params = date_clause(after, before)
        if date_sql:
            conditions.append(date_sql)
            params.extend(date_params)

        params.append(limit)
        rows = conn.execute(
            f"""
            SELECT * FROM exchanges
            WHERE {" AND ".join(conditions)}
            ORDER BY timestamp DESC
            LIMIT ?
            """,
            params,
        ).fetchall()
        return [self._row_to_exchange(r) for r in rows]

    def get_embedded_exchanges(
        self,
        after: Optional[str] = None,
        before: Optional[str] = None,
    ) -> list[ExchangeRow]:
        """All exchanges with an embedding inside the date range."""
        self._ensure_schema()
        conn = self._get_connection()
        conditions = ["embedding IS NOT NULL"]
        date_sql, params = date_clause(after, before)
        if date_sql:
            conditions.append(date_sql)

        rows = conn.execute(
            f"""
            SELECT * FROM exchanges
            WHERE {" AND ".join(conditions)}
            ORDER BY timestamp, id
            """,
            params,
        ).fetchall()
        return [self._row_to_exchange(r) for r in rows]

    def get_unembedded_exchanges(self, limit: int = 100) -> list[ExchangeRow]:
        self._ensure_schema()
        conn = self._get_connection()
        rows = conn.execute(
            """
            SELECT * FROM exchanges
            WHERE embedding IS NULL
            ORDER BY timestamp, id
            LIMIT ?
            """,
            (limit,),
        ).fetchall()
        return [self._row_to_exchange(r) for r in rows]

    def get_index_meta(self, key: str) -> Optional[str]:
        self._ensure_schema()
        conn = self._get_connection()
        row = conn.execute(
            "SELECT value FROM index_meta WHERE key = ?", (key,)
        ).fetchone()
        return row["value"] if row else None

    def set_index_meta(self, key: str, value: str) -> None:
        self._ensure_schema()
        conn = self._get_connection()
        conn.execute(
            """
            INSERT INTO index_meta (key, value) VALUES (?, ?)
            ON CONFLICT(key) DO UPDATE SET value = excluded.value
            """,
            (key, value),
        )

    def count_exchanges(self) -> int:
        self._ensure_schema()
        conn = self._get_connection()
        row = conn.execute("SELECT COUNT(*) as c FROM exchanges").fetchone()
        return row["c"] if row else 0

    def count_exchanges_with_embeddings(self) -> int:
        self._ensure_schema()
        conn = self._get_connection()
        row = conn.execute(
            "SELECT COUNT(*) as c FROM exchanges WHERE embedding IS NOT NULL"
        ).fetchone()
        return row["c"] if row else 0

    def count_archives(self) -> int:
        self._ensure_schema()
        conn = self._get_connection()
        row = conn.execute(
            "SELECT COUNT(DISTINCT archive_path) as c FROM exchanges"
        ).fetchone()
        return row["c"] if row else 0

    def project_counts(self, limit: int = 20) -> list[tuple[str, int]]:
        self._ensure_schema()
        conn = self._get_connection()
        rows = conn.execute(
            """
            SELECT project, COUNT(*) as c FROM exchanges
            GROUP BY project
            ORDER BY c DESC, project
            LIMIT ?
            """,
            (limit,),
        ).fetchall()
        return [(row["project"], row["c"]) for row in rows]

    def _row_to_exchange(self, row: sqlite3.Row) -> ExchangeRow:
        return ExchangeRow(
            id=row["id"],
            project=row["project"],
            timestamp=row["timestamp"],
            user_message=row["user_message"],
            assistant_message=row["assistant_message"],
            archive_path=row["archive_path"],
            line_start=row["line_start"],
            line_end=row["line_end"],
            embedding=row["embedding"],
            embedding_model=row["embedding_model"],
            indexed_at=row["indexed_at"],
        )
