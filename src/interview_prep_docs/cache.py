"""SQLite cache of rendered document bodies."""

import hashlib
import json
import sqlite3
from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path

from interview_prep_docs import __version__
from interview_prep_docs.models import Document, RenderedBody, TocEntry

CACHE_FILENAME = "render-cache.sqlite3"


def document_digest(document: Document) -> str:
    """Fingerprint everything that affects a document's rendered body.

    Args:
        document: Document to fingerprint.

    Returns:
        Hex digest.
    """
    digest = hashlib.sha256()
    for part in (__version__, document.format, str(document.body_line), document.body):
        digest.update(part.encode("utf-8"))
        digest.update(b"\0")
    return digest.hexdigest()


class RenderCache:
    """Stores rendered bodies keyed by document path and source digest."""

    def __init__(self, db_path: Path) -> None:
        """Initialise cache with the given path.

        Args:
            db_path: Path to the SQLite database file.
        """
        self.db_path = db_path
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._initialise_schema()

    @contextmanager
    def _get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Context manager for database connections.

        Yields:
            SQLite connection with Row factory enabled.
        """
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    def _initialise_schema(self) -> None:
        """Create database schema if it doesn't exist."""
        with self._get_connection() as conn:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS rendered_bodies (
                    path TEXT PRIMARY KEY,
                    digest TEXT NOT NULL,
                    html TEXT NOT NULL,
                    toc TEXT NOT NULL,
                    text TEXT NOT NULL,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                );
            """)
            conn.commit()

    def get(self, document: Document) -> RenderedBody | None:
        """Return the cached body for a document if its source is unchanged.

        Args:
            document: Document to look up.

        Returns:
            RenderedBody or None on a miss.
        """
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT html, toc, text FROM rendered_bodies WHERE path = ? AND digest = ?",
                (document.path, document_digest(document)),
            ).fetchone()
        if row is None:
            return None
        toc = [TocEntry(**entry) for entry in json.loads(row["toc"])]
        return RenderedBody(html=row["html"], toc=toc, text=row["text"])

    def put(self, document: Document, body: RenderedBody) -> None:
        """Insert or replace the cached body of a document.

        Args:
            document: Document the body belongs to.
            body: Rendered body.
        """
        toc = json.dumps([entry.__dict__ for entry in body.toc])
        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT INTO rendered_bodies (path, digest, html, toc, text)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(path) DO UPDATE SET
                    digest = excluded.digest,
                    html = excluded.html,
                    toc = excluded.toc,
                    text = excluded.text,
                    updated_at = CURRENT_TIMESTAMP
                """,
                (document.path, document_digest(document), body.html, toc, body.text),
            )
            conn.commit()

    def clear(self) -> None:
        """Remove every cached body."""
        with self._get_connection() as conn:
            conn.execute("DELETE FROM rendered_bodies")
            conn.commit()

    def count(self) -> int:
        """Return the number of cached bodies.

        Returns:
            Count of rows in the cache.
        """
        with self._get_connection() as conn:
            result = conn.execute("SELECT COUNT(*) FROM rendered_bodies").fetchone()
            return int(result[0]) if result else 0
