from __future__ import annotations

from backend.app.repositories.database import Database


class UnprocessableRequestRepository:
    """Negative cache of identifiers the YouTube API reported as unknown."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def contains(self, request: str) -> bool:
        with self._db.connection() as conn:
            row = conn.execute(
                """
                SELECT id
                FROM unprocessable_request
                WHERE request = ?
                LIMIT 1
                """,
                (request,),
            ).fetchone()
        return row is not None

    def record(self, request: str) -> None:
        with self._db.connection() as conn:
            conn.execute(
                """
                INSERT INTO unprocessable_request (request)
                VALUES (?)
                ON CONFLICT(request) DO NOTHING
                """,
                (request,),
            )

    def count(self) -> int:
        with self._db.connection() as conn:
            row = conn.execute("SELECT COUNT(*) AS total FROM unprocessable_request").fetchone()
        if row is None:
            return 0
        return int(row["total"])
