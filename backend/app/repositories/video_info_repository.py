from __future__ import annotations

from dataclasses import asdict, dataclass

from backend.app.repositories.database import Database


@dataclass(frozen=True)
class VideoInfo:
    video_id: str
    channel_id: str | None
    title: str | None
    description: str | None
    category_id: str | None
    thumbnail: str | None
    published_at: str | None

    def to_payload(self) -> dict[str, str | None]:
        return asdict(self)


class VideoInfoRepository:
    def __init__(self, db: Database) -> None:
        self._db = db

    def find(self, video_id: str) -> VideoInfo | None:
        with self._db.connection() as conn:
            row = conn.execute(
                """
                SELECT
                    video_id,
                    channel_id,
                    title,
                    description,
                    category_id,
                    thumbnail,
                    published_at
                FROM video_info
                WHERE video_id = ?
                LIMIT 1
                """,
                (video_id,),
            ).fetchone()

        if row is None:
            return None

        return VideoInfo(
            video_id=str(row["video_id"]),
            channel_id=_to_optional_str(row["channel_id"]),
            title=_to_optional_str(row["title"]),
            description=_to_optional_str(row["description"]),
            category_id=_to_optional_str(row["category_id"]),
            thumbnail=_to_optional_str(row["thumbnail"]),
            published_at=_to_optional_str(row["published_at"]),
        )

    def insert(self, video: VideoInfo) -> None:
        with self._db.connection() as conn:
            conn.execute(
                """
                INSERT INTO video_info
                (
                    video_id,
                    channel_id,
                    title,
                    description,
                    category_id,
                    thumbnail,
                    published_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(video_id) DO NOTHING
                """,
                (
                    video.video_id,
                    video.channel_id,
                    video.title,
                    video.description,
                    video.category_id,
                    video.thumbnail,
                    video.published_at,
                ),
            )


def _to_optional_str(value: object) -> str | None:
    # Stored values are returned verbatim; empty strings stay empty strings.
    if value is None:
        return None
    return str(value)
