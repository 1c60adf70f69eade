from __future__ import annotations

import sqlite3
from collections.abc import Sequence

from backend.videoinfo.models.video import VIDEO_INFO_FIELDS, Video
from backend.videoinfo.repositories.common import utc_now_iso
from backend.videoinfo.repositories.database import Database

# SQLite caps bound parameters per statement; two per identity.
_MAX_IDENTITIES_PER_QUERY = 400


class VideoInfoRepository:
    def __init__(self, db: Database) -> None:
        self._db = db

    def video_info_fields(self) -> tuple[str, ...]:
        return VIDEO_INFO_FIELDS

    def get_video_info(self, service: str, video_id: str) -> Video:
        with self._db.connection() as conn:
            row = conn.execute(
                """
                SELECT service, video_id, title, description, thumbnail, length
                FROM cached_video_info
                WHERE service = ? AND video_id = ?
                """,
                (service, video_id),
            ).fetchone()

        if row is None:
            return Video(service=service, id=video_id)
        return _row_to_video(row)

    def get_many_video_info(self, identities: Sequence[tuple[str, str]]) -> list[Video]:
        found: dict[tuple[str, str], Video] = {}
        unique = list(dict.fromkeys(identities))
        with self._db.connection() as conn:
            for start in range(0, len(unique), _MAX_IDENTITIES_PER_QUERY):
                chunk = unique[start : start + _MAX_IDENTITIES_PER_QUERY]
                placeholders = ", ".join("(?, ?)" for _ in chunk)
                params: list[str] = []
                for service, video_id in chunk:
                    params.extend((service, video_id))
                rows = conn.execute(
                    f"""
                    SELECT service, video_id, title, description, thumbnail, length
                    FROM cached_video_info
                    WHERE (service, video_id) IN (VALUES {placeholders})
                    """,
                    params,
                ).fetchall()
                for row in rows:
                    video = _row_to_video(row)
                    found[video.key] = video

        return [
            found.get((service, video_id), Video(service=service, id=video_id))
            for service, video_id in identities
        ]

    def update_video_info(self, video: Video) -> None:
        self.update_many_video_info([video])

    def update_many_video_info(self, videos: Sequence[Video]) -> None:
        if not videos:
            return
        now_iso = utc_now_iso()
        with self._db.connection() as conn:
            for video in videos:
                # COALESCE keeps stored values when the incoming record lacks them.
                conn.execute(
                    """
                    INSERT INTO cached_video_info
                    (service, video_id, title, description, thumbnail, length, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(service, video_id) DO UPDATE SET
                        title = COALESCE(excluded.title, cached_video_info.title),
                        description = COALESCE(excluded.description, cached_video_info.description),
                        thumbnail = COALESCE(excluded.thumbnail, cached_video_info.thumbnail),
                        length = COALESCE(excluded.length, cached_video_info.length),
                        updated_at = excluded.updated_at
                    """,
                    (
                        video.service,
                        video.id,
                        video.title,
                        video.description,
                        video.thumbnail,
                        video.length,
                        now_iso,
                        now_iso,
                    ),
                )


def _row_to_video(row: sqlite3.Row) -> Video:
    return Video(
        service=str(row["service"]),
        id=str(row["video_id"]),
        title=_to_optional_str(row["title"]),
        description=_to_optional_str(row["description"]),
        thumbnail=_to_optional_str(row["thumbnail"]),
        length=_to_optional_int(row["length"]),
    )


def _to_optional_str(value: object) -> str | None:
    if isinstance(value, str):
        return value
    return None


def _to_optional_int(value: object) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    return None
