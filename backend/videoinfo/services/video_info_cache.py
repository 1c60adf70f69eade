from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

from backend.videoinfo.models.video import Video, merge_videos, missing_fields

LOGGER = logging.getLogger("videoinfo.cache")


class VideoInfoStore(Protocol):
    def video_info_fields(self) -> tuple[str, ...]:
        ...

    def get_video_info(self, service: str, video_id: str) -> Video:
        ...

    def get_many_video_info(self, identities: Sequence[tuple[str, str]]) -> list[Video]:
        ...

    def update_video_info(self, video: Video) -> None:
        ...

    def update_many_video_info(self, videos: Sequence[Video]) -> None:
        ...


@dataclass(frozen=True)
class CacheLookup:
    video: Video
    missing: frozenset[str]
    known_fields: tuple[str, ...]

    @property
    def is_complete(self) -> bool:
        return not self.missing

    @property
    def has_cached_fields(self) -> bool:
        return len(self.missing) < len(self.known_fields)


class VideoInfoCache:
    """
    Read/write gateway over the persistent video info store.

    Store calls are blocking, so they run in worker threads to keep the
    event loop free while provider requests are in flight.
    """

    def __init__(self, store: VideoInfoStore) -> None:
        self._store = store

    @property
    def known_fields(self) -> tuple[str, ...]:
        return self._store.video_info_fields()

    async def resolve_single(self, service: str, video_id: str) -> CacheLookup:
        cached = await asyncio.to_thread(self._store.get_video_info, service, video_id)
        return self._lookup_for(service, video_id, cached)

    async def resolve_batch(self, identities: Sequence[tuple[str, str]]) -> list[CacheLookup]:
        if not identities:
            return []
        cached_videos = await asyncio.to_thread(self._store.get_many_video_info, list(identities))
        if len(cached_videos) != len(identities):
            raise RuntimeError(
                f"store returned {len(cached_videos)} records for {len(identities)} identities"
            )
        return [
            self._lookup_for(service, video_id, cached)
            for (service, video_id), cached in zip(identities, cached_videos, strict=True)
        ]

    async def write_back(self, video: Video) -> bool:
        try:
            await asyncio.to_thread(self._store.update_video_info, video)
        except Exception:
            LOGGER.warning(
                "failed to cache video info, returning metadata anyway video=%s:%s",
                video.service,
                video.id,
                exc_info=True,
            )
            return False
        return True

    async def write_back_batch(self, videos: Sequence[Video]) -> bool:
        if not videos:
            return True
        try:
            await asyncio.to_thread(self._store.update_many_video_info, list(videos))
        except Exception:
            LOGGER.warning(
                "failed to cache video info batch, returning metadata anyway count=%s",
                len(videos),
                exc_info=True,
            )
            return False
        return True

    def _lookup_for(self, service: str, video_id: str, cached: Video | None) -> CacheLookup:
        identity = Video(service=service, id=video_id)
        # Stores may hand back a bare identity or nothing at all for unknown videos.
        video = identity if cached is None else merge_videos(identity, cached)
        known = self.known_fields
        return CacheLookup(video=video, missing=missing_fields(video, known), known_fields=known)
