from __future__ import annotations

import asyncio
import logging
from collections.abc import Collection

import httpx

from backend.videoinfo.models.video import Video
from backend.videoinfo.services.provider_base import (
    USER_AGENT,
    as_dict,
    coerce_int,
    coerce_nonempty_string,
    coerce_str,
    summarize_exception_message,
)

LOGGER = logging.getLogger("videoinfo.vimeo")

SERVICE = "vimeo"
DEFAULT_OEMBED_URL = "https://vimeo.com/api/oembed.json"
EMBED_DISABLED_STATUS_CODE = 403


class VimeoProvider:
    """
    Metadata from Vimeo's public oEmbed endpoint.

    The endpoint needs no credentials but has no partial-field mode, so every
    lookup returns the full field set and ``only_fields`` is ignored.
    Thumbnails are the low resolution oEmbed variants.
    """

    service = SERVICE

    def __init__(self, client: httpx.AsyncClient, *, oembed_url: str = DEFAULT_OEMBED_URL) -> None:
        self._client = client
        self._oembed_url = oembed_url

    async def fetch(
        self,
        ids: list[str],
        only_fields: Collection[str] | None = None,
    ) -> dict[str, Video]:
        _ = only_fields
        unique_ids = list(dict.fromkeys(ids))
        videos = await asyncio.gather(*(self._fetch_one(video_id) for video_id in unique_ids))
        return {video.id: video for video in videos if video is not None}

    async def _fetch_one(self, video_id: str) -> Video | None:
        try:
            response = await self._client.get(
                self._oembed_url,
                params={"url": f"https://vimeo.com/{video_id}"},
                headers={"accept": "application/json", "user-agent": USER_AGENT},
            )
        except httpx.HTTPError as exc:
            LOGGER.error(
                "failed to get vimeo video info video_id=%s error=%s",
                video_id,
                summarize_exception_message(exc),
            )
            return Video(service=SERVICE, id=video_id)

        if response.status_code == EMBED_DISABLED_STATUS_CODE:
            LOGGER.error(
                "failed to get vimeo video info: embedding for this video is disabled video_id=%s",
                video_id,
            )
            return None
        if response.status_code >= 400:
            LOGGER.error(
                "failed to get vimeo video info video_id=%s status=%s",
                video_id,
                response.status_code,
            )
            return Video(service=SERVICE, id=video_id)

        try:
            payload = as_dict(response.json())
        except ValueError:
            LOGGER.error("failed to get vimeo video info: invalid JSON video_id=%s", video_id)
            return Video(service=SERVICE, id=video_id)

        return Video(
            service=SERVICE,
            id=video_id,
            title=coerce_str(payload.get("title")),
            description=coerce_str(payload.get("description")),
            thumbnail=coerce_nonempty_string(payload.get("thumbnail_url")),
            length=coerce_int(payload.get("duration")),
        )
