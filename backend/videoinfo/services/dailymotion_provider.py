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

LOGGER = logging.getLogger("videoinfo.dailymotion")

SERVICE = "dailymotion"
DEFAULT_API_BASE_URL = "https://api.dailymotion.com"
REQUESTED_API_FIELDS = "title,description,thumbnail_url,duration"


class DailymotionProvider:
    service = SERVICE

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        api_base_url: str = DEFAULT_API_BASE_URL,
    ) -> None:
        self._client = client
        self._api_base_url = api_base_url.rstrip("/")

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
                f"{self._api_base_url}/video/{video_id}",
                params={"fields": REQUESTED_API_FIELDS},
                headers={"accept": "application/json", "user-agent": USER_AGENT},
            )
            response.raise_for_status()
            payload = as_dict(response.json())
        except (httpx.HTTPError, ValueError) as exc:
            LOGGER.error(
                "failed to get dailymotion video info video_id=%s error=%s",
                video_id,
                summarize_exception_message(exc),
            )
            return None

        return Video(
            service=SERVICE,
            id=video_id,
            title=coerce_str(payload.get("title")),
            description=coerce_str(payload.get("description")),
            thumbnail=coerce_nonempty_string(payload.get("thumbnail_url")),
            length=coerce_int(payload.get("duration")),
        )
