from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Collection, Iterator
from typing import Any

import httpx

from backend.videoinfo.models.video import Video
from backend.videoinfo.services.errors import OutOfQuotaError, ProviderUnavailableError
from backend.videoinfo.services.provider_base import (
    USER_AGENT,
    as_dict,
    as_list,
    coerce_nonempty_string,
    coerce_str,
    summarize_exception_message,
)

LOGGER = logging.getLogger("videoinfo.youtube")

SERVICE = "youtube"
DEFAULT_API_BASE_URL = "https://www.googleapis.com/youtube/v3"
DEFAULT_WATCH_URL = "https://youtube.com/watch"
FALLBACK_THUMBNAIL_URL_TEMPLATE = "https://i.ytimg.com/vi/{video_id}/default.jpg"
MAX_IDS_PER_REQUEST = 50
QUOTA_STATUS_CODES: frozenset[int] = frozenset({403, 429})

SNIPPET_FIELDS: frozenset[str] = frozenset({"title", "description", "thumbnail"})
CONTENT_DETAILS_FIELDS: frozenset[str] = frozenset({"length"})
# The watch page fallback only runs when length is wanted; a thumbnail guess rides along.
FALLBACK_FIELDS: frozenset[str] = frozenset({"length"})

ISO8601_DURATION_PATTERN = re.compile(
    r"^P(?:(?P<days>\d+)D)?(?:T(?:(?P<hours>\d+)H)?(?:(?P<minutes>\d+)M)?(?:(?P<seconds>\d+)S)?)?$"
)
# Tried in order; the first pattern that matches wins.
WATCH_PAGE_LENGTH_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r'length_seconds":"(\d+)'),
    re.compile(r'lengthSeconds\\":\\"(\d+)'),
    re.compile(r'lengthSeconds":"(\d+)'),
)


class YouTubeProvider:
    service = SERVICE

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        api_key: str | None,
        api_base_url: str = DEFAULT_API_BASE_URL,
        watch_url: str = DEFAULT_WATCH_URL,
        fake_out_of_quota: bool = False,
    ) -> None:
        self._client = client
        self._api_key = api_key.strip() if api_key and api_key.strip() else None
        self._api_base_url = api_base_url.rstrip("/")
        self._watch_url = watch_url
        self._fake_out_of_quota = fake_out_of_quota

    async def fetch(
        self,
        ids: list[str],
        only_fields: Collection[str] | None = None,
    ) -> dict[str, Video]:
        parts = parts_for_fields(only_fields)
        if not ids:
            return {}

        LOGGER.debug("requesting %s parts for %s videos", len(parts), len(ids))
        results: dict[str, Video] = {}
        chunks = list(_chunked(ids, MAX_IDS_PER_REQUEST))
        for index, chunk in enumerate(chunks):
            try:
                payload = await self._request_videos(chunk, parts)
            except OutOfQuotaError as exc:
                if not fallback_applies(only_fields):
                    LOGGER.warning(
                        "youtube out of quota, no fallback fields=%s fetched=%s",
                        sorted(only_fields or ()),
                        len(results),
                    )
                    raise OutOfQuotaError(SERVICE, partial=results) from exc
                remaining = [video_id for pending in chunks[index:] for video_id in pending]
                LOGGER.warning(
                    "youtube out of quota, attempting watch page fallback for %s videos",
                    len(remaining),
                )
                results.update(await self._fetch_fallback(remaining, only_fields))
                break

            for item in as_list(payload.get("items")):
                video = _item_to_video(as_dict(item))
                if video is not None:
                    results[video.id] = video
        return results

    async def _request_videos(self, ids: list[str], parts: list[str]) -> dict[str, Any]:
        if self._fake_out_of_quota:
            raise OutOfQuotaError(SERVICE)
        if self._api_key is None:
            raise ProviderUnavailableError(SERVICE, "YouTube API key is not configured")

        try:
            response = await self._client.get(
                f"{self._api_base_url}/videos",
                params={"key": self._api_key, "part": ",".join(parts), "id": ",".join(ids)},
                headers={"accept": "application/json", "user-agent": USER_AGENT},
            )
        except httpx.HTTPError as exc:
            raise ProviderUnavailableError(SERVICE, summarize_exception_message(exc)) from exc

        if response.status_code in QUOTA_STATUS_CODES:
            raise OutOfQuotaError(SERVICE)
        if response.status_code >= 400:
            raise ProviderUnavailableError(
                SERVICE,
                f"videos endpoint returned HTTP {response.status_code}",
                status_code=response.status_code,
            )
        try:
            return as_dict(response.json())
        except ValueError as exc:
            raise ProviderUnavailableError(SERVICE, "videos endpoint returned invalid JSON") from exc

    async def _fetch_fallback(
        self,
        ids: list[str],
        only_fields: Collection[str] | None,
    ) -> dict[str, Video]:
        include_thumbnail = only_fields is None or "thumbnail" in only_fields
        lengths = await asyncio.gather(
            *(self._fetch_length_fallback(video_id) for video_id in ids)
        )
        results: dict[str, Video] = {}
        for video_id, length in zip(ids, lengths, strict=True):
            results[video_id] = Video(
                service=SERVICE,
                id=video_id,
                length=length,
                # Guessed from the public thumbnail URL layout; may change without notice.
                thumbnail=(
                    FALLBACK_THUMBNAIL_URL_TEMPLATE.format(video_id=video_id)
                    if include_thumbnail
                    else None
                ),
            )
        return results

    async def _fetch_length_fallback(self, video_id: str) -> int | None:
        try:
            response = await self._client.get(
                self._watch_url,
                params={"v": video_id},
                headers={"user-agent": USER_AGENT},
                follow_redirects=True,
            )
        except httpx.HTTPError as exc:
            LOGGER.warning(
                "youtube fallback request failed video_id=%s error=%s",
                video_id,
                summarize_exception_message(exc),
            )
            return None
        if response.status_code >= 400:
            LOGGER.warning(
                "youtube fallback request failed video_id=%s status=%s",
                video_id,
                response.status_code,
            )
            return None

        length = extract_length_seconds(response.text)
        if length is None:
            LOGGER.warning("youtube fallback found no duration video_id=%s", video_id)
        return length


def parts_for_fields(only_fields: Collection[str] | None) -> list[str]:
    if only_fields is None:
        return ["snippet", "contentDetails"]

    requested = set(only_fields)
    parts: list[str] = []
    if requested & SNIPPET_FIELDS:
        parts.append("snippet")
    if requested & CONTENT_DETAILS_FIELDS:
        parts.append("contentDetails")
    if not parts:
        raise ValueError(f"only_fields must name at least one known field, got {sorted(requested)}")
    return parts


def fallback_applies(only_fields: Collection[str] | None) -> bool:
    return only_fields is None or bool(FALLBACK_FIELDS & set(only_fields))


def extract_length_seconds(page: str) -> int | None:
    for pattern in WATCH_PAGE_LENGTH_PATTERNS:
        matched = pattern.search(page)
        if matched is None:
            continue
        LOGGER.debug("watch page duration match=%s", matched.group(0))
        return int(matched.group(1))
    return None


def parse_iso8601_duration_seconds(raw_value: object) -> int | None:
    if not isinstance(raw_value, str):
        return None
    matched = ISO8601_DURATION_PATTERN.match(raw_value.strip())
    if matched is None:
        return None

    days = int(matched.group("days") or 0)
    hours = int(matched.group("hours") or 0)
    minutes = int(matched.group("minutes") or 0)
    seconds = int(matched.group("seconds") or 0)
    return days * 86_400 + hours * 3_600 + minutes * 60 + seconds


def _item_to_video(item: dict[str, Any]) -> Video | None:
    video_id = coerce_nonempty_string(item.get("id"))
    if video_id is None:
        return None

    title: str | None = None
    description: str | None = None
    thumbnail: str | None = None
    snippet = item.get("snippet")
    if isinstance(snippet, dict):
        snippet_dict = as_dict(snippet)
        title = coerce_str(snippet_dict.get("title"))
        description = coerce_str(snippet_dict.get("description"))
        thumbnail = _pick_thumbnail_url(snippet_dict)

    length: int | None = None
    content_details = item.get("contentDetails")
    if isinstance(content_details, dict):
        length = parse_iso8601_duration_seconds(as_dict(content_details).get("duration"))

    return Video(
        service=SERVICE,
        id=video_id,
        title=title,
        description=description,
        thumbnail=thumbnail,
        length=length,
    )


def _pick_thumbnail_url(snippet: dict[str, Any]) -> str | None:
    thumbnails = as_dict(snippet.get("thumbnails"))
    for quality in ("medium", "default"):
        url_value = coerce_nonempty_string(as_dict(thumbnails.get(quality)).get("url"))
        if url_value is not None:
            return url_value
    for payload in thumbnails.values():
        url_value = coerce_nonempty_string(as_dict(payload).get("url"))
        if url_value is not None:
            return url_value
    return None


def _chunked(values: list[str], size: int) -> Iterator[list[str]]:
    for start in range(0, len(values), size):
        yield values[start : start + size]
