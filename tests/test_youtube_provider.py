from __future__ import annotations

from collections.abc import Callable

import httpx
import pytest

from backend.videoinfo.models.video import Video
from backend.videoinfo.services.errors import OutOfQuotaError, ProviderUnavailableError
from backend.videoinfo.services.youtube_provider import (
    YouTubeProvider,
    _pick_thumbnail_url,
    extract_length_seconds,
    fallback_applies,
    parse_iso8601_duration_seconds,
    parts_for_fields,
)

API_BASE_URL = "https://youtube.test/v3"
WATCH_URL = "https://youtube.test/watch"


def _provider(
    handler: Callable[[httpx.Request], httpx.Response],
    *,
    api_key: str | None = "test-key",
    fake_out_of_quota: bool = False,
) -> YouTubeProvider:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return YouTubeProvider(
        client,
        api_key=api_key,
        api_base_url=API_BASE_URL,
        watch_url=WATCH_URL,
        fake_out_of_quota=fake_out_of_quota,
    )


def _item(video_id: str, *, duration: str = "PT3M32S") -> dict[str, object]:
    return {
        "id": video_id,
        "snippet": {
            "title": f"{video_id} title",
            "description": f"{video_id} description",
            "thumbnails": {
                "default": {"url": f"https://i.ytimg.com/vi/{video_id}/default.jpg"},
                "medium": {"url": f"https://i.ytimg.com/vi/{video_id}/mqdefault.jpg"},
            },
        },
        "contentDetails": {"duration": duration},
    }


def test_parts_for_fields_maps_fields_to_api_parts() -> None:
    assert parts_for_fields(None) == ["snippet", "contentDetails"]
    assert parts_for_fields({"title"}) == ["snippet"]
    assert parts_for_fields({"description", "thumbnail"}) == ["snippet"]
    assert parts_for_fields({"length"}) == ["contentDetails"]
    assert parts_for_fields({"title", "length"}) == ["snippet", "contentDetails"]


def test_parts_for_fields_rejects_unknown_only_fields() -> None:
    with pytest.raises(ValueError):
        parts_for_fields(set())
    with pytest.raises(ValueError):
        parts_for_fields({"views"})


def test_fallback_applies_only_when_length_is_wanted() -> None:
    assert fallback_applies(None)
    assert fallback_applies({"length"})
    assert fallback_applies({"thumbnail", "length"})
    assert not fallback_applies({"title", "thumbnail"})
    assert not fallback_applies({"thumbnail"})
    assert not fallback_applies({"title", "description"})


def test_parse_iso8601_duration_seconds() -> None:
    assert parse_iso8601_duration_seconds("PT3M32S") == 212
    assert parse_iso8601_duration_seconds("PT1H") == 3600
    assert parse_iso8601_duration_seconds("P1DT2S") == 86_402
    assert parse_iso8601_duration_seconds("PT0S") == 0
    assert parse_iso8601_duration_seconds("P0D") == 0
    assert parse_iso8601_duration_seconds("3:32") is None
    assert parse_iso8601_duration_seconds(None) is None


def test_extract_length_seconds_patterns() -> None:
    assert extract_length_seconds('..."lengthSeconds":"212","keywords"...') == 212
    assert extract_length_seconds('{\\"lengthSeconds\\":\\"61\\"}') == 61
    assert extract_length_seconds('&length_seconds":"45"&') == 45
    assert extract_length_seconds("<html>nothing here</html>") is None


def test_pick_thumbnail_url_prefers_medium_then_default() -> None:
    assert _pick_thumbnail_url({"thumbnails": {"default": {"url": "d"}, "medium": {"url": "m"}}}) == "m"
    assert _pick_thumbnail_url({"thumbnails": {"default": {"url": "d"}, "high": {"url": "h"}}}) == "d"
    assert _pick_thumbnail_url({"thumbnails": {"maxres": {"url": "x"}}}) == "x"
    assert _pick_thumbnail_url({}) is None


@pytest.mark.asyncio
async def test_fetch_maps_items_and_sends_requested_parts() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"items": [_item("abc"), {"snippet": {}}]})

    videos = await _provider(handler).fetch(["abc", "missing"])

    assert videos == {
        "abc": Video(
            service="youtube",
            id="abc",
            title="abc title",
            description="abc description",
            thumbnail="https://i.ytimg.com/vi/abc/mqdefault.jpg",
            length=212,
        )
    }
    assert len(seen) == 1
    assert seen[0].url.path == "/v3/videos"
    assert seen[0].url.params["part"] == "snippet,contentDetails"
    assert seen[0].url.params["id"] == "abc,missing"
    assert seen[0].url.params["key"] == "test-key"


@pytest.mark.asyncio
async def test_fetch_length_only_requests_content_details() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={"items": [{"id": "abc", "contentDetails": {"duration": "PT10S"}}]},
        )

    videos = await _provider(handler).fetch(["abc"], only_fields={"length"})

    assert seen[0].url.params["part"] == "contentDetails"
    assert videos["abc"] == Video(service="youtube", id="abc", length=10)


@pytest.mark.asyncio
async def test_fetch_empty_ids_makes_no_request() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError(f"unexpected request {request.url}")

    assert await _provider(handler).fetch([]) == {}


@pytest.mark.asyncio
async def test_fetch_chunks_large_id_lists() -> None:
    seen_chunks: list[list[str]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        ids = request.url.params["id"].split(",")
        seen_chunks.append(ids)
        return httpx.Response(200, json={"items": [_item(video_id) for video_id in ids]})

    ids = [f"vid{index}" for index in range(120)]
    videos = await _provider(handler).fetch(ids)

    assert [len(chunk) for chunk in seen_chunks] == [50, 50, 20]
    assert set(videos) == set(ids)


@pytest.mark.asyncio
async def test_quota_error_falls_back_to_watch_page_for_length() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/v3/videos":
            return httpx.Response(403, json={"error": {"code": 403}})
        assert request.url.path == "/watch"
        assert request.url.params["v"] == "abc"
        return httpx.Response(200, text='<script>var x = {"lengthSeconds":"212"};</script>')

    videos = await _provider(handler).fetch(["abc"], only_fields={"length"})

    assert videos == {"abc": Video(service="youtube", id="abc", length=212)}


@pytest.mark.asyncio
async def test_quota_fallback_adds_thumbnail_when_requested() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/v3/videos":
            return httpx.Response(429)
        return httpx.Response(200, text='"lengthSeconds":"30"')

    videos = await _provider(handler).fetch(["abc"], only_fields={"title", "thumbnail", "length"})

    assert videos["abc"] == Video(
        service="youtube",
        id="abc",
        thumbnail="https://i.ytimg.com/vi/abc/default.jpg",
        length=30,
    )


@pytest.mark.asyncio
async def test_quota_error_for_thumbnail_without_length_raises() -> None:
    watch_requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/v3/videos":
            return httpx.Response(403)
        watch_requests.append(request)
        return httpx.Response(200, text='"lengthSeconds":"30"')

    with pytest.raises(OutOfQuotaError):
        await _provider(handler).fetch(["abc"], only_fields={"title", "description", "thumbnail"})
    assert watch_requests == []


@pytest.mark.asyncio
async def test_quota_error_without_applicable_fallback_raises() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(403)

    with pytest.raises(OutOfQuotaError):
        await _provider(handler).fetch(["abc"], only_fields={"title", "description"})


@pytest.mark.asyncio
async def test_quota_error_on_later_chunk_carries_earlier_results() -> None:
    requests_made = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal requests_made
        requests_made += 1
        if requests_made > 1:
            return httpx.Response(403)
        ids = request.url.params["id"].split(",")
        return httpx.Response(200, json={"items": [_item(video_id) for video_id in ids]})

    ids = [f"vid{index}" for index in range(60)]
    with pytest.raises(OutOfQuotaError) as excinfo:
        await _provider(handler).fetch(ids, only_fields={"title"})

    assert requests_made == 2
    assert set(excinfo.value.partial) == set(ids[:50])
    assert excinfo.value.partial["vid0"].title == "vid0 title"


@pytest.mark.asyncio
async def test_failed_scrape_leaves_length_absent() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/v3/videos":
            return httpx.Response(403)
        if request.url.params["v"] == "bad":
            return httpx.Response(500)
        return httpx.Response(200, text='"lengthSeconds":"5"')

    videos = await _provider(handler).fetch(["good", "bad"], only_fields={"length"})

    assert videos["good"].length == 5
    assert videos["bad"] == Video(service="youtube", id="bad")


@pytest.mark.asyncio
async def test_fake_out_of_quota_flag_skips_api() -> None:
    api_requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/v3/videos":
            api_requests.append(request)
            return httpx.Response(200, json={"items": []})
        return httpx.Response(200, text='"lengthSeconds":"7"')

    provider = _provider(handler, fake_out_of_quota=True)
    videos = await provider.fetch(["abc"], only_fields={"length"})

    assert api_requests == []
    assert videos["abc"].length == 7
    with pytest.raises(OutOfQuotaError):
        await provider.fetch(["abc"], only_fields={"title"})


@pytest.mark.asyncio
async def test_missing_api_key_is_provider_unavailable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError(f"unexpected request {request.url}")

    with pytest.raises(ProviderUnavailableError):
        await _provider(handler, api_key="  ").fetch(["abc"])


@pytest.mark.asyncio
async def test_server_error_and_bad_json_are_provider_unavailable() -> None:
    def server_error(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500)

    def bad_json(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="not json")

    def connect_error(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    for handler in (server_error, bad_json, connect_error):
        with pytest.raises(ProviderUnavailableError):
            await _provider(handler).fetch(["abc"])
