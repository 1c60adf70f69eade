from __future__ import annotations

from functools import lru_cache

import httpx
from fastapi import Request

from backend.videoinfo.config import AppSettings, load_settings
from backend.videoinfo.repositories.database import Database
from backend.videoinfo.repositories.video_info_repository import VideoInfoRepository
from backend.videoinfo.services.dailymotion_provider import DailymotionProvider
from backend.videoinfo.services.provider_base import VideoInfoProvider
from backend.videoinfo.services.video_info_cache import VideoInfoCache
from backend.videoinfo.services.video_info_service import VideoInfoService
from backend.videoinfo.services.vimeo_provider import VimeoProvider
from backend.videoinfo.services.youtube_provider import YouTubeProvider
from backend.videoinfo.telemetry import TelemetryClient, build_telemetry_client


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    return load_settings()


@lru_cache(maxsize=1)
def get_telemetry() -> TelemetryClient:
    settings = get_settings()
    return build_telemetry_client(
        enabled=settings.telemetry_enabled,
        sink=settings.telemetry_sink,
    )


def build_http_client(settings: AppSettings) -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=settings.http_timeout_seconds)


def build_providers(
    settings: AppSettings,
    http_client: httpx.AsyncClient,
) -> dict[str, VideoInfoProvider]:
    return {
        "youtube": YouTubeProvider(
            http_client,
            api_key=settings.youtube_api_key,
            api_base_url=settings.youtube_api_base_url,
            watch_url=settings.youtube_watch_url,
            fake_out_of_quota=settings.debug_fake_youtube_out_of_quota,
        ),
        "vimeo": VimeoProvider(http_client, oembed_url=settings.vimeo_oembed_url),
        "dailymotion": DailymotionProvider(
            http_client,
            api_base_url=settings.dailymotion_api_base_url,
        ),
    }


def build_video_info_service(
    settings: AppSettings,
    http_client: httpx.AsyncClient,
    telemetry: TelemetryClient,
) -> VideoInfoService:
    database = Database(settings.db_path)
    database.initialize()
    return VideoInfoService(
        cache=VideoInfoCache(VideoInfoRepository(database)),
        providers=build_providers(settings, http_client),
        telemetry=telemetry,
    )


def get_video_info_service(request: Request) -> VideoInfoService:
    service = getattr(request.app.state, "video_info_service", None)
    if not isinstance(service, VideoInfoService):
        raise RuntimeError("video info service is not initialized; is the app lifespan running?")
    return service


def reset_cached_dependencies() -> None:
    get_telemetry.cache_clear()
    get_settings.cache_clear()
