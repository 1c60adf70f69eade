from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from backend.videoinfo.models.video import Video, merge_videos, shape_key
from backend.videoinfo.services.errors import (
    InvalidVideoIdError,
    OutOfQuotaError,
    UnsupportedServiceError,
    VideoInfoError,
)
from backend.videoinfo.services.provider_base import VideoInfoProvider
from backend.videoinfo.services.video_info_cache import CacheLookup, VideoInfoCache
from backend.videoinfo.telemetry import TelemetryClient

LOGGER = logging.getLogger("videoinfo.resolver")

VIDEO_ID_PATTERNS: dict[str, re.Pattern[str]] = {
    "youtube": re.compile(r"[A-Za-z0-9_-]+"),
    "vimeo": re.compile(r"[0-9]+"),
    "dailymotion": re.compile(r"[A-Za-z0-9]+"),
}

VideoKey = tuple[str, str]


@dataclass
class _PartitionOutcome:
    resolved: dict[VideoKey, Video | None] = field(default_factory=dict)
    fresh: list[Video] = field(default_factory=list)
    provider_calls: int = 0
    quota_exhausted: bool = False


def validate_video_identity(service: str, video_id: str) -> None:
    pattern = VIDEO_ID_PATTERNS.get(service)
    if pattern is None:
        raise UnsupportedServiceError(service)
    if pattern.fullmatch(video_id) is None:
        raise InvalidVideoIdError(service, video_id)


class VideoInfoService:
    """
    Resolves display metadata for videos, fetching only what the cache lacks.

    Batches are grouped first by service, then by the exact set of missing
    fields, so each provider receives one request per distinct need.
    """

    def __init__(
        self,
        *,
        cache: VideoInfoCache,
        providers: Mapping[str, VideoInfoProvider],
        telemetry: TelemetryClient | None = None,
    ) -> None:
        self._cache = cache
        self._providers = dict(providers)
        self._telemetry = telemetry or TelemetryClient.disabled()

    @property
    def supported_services(self) -> tuple[str, ...]:
        return tuple(service for service in VIDEO_ID_PATTERNS if service in self._providers)

    async def resolve_one(self, service: str, video_id: str) -> Video | None:
        validate_video_identity(service, video_id)
        provider = self._provider_for(service)

        with self._telemetry.span("videoinfo.resolve_one", service=service) as span:
            lookup = await self._cache.resolve_single(service, video_id)
            span.set(cache_hit=lookup.is_complete)
            if lookup.is_complete:
                span.set(found=True)
                return lookup.video

            LOGGER.warning(
                "missing info video=%s:%s fields=%s",
                service,
                video_id,
                ",".join(shape_key(lookup.missing)),
            )
            try:
                fetched = await provider.fetch([video_id], only_fields=lookup.missing)
            except OutOfQuotaError:
                LOGGER.error("failed to get %s video info: out of quota", service)
                span.set(out_of_quota=True, stale_returned=lookup.has_cached_fields)
                if lookup.has_cached_fields:
                    LOGGER.warning("returning cached results video=%s:%s", service, video_id)
                    span.set(found=True)
                    return lookup.video
                raise
            except VideoInfoError as exc:
                LOGGER.error("failed to get %s video info: %s", service, exc)
                raise

            patch = fetched.get(video_id)
            if patch is None:
                LOGGER.info("no metadata available video=%s:%s", service, video_id)
                span.set(found=False)
                return None

            merged = merge_videos(lookup.video, patch)
            await self._cache.write_back(merged)
            span.set(found=True)
            return merged

    async def resolve_many(self, identities: Sequence[tuple[str, str]]) -> list[Video | None]:
        """
        Resolve every identity, returning results in input order.

        Duplicate identities resolve once and appear at each of their
        positions. A position is ``None`` when no metadata could be obtained.
        """
        requested: list[VideoKey] = [(service, video_id) for service, video_id in identities]
        for service, video_id in requested:
            validate_video_identity(service, video_id)
            self._provider_for(service)
        if not requested:
            return []

        partitions: dict[str, list[VideoKey]] = {}
        for key in dict.fromkeys(requested):
            partitions.setdefault(key[0], []).append(key)

        with self._telemetry.span(
            "videoinfo.resolve_many",
            requested=len(requested),
            services=list(partitions),
        ) as span:
            outcomes = await asyncio.gather(
                *(self._resolve_partition(service, keys) for service, keys in partitions.items())
            )

            resolved: dict[VideoKey, Video | None] = {}
            fresh: list[Video] = []
            quota_exhausted = False
            provider_calls = 0
            for outcome in outcomes:
                resolved.update(outcome.resolved)
                fresh.extend(outcome.fresh)
                quota_exhausted = quota_exhausted or outcome.quota_exhausted
                provider_calls += outcome.provider_calls

            results = [resolved.get(key) for key in requested]
            span.set(
                unique=len(resolved),
                provider_calls=provider_calls,
                fetched=len(fresh),
                unresolved=sum(1 for result in results if result is None),
                quota_exhausted=quota_exhausted,
            )
            if quota_exhausted and all(result is None for result in results):
                raise OutOfQuotaError()

            await self._cache.write_back_batch(fresh)
            return results

    async def _resolve_partition(self, service: str, keys: list[VideoKey]) -> _PartitionOutcome:
        outcome = _PartitionOutcome()
        lookups = await self._cache.resolve_batch(keys)

        groups: dict[frozenset[str], list[CacheLookup]] = {}
        for lookup in lookups:
            if lookup.is_complete:
                outcome.resolved[lookup.video.key] = lookup.video
                continue
            groups.setdefault(lookup.missing, []).append(lookup)
        if not groups:
            return outcome

        provider = self._provider_for(service)
        grouped = list(groups.items())
        LOGGER.info(
            "fetching %s video info groups=%s videos=%s",
            service,
            len(grouped),
            sum(len(group) for _, group in grouped),
        )
        fetch_results = await asyncio.gather(
            *(
                provider.fetch([lookup.video.id for lookup in group], only_fields=missing)
                for missing, group in grouped
            ),
            return_exceptions=True,
        )
        outcome.provider_calls = len(grouped)

        for (missing, group), result in zip(grouped, fetch_results, strict=True):
            if isinstance(result, BaseException):
                if not isinstance(result, VideoInfoError):
                    raise result
                self._emit_provider_fetch(service, missing, group, type(result).__name__)
                self._degrade_group(service, missing, group, result, outcome)
                continue
            self._emit_provider_fetch(service, missing, group, "ok")
            for lookup in group:
                patch = result.get(lookup.video.id)
                if patch is None:
                    outcome.resolved[lookup.video.key] = None
                    continue
                merged = merge_videos(lookup.video, patch)
                outcome.resolved[merged.key] = merged
                outcome.fresh.append(merged)
        return outcome

    def _degrade_group(
        self,
        service: str,
        missing: frozenset[str],
        group: list[CacheLookup],
        error: VideoInfoError,
        outcome: _PartitionOutcome,
    ) -> None:
        if isinstance(error, OutOfQuotaError):
            outcome.quota_exhausted = True
            LOGGER.error(
                "failed to get %s video info: out of quota fields=%s videos=%s",
                service,
                ",".join(shape_key(missing)),
                len(group),
            )
            for lookup in group:
                patch = error.partial.get(lookup.video.id)
                if patch is not None:
                    merged = merge_videos(lookup.video, patch)
                    outcome.resolved[merged.key] = merged
                    outcome.fresh.append(merged)
                    continue
                outcome.resolved[lookup.video.key] = (
                    lookup.video if lookup.has_cached_fields else None
                )
            return

        LOGGER.error(
            "failed to get %s video info fields=%s videos=%s error=%s",
            service,
            ",".join(shape_key(missing)),
            len(group),
            error,
        )
        for lookup in group:
            outcome.resolved[lookup.video.key] = lookup.video if lookup.has_cached_fields else None

    def _emit_provider_fetch(
        self,
        service: str,
        missing: frozenset[str],
        group: list[CacheLookup],
        outcome: str,
    ) -> None:
        self._telemetry.emit(
            "videoinfo.provider.fetch",
            service=service,
            fields=shape_key(missing),
            videos=len(group),
            outcome=outcome,
        )

    def _provider_for(self, service: str) -> VideoInfoProvider:
        provider = self._providers.get(service)
        if provider is None:
            raise UnsupportedServiceError(service)
        return provider
