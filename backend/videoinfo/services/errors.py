from __future__ import annotations

from collections.abc import Mapping

from backend.videoinfo.models.video import Video

YOUTUBE_DAILY_QUOTA_UNITS = 10_000


class VideoInfoError(Exception):
    pass


class InvalidVideoIdError(VideoInfoError):
    def __init__(self, service: str, video_id: str) -> None:
        super().__init__(f'"{video_id}" is an invalid {service} video ID.')
        self.service = service
        self.video_id = video_id


class UnsupportedServiceError(VideoInfoError):
    def __init__(self, hostname: str) -> None:
        super().__init__(f'The service at "{hostname}" is not yet supported.')
        self.hostname = hostname


class InvalidLinkError(VideoInfoError):
    def __init__(self, link: str) -> None:
        super().__init__(f'Could not find a video ID in "{link}".')
        self.link = link


class OutOfQuotaError(VideoInfoError):
    """
    Raised when the provider refuses further requests for today.

    ``partial`` holds records fetched before the quota ran out, keyed by video id.
    """

    def __init__(
        self,
        service: str = "youtube",
        *,
        partial: Mapping[str, Video] | None = None,
    ) -> None:
        super().__init__(
            "We don't have enough YouTube API quota to complete the request. "
            f"We currently have a limit of {YOUTUBE_DAILY_QUOTA_UNITS:,} quota per day."
        )
        self.service = service
        self.partial: dict[str, Video] = dict(partial or {})


class ProviderUnavailableError(VideoInfoError):
    def __init__(self, service: str, message: str, *, status_code: int | None = None) -> None:
        super().__init__(f"{service} request failed: {message}")
        self.service = service
        self.status_code = status_code
