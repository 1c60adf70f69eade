from __future__ import annotations

from urllib.parse import parse_qs, urlparse

from backend.videoinfo.services.errors import InvalidLinkError, UnsupportedServiceError

_SERVICE_HOST_SUFFIXES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("youtube", ("youtube.com", "youtu.be")),
    ("vimeo", ("vimeo.com",)),
    ("dailymotion", ("dailymotion.com", "dai.ly")),
)


def get_service(link: str) -> str | None:
    host = _hostname(link)
    if host is None:
        return None
    for service, suffixes in _SERVICE_HOST_SUFFIXES:
        if host.endswith(suffixes):
            return service
    return None


def parse_video_link(link: str) -> tuple[str, str]:
    """Return the ``(service, video_id)`` a pasted link points at."""
    stripped = link.strip()
    host = _hostname(stripped)
    if host is None:
        raise InvalidLinkError(link)

    service = get_service(stripped)
    if service is None:
        raise UnsupportedServiceError(host)

    if service == "youtube":
        video_id = _youtube_video_id(stripped)
    else:
        video_id = _last_path_segment(stripped)

    if not video_id:
        raise InvalidLinkError(link)
    return service, video_id


def _hostname(link: str) -> str | None:
    parsed = urlparse(link.strip())
    host = parsed.hostname
    if not host:
        return None
    return host.lower()


def _youtube_video_id(link: str) -> str | None:
    parsed = urlparse(link)
    host = (parsed.hostname or "").lower()
    if host.endswith("youtu.be"):
        return parsed.path.strip("/").split("/")[0].strip() or None

    values = parse_qs(parsed.query).get("v")
    if not values:
        return None
    return values[0].strip() or None


def _last_path_segment(link: str) -> str | None:
    path = urlparse(link).path.rstrip("/")
    if not path:
        return None
    return path.split("/")[-1].strip() or None
