from __future__ import annotations

import pytest

from backend.videoinfo.services.errors import InvalidLinkError, UnsupportedServiceError
from backend.videoinfo.services.link_parser import get_service, parse_video_link


@pytest.mark.parametrize(
    ("link", "expected"),
    [
        ("https://www.youtube.com/watch?v=dQw4w9WgXcQ", ("youtube", "dQw4w9WgXcQ")),
        ("https://youtube.com/watch?list=PL1&v=abc_DEF-1", ("youtube", "abc_DEF-1")),
        ("https://m.youtube.com/watch?v=abc", ("youtube", "abc")),
        ("https://youtu.be/dQw4w9WgXcQ", ("youtube", "dQw4w9WgXcQ")),
        ("https://youtu.be/dQw4w9WgXcQ?t=42", ("youtube", "dQw4w9WgXcQ")),
        ("https://vimeo.com/76979871", ("vimeo", "76979871")),
        ("https://vimeo.com/channels/staffpicks/76979871/", ("vimeo", "76979871")),
        ("https://www.dailymotion.com/video/x8abc12", ("dailymotion", "x8abc12")),
        ("https://dai.ly/x8abc12", ("dailymotion", "x8abc12")),
        ("  https://YouTu.be/abc  ", ("youtube", "abc")),
    ],
)
def test_parse_video_link(link: str, expected: tuple[str, str]) -> None:
    assert parse_video_link(link) == expected


def test_get_service_by_host() -> None:
    assert get_service("https://www.youtube.com/watch?v=a") == "youtube"
    assert get_service("https://player.vimeo.com/video/1") == "vimeo"
    assert get_service("https://example.com/video/1") is None
    assert get_service("not a link") is None


def test_unsupported_host_raises_with_hostname() -> None:
    with pytest.raises(UnsupportedServiceError) as exc_info:
        parse_video_link("https://www.twitch.tv/videos/1")
    assert exc_info.value.hostname == "www.twitch.tv"


@pytest.mark.parametrize(
    "link",
    [
        "",
        "dQw4w9WgXcQ",
        "https://www.youtube.com/watch",
        "https://www.youtube.com/watch?v=",
        "https://youtu.be/",
        "https://vimeo.com/",
    ],
)
def test_links_without_video_id_are_invalid(link: str) -> None:
    with pytest.raises(InvalidLinkError):
        parse_video_link(link)
