from __future__ import annotations

from collections.abc import Collection
from typing import Any, Protocol, cast

from backend.videoinfo.models.video import Video

USER_AGENT = "videoinfo/1.0"


class VideoInfoProvider(Protocol):
    service: str

    async def fetch(
        self,
        ids: list[str],
        only_fields: Collection[str] | None = None,
    ) -> dict[str, Video]:
        """
        Fetch metadata for ``ids``.

        ``only_fields=None`` requests the full field set. Ids missing from the
        returned mapping have no metadata available on the provider.
        """
        ...


def as_dict(value: Any) -> dict[str, Any]:
    if isinstance(value, dict):
        raw_dict = cast(dict[object, object], value)
        converted: dict[str, Any] = {}
        for key, item in raw_dict.items():
            if isinstance(key, str):
                converted[key] = item
        return converted
    return {}


def as_list(value: Any) -> list[Any]:
    if isinstance(value, list):
        raw_list = cast(list[Any], value)
        return list(raw_list)
    return []


def coerce_str(raw_value: object) -> str | None:
    if isinstance(raw_value, str):
        return raw_value
    return None


def coerce_nonempty_string(raw_value: object) -> str | None:
    if isinstance(raw_value, str) and raw_value.strip():
        return raw_value
    return None


def coerce_int(raw_value: object) -> int | None:
    if isinstance(raw_value, bool):
        return None
    if isinstance(raw_value, int):
        return raw_value
    if isinstance(raw_value, float):
        return int(raw_value)
    if isinstance(raw_value, str):
        try:
            return int(raw_value.strip())
        except ValueError:
            return None
    return None


def summarize_exception_message(exc: Exception, *, max_length: int = 400) -> str:
    raw = str(exc).strip()
    if not raw:
        raw = repr(exc)
    if len(raw) <= max_length:
        return raw
    return f"{raw[: max_length - 3]}..."
