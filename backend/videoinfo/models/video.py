from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Literal

VideoField = Literal["title", "description", "thumbnail", "length"]

VIDEO_INFO_FIELDS: tuple[VideoField, ...] = ("title", "description", "thumbnail", "length")


@dataclass(frozen=True)
class Video:
    service: str
    id: str
    title: str | None = None
    description: str | None = None
    thumbnail: str | None = None
    length: int | None = None

    @property
    def key(self) -> tuple[str, str]:
        return (self.service, self.id)

    def to_dict(self) -> dict[str, object]:
        return {field.name: getattr(self, field.name) for field in fields(self)}


def present_fields(video: Video) -> frozenset[str]:
    return frozenset(name for name in VIDEO_INFO_FIELDS if getattr(video, name) is not None)


def missing_fields(video: Video, known_fields: tuple[str, ...] = VIDEO_INFO_FIELDS) -> frozenset[str]:
    present = present_fields(video)
    return frozenset(name for name in known_fields if name not in present)


def merge_videos(base: Video, patch: Video) -> Video:
    """
    Field-wise union of two records for the same identity.

    Values present on ``patch`` win; values absent on ``patch`` keep whatever
    ``base`` already knew.
    """
    if base.key != patch.key:
        raise ValueError(
            f"Cannot merge {patch.service}:{patch.id} into {base.service}:{base.id}"
        )
    updates = {
        name: getattr(patch, name) for name in VIDEO_INFO_FIELDS if getattr(patch, name) is not None
    }
    if not updates:
        return base
    return replace(base, **updates)


def shape_key(missing: frozenset[str]) -> tuple[str, ...]:
    # Ordered by schema position so equal sets always produce equal keys.
    return tuple(name for name in VIDEO_INFO_FIELDS if name in missing)
