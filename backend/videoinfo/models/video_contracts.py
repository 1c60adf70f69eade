from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from backend.videoinfo.models.video import Video

MAX_RESOLVE_BATCH_SIZE = 200


class VideoIdentity(BaseModel):
    model_config = ConfigDict(extra="forbid")

    service: str = Field(min_length=1)
    id: str = Field(min_length=1)


class VideoPayload(BaseModel):
    model_config = ConfigDict(extra="forbid")

    service: str
    id: str
    title: str | None = None
    description: str | None = None
    thumbnail: str | None = None
    length: int | None = None

    @classmethod
    def from_video(cls, video: Video) -> VideoPayload:
        return cls(
            service=video.service,
            id=video.id,
            title=video.title,
            description=video.description,
            thumbnail=video.thumbnail,
            length=video.length,
        )


class ResolveVideosRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    videos: list[VideoIdentity] = Field(max_length=MAX_RESOLVE_BATCH_SIZE)


class ResolveVideosResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    videos: list[VideoPayload | None]


class VideoPreviewResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    videos: list[VideoPayload]
