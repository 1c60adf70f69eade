from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query
from structlog.contextvars import bind_contextvars, reset_contextvars

from backend.videoinfo.dependencies import get_video_info_service
from backend.videoinfo.models.video_contracts import (
    ResolveVideosRequest,
    ResolveVideosResponse,
    VideoPayload,
    VideoPreviewResponse,
)
from backend.videoinfo.services.link_parser import parse_video_link
from backend.videoinfo.services.video_info_service import VideoInfoService

router = APIRouter()


@router.post(
    "/videos/resolve",
    response_model=ResolveVideosResponse,
    tags=["videos"],
    operation_id="resolve_videos",
)
async def resolve_videos(
    request: ResolveVideosRequest,
    service: Annotated[VideoInfoService, Depends(get_video_info_service)],
) -> ResolveVideosResponse:
    videos = await service.resolve_many([(item.service, item.id) for item in request.videos])
    return ResolveVideosResponse(
        videos=[VideoPayload.from_video(video) if video is not None else None for video in videos]
    )


@router.get(
    "/videos/preview",
    response_model=VideoPreviewResponse,
    tags=["videos"],
    operation_id="preview_video_link",
)
async def preview_video_link(
    link: Annotated[str, Query(alias="input", min_length=1)],
    service: Annotated[VideoInfoService, Depends(get_video_info_service)],
) -> VideoPreviewResponse:
    video_service, video_id = parse_video_link(link)
    context_tokens = bind_contextvars(video_service=video_service, video_id=video_id)
    try:
        video = await service.resolve_one(video_service, video_id)
    finally:
        reset_contextvars(**context_tokens)
    if video is None:
        return VideoPreviewResponse(videos=[])
    return VideoPreviewResponse(videos=[VideoPayload.from_video(video)])


@router.get(
    "/videos/{video_service}/{video_id}",
    response_model=VideoPayload,
    tags=["videos"],
    operation_id="get_video_info",
)
async def get_video_info(
    video_service: str,
    video_id: str,
    service: Annotated[VideoInfoService, Depends(get_video_info_service)],
) -> VideoPayload:
    context_tokens = bind_contextvars(video_service=video_service, video_id=video_id)
    try:
        video = await service.resolve_one(video_service, video_id)
    finally:
        reset_contextvars(**context_tokens)
    if video is None:
        raise HTTPException(
            status_code=404,
            detail=f"No metadata available for {video_service} video {video_id}.",
        )
    return VideoPayload.from_video(video)
