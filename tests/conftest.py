from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from backend.videoinfo.dependencies import reset_cached_dependencies
from backend.videoinfo.main import create_app
from backend.videoinfo.repositories.database import Database
from backend.videoinfo.repositories.video_info_repository import VideoInfoRepository


@pytest.fixture(autouse=True)
def _reset_videoinfo_loggers() -> Iterator[None]:
    yield
    for name in ("videoinfo", "videoinfo.telemetry"):
        logger = logging.getLogger(name)
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()
        logger.propagate = True
        logger.setLevel(logging.NOTSET)


@pytest.fixture
def repository(tmp_path: Path) -> VideoInfoRepository:
    db = Database(tmp_path / "state.db")
    db.initialize()
    return VideoInfoRepository(db)


@pytest.fixture
def client(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[TestClient]:
    data_dir = tmp_path / "runtime-data"
    data_dir.mkdir(parents=True, exist_ok=True)

    monkeypatch.setenv("VIDEOINFO_DATA_DIR", str(data_dir))
    monkeypatch.setenv("VIDEOINFO_YOUTUBE_API_KEY", "test-youtube-key")
    monkeypatch.setenv("VIDEOINFO_TELEMETRY_ENABLED", "0")
    reset_cached_dependencies()

    app = create_app()
    with TestClient(app) as test_client:
        yield test_client

    reset_cached_dependencies()
