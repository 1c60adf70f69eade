from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_DATA_DIR = ".videoinfo"
_DATA_DIR_RELATIVE_DEFAULTS: tuple[tuple[str, Path], ...] = (
    ("db_path", Path("state.db")),
    ("log_dir", Path("logs")),
)
_PATH_FIELDS: tuple[str, ...] = (
    "data_dir",
    *(field_name for field_name, _ in _DATA_DIR_RELATIVE_DEFAULTS),
)
_BOOLEAN_COERCION_FIELDS: tuple[str, ...] = (
    "debug_fake_youtube_out_of_quota",
    "telemetry_enabled",
)
_URL_FIELDS: tuple[str, ...] = (
    "youtube_api_base_url",
    "youtube_watch_url",
    "vimeo_oembed_url",
    "dailymotion_api_base_url",
)


def _default_in_data_dir(relative_path: Path) -> Path:
    return Path(DEFAULT_DATA_DIR) / relative_path


def _data_dir_default_note(relative_path: Path) -> str:
    return f"Defaults to `${{VIDEOINFO_DATA_DIR}}/{relative_path}` when not explicitly set."


def _resolve_path(value: str | Path) -> Path:
    return Path(value).expanduser().resolve()


def _parse_bool_with_default(value: Any, *, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        if value == 1:
            return True
        if value == 0:
            return False
        return default
    if not isinstance(value, str):
        return default

    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


def _normalize_optional_text(value: Any) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        return None
    normalized = value.strip()
    if normalized:
        return normalized
    return None


class AppSettings(BaseSettings):
    """
    Canonical runtime configuration.

    Every option is read from a `VIDEOINFO_*` environment variable (or `.env`)
    and documents what it controls and its default.
    """

    model_config = SettingsConfigDict(
        env_prefix="VIDEOINFO_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # Core paths.
    data_dir: Path = Field(
        default=Path(DEFAULT_DATA_DIR),
        description="Root runtime directory for the metadata cache and logs.",
    )
    db_path: Path = Field(
        default=_default_in_data_dir(Path("state.db")),
        description=f"SQLite metadata cache path. {_data_dir_default_note(Path('state.db'))}",
    )
    log_dir: Path = Field(
        default=_default_in_data_dir(Path("logs")),
        description=f"Directory for log files. {_data_dir_default_note(Path('logs'))}",
    )
    log_level: str = Field(
        default="INFO",
        description="Console log level. File logs always capture DEBUG.",
    )
    log_file_max_bytes: int = Field(
        default=10 * 1024 * 1024,
        ge=0,
        description="Rotate log files once they reach this size. `0` disables rotation.",
    )
    log_file_backup_count: int = Field(
        default=5,
        ge=0,
        description="Number of rotated log files kept next to the active one.",
    )

    # Providers.
    youtube_api_key: str | None = Field(
        default=None,
        description=(
            "YouTube Data API v3 key. Without it every YouTube API call fails; "
            "cached metadata is still served."
        ),
    )
    youtube_api_base_url: str = Field(
        default="https://www.googleapis.com/youtube/v3",
        description="Base URL of the YouTube Data API.",
    )
    youtube_watch_url: str = Field(
        default="https://youtube.com/watch",
        description="Public watch page scraped for durations when API quota runs out.",
    )
    vimeo_oembed_url: str = Field(
        default="https://vimeo.com/api/oembed.json",
        description="Vimeo oEmbed endpoint.",
    )
    dailymotion_api_base_url: str = Field(
        default="https://api.dailymotion.com",
        description="Base URL of the Dailymotion REST API.",
    )
    http_timeout_seconds: float = Field(
        default=10.0,
        ge=0.5,
        le=120.0,
        description="Timeout applied to every provider HTTP request.",
    )
    debug_fake_youtube_out_of_quota: bool = Field(
        default=False,
        description=(
            "Treat every YouTube Data API call as quota exhausted. Useful to exercise "
            "the watch page fallback without spending quota."
        ),
    )

    # Observability.
    telemetry_enabled: bool = Field(
        default=False,
        description="Emit structured telemetry events.",
    )
    telemetry_sink: Literal["none", "log"] = Field(
        default="none",
        description="Telemetry destination: `none` or `log` (structured log lines).",
    )

    @field_validator("telemetry_sink", mode="before")
    @classmethod
    def _normalize_telemetry_sink(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("VIDEOINFO_TELEMETRY_SINK must be a string.")
        normalized = value.strip().lower()
        if normalized in {"none", "log"}:
            return normalized
        raise ValueError("VIDEOINFO_TELEMETRY_SINK must be set to: none, log.")

    @field_validator(*_URL_FIELDS, mode="before")
    @classmethod
    def _normalize_urls(cls, value: Any, info: ValidationInfo) -> str:
        env_name = f"VIDEOINFO_{str(info.field_name).upper()}"
        if not isinstance(value, str):
            raise ValueError(f"{env_name} must be a string.")
        normalized = value.strip().rstrip("/")
        if not normalized:
            raise ValueError(f"{env_name} must not be empty.")
        return normalized

    @field_validator(*_PATH_FIELDS, mode="before")
    @classmethod
    def _normalize_paths(cls, value: Any) -> Any:
        if value is None:
            return None
        return _resolve_path(value)

    @field_validator(*_BOOLEAN_COERCION_FIELDS, mode="before")
    @classmethod
    def _normalize_booleans(cls, value: Any, info: ValidationInfo) -> bool:
        field_name = info.field_name
        assert field_name is not None
        default_value = cls.model_fields[field_name].default
        assert isinstance(default_value, bool)
        return _parse_bool_with_default(value, default=default_value)

    @field_validator("youtube_api_key", mode="before")
    @classmethod
    def _normalize_optional_strings(cls, value: Any) -> str | None:
        return _normalize_optional_text(value)


def _apply_path_defaults(settings: AppSettings) -> AppSettings:
    updates: dict[str, Path] = {}
    for field_name, relative_default in _DATA_DIR_RELATIVE_DEFAULTS:
        if field_name in settings.model_fields_set:
            continue
        updates[field_name] = settings.data_dir / relative_default
    if not updates:
        return settings
    return settings.model_copy(update=updates)


def _resolve_path_fields(settings: AppSettings) -> AppSettings:
    resolved_updates = {
        field_name: _resolve_path(getattr(settings, field_name)) for field_name in _PATH_FIELDS
    }
    return settings.model_copy(update=resolved_updates)


def load_settings() -> AppSettings:
    settings = AppSettings()
    settings = _apply_path_defaults(settings)
    return _resolve_path_fields(settings)
