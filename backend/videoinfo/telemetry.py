from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field
from time import perf_counter
from typing import Any, Literal, Protocol

import structlog

TELEMETRY_LOGGER_NAME = "videoinfo.telemetry"
REDACTED = "[redacted]"
# Video text and credentials never leave the process through telemetry.
_SENSITIVE_ATTRIBUTE_TOKENS: frozenset[str] = frozenset(
    {"api_key", "authorization", "cookie", "description", "secret", "title", "token"}
)
_MAX_STRING_LENGTH = 160

TelemetryValue = bool | int | float | str | None


class TelemetrySink(Protocol):
    def emit(self, *, event_name: str, attributes: Mapping[str, Any]) -> None:
        ...


class NoOpTelemetrySink:
    def emit(self, *, event_name: str, attributes: Mapping[str, Any]) -> None:
        _ = (event_name, attributes)


class StructuredLogTelemetrySink:
    def __init__(self) -> None:
        self._logger = structlog.get_logger(TELEMETRY_LOGGER_NAME)

    def emit(self, *, event_name: str, attributes: Mapping[str, Any]) -> None:
        self._logger.info("telemetry", telemetry_event=event_name, **dict(attributes))


@dataclass
class TelemetrySpan:
    """Attributes collected while a timed operation runs."""

    attributes: dict[str, Any] = field(default_factory=dict)

    def set(self, **attributes: Any) -> None:
        self.attributes.update(attributes)


@dataclass(frozen=True)
class TelemetryClient:
    enabled: bool
    sink: TelemetrySink

    @classmethod
    def disabled(cls) -> TelemetryClient:
        return cls(enabled=False, sink=NoOpTelemetrySink())

    def emit(self, event_name: str, **attributes: Any) -> None:
        if not self.enabled:
            return
        self.sink.emit(event_name=event_name, attributes=sanitize_attributes(attributes))

    @contextmanager
    def span(self, event_prefix: str, **attributes: Any) -> Iterator[TelemetrySpan]:
        """
        Time the enclosed block and emit ``<event_prefix>.finish`` on success.

        An exception escaping the block emits ``<event_prefix>.error`` with the
        exception type instead, then propagates unchanged.
        """
        current = TelemetrySpan(dict(attributes))
        started_at = perf_counter()
        try:
            yield current
        except Exception as exc:
            self.emit(
                f"{event_prefix}.error",
                **current.attributes,
                duration_ms=_elapsed_ms(started_at),
                error_type=type(exc).__name__,
            )
            raise
        self.emit(
            f"{event_prefix}.finish",
            **current.attributes,
            duration_ms=_elapsed_ms(started_at),
        )


def build_telemetry_client(*, enabled: bool, sink: Literal["none", "log"]) -> TelemetryClient:
    if not enabled or sink == "none":
        return TelemetryClient.disabled()
    if sink == "log":
        return TelemetryClient(enabled=True, sink=StructuredLogTelemetrySink())

    logging.getLogger(TELEMETRY_LOGGER_NAME).warning(
        "unsupported telemetry sink requested; disabling telemetry sink=%s",
        sink,
    )
    return TelemetryClient.disabled()


def sanitize_attributes(attributes: Mapping[str, Any]) -> dict[str, TelemetryValue]:
    sanitized: dict[str, TelemetryValue] = {}
    for raw_key, raw_value in attributes.items():
        key = str(raw_key).strip().lower()
        if not key:
            continue
        if any(token in key for token in _SENSITIVE_ATTRIBUTE_TOKENS):
            sanitized[key] = REDACTED
        else:
            sanitized[key] = _sanitize_value(raw_value)
    return sanitized


def _sanitize_value(value: Any) -> TelemetryValue:
    if value is None or isinstance(value, bool | int | float):
        return value
    if isinstance(value, str):
        return _truncate(" ".join(value.split()))
    # Field sets and id lists are flattened so every sink sees scalars.
    if isinstance(value, list | tuple | set | frozenset):
        return _truncate(",".join(sorted(str(item) for item in value)))
    return type(value).__name__


def _truncate(value: str) -> str:
    if len(value) <= _MAX_STRING_LENGTH:
        return value
    return f"{value[:_MAX_STRING_LENGTH]}..."


def _elapsed_ms(started_at: float) -> int:
    return int((perf_counter() - started_at) * 1000)
