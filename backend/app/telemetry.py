from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Literal, Protocol

import structlog

LOOKUP_FINISH_EVENT = "video_info.lookup.finish"
# Matches OAuth material (client secret, refresh/access tokens, bearer headers).
_SENSITIVE_KEY_RE = re.compile(r"token|secret|authorization|password|credential")
_MAX_STRING_LENGTH = 160

TelemetryValue = bool | int | float | str | None
CacheLayer = Literal["positive", "negative", "upstream", "none"]

# Which store answered each lookup outcome.
_OUTCOME_CACHE_LAYERS: dict[str, CacheLayer] = {
    "invalid_path": "none",
    "known_unprocessable": "negative",
    "cache_hit": "positive",
}


class TelemetrySink(Protocol):
    def emit(self, *, event_name: str, attributes: Mapping[str, TelemetryValue]) -> None:
        ...


class LogTelemetrySink:
    """Writes each event as one record on the `video_info.telemetry` logger."""

    def __init__(self) -> None:
        self._logger = structlog.get_logger("video_info.telemetry")

    def emit(self, *, event_name: str, attributes: Mapping[str, TelemetryValue]) -> None:
        self._logger.info("telemetry", telemetry_event=event_name, **attributes)


@dataclass(frozen=True)
class TelemetryClient:
    enabled: bool
    sink: TelemetrySink | None = None

    @classmethod
    def disabled(cls) -> TelemetryClient:
        return cls(enabled=False)

    def emit(self, event_name: str, **attributes: Any) -> None:
        if not self.enabled or self.sink is None:
            return
        self.sink.emit(event_name=event_name, attributes=_sanitize_attributes(attributes))

    def lookup_finished(self, *, video_id: str | None, outcome: str, status_code: int) -> None:
        self.emit(
            LOOKUP_FINISH_EVENT,
            video_id=video_id,
            outcome=outcome,
            status_code=status_code,
            cache_layer=_OUTCOME_CACHE_LAYERS.get(outcome, "upstream"),
        )


def build_telemetry_client(*, enabled: bool, sink: Literal["none", "log"]) -> TelemetryClient:
    if enabled and sink == "log":
        return TelemetryClient(enabled=True, sink=LogTelemetrySink())
    return TelemetryClient.disabled()


def _sanitize_attributes(attributes: Mapping[str, Any]) -> dict[str, TelemetryValue]:
    sanitized: dict[str, TelemetryValue] = {}
    for raw_key, raw_value in attributes.items():
        key = raw_key.strip().lower()
        if not key:
            continue
        if _SENSITIVE_KEY_RE.search(key):
            sanitized[key] = "[redacted]"
        elif raw_value is None or isinstance(raw_value, bool | int | float):
            sanitized[key] = raw_value
        elif isinstance(raw_value, str):
            compact = " ".join(raw_value.split())
            if len(compact) > _MAX_STRING_LENGTH:
                compact = f"{compact[:_MAX_STRING_LENGTH]}..."
            sanitized[key] = compact
        else:
            sanitized[key] = type(raw_value).__name__
    return sanitized
