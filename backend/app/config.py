from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_DATA_DIR = ".video-info"
DEFAULT_YOUTUBE_TOKEN_URI = "https://oauth2.googleapis.com/token"
_DATA_DIR_RELATIVE_DEFAULTS: tuple[tuple[str, Path], ...] = (
    ("db_path", Path("state.db")),
    ("log_dir", Path("logs")),
)
_PATH_FIELDS: tuple[str, ...] = (
    "data_dir",
    *(field_name for field_name, _ in _DATA_DIR_RELATIVE_DEFAULTS),
)
_BOOLEAN_COERCION_FIELDS: tuple[str, ...] = ("telemetry_enabled",)


def _default_in_data_dir(relative_path: Path) -> Path:
    return Path(DEFAULT_DATA_DIR) / relative_path


def _data_dir_default_note(relative_path: Path) -> str:
    return f"Defaults to `${{VIDEO_INFO_DATA_DIR}}/{relative_path}` when not explicitly set."


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

    Loaded once at process start and injected into the lookup service:
    - what each option controls,
    - where it comes from (`VIDEO_INFO_*`),
    - and what its default is.
    """

    model_config = SettingsConfigDict(
        env_prefix="VIDEO_INFO_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # Core paths.
    data_dir: Path = Field(
        default=Path(DEFAULT_DATA_DIR),
        description="Root runtime directory for the cache database and logs.",
    )
    db_path: Path = Field(
        default=_default_in_data_dir(Path("state.db")),
        description=f"SQLite database path. {_data_dir_default_note(Path('state.db'))}",
    )

    # YouTube Data API credentials and transport.
    youtube_client_id: str | None = Field(
        default=None,
        description="Google OAuth client id used to refresh the API access token.",
    )
    youtube_client_secret: str | None = Field(
        default=None,
        description="Google OAuth client secret used to refresh the API access token.",
    )
    youtube_refresh_token: str | None = Field(
        default=None,
        description="Long-lived OAuth refresh token exchanged for bearer access tokens.",
    )
    youtube_token_uri: str = Field(
        default=DEFAULT_YOUTUBE_TOKEN_URI,
        description="OAuth token endpoint used for refresh-token exchanges.",
    )
    youtube_api_endpoint: str | None = Field(
        default=None,
        description=(
            "Override for the discovery client's root URL, e.g. a proxy. "
            "`youtube/v3/...` method paths are resolved against it."
        ),
    )
    youtube_http_timeout_seconds: float = Field(
        default=10.0,
        description="HTTP timeout for the upstream `videos` request.",
    )

    # Logging.
    log_dir: Path = Field(
        default=_default_in_data_dir(Path("logs")),
        description=f"Directory for backend log files. {_data_dir_default_note(Path('logs'))}",
    )
    log_level: str = Field(
        default="INFO",
        description="Console log level (stdout).",
    )

    # Telemetry.
    telemetry_enabled: bool = Field(
        default=True,
        description="Enable lightweight internal telemetry events.",
    )
    telemetry_sink: Literal["none", "log"] = Field(
        default="log",
        description=(
            "Telemetry sink backend. `log` emits structured telemetry locally; "
            "`none` disables sink output."
        ),
    )

    @field_validator("telemetry_sink", mode="before")
    @classmethod
    def _normalize_telemetry_sink(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("VIDEO_INFO_TELEMETRY_SINK must be a string.")
        normalized = value.strip().lower()
        if normalized in {"none", "log"}:
            return normalized
        raise ValueError("VIDEO_INFO_TELEMETRY_SINK must be set to: none, log.")

    @field_validator("youtube_token_uri", mode="before")
    @classmethod
    def _normalize_token_uri(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("VIDEO_INFO_YOUTUBE_TOKEN_URI must be a string.")
        normalized = value.strip().rstrip("/")
        if not normalized:
            raise ValueError("VIDEO_INFO_YOUTUBE_TOKEN_URI must not be empty.")
        return normalized

    @field_validator("youtube_api_endpoint", mode="before")
    @classmethod
    def _normalize_api_endpoint(cls, value: Any) -> str | None:
        normalized = _normalize_optional_text(value)
        if normalized is None:
            return None
        # Method paths are joined relative to the endpoint.
        return normalized.rstrip("/") + "/"

    @field_validator("youtube_http_timeout_seconds")
    @classmethod
    def _validate_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("VIDEO_INFO_YOUTUBE_HTTP_TIMEOUT_SECONDS must be positive.")
        return value

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

    @field_validator(
        "youtube_client_id",
        "youtube_client_secret",
        "youtube_refresh_token",
        mode="before",
    )
    @classmethod
    def _normalize_optional_strings(cls, value: Any) -> str | None:
        return _normalize_optional_text(value)


def _validate_oauth_configuration(
    *,
    youtube_client_id: str | None,
    youtube_client_secret: str | None,
    youtube_refresh_token: str | None,
) -> None:
    errors: list[str] = []

    if youtube_client_id is None:
        errors.append("VIDEO_INFO_YOUTUBE_CLIENT_ID is required.")
    if youtube_client_secret is None:
        errors.append("VIDEO_INFO_YOUTUBE_CLIENT_SECRET is required.")
    if youtube_refresh_token is None:
        errors.append("VIDEO_INFO_YOUTUBE_REFRESH_TOKEN is required.")

    if errors:
        bullets = "\n".join(f"- {message}" for message in errors)
        raise ValueError(
            "Invalid production configuration for YouTube API access:\n"
            f"{bullets}"
        )


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
        field_name: _resolve_path(getattr(settings, field_name))
        for field_name in _PATH_FIELDS
    }
    return settings.model_copy(update=resolved_updates)


def load_settings(*, validate_oauth_secrets: bool = True) -> AppSettings:
    settings = AppSettings()
    settings = _apply_path_defaults(settings)
    settings = _resolve_path_fields(settings)

    if validate_oauth_secrets:
        _validate_oauth_configuration(
            youtube_client_id=settings.youtube_client_id,
            youtube_client_secret=settings.youtube_client_secret,
            youtube_refresh_token=settings.youtube_refresh_token,
        )

    return settings
