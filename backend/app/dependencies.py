from __future__ import annotations

from functools import lru_cache

from backend.app.config import AppSettings, load_settings
from backend.app.repositories.database import Database
from backend.app.repositories.unprocessable_request_repository import (
    UnprocessableRequestRepository,
)
from backend.app.repositories.video_info_repository import VideoInfoRepository
from backend.app.services.video_info_service import VideoInfoService, YouTubeCredentials
from backend.app.services.youtube_service import GoogleAccessTokenProvider, YouTubeVideosClient
from backend.app.telemetry import TelemetryClient, build_telemetry_client


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    return load_settings()


@lru_cache(maxsize=1)
def get_database() -> Database:
    database = Database(get_settings().db_path)
    database.initialize()
    return database


@lru_cache(maxsize=1)
def get_video_info_service() -> VideoInfoService:
    settings = get_settings()
    database = get_database()

    return VideoInfoService(
        video_info_repository=VideoInfoRepository(database),
        unprocessable_request_repository=UnprocessableRequestRepository(database),
        token_provider=GoogleAccessTokenProvider(token_uri=settings.youtube_token_uri),
        videos_client=YouTubeVideosClient(
            api_endpoint=settings.youtube_api_endpoint,
            timeout_seconds=settings.youtube_http_timeout_seconds,
        ),
        credentials=build_youtube_credentials(settings),
        telemetry=get_telemetry(),
    )


def build_youtube_credentials(settings: AppSettings) -> YouTubeCredentials:
    client_id = settings.youtube_client_id
    client_secret = settings.youtube_client_secret
    refresh_token = settings.youtube_refresh_token
    if client_id is None or client_secret is None or refresh_token is None:
        raise ValueError(
            "YouTube lookups require VIDEO_INFO_YOUTUBE_CLIENT_ID, "
            "VIDEO_INFO_YOUTUBE_CLIENT_SECRET and VIDEO_INFO_YOUTUBE_REFRESH_TOKEN."
        )
    return YouTubeCredentials(
        client_id=client_id,
        client_secret=client_secret,
        refresh_token=refresh_token,
    )


@lru_cache(maxsize=1)
def get_telemetry() -> TelemetryClient:
    settings = get_settings()
    return build_telemetry_client(
        enabled=settings.telemetry_enabled,
        sink=settings.telemetry_sink,
    )


def reset_cached_dependencies() -> None:
    get_video_info_service.cache_clear()
    get_database.cache_clear()
    get_telemetry.cache_clear()
    get_settings.cache_clear()
