from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal

from structlog.contextvars import bound_contextvars

from backend.app.repositories.unprocessable_request_repository import (
    UnprocessableRequestRepository,
)
from backend.app.repositories.video_info_repository import VideoInfo, VideoInfoRepository
from backend.app.services.youtube_service import (
    AccessTokenProvider,
    VideosClient,
    YouTubeResponseError,
    YouTubeTokenError,
    YouTubeTransportError,
    as_dict,
    as_list,
)
from backend.app.telemetry import TelemetryClient

LOGGER = logging.getLogger("video_info.lookup")
VIDEO_ID_LENGTH = 11
PUBLISHED_AT_FORMAT = "%Y-%m-%d %H:%M:%S"
# Extended ISO-8601 date-time with seconds and a mandatory offset.
_ISO8601_EXTENDED_RE = re.compile(
    r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(?:\.\d{1,6})?(?:Z|[+-]\d{2}:?\d{2})",
    re.ASCII,
)

LookupOutcome = Literal[
    "invalid_path",
    "known_unprocessable",
    "cache_hit",
    "token_error",
    "transport_error",
    "invalid_response",
    "api_error",
    "not_found",
    "empty_items",
    "resolved",
    "reread_missing",
]
VideosResponseKind = Literal["api_error", "malformed", "not_found", "empty_items", "ok"]


@dataclass(frozen=True)
class YouTubeCredentials:
    client_id: str
    client_secret: str
    refresh_token: str


@dataclass(frozen=True)
class VideoInfoLookupResult:
    status_code: int
    outcome: LookupOutcome
    video: VideoInfo | None = None


class VideoInfoService:
    """
    Cache-aside lookup of YouTube video metadata.

    Identifiers move from unknown to either the negative cache
    (`unprocessable_request`) or the positive cache (`video_info`) once, and
    are answered from the database from then on.
    """

    def __init__(
        self,
        *,
        video_info_repository: VideoInfoRepository,
        unprocessable_request_repository: UnprocessableRequestRepository,
        token_provider: AccessTokenProvider,
        videos_client: VideosClient,
        credentials: YouTubeCredentials,
        telemetry: TelemetryClient | None = None,
    ) -> None:
        self._video_info_repository = video_info_repository
        self._unprocessable_request_repository = unprocessable_request_repository
        self._token_provider = token_provider
        self._videos_client = videos_client
        self._credentials = credentials
        self._telemetry = telemetry or TelemetryClient.disabled()

    def lookup(self, path: str, query_string: str | None = None) -> VideoInfoLookupResult:
        _ = query_string
        video_id = parse_video_id_from_path(path)
        if video_id is None:
            return self._finish(None, VideoInfoLookupResult(404, "invalid_path"))

        with bound_contextvars(video_id=video_id):
            return self._lookup_valid_id(video_id)

    def _lookup_valid_id(self, video_id: str) -> VideoInfoLookupResult:
        if self._unprocessable_request_repository.contains(video_id):
            LOGGER.info("video_info lookup known_unprocessable video_id=%s", video_id)
            return self._finish(video_id, VideoInfoLookupResult(404, "known_unprocessable"))

        cached = self._video_info_repository.find(video_id)
        if cached is not None:
            LOGGER.info("video_info lookup cache_hit video_id=%s", video_id)
            return self._finish(video_id, VideoInfoLookupResult(200, "cache_hit", cached))

        LOGGER.info("video_info lookup cache_miss video_id=%s", video_id)
        return self._finish(video_id, self._resolve(video_id))

    def _resolve(self, video_id: str) -> VideoInfoLookupResult:
        try:
            access_token = self._token_provider.get(
                self._credentials.client_id,
                self._credentials.client_secret,
                self._credentials.refresh_token,
            )
        except YouTubeTokenError:
            LOGGER.warning("video_info resolve token_error video_id=%s", video_id, exc_info=True)
            return VideoInfoLookupResult(500, "token_error")

        try:
            payload = self._videos_client.list_snippet(video_id, access_token=access_token)
        except YouTubeTransportError:
            LOGGER.warning(
                "video_info resolve transport_error video_id=%s",
                video_id,
                exc_info=True,
            )
            return VideoInfoLookupResult(500, "transport_error")
        except YouTubeResponseError as exc:
            LOGGER.warning(
                "video_info resolve invalid_response video_id=%s status=%s",
                video_id,
                exc.status_code,
            )
            return VideoInfoLookupResult(500, "invalid_response")

        kind = classify_videos_response(payload)
        if kind == "api_error":
            LOGGER.warning(
                "video_info resolve api_error video_id=%s error=%s",
                video_id,
                _summarize_api_error(payload.get("error")),
            )
            return VideoInfoLookupResult(500, "api_error")
        if kind == "malformed":
            LOGGER.warning(
                "video_info resolve invalid_response video_id=%s page_info_type=%s",
                video_id,
                type(payload.get("pageInfo")).__name__,
            )
            return VideoInfoLookupResult(500, "invalid_response")
        if kind == "not_found":
            self._unprocessable_request_repository.record(video_id)
            LOGGER.info("video_info resolve not_found recorded video_id=%s", video_id)
            return VideoInfoLookupResult(404, "not_found")
        if kind == "empty_items":
            LOGGER.warning(
                "video_info resolve empty_items video_id=%s total_results=%s",
                video_id,
                as_dict(payload.get("pageInfo")).get("totalResults"),
            )
            return VideoInfoLookupResult(500, "empty_items")

        first_item = as_dict(as_list(payload.get("items"))[0])
        self._video_info_repository.insert(extract_video_info(video_id, first_item))

        stored = self._video_info_repository.find(video_id)
        if stored is None:
            LOGGER.error("video_info resolve reread_missing video_id=%s", video_id)
            return VideoInfoLookupResult(500, "reread_missing")

        LOGGER.info("video_info resolve stored video_id=%s", video_id)
        return VideoInfoLookupResult(200, "resolved", stored)

    def _finish(
        self,
        video_id: str | None,
        result: VideoInfoLookupResult,
    ) -> VideoInfoLookupResult:
        LOGGER.debug(
            "video_info lookup finished",
            extra={"outcome": result.outcome, "status_code": result.status_code},
        )
        self._telemetry.lookup_finished(
            video_id=video_id,
            outcome=result.outcome,
            status_code=result.status_code,
        )
        return result


def parse_video_id_from_path(path: str) -> str | None:
    if path == "/":
        return None
    candidate = path.removeprefix("/")
    if len(candidate) != VIDEO_ID_LENGTH:
        return None
    return candidate


def classify_videos_response(payload: Mapping[str, Any]) -> VideosResponseKind:
    if payload.get("error"):
        return "api_error"

    raw_page_info = payload.get("pageInfo")
    if not raw_page_info:
        return "not_found"
    if not isinstance(raw_page_info, dict):
        return "malformed"
    if _is_empty_total_results(as_dict(raw_page_info).get("totalResults")):
        return "not_found"

    if not as_list(payload.get("items")):
        return "empty_items"
    return "ok"


def extract_video_info(video_id: str, item: Mapping[str, Any]) -> VideoInfo:
    snippet = as_dict(item.get("snippet"))
    return VideoInfo(
        video_id=video_id,
        channel_id=_coerce_optional_text(snippet.get("channelId")),
        title=_coerce_optional_text(snippet.get("title")),
        description=_coerce_optional_text(snippet.get("description")),
        category_id=_coerce_optional_text(snippet.get("categoryId")),
        thumbnail=select_thumbnail(as_dict(snippet.get("thumbnails"))),
        published_at=normalize_published_at(snippet.get("publishedAt")),
    )


def select_thumbnail(thumbnails: Mapping[str, Any]) -> str | None:
    """
    Pick the thumbnail URL by scanning the mapping in reverse insertion order.

    The API lists variants from lowest to highest resolution, so the last
    entry carrying a `url` wins. No width/height comparison is made.
    """
    for thumbnail_type in reversed(list(thumbnails)):
        url = as_dict(thumbnails[thumbnail_type]).get("url")
        if isinstance(url, str):
            return url
    return None


def normalize_published_at(raw_value: object) -> str | None:
    if not isinstance(raw_value, str) or not _ISO8601_EXTENDED_RE.fullmatch(raw_value):
        return None
    try:
        parsed = datetime.fromisoformat(raw_value)
    except ValueError:
        return None
    # Keep the wall-clock time as given; the offset is not applied.
    return parsed.strftime(PUBLISHED_AT_FORMAT)


def _coerce_optional_text(raw_value: object) -> str | None:
    if raw_value is None:
        return None
    if isinstance(raw_value, str):
        return raw_value
    if isinstance(raw_value, bool | int | float):
        return str(raw_value)
    return None


def _is_empty_total_results(raw_value: object) -> bool:
    """Only an absent or zero count means the id is unknown; any other value is a count."""
    if raw_value is None or raw_value is False:
        return True
    if isinstance(raw_value, int | float) and not isinstance(raw_value, bool):
        return raw_value == 0
    return raw_value in ("", "0")


def _summarize_api_error(raw_error: object) -> str:
    error = as_dict(raw_error)
    message = error.get("message")
    code = error.get("code")
    if isinstance(message, str) and message.strip():
        return f"{code} {message.strip()}" if code is not None else message.strip()
    return str(type(raw_error).__name__)
