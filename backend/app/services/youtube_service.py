from __future__ import annotations

import json
import logging
from importlib import import_module
from typing import Any, Protocol, cast

from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request as GoogleAuthRequest
from google.oauth2.credentials import Credentials
from googleapiclient.errors import HttpError
from httplib2 import HttpLib2Error

from backend.app.config import DEFAULT_YOUTUBE_TOKEN_URI

LOGGER = logging.getLogger("video_info.youtube")
YOUTUBE_READONLY_SCOPE = "https://www.googleapis.com/auth/youtube.readonly"


class YouTubeServiceError(Exception):
    pass


class YouTubeTokenError(YouTubeServiceError):
    pass


class YouTubeTransportError(YouTubeServiceError):
    pass


class YouTubeResponseError(YouTubeServiceError):
    def __init__(self, message: str, *, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


class AccessTokenProvider(Protocol):
    def get(self, client_id: str, client_secret: str, refresh_token: str) -> str:
        ...


class VideosClient(Protocol):
    def list_snippet(self, video_id: str, *, access_token: str) -> dict[str, Any]:
        ...


class GoogleAccessTokenProvider:
    """Exchanges an OAuth refresh token for a short-lived bearer access token."""

    def __init__(self, *, token_uri: str = DEFAULT_YOUTUBE_TOKEN_URI) -> None:
        self._token_uri = token_uri

    def get(self, client_id: str, client_secret: str, refresh_token: str) -> str:
        credentials = Credentials(
            token=None,
            refresh_token=refresh_token,
            token_uri=self._token_uri,
            client_id=client_id,
            client_secret=client_secret,
            scopes=[YOUTUBE_READONLY_SCOPE],
        )
        try:
            credentials.refresh(GoogleAuthRequest())
        except GoogleAuthError as exc:
            LOGGER.warning(
                "youtube oauth token_refresh_failed token_uri=%s",
                self._token_uri,
                exc_info=True,
            )
            if _oauth_refresh_requires_reauth(exc):
                raise YouTubeTokenError(
                    "YouTube OAuth refresh token has expired or was revoked. "
                    "Issue a new refresh token and update VIDEO_INFO_YOUTUBE_REFRESH_TOKEN."
                ) from exc
            raise YouTubeTokenError(f"Failed to refresh YouTube OAuth token: {exc}") from exc

        token = credentials.token
        if not isinstance(token, str) or not token.strip():
            raise YouTubeTokenError("OAuth refresh did not return an access token")
        return token


class YouTubeVideosClient:
    """YouTube Data API v3 `videos.list` through the Google discovery client.

    API error statuses are not raised: the JSON error document carried by
    `HttpError` is returned so the caller can classify it like any other
    response body.
    """

    def __init__(
        self,
        *,
        api_endpoint: str | None = None,
        timeout_seconds: float = 10.0,
    ) -> None:
        self._api_endpoint = api_endpoint
        self._timeout_seconds = timeout_seconds

    def list_snippet(self, video_id: str, *, access_token: str) -> dict[str, Any]:
        client = _build_youtube_client(
            access_token,
            api_endpoint=self._api_endpoint,
            timeout_seconds=self._timeout_seconds,
        )
        try:
            response = client.videos().list(part="snippet", id=video_id).execute()
        except HttpError as exc:
            status_code = int(getattr(exc.resp, "status", 0) or 0)
            payload = _parse_json_dict(exc.content)
            if payload is None:
                raise YouTubeResponseError(
                    f"YouTube videos error response was not a JSON object (status={status_code})",
                    status_code=status_code,
                ) from exc
            LOGGER.debug(
                "youtube videos.list video_id=%s status=%s has_error=%s",
                video_id,
                status_code,
                "error" in payload,
            )
            return payload
        except GoogleAuthError as exc:
            raise YouTubeTokenError(f"YouTube rejected the access token: {exc}") from exc
        except (HttpLib2Error, TimeoutError, OSError) as exc:
            raise YouTubeTransportError(f"YouTube request failed: {exc}") from exc
        except ValueError as exc:
            # The discovery client's JSON model fails on a non-JSON 2xx body.
            raise YouTubeResponseError(
                f"YouTube videos response was not valid JSON: {exc}",
                status_code=200,
            ) from exc

        if not isinstance(response, dict):
            raise YouTubeResponseError(
                "YouTube videos response was not a JSON object (status=200)",
                status_code=200,
            )
        payload = as_dict(cast(dict[str, Any], response))
        LOGGER.debug(
            "youtube videos.list video_id=%s status=200 has_error=%s",
            video_id,
            "error" in payload,
        )
        return payload


def _build_youtube_client(
    access_token: str,
    *,
    api_endpoint: str | None,
    timeout_seconds: float,
) -> Any:
    try:
        credentials_module = import_module("google.oauth2.credentials")
        httplib2_module = import_module("httplib2")
        auth_httplib2_module = import_module("google_auth_httplib2")
        discovery_module = import_module("googleapiclient.discovery")
    except ImportError as exc:  # pragma: no cover - dependency controlled at runtime
        raise YouTubeServiceError(
            "YouTube lookups require google-api-python-client and google-auth-httplib2"
        ) from exc

    credentials_cls: Any = credentials_module.Credentials
    http_cls: Any = httplib2_module.Http
    authorized_http_cls: Any = auth_httplib2_module.AuthorizedHttp
    build_fn: Any = discovery_module.build

    authorized_http = authorized_http_cls(
        credentials_cls(token=access_token),
        http=http_cls(timeout=timeout_seconds),
    )
    return build_fn(
        "youtube",
        "v3",
        http=authorized_http,
        cache_discovery=False,
        static_discovery=True,
        client_options={"api_endpoint": api_endpoint} if api_endpoint else None,
    )


def _parse_json_dict(raw_body: bytes | str | None) -> dict[str, Any] | None:
    if raw_body is None:
        return None
    if isinstance(raw_body, bytes):
        raw_body = raw_body.decode("utf-8", errors="replace")
    if not raw_body.strip():
        return None
    try:
        parsed = json.loads(raw_body)
    except json.JSONDecodeError:
        return None
    if not isinstance(parsed, dict):
        return None
    return as_dict(parsed)


def _oauth_refresh_requires_reauth(exc: Exception) -> bool:
    normalized = str(exc).lower()
    return "invalid_grant" in normalized or "expired or revoked" in normalized


def as_dict(value: Any) -> dict[str, Any]:
    if isinstance(value, dict):
        raw_dict = cast(dict[object, object], value)
        converted: dict[str, Any] = {}
        for key, item in raw_dict.items():
            if isinstance(key, str):
                converted[key] = item
        return converted
    return {}


def as_list(value: Any) -> list[Any]:
    if isinstance(value, list):
        raw_list = cast(list[Any], value)
        return list(raw_list)
    return []
