from __future__ import annotations

import json
import socket
from typing import Any

import httplib2
import pytest
from google.auth.exceptions import RefreshError, TransportError

from backend.app.services.youtube_service import (
    GoogleAccessTokenProvider,
    YouTubeResponseError,
    YouTubeTokenError,
    YouTubeTransportError,
    YouTubeVideosClient,
)
from tests.youtube_fakes import FakeYouTubeApi, http_error


@pytest.fixture
def youtube_api(monkeypatch: pytest.MonkeyPatch) -> FakeYouTubeApi:
    fake = FakeYouTubeApi()
    monkeypatch.setattr("backend.app.services.youtube_service.import_module", fake.import_module)
    return fake


def test_videos_client_builds_discovery_client_with_bearer_token(
    youtube_api: FakeYouTubeApi,
) -> None:
    payload = {"pageInfo": {"totalResults": 1}, "items": [{"snippet": {"title": "x"}}]}
    youtube_api.queue(payload)

    client = YouTubeVideosClient(api_endpoint="https://proxy.example.test/yt/", timeout_seconds=3)
    result = client.list_snippet("abcdefghijk", access_token="tok-1")

    assert result == payload
    assert youtube_api.requests == [
        {
            "params": {"part": "snippet", "id": "abcdefghijk"},
            "access_token": "tok-1",
            "timeout_seconds": 3,
        }
    ]
    build = youtube_api.builds[0]
    assert (build["service"], build["version"]) == ("youtube", "v3")
    assert build["cache_discovery"] is False
    assert build["client_options"] == {"api_endpoint": "https://proxy.example.test/yt/"}


def test_videos_client_returns_error_document_from_http_error(
    youtube_api: FakeYouTubeApi,
) -> None:
    error_body = {"error": {"code": 403, "message": "quotaExceeded"}}
    youtube_api.queue_error(http_error(403, json.dumps(error_body).encode("utf-8")))

    result = YouTubeVideosClient().list_snippet("abcdefghijk", access_token="tok")
    assert result == error_body


@pytest.mark.parametrize("body", [b"", b"<html>bad gateway</html>", b"[1, 2, 3]"])
def test_videos_client_rejects_non_object_error_bodies(
    youtube_api: FakeYouTubeApi,
    body: bytes,
) -> None:
    youtube_api.queue_error(http_error(502, body))

    with pytest.raises(YouTubeResponseError) as exc_info:
        YouTubeVideosClient().list_snippet("abcdefghijk", access_token="tok")
    assert exc_info.value.status_code == 502


def test_videos_client_rejects_undecodable_success_body(youtube_api: FakeYouTubeApi) -> None:
    youtube_api.queue_error(json.JSONDecodeError("Expecting value", "<html>", 0))

    with pytest.raises(YouTubeResponseError, match="not valid JSON"):
        YouTubeVideosClient().list_snippet("abcdefghijk", access_token="tok")


@pytest.mark.parametrize(
    "error",
    [
        httplib2.ServerNotFoundError("Unable to find the server at www.googleapis.com"),
        ConnectionRefusedError("connection refused"),
        socket.timeout("timed out"),
        TimeoutError("timed out"),
    ],
)
def test_videos_client_transport_failures(
    youtube_api: FakeYouTubeApi,
    error: Exception,
) -> None:
    youtube_api.queue_error(error)

    with pytest.raises(YouTubeTransportError, match="YouTube request failed"):
        YouTubeVideosClient().list_snippet("abcdefghijk", access_token="tok")


def test_videos_client_rejected_access_token_is_token_error(
    youtube_api: FakeYouTubeApi,
) -> None:
    youtube_api.queue_error(RefreshError("The credentials do not contain the necessary fields"))

    with pytest.raises(YouTubeTokenError, match="rejected the access token"):
        YouTubeVideosClient().list_snippet("abcdefghijk", access_token="tok")


class _RecordingCredentials:
    instances: list[_RecordingCredentials] = []
    refresh_error: Exception | None = None
    refreshed_token: str | None = "fresh-access-token"

    def __init__(self, **kwargs: Any) -> None:
        self.kwargs = kwargs
        self.token: str | None = kwargs.get("token")
        _RecordingCredentials.instances.append(self)

    def refresh(self, _request: object) -> None:
        if _RecordingCredentials.refresh_error is not None:
            raise _RecordingCredentials.refresh_error
        self.token = _RecordingCredentials.refreshed_token


@pytest.fixture
def recording_credentials(monkeypatch: pytest.MonkeyPatch) -> type[_RecordingCredentials]:
    _RecordingCredentials.instances = []
    _RecordingCredentials.refresh_error = None
    _RecordingCredentials.refreshed_token = "fresh-access-token"
    monkeypatch.setattr(
        "backend.app.services.youtube_service.Credentials",
        _RecordingCredentials,
    )
    return _RecordingCredentials


def test_token_provider_refreshes_with_configured_credentials(
    recording_credentials: type[_RecordingCredentials],
) -> None:
    provider = GoogleAccessTokenProvider(token_uri="https://oauth.example.test/token")

    token = provider.get("client-id", "client-secret", "refresh-token")

    assert token == "fresh-access-token"
    assert len(recording_credentials.instances) == 1
    kwargs = recording_credentials.instances[0].kwargs
    assert kwargs["client_id"] == "client-id"
    assert kwargs["client_secret"] == "client-secret"
    assert kwargs["refresh_token"] == "refresh-token"
    assert kwargs["token_uri"] == "https://oauth.example.test/token"


def test_token_provider_invalid_grant_requires_new_refresh_token(
    recording_credentials: type[_RecordingCredentials],
) -> None:
    recording_credentials.refresh_error = RefreshError(
        "invalid_grant: Token has been expired or revoked."
    )

    with pytest.raises(YouTubeTokenError, match="expired or was revoked"):
        GoogleAccessTokenProvider().get("client-id", "client-secret", "refresh-token")


def test_token_provider_transport_error(
    recording_credentials: type[_RecordingCredentials],
) -> None:
    recording_credentials.refresh_error = TransportError("dns failure")

    with pytest.raises(YouTubeTokenError, match="Failed to refresh"):
        GoogleAccessTokenProvider().get("client-id", "client-secret", "refresh-token")


def test_token_provider_rejects_missing_token(
    recording_credentials: type[_RecordingCredentials],
) -> None:
    recording_credentials.refreshed_token = None

    with pytest.raises(YouTubeTokenError, match="did not return an access token"):
        GoogleAccessTokenProvider().get("client-id", "client-secret", "refresh-token")
