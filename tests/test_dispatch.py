"""Tests for the CI dispatch client.

These tests use mocked HTTP responses to test repository_dispatch
triggering and payload construction.
"""

import json

import httpx
import pytest
import respx

from build_service.dispatch import (
    DispatchError,
    GitHubDispatcher,
    build_dispatch_payload,
    monitor_url,
    split_repo,
    status_url,
)
from build_service.types import BuildSpec, OutputKind, Variant

DISPATCH_URL = "https://api.github.com/repos/acme/mobile-app/dispatches"


@pytest.fixture
def payload():
    """Return a payload for a debug bundle build."""
    spec = BuildSpec(
        variant=Variant.DEBUG,
        output_kind=OutputKind.BUNDLE,
        environment={"API_URL": "https://staging.example.com"},
        auto_increment_version=True,
    )
    return build_dispatch_payload(
        source_url="https://storage.example.com/file123",
        build_id="1700000000000",
        spec=spec,
        command="bundleDebug",
    )


class TestBuildDispatchPayload:
    """Tests for build_dispatch_payload function."""

    def test_flattened_fields(self, payload):
        """Should flatten the spec into the client payload."""
        assert payload.model_dump(mode="json") == {
            "event_type": "remote-build",
            "client_payload": {
                "source_url": "https://storage.example.com/file123",
                "build_id": "1700000000000",
                "platform": "android",
                "variant": "debug",
                "build_type": "aab",
                "gradle_command": "bundleDebug",
                "auto_increment": True,
                "env": {"API_URL": "https://staging.example.com"},
                "distribution": "internal",
            },
        }

    def test_custom_event_type(self):
        """Should use the given event type and platform."""
        payload = build_dispatch_payload(
            "https://x",
            "1",
            BuildSpec(),
            "assembleRelease",
            platform="ios",
            event_type="mobile-build",
        )
        assert payload.event_type == "mobile-build"
        assert payload.client_payload.platform == "ios"


class TestSplitRepo:
    """Tests for split_repo function."""

    def test_valid(self):
        """Should split owner/repo."""
        assert split_repo("acme/mobile-app") == ("acme", "mobile-app")

    @pytest.mark.parametrize("repo", ["mobile-app", "/app", "acme/", "a/b/c", ""])
    def test_invalid(self, repo):
        """Should reject identifiers that are not owner/repo."""
        with pytest.raises(DispatchError) as exc_info:
            split_repo(repo)
        assert exc_info.value.code == "invalid_repository"


class TestGitHubDispatcher:
    """Tests for GitHubDispatcher.trigger."""

    @respx.mock
    def test_trigger_success(self, payload):
        """Should post the payload with auth headers."""
        route = respx.post(DISPATCH_URL).mock(return_value=httpx.Response(204))

        with httpx.Client() as client:
            GitHubDispatcher(client, token="ghp_token").trigger(
                "acme/mobile-app", payload
            )

        assert route.call_count == 1
        request = route.calls[0].request
        assert request.headers["Authorization"] == "Bearer ghp_token"
        assert request.headers["Accept"] == "application/vnd.github.v3+json"
        body = json.loads(request.read())
        assert body["event_type"] == "remote-build"
        assert body["client_payload"]["build_id"] == "1700000000000"

    @respx.mock
    def test_rejected(self, payload):
        """Should raise DispatchError with the upstream status."""
        respx.post(DISPATCH_URL).mock(
            return_value=httpx.Response(401, json={"message": "Bad credentials"})
        )

        with httpx.Client() as client, pytest.raises(DispatchError) as exc_info:
            GitHubDispatcher(client, token="bad").trigger("acme/mobile-app", payload)

        assert exc_info.value.status_code == 401
        assert "Bad credentials" in exc_info.value.detail

    @respx.mock
    def test_transport_error(self, payload):
        """Should raise DispatchError without a status on network failure."""
        respx.post(DISPATCH_URL).mock(
            side_effect=httpx.TimeoutException("Connection timed out")
        )

        with httpx.Client() as client, pytest.raises(DispatchError) as exc_info:
            GitHubDispatcher(client, token="t").trigger("acme/mobile-app", payload)

        assert exc_info.value.status_code is None

    @respx.mock
    def test_custom_api_url(self, payload):
        """Should honor a custom API base URL."""
        route = respx.post(
            "https://github.example.com/api/v3/repos/acme/mobile-app/dispatches"
        ).mock(return_value=httpx.Response(204))

        with httpx.Client() as client:
            GitHubDispatcher(
                client, token="t", api_url="https://github.example.com/api/v3/"
            ).trigger("acme/mobile-app", payload)

        assert route.called

    def test_invalid_repo_no_request(self, payload):
        """Should fail before sending anything for a bad repo."""
        with respx.mock(assert_all_called=False) as mock, httpx.Client() as client:
            with pytest.raises(DispatchError):
                GitHubDispatcher(client, token="t").trigger("not-a-repo", payload)
            assert len(mock.calls) == 0


class TestMonitorUrls:
    """Tests for monitoring links."""

    def test_monitor_url(self):
        """Should point at the repository's Actions page."""
        assert monitor_url("acme/mobile-app") == (
            "https://github.com/acme/mobile-app/actions"
        )

    def test_status_url(self):
        """Should fall back to the Actions page for any build."""
        assert status_url("acme/mobile-app", "1700000000000") == (
            "https://github.com/acme/mobile-app/actions"
        )
