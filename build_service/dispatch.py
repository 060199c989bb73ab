"""CI dispatch client for triggering remote builds.

This module handles:
- The CIDispatcher interface used by the dispatch pipeline
- The repository_dispatch payload sent to GitHub
- Triggering GitHub Actions through the REST API
- Monitoring links (status polling is not implemented)
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx
from pydantic import BaseModel, ConfigDict, Field

from build_service.types import BuildSpec

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"
GITHUB_WEB_URL = "https://github.com"
GITHUB_ACCEPT = "application/vnd.github.v3+json"

DEFAULT_EVENT_TYPE = "remote-build"


class DispatchError(Exception):
    """Raised when the build trigger is rejected or cannot be sent."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        detail: str | None = None,
        code: str = "dispatch_error",
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail
        self.code = code


class ClientPayload(BaseModel):
    """Build parameters delivered to the remote workflow.

    Attributes:
        source_url: Download URL of the project archive.
        build_id: Build identifier (millisecond timestamp string).
        platform: Target platform.
        variant: Build variant (debug / release).
        build_type: Output kind (apk / aab).
        gradle_command: Gradle task to run.
        auto_increment: Auto-increment the version code.
        env: Environment variables for the build.
        distribution: Distribution channel.
    """

    model_config = ConfigDict(extra="forbid")

    source_url: str
    build_id: str
    platform: str
    variant: str
    build_type: str
    gradle_command: str
    auto_increment: bool = False
    env: dict[str, Any] = Field(default_factory=dict)
    distribution: str = "internal"


class DispatchPayload(BaseModel):
    """repository_dispatch request body."""

    model_config = ConfigDict(extra="forbid")

    event_type: str = DEFAULT_EVENT_TYPE
    client_payload: ClientPayload


def build_dispatch_payload(
    source_url: str,
    build_id: str,
    spec: BuildSpec,
    command: str,
    platform: str = "android",
    event_type: str = DEFAULT_EVENT_TYPE,
) -> DispatchPayload:
    """Flatten a build spec into a dispatch payload.

    Args:
        source_url: Download URL of the project archive.
        build_id: Build identifier.
        spec: Resolved build specification.
        command: Derived Gradle command.
        platform: Target platform.
        event_type: repository_dispatch event type.

    Returns:
        DispatchPayload ready to send.
    """
    return DispatchPayload(
        event_type=event_type,
        client_payload=ClientPayload(
            source_url=source_url,
            build_id=build_id,
            platform=platform,
            variant=spec.variant.value,
            build_type=spec.output_kind.value,
            gradle_command=command,
            auto_increment=spec.auto_increment_version,
            env=dict(spec.environment),
            distribution=spec.distribution_channel,
        ),
    )


class CIDispatcher(Protocol):
    """Interface of the CI collaborator."""

    def trigger(self, repo: str, payload: DispatchPayload) -> None:
        """Send the build trigger for a repository."""
        ...


def split_repo(repo: str) -> tuple[str, str]:
    """Split ``owner/repo`` into its parts.

    Raises:
        DispatchError: If the identifier is not of the form owner/repo.
    """
    owner, sep, name = repo.strip().partition("/")
    if not sep or not owner or not name or "/" in name:
        raise DispatchError(
            f"Invalid repository '{repo}', expected owner/repo",
            code="invalid_repository",
        )
    return owner, name


class GitHubDispatcher:
    """GitHub repository_dispatch client backed by httpx."""

    def __init__(
        self,
        client: httpx.Client,
        token: str,
        api_url: str = GITHUB_API_URL,
    ) -> None:
        self.client = client
        self.token = token
        self.api_url = api_url.rstrip("/")

    def dispatch_url(self, repo: str) -> str:
        """Return the dispatches endpoint for a repository."""
        owner, name = split_repo(repo)
        return f"{self.api_url}/repos/{owner}/{name}/dispatches"

    def trigger(self, repo: str, payload: DispatchPayload) -> None:
        """Trigger a repository_dispatch event.

        Args:
            repo: Repository as owner/repo.
            payload: Dispatch payload.

        Raises:
            DispatchError: If the request fails or GitHub rejects it; carries
                the upstream status code when there is one.
        """
        url = self.dispatch_url(repo)
        headers = {
            "Authorization": f"Bearer {self.token}",
            "Accept": GITHUB_ACCEPT,
        }

        try:
            response = self.client.post(
                url, json=payload.model_dump(mode="json"), headers=headers
            )
        except httpx.HTTPError as e:
            raise DispatchError(f"Dispatch request failed: {e}") from e

        if not response.is_success:
            raise DispatchError(
                f"GitHub API error: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
                detail=response.text,
            )

        logger.info(
            "Triggered %s for %s (build %s)",
            payload.event_type,
            repo,
            payload.client_payload.build_id,
        )


def monitor_url(repo: str, web_url: str = GITHUB_WEB_URL) -> str:
    """Return the GitHub Actions page of a repository."""
    return f"{web_url.rstrip('/')}/{repo}/actions"


def status_url(
    repo: str,
    build_id: str | None = None,
    web_url: str = GITHUB_WEB_URL,
) -> str:
    """Return where to check a build's status.

    Status polling is not implemented; every build is monitored from the
    repository's Actions page.
    """
    logger.debug("Status lookup for build %s", build_id or "latest")
    return monitor_url(repo, web_url)


__all__ = [
    "DEFAULT_EVENT_TYPE",
    "CIDispatcher",
    "ClientPayload",
    "DispatchError",
    "DispatchPayload",
    "GitHubDispatcher",
    "build_dispatch_payload",
    "monitor_url",
    "split_repo",
    "status_url",
]
