"""Async ``RemoteRepositoryService`` that dispatches to one backend per target.

Backends are the synchronous ``GitHubService``/``GitLabService`` clients,
created on first use and called through ``run_sync_limited`` so the shared
semaphore bounds concurrent API requests.
"""

from __future__ import annotations

import logging
from typing import Mapping, Protocol

from ..config import validate_target
from ..config_schema import TargetConfig
from ..errors import NotConfigured
from .async_utils import run_sync_limited
from .remote import RemoteEntry, WriteResult

logger = logging.getLogger(__name__)


class RepositoryBackend(Protocol):
    """Synchronous client for a single repository branch."""

    def list_contents(self, path: str) -> list[RemoteEntry]: ...

    def read_contents(self, path: str) -> str: ...

    def write(
        self,
        path: str,
        content: str,
        commit_message: str,
        expected_version_tag: str | None = None,
    ) -> WriteResult: ...

    def delete(self, path: str, commit_message: str) -> None: ...

    def validate_connection(self) -> str: ...


def create_service(name: str, config: TargetConfig) -> RepositoryBackend:
    """Build the client for *config*'s platform after validating it.

    Raises:
        NotConfigured: The target is missing required settings.
    """
    validate_target(name, config)
    if config.platform == "gitlab":
        from .gitlab import GitLabService

        return GitLabService(config)

    from .github import GitHubService

    return GitHubService(config)


class RepositoryRouter:
    """Route repository calls to the backend configured for each target.

    Args:
        targets: Target name to configuration.
        services: Pre-built backends by target name (tests, custom
            backends). Targets found here are never built from config.
    """

    def __init__(
        self,
        targets: Mapping[str, TargetConfig],
        services: Mapping[str, RepositoryBackend] | None = None,
    ) -> None:
        self.targets = dict(targets)
        self._services: dict[str, RepositoryBackend] = dict(services or {})

    def service_for(self, target: str) -> RepositoryBackend:
        """Return (building if needed) the backend for *target*.

        Raises:
            NotConfigured: *target* is unknown or incompletely configured.
        """
        service = self._services.get(target)
        if service is not None:
            return service

        config = self.targets.get(target)
        if config is None:
            raise NotConfigured(
                f"Unknown target '{target}'",
                "Configured targets: "
                + (", ".join(sorted(self.targets)) or "none"),
            )
        service = self._services[target] = create_service(target, config)
        logger.debug(
            "Created %s backend for target %s", config.platform, target
        )
        return service

    async def list_contents(
        self, path: str, target: str
    ) -> list[RemoteEntry]:
        service = self.service_for(target)
        return await run_sync_limited(service.list_contents, path)

    async def read_contents(self, path: str, target: str) -> str:
        service = self.service_for(target)
        return await run_sync_limited(service.read_contents, path)

    async def write(
        self,
        path: str,
        content: str,
        commit_message: str,
        target: str,
        expected_version_tag: str | None = None,
    ) -> WriteResult:
        service = self.service_for(target)
        return await run_sync_limited(
            service.write,
            path,
            content,
            commit_message,
            expected_version_tag,
        )

    async def delete(
        self, path: str, commit_message: str, target: str
    ) -> None:
        service = self.service_for(target)
        await run_sync_limited(service.delete, path, commit_message)

    async def validate_connection(self, target: str) -> str:
        """Check credentials and access for *target*; returns the repo name."""
        service = self.service_for(target)
        return await run_sync_limited(service.validate_connection)
