"""Unified configuration schema for git_publisher.

Defines Pydantic models for the config file sections: remote targets,
path mapping policy, directory cache, and logging.

Usage:
    from git_publisher.config_loader import load_hierarchical_config
    from git_publisher.config_schema import build_config

    unified = build_config(load_hierarchical_config())

Example ``config.yml``::

    active_target: blog
    targets:
      blog:
        platform: github
        owner: alice
        repo: site
        branch: main
        root: docs
        token: ${GITHUB_TOKEN}
    publish:
      keep_file_structure: false
      default_directory: guide
"""

from __future__ import annotations

import logging
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from git_publisher.publish.models import PathMappingPolicy

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class TargetConfig(BaseModel):
    """One remote destination (repository + branch).

    GitHub targets need ``owner`` and ``repo``; GitLab targets need
    ``project_id`` (numeric id or ``group/project`` path). Tokens may be
    left empty here and supplied through ``GITHUB_TOKEN``/``GITLAB_TOKEN``.
    """

    platform: Literal["github", "gitlab"] = "github"
    token: str | None = Field(default=None, description="API token")
    branch: str = Field(default="main", description="Branch to publish to")
    root: str = Field(
        default="",
        description="Repository directory the directory browser starts at",
    )
    owner: str | None = Field(
        default=None, description="GitHub user or organisation"
    )
    repo: str | None = Field(default=None, description="GitHub repository")
    api_url: str = Field(
        default="https://api.github.com", description="GitHub API base URL"
    )
    url: str = Field(
        default="https://gitlab.com", description="GitLab instance URL"
    )
    project_id: str | None = Field(
        default=None, description="GitLab project id or path"
    )
    insecure: bool = Field(
        default=False,
        description="Disable SSL verification (development only)",
    )

    model_config = {"frozen": True}

    @field_validator("project_id", mode="before")
    @classmethod
    def _numeric_project_id(cls, value):
        # YAML reads `project_id: 42` as an int
        if isinstance(value, int):
            return str(value)
        return value


class CacheConfig(BaseModel):
    """Directory tree cache settings."""

    ttl_seconds: float = Field(
        default=300.0, gt=0, description="Directory cache lifetime"
    )
    probe_children: bool = Field(
        default=True,
        description="Probe top-level directories for children",
    )

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level unified configuration.

    Every section has defaults, so ``UnifiedConfig()`` (zero-config) is
    valid; operations that need a target fail later with ``NotConfigured``.
    """

    targets: dict[str, TargetConfig] = Field(default_factory=dict)
    active_target: str | None = None
    publish: PathMappingPolicy = Field(default_factory=PathMappingPolicy)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    max_parallel_requests: int = Field(
        default=5,
        ge=1,
        le=100,
        description="Maximum concurrent repository API requests (1-100)",
    )
    state_dir: str = Field(
        default=".git_publisher",
        description="Directory holding the publish history data file",
    )
    vault_root: str = Field(
        default=".", description="Root directory of local documents"
    )
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}

    def resolve_active_target(self) -> str | None:
        """Return the active target, or the only target when exactly one."""
        if self.active_target:
            return self.active_target
        if len(self.targets) == 1:
            return next(iter(self.targets))
        return None

    def roots(self) -> dict[str, str]:
        """Directory-browser root per target."""
        return {name: t.root for name, t in self.targets.items()}


# ---------------------------------------------------------------------------
# Factory function
# ---------------------------------------------------------------------------


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the raw dict returned by
    ``load_hierarchical_config()``.

    Handles missing sections gracefully; anything absent gets defaults.
    """
    if not raw_data:
        return UnifiedConfig()

    return UnifiedConfig(**raw_data)
