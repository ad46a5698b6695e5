"""Resolve the effective configuration for a git_publisher run.

Combines the YAML config files (see ``config_loader``), ``.env`` values and
environment variables, and command-line overrides.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    GIT_PUBLISHER_TARGET: Active target name (optional)
    GITHUB_TOKEN: Token for GitHub targets that configure none (optional)
    GITLAB_TOKEN: Token for GitLab targets that configure none (optional)
    GIT_PUBLISHER_VAULT_ROOT: Local document root (optional, default: .)
    GIT_PUBLISHER_MAX_PARALLEL_REQUESTS: Max parallel API requests
        (optional, default: 5)
"""

import logging
import os
from urllib.parse import urlparse

from git_publisher.config_loader import load_hierarchical_config
from git_publisher.config_schema import TargetConfig, UnifiedConfig, build_config
from git_publisher.errors import NotConfigured

logger = logging.getLogger(__name__)

_TOKEN_ENV = {"github": "GITHUB_TOKEN", "gitlab": "GITLAB_TOKEN"}


def _check_url(name: str, url: str) -> None:
    if not url.startswith(("http://", "https://")):
        raise NotConfigured(
            f"Invalid URL '{url}' for target '{name}'",
            "The URL must start with http:// or https://.",
        )
    if not urlparse(url).hostname:
        raise NotConfigured(
            f"Invalid URL '{url}' for target '{name}'",
            "The URL must include a hostname.",
        )


def validate_target(name: str, target: TargetConfig) -> None:
    """Check that *target* has everything its platform needs.

    Raises:
        NotConfigured: A required field is missing or malformed.
    """
    env_var = _TOKEN_ENV[target.platform]
    if not target.token or not target.token.strip():
        raise NotConfigured(
            f"No token configured for target '{name}'",
            f"Set {env_var} or add 'token' to the target in config.yml.",
        )

    if target.platform == "github":
        if not target.owner or not target.repo:
            raise NotConfigured(
                f"GitHub target '{name}' needs 'owner' and 'repo'",
                "Add owner and repo to the target in config.yml.",
            )
        _check_url(name, target.api_url)
    else:
        if not target.project_id:
            raise NotConfigured(
                f"GitLab target '{name}' needs 'project_id'",
                "Add project_id (numeric id or group/project) to the target.",
            )
        _check_url(name, target.url)

    if target.insecure:
        logger.warning(
            "WARNING: SSL verification disabled for target '%s'. "
            "Use only for development.",
            name,
        )


def _env_int(key: str, default: int, low: int, high: int) -> int:
    raw = os.getenv(key)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(
            f"Invalid {key} '{raw}': must be a number between {low} and {high}"
        ) from None
    if not (low <= value <= high):
        raise ValueError(
            f"Invalid {key} '{raw}': must be a number between {low} and {high}"
        )
    return value


def load_config(
    target: str | None = None,
    vault_root: str | None = None,
    state_dir: str | None = None,
    raw_data: dict | None = None,
) -> UnifiedConfig:
    """Load configuration with unified precedence.

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        target: Override the active target (``--target``).
        vault_root: Override the local document root (``--vault``).
        state_dir: Override the publish history directory.
        raw_data: Parsed YAML config; ``load_hierarchical_config()`` is
            used when omitted.

    Returns:
        The effective ``UnifiedConfig``. Targets are not validated here;
        see ``validate_target()``.

    Raises:
        ValueError: A numeric environment variable is out of range.
        pydantic.ValidationError: The config file has invalid values.
    """
    if raw_data is None:
        raw_data = load_hierarchical_config()

    base = build_config(raw_data)

    # Tokens from the environment only fill gaps left by the config file
    targets = {}
    for name, cfg in base.targets.items():
        if not cfg.token:
            env_token = os.getenv(_TOKEN_ENV[cfg.platform])
            if env_token:
                cfg = cfg.model_copy(update={"token": env_token.strip()})
        targets[name] = cfg

    active = target or os.getenv("GIT_PUBLISHER_TARGET") or base.active_target
    final_vault = (
        vault_root or os.getenv("GIT_PUBLISHER_VAULT_ROOT") or base.vault_root
    )

    max_parallel = _env_int(
        "GIT_PUBLISHER_MAX_PARALLEL_REQUESTS",
        base.max_parallel_requests,
        1,
        100,
    )

    config = base.model_copy(
        update={
            "targets": targets,
            "active_target": active,
            "vault_root": final_vault,
            "state_dir": state_dir or base.state_dir,
            "max_parallel_requests": max_parallel,
        }
    )

    if active and active not in config.targets:
        raise NotConfigured(
            f"Unknown target '{active}'",
            "Configured targets: "
            + (", ".join(sorted(config.targets)) or "none"),
        )

    logger.debug(
        "Loaded config: %d targets, active=%s, vault=%s",
        len(config.targets),
        config.resolve_active_target(),
        config.vault_root,
    )
    return config
