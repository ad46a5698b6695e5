"""Error taxonomy and message builders for publication operations.

Every failure surfaced by the publisher carries a human-readable message
and a corrective action, so callers (CLI, dashboards) can tell the user
what to do next without inspecting the exception type.

Taxonomy:

- ``NotConfigured`` -- no active target, unknown target, or bad credentials.
- ``RemoteUnavailable`` -- network/transport failure or unexpected API error.
- ``Conflict`` -- version-tag mismatch on write.
- ``NotFound`` -- remote object (or publish record) absent.
- ``LocalMissing`` -- local document vanished.
- ``StoreIOFailure`` -- publish record persistence failed.
"""

from __future__ import annotations


class PublisherError(Exception):
    """Base class for all publisher errors.

    Attributes:
        message: Human-readable error description.
        corrective_action: What the user can do to recover.
        error_type: Stable category string used in formatted output.
    """

    error_type = "server_error"
    corrective_action = "Retry the operation later."

    def __init__(
        self, message: str, corrective_action: str | None = None
    ) -> None:
        super().__init__(message)
        self.message = message
        if corrective_action is not None:
            self.corrective_action = corrective_action


class NotConfigured(PublisherError):
    error_type = "not_configured"
    corrective_action = (
        "Add the target to .git_publisher/config.yml or set "
        "GIT_PUBLISHER_TARGET, then check its token."
    )


class RemoteUnavailable(PublisherError):
    error_type = "remote_unavailable"
    corrective_action = (
        "Check your network connection and the repository host status, "
        "then retry."
    )


class Conflict(PublisherError):
    error_type = "version_conflict"
    corrective_action = (
        "The remote file changed since it was last published. Pull the "
        "remote version first, then publish again."
    )


class NotFound(PublisherError):
    error_type = "not_found"
    corrective_action = (
        "Refresh the directory listing to see what exists remotely."
    )


class LocalMissing(PublisherError):
    error_type = "local_missing"
    corrective_action = (
        "The local document no longer exists; its publish history has "
        "been cleared."
    )


class StoreIOFailure(PublisherError):
    error_type = "store_io_failure"
    corrective_action = (
        "Check that the state directory is writable and the data file "
        "is valid JSON."
    )


def format_error(error: BaseException) -> str:
    """Render *error* as ``Error (type): message`` plus a corrective action.

    Non-publisher exceptions are reported as ``server_error`` with their
    ``str()`` as the message.

    Examples:
        >>> format_error(NotFound("docs/a.md not found"))
        'Error (not_found): docs/a.md not found\\n\\nAction: Refresh ...'
    """
    if isinstance(error, PublisherError):
        return (
            f"Error ({error.error_type}): {error.message}\n\n"
            f"Action: {error.corrective_action}"
        )
    return (
        f"Error ({PublisherError.error_type}): {error}\n\n"
        f"Action: {PublisherError.corrective_action}"
    )


# ---------------------------------------------------------------------------
# HTTP status translation
# ---------------------------------------------------------------------------

_CONFLICT_HINTS = (
    "does not match",
    "has changed since",
    "\"sha\" wasn't supplied",
    "sha wasn't supplied",
    "sha was not supplied",
)


def translate_http_error(
    status_code: int, message: str, path: str | None = None
) -> PublisherError:
    """Translate a failed repository API response into a publisher error.

    Args:
        status_code: HTTP status of the failed response.
        message: Error message extracted from the response body.
        path: Remote path the request targeted, for context.

    Returns:
        The matching ``PublisherError`` subclass instance (not raised).
    """
    subject = f"'{path}'" if path else "request"
    lowered = message.lower()

    match status_code:
        case 401 | 403:
            return NotConfigured(
                f"Access denied for {subject}: {message}",
                "Check that the target token is valid and has write "
                "access to the repository.",
            )
        case 404:
            return NotFound(f"Remote object {subject} not found: {message}")
        case 409 | 412:
            return Conflict(f"Version conflict on {subject}: {message}")
        case 400 | 422 if any(h in lowered for h in _CONFLICT_HINTS):
            return Conflict(f"Version conflict on {subject}: {message}")
        case _:
            return RemoteUnavailable(
                f"Repository API error {status_code} for {subject}: {message}"
            )
