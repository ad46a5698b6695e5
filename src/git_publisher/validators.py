"""
Input validation for remote repository paths.

Adapters call these before issuing API requests so malformed paths fail
fast with a readable message instead of an opaque HTTP error.
"""


def format_validation_error(field_name: str, reason: str) -> str:
    """
    Generate consistent error message for validation failures.

    Args:
        field_name: Human-readable field name (e.g., "Remote path")
        reason: Description of validation failure (e.g., "cannot be empty")

    Returns:
        Formatted error message string
    """
    return f"{field_name} {reason}"


def validate_remote_path(path: str, allow_root: bool = False) -> tuple[bool, str]:
    """
    Validate a repository-relative path.

    Args:
        path: The path to validate
        allow_root: Accept the empty string (repository root), used by
            directory listings.

    Returns:
        Tuple of (is_valid, error_message).
        Returns (True, "") if valid, (False, reason) if invalid.

    Validation rules:
        - Cannot be empty unless allow_root is set
        - Cannot start or end with '/'
        - Cannot contain '..' segments (path traversal protection)
        - Cannot have empty path segments (e.g., 'docs//a.md')
    """
    if not path or not path.strip():
        if allow_root and path == "":
            return (True, "")
        return (
            False,
            format_validation_error("Remote path", "cannot be empty"),
        )

    if path.startswith("/") or path.endswith("/"):
        return (
            False,
            format_validation_error(
                "Remote path", "cannot start or end with '/'"
            ),
        )

    if ".." in path.split("/"):
        return (
            False,
            format_validation_error("Remote path", "cannot contain '..'"),
        )

    if "//" in path:
        return (
            False,
            format_validation_error(
                "Remote path", "cannot have empty path segments"
            ),
        )

    return (True, "")
