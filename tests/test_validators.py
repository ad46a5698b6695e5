"""Tests for remote path validation."""

import pytest

from git_publisher.validators import (
    format_validation_error,
    validate_remote_path,
)


def test_format_validation_error():
    assert (
        format_validation_error("Remote path", "cannot be empty")
        == "Remote path cannot be empty"
    )


@pytest.mark.parametrize("path", ["a.md", "guide/a.md", "a/b/c-d.md"])
def test_valid_paths(path):
    assert validate_remote_path(path) == (True, "")


@pytest.mark.parametrize(
    "path, reason",
    [
        ("", "empty"),
        ("   ", "empty"),
        ("/a.md", "start or end"),
        ("guide/", "start or end"),
        ("a/../b.md", "'..'"),
        ("a//b.md", "empty path segments"),
    ],
)
def test_invalid_paths(path, reason):
    ok, message = validate_remote_path(path)
    assert not ok
    assert reason in message


def test_root_allowed_for_listings():
    assert validate_remote_path("", allow_root=True) == (True, "")
    assert validate_remote_path(" ", allow_root=True)[0] is False
