"""Shared ``requests`` plumbing for the repository API adapters."""

import logging
import threading
from typing import Any

import requests

from ..errors import RemoteUnavailable, translate_http_error
from ..validators import validate_remote_path

logger = logging.getLogger(__name__)

# (connect, read) seconds
DEFAULT_TIMEOUT = (10, 60)


def error_message(response: requests.Response) -> str:
    """Extract the API's error message from a failed response."""
    try:
        data = response.json()
    except ValueError:
        return response.text.strip() or response.reason or ""
    if isinstance(data, dict):
        message = data.get("message") or data.get("error") or ""
        return str(message) if message else response.reason or ""
    return str(data)


class RepositoryClient:
    """Base for synchronous repository API clients.

    Keeps one ``requests.Session`` per thread, since the async layer calls
    these methods from worker threads.
    """

    def __init__(self, verify: bool = True) -> None:
        self.verify = verify
        self._thread_local = threading.local()

    @property
    def session(self) -> requests.Session:
        """Return the current thread's session."""
        return self._get_session()

    def _get_session(self) -> requests.Session:
        """Get or create a thread-local requests.Session."""
        if not hasattr(self._thread_local, "session"):
            self._thread_local.session = self._create_session()
        return self._thread_local.session

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.headers.update(self._auth_headers())
        session.verify = self.verify
        return session

    def _auth_headers(self) -> dict[str, str]:
        return {}

    @staticmethod
    def _check_path(path: str, allow_root: bool = False) -> None:
        is_valid, reason = validate_remote_path(path, allow_root=allow_root)
        if not is_valid:
            raise ValueError(reason)

    def _request(
        self,
        method: str,
        url: str,
        path: str | None = None,
        **kwargs: Any,
    ) -> requests.Response:
        """Send a request and translate failures into publisher errors.

        Raises:
            RemoteUnavailable: Transport failure or unexpected status.
            NotFound, Conflict, NotConfigured: Mapped from the status code.
        """
        logger.debug("%s %s", method, url)
        try:
            response = self._get_session().request(
                method, url, timeout=DEFAULT_TIMEOUT, **kwargs
            )
        except requests.RequestException as exc:
            raise RemoteUnavailable(
                f"Cannot reach repository API for "
                f"{repr(path) if path else url}: {exc}"
            ) from exc

        if not response.ok:
            raise translate_http_error(
                response.status_code, error_message(response), path
            )
        return response
