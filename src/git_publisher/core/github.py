import base64
import logging
from urllib.parse import quote

from ..config_schema import TargetConfig
from ..errors import NotFound
from .http import RepositoryClient
from .remote import NodeKind, RemoteEntry, WriteResult

logger = logging.getLogger(__name__)


class GitHubService(RepositoryClient):
    """GitHub contents API client for one repository branch.

    The version tag of a file is its blob SHA, which GitHub requires as
    the ``sha`` precondition when updating or deleting.
    """

    def __init__(self, config: TargetConfig):
        super().__init__(verify=not config.insecure)
        self.config = config
        self.branch = config.branch
        self.repo_url = (
            f"{config.api_url.rstrip('/')}/repos/{config.owner}/{config.repo}"
        )

    def _auth_headers(self) -> dict[str, str]:
        return {
            "Authorization": f"token {self.config.token}",
            "Accept": "application/vnd.github.v3+json",
        }

    def _contents_url(self, path: str) -> str:
        return f"{self.repo_url}/contents/{quote(path)}"

    def _get_contents(self, path: str):
        response = self._request(
            "GET",
            self._contents_url(path),
            path=path or "/",
            params={"ref": self.branch},
        )
        return response.json()

    def list_contents(self, path: str) -> list[RemoteEntry]:
        """
        List the entries directly under *path* ("" is the repository root).
        """
        self._check_path(path, allow_root=True)
        data = self._get_contents(path)
        if not isinstance(data, list):
            raise NotFound(f"Remote path '{path}' is not a directory")

        return [
            RemoteEntry(
                name=item["name"],
                path=item["path"],
                kind=(
                    NodeKind.DIRECTORY
                    if item.get("type") == "dir"
                    else NodeKind.FILE
                ),
            )
            for item in data
        ]

    def read_contents(self, path: str) -> str:
        """
        Return the decoded text of the file at *path*.
        """
        self._check_path(path)
        data = self._get_contents(path)
        if not isinstance(data, dict) or data.get("type") != "file":
            raise NotFound(f"Remote path '{path}' is not a file")
        return base64.b64decode(data.get("content") or "").decode("utf-8")

    def current_sha(self, path: str) -> str | None:
        """
        Return the blob SHA of *path*, or None if it does not exist.
        """
        try:
            data = self._get_contents(path)
        except NotFound:
            return None
        if isinstance(data, dict):
            return data.get("sha")
        return None

    def write(
        self,
        path: str,
        content: str,
        commit_message: str,
        expected_version_tag: str | None = None,
    ) -> WriteResult:
        """
        Create or update the file at *path*.

        With *expected_version_tag* the update only succeeds while the
        remote blob still has that SHA. Without it, the current SHA is
        looked up so an existing file is overwritten.

        Raises:
            Conflict: The remote blob no longer matches the expected SHA.
        """
        self._check_path(path)
        sha = expected_version_tag or self.current_sha(path)

        body = {
            "message": commit_message,
            "content": base64.b64encode(content.encode("utf-8")).decode(
                "ascii"
            ),
            "branch": self.branch,
        }
        if sha:
            body["sha"] = sha

        response = self._request(
            "PUT", self._contents_url(path), path=path, json=body
        )
        new_sha = (response.json().get("content") or {}).get("sha")
        logger.debug("Wrote %s on %s (sha %s)", path, self.branch, new_sha)
        return WriteResult(version_tag=new_sha)

    def delete(self, path: str, commit_message: str) -> None:
        """
        Delete the file at *path*.

        Raises:
            NotFound: The file does not exist.
        """
        self._check_path(path)
        sha = self.current_sha(path)
        if sha is None:
            raise NotFound(f"Remote file '{path}' not found")

        self._request(
            "DELETE",
            self._contents_url(path),
            path=path,
            json={
                "message": commit_message,
                "sha": sha,
                "branch": self.branch,
            },
        )

    def validate_connection(self) -> str:
        """
        Check credentials and repository access.
        Returns the repository's full name if successful.
        """
        data = self._request("GET", self.repo_url).json()
        return str(data.get("full_name", ""))
