import base64
import logging
from urllib.parse import quote

from ..config_schema import TargetConfig
from ..errors import NotFound
from .http import RepositoryClient
from .remote import NodeKind, RemoteEntry, WriteResult

logger = logging.getLogger(__name__)

PAGE_SIZE = 100


class GitLabService(RepositoryClient):
    """GitLab REST v4 client for one project branch.

    The version tag of a file is its ``last_commit_id``; GitLab rejects
    an update whose ``last_commit_id`` no longer matches.
    """

    def __init__(self, config: TargetConfig):
        super().__init__(verify=not config.insecure)
        self.config = config
        self.branch = config.branch
        project = quote(str(config.project_id), safe="")
        self.project_url = f"{config.url.rstrip('/')}/api/v4/projects/{project}"

    def _auth_headers(self) -> dict[str, str]:
        return {"PRIVATE-TOKEN": self.config.token or ""}

    def _file_url(self, path: str) -> str:
        return f"{self.project_url}/repository/files/{quote(path, safe='')}"

    def list_contents(self, path: str) -> list[RemoteEntry]:
        """
        List the entries directly under *path*, following pagination.
        """
        self._check_path(path, allow_root=True)
        params: dict[str, str | int] = {
            "ref": self.branch,
            "per_page": PAGE_SIZE,
            "page": 1,
        }
        if path:
            params["path"] = path

        entries: list[RemoteEntry] = []
        while True:
            response = self._request(
                "GET",
                f"{self.project_url}/repository/tree",
                path=path or "/",
                params=params,
            )
            for item in response.json():
                entries.append(
                    RemoteEntry(
                        name=item["name"],
                        path=item["path"],
                        kind=(
                            NodeKind.DIRECTORY
                            if item.get("type") == "tree"
                            else NodeKind.FILE
                        ),
                    )
                )
            next_page = response.headers.get("X-Next-Page", "").strip()
            if not next_page:
                break
            params["page"] = int(next_page)
        return entries

    def file_info(self, path: str) -> dict | None:
        """
        Return the files API record for *path*, or None if absent.
        """
        try:
            response = self._request(
                "GET",
                self._file_url(path),
                path=path,
                params={"ref": self.branch},
            )
        except NotFound:
            return None
        return response.json()

    def read_contents(self, path: str) -> str:
        """
        Return the decoded text of the file at *path*.
        """
        self._check_path(path)
        info = self.file_info(path)
        if info is None:
            raise NotFound(f"Remote file '{path}' not found")
        return base64.b64decode(info.get("content") or "").decode("utf-8")

    def write(
        self,
        path: str,
        content: str,
        commit_message: str,
        expected_version_tag: str | None = None,
    ) -> WriteResult:
        """
        Create (POST) or update (PUT) the file at *path*.

        With *expected_version_tag* the update is sent with
        ``last_commit_id`` so a concurrent change is rejected.

        Raises:
            Conflict: The file changed since *expected_version_tag*.
        """
        self._check_path(path)
        body = {
            "branch": self.branch,
            "content": content,
            "commit_message": commit_message,
            "encoding": "text",
        }
        if expected_version_tag:
            method = "PUT"
            body["last_commit_id"] = expected_version_tag
        else:
            method = "PUT" if self.file_info(path) is not None else "POST"

        self._request(method, self._file_url(path), path=path, json=body)

        # The write response carries no commit id; read it back
        info = self.file_info(path) or {}
        tag = info.get("last_commit_id")
        logger.debug("Wrote %s on %s (commit %s)", path, self.branch, tag)
        return WriteResult(version_tag=tag)

    def delete(self, path: str, commit_message: str) -> None:
        """
        Delete the file at *path*.
        """
        self._check_path(path)
        self._request(
            "DELETE",
            self._file_url(path),
            path=path,
            json={"branch": self.branch, "commit_message": commit_message},
        )

    def create_branch(self, branch: str, ref: str) -> None:
        """
        Create *branch* from *ref* (branch name or commit SHA).
        """
        if not branch or not branch.strip():
            raise ValueError("Branch name cannot be empty")
        self._request(
            "POST",
            f"{self.project_url}/repository/branches",
            json={"branch": branch, "ref": ref},
        )
        logger.info("Created branch %s from %s", branch, ref)

    def validate_connection(self) -> str:
        """
        Check credentials and project access.
        Returns the project's full path if successful.
        """
        data = self._request("GET", self.project_url).json()
        return str(data.get("path_with_namespace", ""))
