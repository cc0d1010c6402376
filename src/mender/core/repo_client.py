"""Repository data provider clients for file listing, content, search and issues."""

import logging
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

import requests
from git import GitCommandError, InvalidGitRepositoryError, NoSuchPathError, Repo

from ..config.settings import GITHUB_API_URL, REQUEST_TIMEOUT_SECONDS
from .models import CodeSearchHit, Issue, Repository, issue_from_github

logger = logging.getLogger(__name__)

GITHUB_URL_PATTERN = re.compile(r"github\.com[/:]([^/]+)/([^/?#]+)")


class RepoClientError(RuntimeError):
    """Raised when the repository data provider cannot fulfil a request."""


def parse_repository_url(url: str, branch: str = "main") -> Repository:
    """Parse a GitHub repository URL into a Repository.

    Args:
        url: URL such as ``https://github.com/owner/name`` (``.git`` suffix allowed)
        branch: Default branch to record

    Returns:
        Repository with a normalized URL

    Raises:
        ValueError: If the URL does not point at a GitHub repository
    """
    match = GITHUB_URL_PATTERN.search(url or "")
    if not match:
        raise ValueError(f"Invalid GitHub repository URL: {url!r}")

    owner = match.group(1)
    name = re.sub(r"\.git$", "", match.group(2))
    return Repository(
        owner=owner,
        name=name,
        url=f"https://github.com/{owner}/{name}",
        default_branch=branch,
    )


def local_repository(repo_path: str, branch: str = "main") -> Repository:
    """Describe a local working tree as a Repository owned by ``local``."""
    path = Path(repo_path).resolve()
    return Repository(owner="local", name=path.name, url=path.as_uri(), default_branch=branch)


def filter_issues(issues: list[Issue], query: str) -> list[Issue]:
    """Keep issues whose title, body or labels contain the query."""
    if not query or not query.strip():
        return list(issues)
    needle = query.strip().lower()
    return [
        issue
        for issue in issues
        if needle in issue.title.lower()
        or needle in issue.body.lower()
        or any(needle in label.lower() for label in issue.labels)
    ]


class RepoClient(ABC):
    """Abstract base class for repository data providers."""

    @abstractmethod
    def list_files(self, repository: Repository) -> list[str]:
        """List every file path in the repository's default branch."""
        pass

    @abstractmethod
    def get_file_content(self, repository: Repository, path: str) -> str:
        """Return the text content of one file."""
        pass

    @abstractmethod
    def search_code(self, repository: Repository, query: str) -> list[CodeSearchHit]:
        """Return files whose content matches the query."""
        pass

    @abstractmethod
    def list_issues(self, repository: Repository) -> list[Issue]:
        """Return the repository's open issues."""
        pass

    def get_issue(self, repository: Repository, number: int) -> Issue:
        """Return one issue by number.

        Raises:
            RepoClientError: If no open issue has that number
        """
        for issue in self.list_issues(repository):
            if issue.number == number:
                return issue
        raise RepoClientError(f"Issue #{number} not found in {repository.full_name}")


class GitHubRepoClient(RepoClient):
    """Repository data provider backed by the GitHub REST API."""

    def __init__(
        self,
        token: str | None = None,
        api_url: str = GITHUB_API_URL,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        session: requests.Session | None = None,
    ):
        """Initialize the GitHub client.

        Args:
            token: Optional personal access token sent as the Authorization header
            api_url: Base URL of the GitHub API
            timeout: Timeout in seconds applied to every request
            session: Optional preconfigured requests session
        """
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Accept": "application/vnd.github.v3+json"})
        if token:
            self.session.headers.update({"Authorization": f"token {token}"})

    def _get(self, path: str, **kwargs: Any) -> requests.Response:
        url = f"{self.api_url}{path}"
        try:
            response = self.session.get(url, timeout=self.timeout, **kwargs)
        except requests.exceptions.RequestException as e:
            logger.error(f"GitHub request failed for {path}: {e}")
            raise RepoClientError(f"GitHub request failed: {e}") from e

        if response.status_code != 200:
            logger.error(f"GitHub API error {response.status_code} for {path}")
            raise RepoClientError(f"GitHub API error: {response.status_code}")
        return response

    def list_files(self, repository: Repository) -> list[str]:
        response = self._get(
            f"/repos/{repository.owner}/{repository.name}/git/trees/{repository.default_branch}",
            params={"recursive": "1"},
        )
        data = response.json()
        if data.get("truncated"):
            logger.warning(f"File tree of {repository.full_name} was truncated by GitHub")
        return [item["path"] for item in data.get("tree", []) if item.get("type") == "blob"]

    def get_file_content(self, repository: Repository, path: str) -> str:
        response = self._get(
            f"/repos/{repository.owner}/{repository.name}/contents/{path}",
            params={"ref": repository.default_branch},
            headers={"Accept": "application/vnd.github.v3.raw"},
        )
        return response.text

    def search_code(self, repository: Repository, query: str) -> list[CodeSearchHit]:
        response = self._get(
            "/search/code",
            params={"q": f"{query} repo:{repository.owner}/{repository.name}"},
        )
        return [
            CodeSearchHit(path=item["path"], url=item.get("html_url", ""))
            for item in response.json().get("items", [])
        ]

    def list_issues(self, repository: Repository) -> list[Issue]:
        response = self._get(
            f"/repos/{repository.owner}/{repository.name}/issues",
            params={"state": "open", "sort": "created", "direction": "desc"},
        )
        # the issues endpoint also returns pull requests
        return [issue_from_github(item) for item in response.json() if "pull_request" not in item]

    def get_issue(self, repository: Repository, number: int) -> Issue:
        response = self._get(f"/repos/{repository.owner}/{repository.name}/issues/{number}")
        return issue_from_github(response.json())


class LocalRepoClient(RepoClient):
    """Repository data provider reading a local git checkout."""

    def __init__(self, repo_path: str):
        """Initialize the local client.

        Args:
            repo_path: Path to a git working tree

        Raises:
            RepoClientError: If the path is not a git repository
        """
        self.repo_path = Path(repo_path)
        try:
            self.repo = Repo(self.repo_path)
        except (InvalidGitRepositoryError, NoSuchPathError) as e:
            raise RepoClientError(f"Not a git repository: {repo_path}") from e

    def list_files(self, repository: Repository) -> list[str]:
        try:
            output = self.repo.git.ls_files()
        except GitCommandError as e:
            raise RepoClientError(f"git ls-files failed: {e}") from e
        return [line for line in output.splitlines() if line]

    def get_file_content(self, repository: Repository, path: str) -> str:
        file_path = self.repo_path / path
        try:
            return file_path.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            raise RepoClientError(f"Cannot read {path}: {e}") from e

    def search_code(self, repository: Repository, query: str) -> list[CodeSearchHit]:
        try:
            output = self.repo.git.grep("-l", "-i", "-F", "-e", query)
        except GitCommandError as e:
            # git grep exits with status 1 when nothing matches
            if e.status == 1:
                return []
            raise RepoClientError(f"git grep failed: {e}") from e
        return [
            CodeSearchHit(path=path, url=str(self.repo_path / path))
            for path in output.splitlines()
            if path
        ]

    def list_issues(self, repository: Repository) -> list[Issue]:
        return []


class InMemoryRepoClient(RepoClient):
    """Repository data provider over in-memory files for testing and demo purposes."""

    def __init__(
        self,
        files: dict[str, str] | None = None,
        issues: list[Issue] | None = None,
    ) -> None:
        self.files = dict(files or {})
        self.issues = list(issues or [])

    def list_files(self, repository: Repository) -> list[str]:
        return list(self.files)

    def get_file_content(self, repository: Repository, path: str) -> str:
        if path not in self.files:
            raise RepoClientError(f"File not found: {path}")
        return self.files[path]

    def search_code(self, repository: Repository, query: str) -> list[CodeSearchHit]:
        needle = query.lower()
        return [
            CodeSearchHit(path=path, url=path)
            for path, content in self.files.items()
            if needle in content.lower()
        ]

    def list_issues(self, repository: Repository) -> list[Issue]:
        return list(self.issues)


def create_repo_client(
    kind: str = "github",
    token: str | None = None,
    repo_path: str = ".",
) -> RepoClient:
    """Factory function to create the appropriate repository client.

    Args:
        kind: ``github``, ``local`` or ``memory``
        token: GitHub token for the ``github`` client
        repo_path: Working tree for the ``local`` client

    Returns:
        Repository client instance

    Raises:
        ValueError: If the kind is unknown
    """
    if kind == "github":
        return GitHubRepoClient(token=token)
    if kind == "local":
        return LocalRepoClient(repo_path)
    if kind == "memory":
        return InMemoryRepoClient()
    raise ValueError(f"Invalid repository client: {kind}. Must be 'github', 'local', or 'memory'")
