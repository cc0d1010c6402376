"""Repository Analysis Agent - Builds the file set the pipeline works on."""

import logging

from ..config.settings import MAX_ANALYZED_FILES, SKIPPED_EXTENSIONS
from ..core.models import RepoAnalysisOutput, Repository, StageResult
from ..core.repo_client import RepoClient

logger = logging.getLogger(__name__)


def is_analyzable(path: str) -> bool:
    """Return False for binary and asset files."""
    lowered = path.lower()
    return not any(lowered.endswith(ext) for ext in SKIPPED_EXTENSIONS)


class RepoAnalysisAgent:
    """Agent that lists and fetches the repository's files."""

    def __init__(self, repo_client: RepoClient, max_files: int = MAX_ANALYZED_FILES):
        """Initialize the repository analysis agent.

        Args:
            repo_client: Repository data provider
            max_files: Maximum number of files fetched
        """
        self.repo_client = repo_client
        self.max_files = max_files

    def execute(self, repository: Repository) -> RepoAnalysisOutput:
        """Fetch the analyzable files of a repository.

        Args:
            repository: Repository to analyze

        Returns:
            File set and stage result

        Raises:
            RepoClientError: If the provider fails
            RuntimeError: If no analyzable file is found
        """
        logger.info(f"Analyzing repository {repository.full_name}")

        paths = [p for p in self.repo_client.list_files(repository) if is_analyzable(p)]
        if len(paths) > self.max_files:
            logger.warning(f"Limiting analysis to {self.max_files} of {len(paths)} files")
            paths = paths[: self.max_files]

        files = {}
        for path in paths:
            files[path] = self.repo_client.get_file_content(repository, path)

        if not files:
            raise RuntimeError(f"No analyzable files found in {repository.full_name}")

        logger.info(f"Fetched {len(files)} files")
        directories = sorted({p.rsplit("/", 1)[0] if "/" in p else "." for p in files})
        return RepoAnalysisOutput(
            files=files,
            result=StageResult(
                summary=f"Analyzed {len(files)} files in {repository.full_name}",
                details=(
                    f"Branch {repository.default_branch}; "
                    f"directories: {', '.join(directories)}"
                ),
                analyzed_files=list(files),
            ),
        )
