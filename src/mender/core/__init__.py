"""Mender core functionality."""

from .controller import PipelineController
from .graph import ResolutionGraph
from .models import Archetype, Issue, PipelineRun, Repository, RunRequest, RunStatus, StageStatus
from .repo_client import RepoClient, RepoClientError, create_repo_client

__all__ = [
    "Archetype",
    "Issue",
    "PipelineRun",
    "Repository",
    "RunRequest",
    "RunStatus",
    "StageStatus",
    "RepoClient",
    "RepoClientError",
    "create_repo_client",
    "ResolutionGraph",
    "PipelineController",
]
