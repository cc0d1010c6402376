"""Mender core package."""

from .core.controller import PipelineController
from .core.graph import ResolutionGraph
from .core.models import Issue, PipelineRun, Repository, RunRequest, RunStatus
from .core.repo_client import RepoClient, create_repo_client

__all__ = [
    "Issue",
    "PipelineRun",
    "Repository",
    "RunRequest",
    "RunStatus",
    "RepoClient",
    "create_repo_client",
    "ResolutionGraph",
    "PipelineController",
]
