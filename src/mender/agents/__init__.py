"""Mender pipeline stage agents."""

from .code_understanding import CodeUnderstandingAgent
from .integration import IntegrationAgent
from .issue_context import IssueContextAgent
from .patch_generation import PatchGenerationAgent
from .repo_analysis import RepoAnalysisAgent
from .root_cause import RootCauseAgent
from .validation import ValidationAgent

__all__ = [
    "RepoAnalysisAgent",
    "IssueContextAgent",
    "CodeUnderstandingAgent",
    "RootCauseAgent",
    "PatchGenerationAgent",
    "ValidationAgent",
    "IntegrationAgent",
]
