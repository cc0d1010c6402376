"""Integration Agent - Proposes the pull request for the generated fix."""

import logging

from ..core.models import Diagnosis, Issue, Patch, StageResult

logger = logging.getLogger(__name__)


def branch_name(issue: Issue) -> str:
    return f"fix/issue-{issue.number}"


def pull_request_title(issue: Issue) -> str:
    return f"Fix #{issue.number}: {issue.title}"


def pull_request_body(issue: Issue, diagnosis: Diagnosis | None, patches: list[Patch]) -> str:
    """Build a markdown pull request description."""
    sections = [f"Resolves #{issue.number}."]
    if diagnosis is not None:
        sections.append(f"## Root cause\n\n{diagnosis.root_cause}")
        sections.append(f"## Solution\n\n{diagnosis.solution}")
    if patches:
        files = "\n".join(f"- `{p.file_path}`" for p in patches)
        sections.append(f"## Changed files\n\n{files}")
    return "\n\n".join(sections)


class IntegrationAgent:
    """Agent that summarizes the proposed branch and pull request."""

    def execute(
        self,
        issue: Issue,
        diagnosis: Diagnosis | None,
        patches: list[Patch],
    ) -> StageResult:
        branch = branch_name(issue)
        title = pull_request_title(issue)
        logger.info(f"Proposing pull request on branch {branch}")
        return StageResult(
            summary=f"Proposed branch {branch}: {title}",
            details=pull_request_body(issue, diagnosis, patches),
            related_files=[p.file_path for p in patches],
        )
