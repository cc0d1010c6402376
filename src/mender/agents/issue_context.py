"""Issue Context Agent - Extracts localization signals from the issue."""

import logging

from ..core.models import Issue, IssueContextOutput, StageResult
from ..core.signals import extract_signals

logger = logging.getLogger(__name__)


class IssueContextAgent:
    """Agent that turns issue text into a signal set."""

    def execute(self, issue: Issue) -> IssueContextOutput:
        """Extract signals from the issue title and body.

        An empty signal set is a valid outcome meaning that no localization
        is possible.
        """
        logger.info(f"Extracting context from issue #{issue.number}")
        signals = extract_signals(issue.text)

        if not signals:
            logger.warning(f"Issue #{issue.number} yielded no signals")
            return IssueContextOutput(
                signals=signals,
                result=StageResult(
                    summary="No signals found in the issue; no localization possible",
                    details=f"Issue #{issue.number}: {issue.title}",
                ),
            )

        preview = ", ".join(sorted(signals, key=len, reverse=True)[:10])
        return IssueContextOutput(
            signals=signals,
            result=StageResult(
                summary=f"Extracted {len(signals)} signals from issue #{issue.number}",
                details=f"Strongest signals: {preview}",
            ),
        )
