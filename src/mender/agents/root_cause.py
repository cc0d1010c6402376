"""Root Cause Agent - Explains the suspected defect."""

import logging

from ..core.classifier import classify
from ..core.models import CandidateUnit, CodeSnippet, Match, RootCauseOutput, StageResult

logger = logging.getLogger(__name__)


class RootCauseAgent:
    """Agent that classifies the candidate unit into a defect archetype."""

    def execute(
        self,
        candidate: CandidateUnit,
        matches: list[Match],
        signals: set[str],
    ) -> RootCauseOutput:
        diagnosis = classify(candidate, matches, signals)
        snippets = []
        if candidate.code:
            snippets.append(
                CodeSnippet(
                    file_path=candidate.file_path,
                    code=candidate.code,
                    line_start=candidate.line_start,
                    line_end=candidate.line_end,
                    is_error=True,
                )
            )
        return RootCauseOutput(
            diagnosis=diagnosis,
            result=StageResult(
                summary=f"Root cause identified: {diagnosis.archetype.value} defect",
                details=f"Candidate unit {candidate.name or 'unknown'} classified by code markers and issue signals.",
                root_cause=diagnosis.root_cause,
                solution=diagnosis.solution,
                snippets=snippets,
            ),
        )
