"""
Patch Generation Agent.

Synthesizes the primary patch for the candidate unit and at most one
secondary patch for the first impacted file other than the primary one.
"""

import logging
from collections.abc import Callable

from ..config.settings import MAX_IMPACTED_FILES
from ..core.models import (
    CandidateUnit,
    CodeSnippet,
    Diagnosis,
    Match,
    Patch,
    PatchGenerationOutput,
    StageResult,
)
from ..core.synthesizer import synthesize_patch, synthesize_related_patch

logger = logging.getLogger(__name__)


def compute_impacted_files(
    candidate: CandidateUnit,
    matches: list[Match],
    files: dict[str, str],
    limit: int = MAX_IMPACTED_FILES,
) -> list[str]:
    """Return the best-effort list of files affected by a change to the candidate.

    Order: the candidate's own file, other matched files, then any other file
    whose text mentions the candidate's name.
    """
    impacted: list[str] = []

    def add(path: str) -> None:
        if path and path not in impacted and len(impacted) < limit:
            impacted.append(path)

    add(candidate.file_path)
    for match in matches:
        add(match.file_path)
    if candidate.name and candidate.name != "unknown":
        for path, content in files.items():
            if content and candidate.name in content:
                add(path)
    return impacted


class PatchGenerationAgent:
    """Agent that produces the proposed patches."""

    def execute(
        self,
        candidate: CandidateUnit,
        diagnosis: Diagnosis,
        matches: list[Match],
        files: dict[str, str],
        on_patch: Callable[[Patch], None] | None = None,
    ) -> PatchGenerationOutput:
        """Generate patches.

        Args:
            candidate: Candidate unit from code understanding
            diagnosis: Diagnosis from root-cause analysis
            matches: Ranked matches
            files: Every file known to the run
            on_patch: Called with each patch as soon as it is produced

        Returns:
            Patches and stage result
        """
        impacted = compute_impacted_files(candidate, matches, files)
        logger.info(f"Generating {diagnosis.archetype.value} patch for {candidate.name}")

        primary = Patch(
            file_path=candidate.file_path,
            original_code=candidate.code,
            modified_code=synthesize_patch(candidate, diagnosis.archetype),
            explanation=diagnosis.solution,
            impacted_files=impacted,
        )
        patches = [primary]
        if on_patch:
            on_patch(primary)

        secondary_path = next((p for p in impacted if p != candidate.file_path), None)
        if secondary_path is not None:
            content = files.get(secondary_path, "")
            secondary = Patch(
                file_path=secondary_path,
                original_code=content,
                modified_code=synthesize_related_patch(content, candidate.name),
                explanation=f"Guard call sites that depend on {candidate.name}.",
                impacted_files=[secondary_path],
            )
            patches.append(secondary)
            if on_patch:
                on_patch(secondary)

        return PatchGenerationOutput(
            patches=patches,
            result=StageResult(
                summary=f"Generated {len(patches)} patch(es) for {candidate.name}",
                details=primary.explanation,
                snippets=[
                    CodeSnippet(file_path=p.file_path, code=p.modified_code) for p in patches
                ],
                related_files=impacted,
            ),
        )
