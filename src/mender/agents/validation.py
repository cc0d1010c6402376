"""Validation Agent - Summarizes the generated patches as unified diffs."""

import difflib
import logging

from ..core.models import CodeSnippet, Patch, StageResult

logger = logging.getLogger(__name__)


def unified_diff(patch: Patch) -> str:
    """Render a patch as a unified diff."""
    diff = difflib.unified_diff(
        patch.original_code.splitlines(keepends=True),
        patch.modified_code.splitlines(keepends=True),
        fromfile=f"a/{patch.file_path}",
        tofile=f"b/{patch.file_path}",
    )
    return "".join(line if line.endswith("\n") else line + "\n" for line in diff)


class ValidationAgent:
    """Agent that checks which patches change their original text."""

    def execute(self, patches: list[Patch]) -> StageResult:
        snippets = []
        changed = 0
        lines = []
        for patch in patches:
            modifies = patch.modified_code != patch.original_code
            changed += modifies
            lines.append(f"{patch.file_path}: {'changes code' if modifies else 'no change'}")
            if modifies:
                snippets.append(CodeSnippet(file_path=patch.file_path, code=unified_diff(patch)))

        if patches and not changed:
            logger.warning("No generated patch changes its original code")

        return StageResult(
            summary=f"{changed} of {len(patches)} patch(es) modify their target",
            details="\n".join(lines),
            snippets=snippets,
        )
