"""
Code Understanding Agent.

Locates the regions of the file set that match the issue's signals and
segments the best one into a candidate unit. When the local file set has no
hit, the repository code search is consulted for more files.
"""

import logging

from ..config.settings import FALLBACK_EXCERPT_LINES, SEARCH_FALLBACK_QUERIES
from ..core.locator import locate_candidates
from ..core.models import (
    CandidateUnit,
    CodeSnippet,
    CodeUnderstandingOutput,
    Match,
    Repository,
    StageResult,
)
from ..core.repo_client import RepoClient
from ..core.segmenter import raw_excerpt, segment_functions, select_unit
from ..core.signals import IDENTIFIER_PATTERN

logger = logging.getLogger(__name__)


def empty_candidate() -> CandidateUnit:
    return CandidateUnit(name="unknown", parameters=[], code="", line_start=1)


class CodeUnderstandingAgent:
    """Agent that finds the candidate unit suspected to contain the defect."""

    def __init__(self, repo_client: RepoClient):
        """Initialize the code understanding agent.

        Args:
            repo_client: Repository data provider used for the search fallback
        """
        self.repo_client = repo_client

    def execute(
        self,
        repository: Repository,
        files: dict[str, str],
        signals: set[str],
    ) -> CodeUnderstandingOutput:
        """Locate matches and pick the candidate unit.

        Args:
            repository: Repository being analyzed
            files: File set from repository analysis
            signals: Signals from issue context extraction

        Returns:
            Ranked matches, the candidate unit and the stage result

        Raises:
            RepoClientError: If the search fallback fails
        """
        matches = locate_candidates(files, signals)
        discovered: dict[str, str] = {}

        if not matches and signals:
            discovered = self._search_more_files(repository, files, signals)
            if discovered:
                matches = locate_candidates({**files, **discovered}, signals)

        if not matches:
            logger.warning("No code location matched the issue signals")
            return CodeUnderstandingOutput(
                matches=[],
                candidate=empty_candidate(),
                discovered_files=discovered,
                result=StageResult(
                    summary="No code location matched the issue",
                    details="Candidate unit is unknown; later stages use generic fallbacks.",
                ),
            )

        top = matches[0]
        content = files.get(top.file_path) or discovered.get(top.file_path, "")
        candidate = self._select_candidate(top, content)
        logger.info(f"Candidate unit {candidate.name} in {top.file_path}:{candidate.line_start}")

        related = list(dict.fromkeys(m.file_path for m in matches if m.file_path != top.file_path))
        return CodeUnderstandingOutput(
            matches=matches,
            candidate=candidate,
            discovered_files=discovered,
            result=StageResult(
                summary=f"Found {len(matches)} matches; candidate {candidate.name} in {top.file_path}",
                details=(
                    f"Top match on line {top.matching_line} for signal {top.signal!r}. "
                    f"Candidate starts on line {candidate.line_start}."
                ),
                snippets=[
                    CodeSnippet(
                        file_path=candidate.file_path,
                        code=candidate.code,
                        line_start=candidate.line_start,
                        line_end=candidate.line_end,
                        is_error=True,
                    )
                ]
                + [
                    CodeSnippet(
                        file_path=m.file_path,
                        code=m.code,
                        line_start=m.line_start,
                        line_end=m.line_end,
                    )
                    for m in matches[1:4]
                ],
                related_files=related,
            ),
        )

    def _select_candidate(self, top: Match, content: str) -> CandidateUnit:
        units = segment_functions(content, top.file_path)
        candidate = select_unit(units, top.matching_line)
        if candidate is None:
            logger.info(f"Segmentation found no functions in {top.file_path}, using raw excerpt")
            candidate = raw_excerpt(content, top.line_start, FALLBACK_EXCERPT_LINES, top.file_path)
        return candidate

    def _search_more_files(
        self,
        repository: Repository,
        files: dict[str, str],
        signals: set[str],
    ) -> dict[str, str]:
        queries = sorted(
            (s for s in signals if IDENTIFIER_PATTERN.fullmatch(s)),
            key=len,
            reverse=True,
        )[:SEARCH_FALLBACK_QUERIES]
        discovered: dict[str, str] = {}
        for query in queries:
            for hit in self.repo_client.search_code(repository, query):
                if hit.path in files or hit.path in discovered:
                    continue
                discovered[hit.path] = self.repo_client.get_file_content(repository, hit.path)
        if discovered:
            logger.info(f"Code search found {len(discovered)} additional files")
        return discovered
