"""Candidate location: rank file regions against extracted signals."""

import logging
import re
from collections import Counter
from collections.abc import Iterable, Mapping

from ..config.settings import (
    CONTEXT_LINES_AFTER,
    CONTEXT_LINES_BEFORE,
    MAX_MATCHES,
    MIN_SIGNAL_LENGTH,
)
from .models import Match
from .signals import OPERATOR_SEARCH_PATTERNS

logger = logging.getLogger(__name__)


def find_signal(content: str, signal: str) -> re.Match[str] | None:
    """First occurrence of a signal, located by shape for short operator forms."""
    patterns = OPERATOR_SEARCH_PATTERNS.get(signal)
    if patterns is None:
        return re.search(re.escape(signal), content, re.IGNORECASE)
    for pattern in patterns:
        found = pattern.search(content)
        if found is not None:
            return found
    return None


def split_lines(content: str) -> list[str]:
    """Split file text into lines, ignoring the empty tail after a final newline."""
    lines = content.split("\n")
    if len(lines) > 1 and lines[-1] == "":
        lines.pop()
    return lines


def _build_match(file_path: str, content: str, offset: int, signal: str) -> Match:
    lines = split_lines(content)
    index = content.count("\n", 0, offset)
    start = max(0, index - CONTEXT_LINES_BEFORE)
    end = min(len(lines) - 1, index + CONTEXT_LINES_AFTER)
    return Match(
        file_path=file_path,
        line_start=start + 1,
        line_end=end + 1,
        matching_line=index + 1,
        code="\n".join(lines[start : end + 1]),
        signal=signal,
    )


def rank_matches(matches: list[Match]) -> list[Match]:
    """Sort files with more matches first, keeping discovery order otherwise."""
    counts = Counter(match.file_path for match in matches)
    return sorted(matches, key=lambda match: -counts[match.file_path])


def locate_candidates(
    files: Mapping[str, str | None],
    signals: Iterable[str],
    max_matches: int = MAX_MATCHES,
) -> list[Match]:
    """Find and rank the regions of the file set where signals occur.

    Each (file, signal) pair yields at most one match, anchored on the first
    occurrence of the signal. The match cap is checked before every pair is
    tested, so the result never exceeds ``max_matches``.

    Args:
        files: Mapping of file path to file content
        signals: Extracted signals
        max_matches: Ceiling on the total number of matches

    Returns:
        Matches ordered by descending per-file match count
    """
    searchable = sorted(
        s for s in set(signals) if len(s) >= MIN_SIGNAL_LENGTH or s in OPERATOR_SEARCH_PATTERNS
    )
    if not searchable:
        logger.info("No searchable signals, skipping candidate location")
        return []

    matches: list[Match] = []
    for file_path, content in files.items():
        if not content:
            logger.debug(f"Skipping empty file {file_path}")
            continue

        for signal in searchable:
            if len(matches) >= max_matches:
                break
            found = find_signal(content, signal)
            if found is None:
                continue
            match = _build_match(file_path, content, found.start(), signal)
            logger.debug(f"Signal {signal!r} found in {file_path}:{match.matching_line}")
            matches.append(match)

        if len(matches) >= max_matches:
            logger.info(f"Match cap of {max_matches} reached")
            break

    ranked = rank_matches(matches)
    logger.info(f"Located {len(ranked)} matches across {len({m.file_path for m in ranked})} files")
    return ranked
