"""
Heuristic function segmentation.

Splits source text into function-like units by matching the textual shape of
named functions and assigned closures. This is pattern matching over text,
not parsing: it can over- and under-match, and callers only rely on the
``segment_functions`` contract so a real parser can replace it later.
"""

import logging
import re

from .models import CandidateUnit

logger = logging.getLogger(__name__)

# function name(params) {   |   const name = async (params) => {   |   name: function (params) {
PRIMARY_HEADER = re.compile(
    r"(?:\basync\s+)?\bfunction\s*\*?\s*(?P<fname>[A-Za-z_$][\w$]*)\s*\((?P<fparams>[^()]*)\)\s*\{"
    r"|\b(?:const|let|var)\s+(?P<aname>[A-Za-z_$][\w$]*)\s*=\s*(?:async\s+)?"
    r"(?:function\s*\*?\s*[A-Za-z_$]?[\w$]*\s*)?\((?P<aparams>[^()]*)\)\s*(?:=>\s*)?\{"
    r"|^[ \t]*(?P<pname>[A-Za-z_$][\w$]*)\s*:\s*(?:async\s+)?function\s*\((?P<pparams>[^()]*)\)\s*\{",
    re.MULTILINE,
)

# identifier(params) { body with at most one level of nested braces }
FALLBACK_SHAPE = re.compile(
    r"\b(?P<name>[A-Za-z_$][\w$]*)\s*\((?P<params>[^()]*)\)\s*\{"
    r"(?:[^{}]|\{[^{}]*\})*\}"
)

CONTROL_KEYWORDS = frozenset({"if", "for", "while", "switch", "catch", "with", "return"})


def _find_block_end(text: str, open_index: int) -> int:
    """Return the index just past the brace closing the one at open_index.

    Unbalanced text runs to the end of the input.
    """
    depth = 0
    for index in range(open_index, len(text)):
        char = text[index]
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return index + 1
    return len(text)


def _line_of(text: str, offset: int) -> int:
    return text.count("\n", 0, offset) + 1


def _split_parameters(params: str) -> list[str]:
    return [p.strip() for p in params.split(",") if p.strip()]


def _primary_units(text: str) -> list[CandidateUnit]:
    units = []
    for found in PRIMARY_HEADER.finditer(text):
        name = found.group("fname") or found.group("aname") or found.group("pname")
        params = found.group("fparams") or found.group("aparams") or found.group("pparams") or ""
        start = found.start()
        # skip the indentation captured by the multiline alternative
        while start < found.end() and text[start] in " \t":
            start += 1
        end = _find_block_end(text, found.end() - 1)
        units.append(
            CandidateUnit(
                name=name,
                parameters=_split_parameters(params),
                code=text[start:end],
                line_start=_line_of(text, start),
            )
        )
    return units


def _fallback_units(text: str) -> list[CandidateUnit]:
    units = []
    for found in FALLBACK_SHAPE.finditer(text):
        if found.group("name") in CONTROL_KEYWORDS:
            continue
        units.append(
            CandidateUnit(
                name=found.group("name"),
                parameters=_split_parameters(found.group("params")),
                code=found.group(0),
                line_start=_line_of(text, found.start()),
            )
        )
    return units


def segment_functions(text: str, file_path: str = "") -> list[CandidateUnit]:
    """Segment file text into function-like units.

    Args:
        text: File content
        file_path: Path recorded on every returned unit

    Returns:
        Units in order of appearance; empty when nothing function-like is found
    """
    if not text:
        return []

    units = _primary_units(text)
    if not units:
        units = _fallback_units(text)
        if units:
            logger.debug(f"Fallback segmentation found {len(units)} units in {file_path}")

    for unit in units:
        unit.file_path = file_path
    return units


def select_unit(units: list[CandidateUnit], line: int) -> CandidateUnit | None:
    """Pick the unit containing ``line``, else the nearest one starting before it."""
    if not units:
        return None
    containing = [u for u in units if u.line_start <= line <= u.line_end]
    if containing:
        # innermost unit wins for nested closures
        return max(containing, key=lambda u: u.line_start)
    preceding = [u for u in units if u.line_start <= line]
    if preceding:
        return max(preceding, key=lambda u: u.line_start)
    return units[0]


def raw_excerpt(text: str, line_start: int, length: int, file_path: str = "") -> CandidateUnit:
    """Build an ``unknown`` unit from a fixed-length slice of lines."""
    lines = text.split("\n")
    first = max(line_start, 1)
    code = "\n".join(lines[first - 1 : first - 1 + length])
    return CandidateUnit(
        name="unknown",
        parameters=[],
        code=code,
        line_start=first,
        file_path=file_path,
    )
