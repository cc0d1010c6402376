"""Root-cause classification of a candidate unit into a defect archetype."""

import logging
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from .models import Archetype, CandidateUnit, Diagnosis, Match
from .signals import BARE_OPERATOR_FORM

logger = logging.getLogger(__name__)

UNKNOWN_NAME = "unknown"
UNKNOWN_LOCATION = "an unknown location"

# non-capturing group / conditional operator forms
OPERATOR_FORMS = ("(?:", "?:")

TRY_MARKER = re.compile(r"\btry\b")
CATCH_MARKER = re.compile(r"\bcatch\b")
ASYNC_MARKER = re.compile(r"\basync\b")
AWAIT_MARKER = re.compile(r"\bawait\b")


@dataclass(frozen=True)
class Narrative:
    """Cause and fix templates for one archetype."""

    root_cause: str
    solution: str


NARRATIVES: dict[Archetype, Narrative] = {
    Archetype.REGEX: Narrative(
        root_cause=(
            "The {name} function in {path} relies on a '?:' form (a regular expression "
            "non-capturing group or a conditional operator). An incomplete group or a "
            "conditional missing one of its operands lets malformed input through "
            "instead of being rejected."
        ),
        solution=(
            "Review every '?:' form in {name} ({path}): make sure each conditional has "
            "all three operands and each non-capturing group is closed, and document "
            "the intent of every group."
        ),
    ),
    Archetype.ERROR_HANDLING: Narrative(
        root_cause=(
            "The try/catch block in {name} ({path}) catches the error without "
            "reporting or re-throwing it, so the failure is swallowed and callers "
            "continue with an inconsistent state."
        ),
        solution=(
            "Log the caught error inside {name} ({path}) and re-throw it so that "
            "callers can handle the failure."
        ),
    ),
    Archetype.ASYNC: Narrative(
        root_cause=(
            "{name} in {path} awaits asynchronous work without handling rejections; "
            "a rejected promise escapes as an unhandled error."
        ),
        solution=(
            "Wrap the awaited work in {name} ({path}) in a try/catch that logs the "
            "failure and re-throws it."
        ),
    ),
    Archetype.VALIDATION: Narrative(
        root_cause=(
            "{name} in {path} uses its inputs without validating them, so unexpected "
            "values reach the failing code path."
        ),
        solution=(
            "Add a guard clause to {name} ({path}) that rejects invalid input with an "
            "explicit validation error before any further processing."
        ),
    ),
}


def _is_regex_archetype(unit: CandidateUnit, matches: list[Match], signals: set[str]) -> bool:
    if BARE_OPERATOR_FORM.search(unit.code):
        return True
    if any(match.signal in OPERATOR_FORMS for match in matches):
        return True
    return any(form in signals for form in OPERATOR_FORMS)


def _is_error_handling_archetype(unit: CandidateUnit, matches: list[Match], signals: set[str]) -> bool:
    return bool(TRY_MARKER.search(unit.code) and CATCH_MARKER.search(unit.code))


def _is_async_archetype(unit: CandidateUnit, matches: list[Match], signals: set[str]) -> bool:
    return bool(ASYNC_MARKER.search(unit.code) and AWAIT_MARKER.search(unit.code))


# Evaluated in priority order; VALIDATION is the catch-all.
ARCHETYPE_RULES: list[tuple[Archetype, Callable[[CandidateUnit, list[Match], set[str]], bool]]] = [
    (Archetype.REGEX, _is_regex_archetype),
    (Archetype.ERROR_HANDLING, _is_error_handling_archetype),
    (Archetype.ASYNC, _is_async_archetype),
]


def detect_archetype(
    unit: CandidateUnit,
    matches: list[Match],
    signals: Iterable[str] = (),
) -> Archetype:
    signal_set = set(signals)
    for archetype, rule in ARCHETYPE_RULES:
        if rule(unit, matches, signal_set):
            return archetype
    return Archetype.VALIDATION


def classify(
    unit: CandidateUnit,
    matches: list[Match],
    signals: Iterable[str] = (),
) -> Diagnosis:
    """Classify a candidate unit and render its root-cause narrative.

    Never fails: units with no code, no name or no location fall through to
    the validation archetype and are described as unknown.

    Args:
        unit: Candidate unit from code understanding
        matches: Located matches
        signals: Signals extracted from the issue

    Returns:
        Diagnosis with archetype, root cause and solution
    """
    archetype = detect_archetype(unit, matches, signals)
    narrative = NARRATIVES[archetype]
    name = unit.name or UNKNOWN_NAME
    path = unit.file_path or UNKNOWN_LOCATION

    logger.info(f"Classified {name} ({path}) as {archetype.value}")
    return Diagnosis(
        archetype=archetype,
        root_cause=narrative.root_cause.format(name=name, path=path),
        solution=narrative.solution.format(name=name, path=path),
    )
