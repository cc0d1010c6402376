"""Unit tests for root-cause classification."""

from mender.core.classifier import classify, detect_archetype
from mender.core.models import Archetype, CandidateUnit, Match


def unit(code: str, name: str = "handler", path: str = "src/handler.js") -> CandidateUnit:
    return CandidateUnit(name=name, parameters=["input"], code=code, line_start=1, file_path=path)


def match(signal: str) -> Match:
    return Match(
        file_path="src/handler.js",
        line_start=1,
        line_end=1,
        matching_line=1,
        code="",
        signal=signal,
    )


class TestDetectArchetype:
    """Test cases for archetype detection."""

    def test_conditional_form_in_code(self):
        """Test '?:' in the code selects the regex archetype."""
        assert detect_archetype(unit("const x = a ?: b;"), []) == Archetype.REGEX

    def test_non_capturing_group_in_code(self):
        """Test '(?:' in the code selects the regex archetype."""
        assert detect_archetype(unit("const re = /(?:ab)+/;"), []) == Archetype.REGEX

    def test_operator_form_in_match_signal(self):
        """Test a match found through an operator form."""
        assert detect_archetype(unit("return input;"), [match("(?:")]) == Archetype.REGEX

    def test_operator_form_in_issue_signals(self):
        """Test an operator form mentioned only in the issue."""
        assert detect_archetype(unit("return input;"), [], {"?:", "operator"}) == Archetype.REGEX

    def test_optional_annotation_is_not_an_operator_form(self):
        """Test TypeScript optional members do not select the regex archetype."""
        code = "function greet(user: { name?: string }, title?: string) {\n  return user.name;\n}"
        assert detect_archetype(unit(code), []) == Archetype.VALIDATION

    def test_try_catch(self):
        """Test try and catch markers select error handling."""
        code = "try {\n  run();\n} catch (e) {\n}"
        assert detect_archetype(unit(code), []) == Archetype.ERROR_HANDLING

    def test_try_without_catch(self):
        """Test both markers are required."""
        assert detect_archetype(unit("try {\n  run();\n} finally {}"), []) == Archetype.VALIDATION

    def test_async_await(self):
        """Test async and await markers select the async archetype."""
        code = "async function go() {\n  await run();\n}"
        assert detect_archetype(unit(code), []) == Archetype.ASYNC

    def test_validation_is_the_default(self):
        """Test code without markers falls through to validation."""
        assert detect_archetype(unit("return input * 2;"), []) == Archetype.VALIDATION

    def test_error_handling_outranks_async(self):
        """Test priority order when several rules apply."""
        code = "async function go() {\n  try {\n    await run();\n  } catch (e) {}\n}"
        assert detect_archetype(unit(code), []) == Archetype.ERROR_HANDLING

    def test_regex_outranks_error_handling(self):
        """Test the operator form rule is evaluated first."""
        code = "try {\n  x = a ?: b;\n} catch (e) {}"
        assert detect_archetype(unit(code), []) == Archetype.REGEX

    def test_markers_need_word_boundaries(self):
        """Test identifiers that merely contain a marker."""
        code = "const retry = catcher(asyncQueue, awaiting);"
        assert detect_archetype(unit(code), []) == Archetype.VALIDATION


class TestClassify:
    """Test cases for the rendered diagnosis."""

    def test_narrative_names_the_unit(self):
        """Test the narrative mentions the unit name and its file."""
        diagnosis = classify(unit("try { run(); } catch (e) {}", name="saveUser"), [])

        assert diagnosis.archetype == Archetype.ERROR_HANDLING
        assert "saveUser" in diagnosis.root_cause
        assert "src/handler.js" in diagnosis.root_cause
        assert "re-throw" in diagnosis.solution

    def test_empty_unit(self):
        """Test a unit with no code, name or path never fails."""
        empty = CandidateUnit(name="", parameters=[], code="", line_start=1)

        diagnosis = classify(empty, [])

        assert diagnosis.archetype == Archetype.VALIDATION
        assert "unknown" in diagnosis.root_cause
        assert "an unknown location" in diagnosis.root_cause

    def test_regex_narrative(self):
        """Test the regex narrative explains the '?:' form."""
        diagnosis = classify(unit("return a ?: b;"), [])
        assert "'?:'" in diagnosis.root_cause
        assert "'?:'" in diagnosis.solution
