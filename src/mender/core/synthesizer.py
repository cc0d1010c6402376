"""
Template-based patch synthesis.

Each archetype maps to one fixed textual transformation of the candidate's
code. A transformation that finds nothing to rewrite falls through to the
validation transformation, which always changes the text.
"""

import logging
import re
from collections.abc import Callable

from .models import Archetype, CandidateUnit
from .signals import BARE_OPERATOR_FORM, INCOMPLETE_CONDITIONAL

logger = logging.getLogger(__name__)

NO_CODE_PLACEHOLDER = "// no code to patch"

CATCH_CLAUSE = re.compile(r"\bcatch\s*(?:\(\s*(?P<var>[A-Za-z_$][\w$]*)[^)]*\))?\s*\{")
CONDITIONAL_TEST = re.compile(r"^(?P<indent>[ \t]*)(?:\}\s*else\s+)?if\s*\(")
THROW_STATEMENT = re.compile(r"\bthrow\b")
IDENTIFIER = re.compile(r"[A-Za-z_$][\w$]*")

VALIDATION_HELPER = """function isValidInput(value) {
  return value !== undefined && value !== null;
}

"""


def _indent_of(line: str) -> str:
    return line[: len(line) - len(line.lstrip())]


def _block_end(text: str, open_index: int, opening: str = "{", closing: str = "}") -> int:
    """Index of the bracket closing the one at open_index, or -1 if unbalanced."""
    depth = 0
    for index in range(open_index, len(text)):
        if text[index] == opening:
            depth += 1
        elif text[index] == closing:
            depth -= 1
            if depth == 0:
                return index
    return -1


def _body_open(code: str) -> int:
    """Index of the brace opening the function body, past any parameter list."""
    brace = code.find("{")
    paren = code.find("(")
    if paren == -1 or brace == -1 or brace < paren:
        return brace
    close = _block_end(code, paren, "(", ")")
    if close == -1:
        return -1
    return code.find("{", close)


def _condition(line: str, open_index: int) -> str:
    """Text between the parentheses of a one-line test, or "" if it spans lines."""
    close = _block_end(line, open_index, "(", ")")
    if close == -1:
        return ""
    return line[open_index + 1 : close].strip()


def _label(name: str) -> str:
    return name if name and name != "unknown" else "candidate"


def annotate_operator_forms(code: str, name: str) -> str:
    """Insert an explanatory comment above every '?:' form and incomplete conditional."""
    output = []
    for line in code.split("\n"):
        indent = _indent_of(line)
        if BARE_OPERATOR_FORM.search(line):
            output.append(
                f"{indent}// '?:' here is a non-capturing group or conditional form: "
                "every group must be closed and every conditional needs all three operands"
            )
        elif INCOMPLETE_CONDITIONAL.search(line):
            output.append(
                f"{indent}// conditional expression is missing its third operand (expected 'a ? b : c')"
            )
        output.append(line)
    return "\n".join(output)


def rethrow_caught_errors(code: str, name: str) -> str:
    """Log at the top of the first catch body and re-throw at its end."""
    found = CATCH_CLAUSE.search(code)
    if found is None:
        return code

    open_index = found.end() - 1
    close_index = _block_end(code, open_index)
    if close_index == -1:
        return code

    variable = found.group("var") or "error"
    line_start = code.rfind("\n", 0, found.start()) + 1
    indent = _indent_of(code[line_start:found.start()] + "x")
    inner = indent + "  "

    clause = code[found.start() : open_index]
    if found.group("var") is None:
        clause = f"catch ({variable}) "
    body = code[open_index + 1 : close_index].rstrip()

    rewritten = (
        f"{clause}{{\n"
        f'{inner}console.error("{_label(name)} failed:", {variable});'
        f"{body}\n"
        f"{inner}throw {variable};\n"
        f"{indent}}}"
    )
    return code[: found.start()] + rewritten + code[close_index + 1 :]


def wrap_async_body(code: str, name: str) -> str:
    """Wrap the function body in a try/catch that logs and re-throws."""
    open_index = _body_open(code)
    if open_index == -1:
        return code
    close_index = _block_end(code, open_index)
    if close_index == -1:
        return code

    signature = code[: open_index + 1]
    body = code[open_index + 1 : close_index].strip("\n")
    line_start = code.rfind("\n", 0, open_index) + 1
    indent = _indent_of(code[line_start:])
    inner = indent + "  "

    indented_body = "\n".join(f"  {line}" if line.strip() else line for line in body.split("\n"))
    wrapped = (
        f"{signature}\n"
        f"{inner}try {{\n"
        f"{indented_body}\n"
        f"{inner}}} catch (error) {{\n"
        f'{inner}  console.error("{_label(name)} failed:", error);\n'
        f"{inner}  throw error;\n"
        f"{inner}}}\n"
        f"{indent}}}"
    )
    return wrapped + code[close_index + 1 :]


def add_input_validation(code: str, name: str, parameters: list[str] | None = None) -> str:
    """Inject a guard clause, or prepend a validation helper and call it."""
    label = _label(name)
    target = parameters[0].split("=")[0].strip() if parameters else ""
    if not IDENTIFIER.fullmatch(target):
        target = ""
    lines = code.split("\n")

    if not THROW_STATEMENT.search(code):
        for index, line in enumerate(lines):
            test = CONDITIONAL_TEST.match(line)
            if test is None:
                continue
            subject = target or _condition(line, test.end() - 1)
            if not subject:
                continue
            indent = test.group("indent")
            guard = [
                f"{indent}if ({subject} === undefined || {subject} === null) {{",
                f'{indent}  throw new Error("ValidationError: invalid input passed to {label}");',
                f"{indent}}}",
            ]
            return "\n".join(lines[:index] + guard + lines[index:])

    argument = target or "arguments[0]"
    for index, line in enumerate(lines):
        if "{" in line:
            inner = _indent_of(line) + "  "
            check = [
                f"{inner}if (!isValidInput({argument})) {{",
                f'{inner}  throw new Error("ValidationError: invalid input passed to {label}");',
                f"{inner}}}",
            ]
            lines = lines[: index + 1] + check + lines[index + 1 :]
            break
    else:
        lines = [
            f"if (!isValidInput({argument})) {{",
            f'  throw new Error("ValidationError: invalid input passed to {label}");',
            "}",
        ] + lines
    return VALIDATION_HELPER + "\n".join(lines)


TRANSFORMS: dict[Archetype, Callable[[str, str], str]] = {
    Archetype.REGEX: annotate_operator_forms,
    Archetype.ERROR_HANDLING: rethrow_caught_errors,
    Archetype.ASYNC: wrap_async_body,
    Archetype.VALIDATION: add_input_validation,
}


def synthesize_patch(unit: CandidateUnit, archetype: Archetype) -> str:
    """Produce the modified code for a candidate unit.

    Args:
        unit: Candidate unit whose code is transformed
        archetype: Archetype chosen by the classifier

    Returns:
        Modified code, never empty
    """
    code = unit.code
    if not code.strip():
        logger.warning("Candidate has no code, returning placeholder patch")
        return NO_CODE_PLACEHOLDER

    if archetype is Archetype.VALIDATION:
        return add_input_validation(code, unit.name, unit.parameters)

    modified = TRANSFORMS[archetype](code, unit.name)
    if modified == code:
        logger.info(f"No {archetype.value} rewrite applied to {unit.name}, using input validation")
        modified = add_input_validation(code, unit.name, unit.parameters)
    return modified


def synthesize_related_patch(content: str, unit_name: str) -> str:
    """Patch one impacted file that may call the primary unit.

    Calls to the unit are wrapped in a try/catch with a logging comment; when
    the file never mentions the unit, every call-like line gets an inert
    review comment instead.
    """
    if not content:
        return NO_CODE_PLACEHOLDER

    lines = content.split("\n")
    output: list[str] = []

    if unit_name and unit_name != "unknown" and unit_name in content:
        call = re.compile(rf"(?<![\w$.]){re.escape(unit_name)}\s*\(")
        definition = re.compile(rf"\bfunction\s+{re.escape(unit_name)}\b|\b{re.escape(unit_name)}\s*=")
        for line in lines:
            if call.search(line) and not definition.search(line) and line.rstrip().endswith(";"):
                indent = _indent_of(line)
                output.extend(
                    [
                        f"{indent}try {{",
                        f"  {line}",
                        f"{indent}}} catch (error) {{",
                        f"{indent}  // log failures raised by {unit_name} before propagating them",
                        f'{indent}  console.error("{unit_name} failed:", error);',
                        f"{indent}  throw error;",
                        f"{indent}}}",
                    ]
                )
            else:
                output.append(line)
        return "\n".join(output)

    call_like = re.compile(r"[A-Za-z_$][\w$.]*\s*\([^()]*\)\s*;?\s*$")
    for line in lines:
        if call_like.search(line) and "//" not in line:
            output.append(f"{line} // review: may be affected by the fix")
        else:
            output.append(line)
    return "\n".join(output)
