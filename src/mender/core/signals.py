"""
Signal extraction from issue text.

Derives the textual clues (operator forms, identifiers, code excerpts, file
paths and error lines) that the locator later searches for in source files.
"""

import logging
import re

logger = logging.getLogger(__name__)

# (pattern tested against the issue text, normalized signal it contributes)
CONSTRUCT_CATALOGUE: list[tuple[re.Pattern[str], str]] = [
    # equality, assignment and logical operators
    (re.compile(r"==="), "==="),
    (re.compile(r"!=="), "!=="),
    (re.compile(r"(?<![=!<>])==(?!=)"), "=="),
    (re.compile(r"!=(?!=)"), "!="),
    (re.compile(r"&&"), "&&"),
    (re.compile(r"\|\|"), "||"),
    (re.compile(r"\?\?"), "??"),
    (re.compile(r"=>"), "=>"),
    # error-prone operator forms
    (re.compile(r"\(\?:"), "(?:"),
    (re.compile(r"(?<![\w$)\](])\?:"), "?:"),
    (re.compile(r"\?\."), "?."),
    (re.compile(r"\+\+"), "++"),
    (re.compile(r"(?<!-)--(?!-)"), "--"),
    (re.compile(r"\bif\s*\([^)]*[^=!<>]=[^=][^)]*\)"), "if ("),
    # control-flow keywords
    (re.compile(r"\bif\b"), "if"),
    (re.compile(r"\belse\b"), "else"),
    (re.compile(r"\bfor\b"), "for"),
    (re.compile(r"\bwhile\b"), "while"),
    (re.compile(r"\bswitch\b"), "switch"),
    (re.compile(r"\breturn\b"), "return"),
    (re.compile(r"\btry\b"), "try"),
    (re.compile(r"\bcatch\b"), "catch"),
    (re.compile(r"\bthrow\b"), "throw"),
    (re.compile(r"\basync\b"), "async"),
    (re.compile(r"\bawait\b"), "await"),
    # import and require forms
    (re.compile(r"\bimport\s+[\w{},*\s]+\s+from\b"), "import"),
    (re.compile(r"\brequire\s*\("), "require("),
]

# a ? b  without the ": c" part
INCOMPLETE_CONDITIONAL = re.compile(r"[\w)\]'\"][ \t]*\?(?![?.:])[^?:;\n'\"]*(?:;|$)", re.MULTILINE)
# a ? b : c
COMPLETE_CONDITIONAL = re.compile(r"[\w)\]'\"][ \t]*\?(?![?.:])[^?:;\n]*:")
# '(?:' groups and bare '?:' forms, but not 'name?: type' annotations
BARE_OPERATOR_FORM = re.compile(r"(?<![\w$)\]])\?:")

# Operator signals too short to search literally are located by shape instead.
# Patterns are tried in order; the first one found anchors the match.
OPERATOR_SEARCH_PATTERNS: dict[str, tuple[re.Pattern[str], ...]] = {
    "?:": (INCOMPLETE_CONDITIONAL, COMPLETE_CONDITIONAL, BARE_OPERATOR_FORM),
}

IDENTIFIER_PATTERN = re.compile(r"[A-Za-z_$][\w$]*(?:\.[A-Za-z_$][\w$]*)*")
FENCED_BLOCK_PATTERN = re.compile(r"```[^\n`]*\n?(.*?)```", re.DOTALL)
INLINE_CODE_PATTERN = re.compile(r"`([^`\n]+)`")

PATH_EXTENSIONS = [
    "js",
    "jsx",
    "ts",
    "tsx",
    "mjs",
    "cjs",
    "py",
    "java",
    "kt",
    "go",
    "rb",
    "rs",
    "php",
    "cs",
    "c",
    "h",
    "cpp",
    "hpp",
    "swift",
    "vue",
    "json",
    "yml",
    "yaml",
    "css",
    "scss",
    "html",
    "md",
]
PATH_PATTERN = re.compile(
    r"(?<![\w/.-])[\w./-]*[\w-]\.(?:" + "|".join(PATH_EXTENSIONS) + r")\b(?![\w/-])"
)

MIN_IDENTIFIER_LENGTH = 4

STOP_WORDS = frozenset(
    {
        "about",
        "after",
        "again",
        "also",
        "been",
        "before",
        "being",
        "but",
        "cannot",
        "could",
        "does",
        "doesn",
        "done",
        "each",
        "even",
        "every",
        "expected",
        "from",
        "have",
        "here",
        "into",
        "just",
        "like",
        "more",
        "most",
        "much",
        "only",
        "other",
        "please",
        "should",
        "some",
        "still",
        "than",
        "that",
        "their",
        "them",
        "then",
        "there",
        "these",
        "they",
        "this",
        "those",
        "using",
        "very",
        "want",
        "were",
        "what",
        "when",
        "where",
        "which",
        "while",
        "will",
        "with",
        "without",
        "would",
        "your",
    }
)


def extract_construct_signals(text: str) -> set[str]:
    """Return the normalized signal of every catalogue entry found in the text."""
    return {signal for pattern, signal in CONSTRUCT_CATALOGUE if pattern.search(text)}


def extract_identifiers(text: str) -> set[str]:
    """Return identifier-like tokens that are long enough and not common words."""
    identifiers = set()
    for token in IDENTIFIER_PATTERN.findall(text):
        if len(token) < MIN_IDENTIFIER_LENGTH:
            continue
        if token.lower() in STOP_WORDS:
            continue
        identifiers.add(token)
    return identifiers


def extract_code_blocks(text: str) -> set[str]:
    """Return fenced and inline code excerpts, trimmed."""
    blocks = {block.strip() for block in FENCED_BLOCK_PATTERN.findall(text)}
    remainder = FENCED_BLOCK_PATTERN.sub(" ", text)
    blocks.update(block.strip() for block in INLINE_CODE_PATTERN.findall(remainder))
    return {block for block in blocks if block}


def extract_file_paths(text: str) -> set[str]:
    return set(PATH_PATTERN.findall(text))


def extract_error_lines(text: str) -> set[str]:
    """Return every line mentioning an error or exception."""
    lines = set()
    for line in text.splitlines():
        lowered = line.lower()
        if "error" in lowered or "exception" in lowered:
            stripped = line.strip()
            if stripped:
                lines.add(stripped)
    return lines


def extract_signals(text: str | None) -> set[str]:
    """Extract the deduplicated signal set from issue text.

    Args:
        text: Issue title and body; empty or None yields an empty set

    Returns:
        Union of construct, identifier, code block, path and error-line signals
    """
    if not text or not text.strip():
        logger.debug("No issue text to extract signals from")
        return set()

    signals = extract_construct_signals(text)
    signals |= extract_identifiers(text)
    signals |= extract_code_blocks(text)
    signals |= extract_file_paths(text)
    signals |= extract_error_lines(text)

    logger.debug(f"Extracted {len(signals)} signals")
    return signals
