"""Comparison keys for the matching tiers.

Every function here is pure. The keys are only ever compared with each
other; the file content that gets written is never built from them.
"""

import re

_WHITESPACE_RUN = re.compile(r"\s+")

# "    12\t" (cat -n) or "12→" (numbered view) at the start of a line
_LINE_NUMBER_PREFIX = re.compile(r"^[^\S\n]*\d+(?:\t|→)")

_QUOTES = ("'", '"', "`")

# Literal two-character escape markers an LLM may emit instead of real breaks
_ESCAPED_BREAKS = ("\\n", "\\r")

# Artifact left when a model escapes the first newline of a block
BACKSLASH_NEWLINE = "\\\n"


def strip_all_whitespace(s: str) -> str:
    """Remove every whitespace character from ``s``.

    Tabs, space runs, per-line padding and CRLF/LF breaks all disappear, so
    ``"\\tfoo( a, b )"`` and ``"foo(a,b)"`` share the same key.
    """
    return _WHITESPACE_RUN.sub("", s)


def normalize_whitespace_runs(s: str) -> str:
    """Collapse each whitespace run to one space and trim both ends."""
    return _WHITESPACE_RUN.sub(" ", s).strip()


def strip_varying_chars(s: str) -> str:
    """Key for the contiguous-run tier: no whitespace, no quotes, no escaped breaks."""
    key = strip_all_whitespace(s)
    for marker in _ESCAPED_BREAKS:
        key = key.replace(marker, "")
    for quote in _QUOTES:
        key = key.replace(quote, "")
    return key


def strip_leading_line_numbers(s: str) -> str:
    """Undo ``cat -n`` style prefixes echoed back from an earlier view."""
    return "\n".join(_LINE_NUMBER_PREFIX.sub("", line, count=1) for line in s.split("\n"))


def strip_backslash_newline(s: str) -> str:
    if s.startswith(BACKSLASH_NEWLINE):
        return s[len(BACKSLASH_NEWLINE):]
    return s
