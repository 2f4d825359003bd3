"""User-facing strings returned by the editor.

Callers tell outcomes apart by prefix (``has been edited``, ``Invalid``,
``No replacement was performed``), so these texts are part of the contract.
"""

from typing import Iterable, List, Optional

from utils.file_ops import SNIPPET_LINES, make_output

from .models import DivergenceReport

EDITED_MARKER = "has been edited"
REVIEW_REMINDER = (
    "Review the changes and make sure they are as expected. Edit the file again if necessary."
)
INSERT_REVIEW_REMINDER = (
    "Review the changes and make sure they are as expected (correct indentation, "
    "no duplicate lines, etc). Edit the file again if necessary."
)
NO_REPLACEMENT = "No replacement was performed"
SAME_STRING = "Received the same string for old_str and new_str"

FAILURE_PREFIXES = (
    "Invalid",
    NO_REPLACEMENT,
    SAME_STRING,
    "Single line search string",
)


def is_failure(message: str) -> bool:
    return message.startswith(FAILURE_PREFIXES)


def snippet_window(line_count: int, anchor: int, inserted: int) -> tuple:
    """Return ``(first, last)`` slice bounds around an edit at ``anchor``."""
    first = max(0, anchor - SNIPPET_LINES)
    last = min(line_count, anchor + max(inserted, 1) + SNIPPET_LINES)
    return first, last


def edited(path: str, content: str, anchor: int, inserted: int) -> str:
    lines = content.split("\n")
    first, last = snippet_window(len(lines), anchor, inserted)
    snippet = "\n".join(lines[first:last])
    return (
        f"The file {path} {EDITED_MARKER}. "
        + make_output(snippet, f"a snippet of {path}", first + 1)
        + REVIEW_REMINDER
    )


def inserted(path: str, snippet_lines: List[str], first_line: int) -> str:
    return (
        f"The file {path} {EDITED_MARKER}. "
        + make_output("\n".join(snippet_lines), "a snippet of the edited file", first_line)
        + INSERT_REVIEW_REMINDER
    )


def created(path: str) -> str:
    return f"File created successfully at: {path}"


def same_string() -> str:
    return SAME_STRING


def empty_old_str() -> str:
    return "Invalid `old_str`: it must contain the text to replace."


def ambiguous(key: str, line_numbers: Iterable[int]) -> str:
    numbers = list(line_numbers)
    return (
        f'Single line search string "{key}" has too many matches. This will result in '
        f"inaccurate replacements. Found {len(numbers)} matches. Pass start_line to choose one. "
        f"Found on lines {', '.join(str(n) for n in numbers)}"
    )


def divergence(report: DivergenceReport) -> str:
    return (
        f"old_str matching diverged after {report.matching_line_count} matching lines.\n"
        f"Expected line from old_str: `{report.expected_line}` (line {report.expected_position} in old_str), "
        f"found line: `{report.actual_line}` (line {report.actual_line_number} in file). "
        f"{report.unchecked_line_count} lines remained to compare but they were not checked "
        "due to this line not matching.\n\n"
        "Here are the lines that did match up until the old_str diverged:\n\n"
        + "\n".join(report.matched_lines)
        + "\n\nHere are the remaining lines you would've had to provide for the old_str to match:\n\n"
        + "\n".join(report.remaining_expected)
    )


def no_match(path: str, report: Optional[DivergenceReport] = None) -> str:
    message = f"{NO_REPLACEMENT}. No sufficiently close match for old_str found in {path}.\n"
    if report is not None:
        message += divergence(report) + "\n\n"
    return message + "Try adjusting your input or the file content."


def invalid_view_start(view_range, start: int, line_count: int) -> str:
    return (
        f"Invalid `view_range`: {list(view_range)}. Its first element `{start}` should be "
        f"within the range of lines of the file: [1, {line_count}]"
    )


def invalid_view_end(view_range, start: int, end: int) -> str:
    return (
        f"Invalid `view_range`: {list(view_range)}. Its second element `{end}` should be "
        f"larger or equal than its first `{start}`"
    )


def invalid_insert_line(insert_line: int, line_count: int) -> str:
    return (
        f"Invalid `insert_line` parameter: {insert_line}. It should be within the range "
        f"of lines of the file: [0, {line_count}]"
    )
