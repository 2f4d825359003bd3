"""Matching tiers for ``str_replace``.

Each strategy looks at the request and the shared ``FileState`` and either
returns a ``MatchResult`` holding the new file content or ``None`` so the
next tier can try. The engine runs them in this order:

    ExactStrategy -> WhitespaceNormalizedStrategy -> ContiguousRunStrategy
    -> FuzzyLineStrategy

The last two share a ``LinePattern`` built once per call by
``prepare_line_pattern``; building it is also where an ambiguous single-line
request is rejected.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from enum import Enum, auto
from typing import List, Optional, Tuple

from rapidfuzz.distance import Levenshtein

from .models import (
    AmbiguousMatchError,
    DivergenceReport,
    EditRequest,
    FileState,
    LinePattern,
    MatchResult,
    MatchWindow,
    SpliceStrategy,
)
from .normalize import (
    normalize_whitespace_runs,
    strip_all_whitespace,
    strip_backslash_newline,
    strip_leading_line_numbers,
    strip_varying_chars,
)

logger = logging.getLogger(__name__)

HINT_SLACK = 5  # start_line is treated as up to this many lines late
HINT_WINDOW = 50  # lines after the hinted start that may begin a match
SINGLE_LINE_HINT_WINDOW = 5
WHITESPACE_WINDOW_SLACK = 5
MAX_EDIT_PERCENT = 5  # Levenshtein distance, as % of the file line's length
TRUNCATION_MIN_LINES = 30
TRUNCATION_MAX_REMAINING_PERCENT = 1


class MatchStrategy(ABC):
    name: str = "base"

    @abstractmethod
    def try_match(self, request: EditRequest, state: FileState) -> Optional[MatchResult]:
        """Return the edited content, or ``None`` to fall through to the next tier."""


# ---------------------------------------------------------------------------
# Exact
# ---------------------------------------------------------------------------


class ExactStrategy(MatchStrategy):
    """Literal substring replacement of every occurrence."""

    name = "exact"

    def try_match(self, request: EditRequest, state: FileState) -> Optional[MatchResult]:
        old = request.old_text
        if not old:
            return None
        first = state.content.find(old)
        if first == -1:
            return None
        occurrences = state.content.count(old)
        anchor = state.content.count("\n", 0, first)
        return MatchResult(
            tier=self.name,
            content=state.content.replace(old, request.new_text),
            anchor_line=anchor,
            inserted_line_count=len(request.new_text.split("\n")),
            replacements=occurrences,
        )


# ---------------------------------------------------------------------------
# Whitespace-normalized
# ---------------------------------------------------------------------------


class WhitespaceNormalizedStrategy(MatchStrategy):
    """Match ignoring how whitespace is laid out, splice whole lines."""

    name = "whitespace-normalized"

    def try_match(self, request: EditRequest, state: FileState) -> Optional[MatchResult]:
        target = normalize_whitespace_runs(request.old_text)
        if not target or target not in normalize_whitespace_runs(state.content):
            return None

        span = self._locate(state.lines, target, len(request.old_text.split("\n")))
        if span is None:
            # Contained only across a partial line; leave it to the line tiers
            return None
        start, end = span
        lines = state.lines[:start] + [request.new_text] + state.lines[end + 1:]
        return MatchResult(
            tier=self.name,
            content="\n".join(lines),
            anchor_line=start,
            inserted_line_count=len(request.new_text.split("\n")),
            window=MatchWindow(start, end, SpliceStrategy.REPLACE_LINES),
        )

    @staticmethod
    def _locate(lines: List[str], target: str, old_line_count: int) -> Optional[Tuple[int, int]]:
        max_window = old_line_count + WHITESPACE_WINDOW_SLACK
        last = len(lines) - 1
        for i in range(len(lines)):
            # Leading blank lines vanish from the key
            if not lines[i].strip():
                continue
            for j in range(i, min(i + max_window, last) + 1):
                candidate = normalize_whitespace_runs("\n".join(lines[i:j + 1]))
                if candidate == target:
                    return i, j
                # Adding lines never shortens the key
                if len(candidate) > len(target):
                    break
        return None


# ---------------------------------------------------------------------------
# Shared preparation for the line tiers
# ---------------------------------------------------------------------------


def prepare_line_pattern(request: EditRequest, state: FileState) -> LinePattern:
    """Build (once per call) the line-oriented view of ``old_str``/``new_str``.

    Raises:
        AmbiguousMatchError: single-line pattern, no ``start_line``, and more
            than one file line with the same whitespace-free key.
    """
    if state.pattern is not None:
        return state.pattern

    old_text = strip_backslash_newline(strip_leading_line_numbers(request.old_text))
    new_text = strip_backslash_newline(strip_leading_line_numbers(request.new_text))

    split = old_text.split("\n")
    last = len(split) - 1
    # Blank first/last lines are framing; blank middle lines are content
    old_lines_original = [
        line
        for i, line in enumerate(split)
        if not ((i == 0 or i == last) and strip_all_whitespace(line) == "")
    ]
    old_lines = [strip_all_whitespace(line) for line in old_lines_original]

    hint = request.start_line_hint
    pattern = LinePattern(
        old_text=old_text,
        new_text=new_text,
        old_lines_original=old_lines_original,
        old_lines=old_lines,
        hint=hint,
        search_start=max(0, hint - HINT_SLACK) if hint is not None else None,
    )

    if pattern.is_single_line and hint is None:
        numbers = [line.number for line in state.normalized_lines if line.key == old_lines[0]]
        if len(numbers) > 1:
            raise AmbiguousMatchError(old_lines[0], numbers)

    state.pattern = pattern
    return pattern


def _splice(state: FileState, pattern: LinePattern, window: MatchWindow) -> List[str]:
    lines = state.lines
    start, end = window.start_line, window.end_line
    if window.strategy is SpliceStrategy.DELETE_LINE:
        return lines[:start] + lines[start + 1:]
    if window.strategy is SpliceStrategy.REPLACE_IN_LINE:
        first, *rest = pattern.new_lines or [""]
        return lines[:start] + [_replace_in_line(lines[start], pattern, first)] + rest + lines[start + 1:]
    return lines[:start] + pattern.new_lines + lines[end + 1:]


def _replace_in_line(line: str, pattern: LinePattern, replacement: str) -> str:
    target = pattern.old_lines_original[0]
    if target in line:
        return line.replace(target, replacement, 1)
    stripped = target.strip()
    if stripped and stripped in line:
        return line.replace(stripped, replacement, 1)
    # Equal only once whitespace is ignored: find the span the key covers
    key = strip_all_whitespace(target)
    match = re.search(r"\s*".join(re.escape(char) for char in key), line) if key else None
    if match is None:
        return line
    return line[:match.start()] + replacement + line[match.end():]


def _line_result(tier: str, state: FileState, pattern: LinePattern, window: MatchWindow) -> MatchResult:
    return MatchResult(
        tier=tier,
        content="\n".join(_splice(state, pattern, window)),
        anchor_line=window.start_line,
        inserted_line_count=len(pattern.new_text.split("\n")),
        window=window,
    )


# ---------------------------------------------------------------------------
# Contiguous run
# ---------------------------------------------------------------------------


class _RunState(Enum):
    SEEKING = auto()
    CONSUMING = auto()


class ContiguousRunStrategy(MatchStrategy):
    """Consume ``old_str`` as one character buffer, one file line at a time.

    Keys come from ``strip_varying_chars`` so quoting and layout differences
    disappear. A file line must be a prefix of what is left of the buffer;
    the one allowed difference is a trailing comma in the file right before
    a ``)`` in the buffer.
    """

    name = "contiguous-run"

    def try_match(self, request: EditRequest, state: FileState) -> Optional[MatchResult]:
        pattern = prepare_line_pattern(request, state)
        span = self.find_run(pattern, state.lines)
        if span is None:
            return None
        window = MatchWindow(span[0], span[1], SpliceStrategy.REPLACE_LINES)
        return _line_result(self.name, state, pattern, window)

    def find_run(self, pattern: LinePattern, lines: List[str]) -> Optional[Tuple[int, int]]:
        buffer = strip_varying_chars(pattern.old_text)
        if not buffer:
            return None
        search_start = pattern.search_start

        run_state = _RunState.SEEKING
        position = 0
        start: Optional[int] = None
        for index, line in enumerate(lines):
            if search_start is not None:
                if index < search_start:
                    continue
                if run_state is _RunState.SEEKING and index + 1 > search_start + HINT_WINDOW:
                    break
            key = strip_varying_chars(line)
            if run_state is _RunState.SEEKING and not key:
                continue

            consumed = self.consume(buffer, position, key)
            if consumed is None:
                if run_state is _RunState.CONSUMING:
                    run_state, position, start = _RunState.SEEKING, 0, None
                continue

            if run_state is _RunState.SEEKING:
                run_state, start = _RunState.CONSUMING, index
            position += consumed
            if position == len(buffer):
                return start, index
        return None

    @staticmethod
    def consume(buffer: str, position: int, key: str) -> Optional[int]:
        """Number of buffer characters ``key`` accounts for at ``position``, or ``None``."""
        if buffer.startswith(key, position):
            return len(key)
        # File "f(a, b,)" against old_str "f(a, b)"
        if (
            key.endswith(",")
            and buffer.startswith(key[:-1], position)
            and buffer.startswith(")", position + len(key) - 1)
        ):
            return len(key) - 1
        return None


# ---------------------------------------------------------------------------
# Fuzzy line
# ---------------------------------------------------------------------------


def lines_match(expected: str, actual: str) -> bool:
    """Equal, or within ``MAX_EDIT_PERCENT`` edit distance of ``actual``'s length."""
    if expected == actual:
        return True
    if not actual:
        return False
    cutoff = (MAX_EDIT_PERCENT * len(actual)) // 100 + 1
    distance = Levenshtein.distance(expected, actual, score_cutoff=cutoff)
    return distance * 100 < MAX_EDIT_PERCENT * len(actual)


class FuzzyLineStrategy(MatchStrategy):
    """Anchor on the first pattern line, then walk the rest line by line."""

    name = "fuzzy-line"

    def try_match(self, request: EditRequest, state: FileState) -> Optional[MatchResult]:
        pattern = prepare_line_pattern(request, state)
        window = self.find_window(pattern, state)
        if window is None:
            return None
        return _line_result(self.name, state, pattern, window)

    def find_window(self, pattern: LinePattern, state: FileState) -> Optional[MatchWindow]:
        old_lines = pattern.old_lines
        single = pattern.is_single_line
        search_start = pattern.search_start
        in_line_start: Optional[int] = None

        if old_lines:
            for index, line in enumerate(state.normalized_lines):
                if not line.key:
                    continue
                if search_start is not None:
                    if index < search_start:
                        continue
                    if index > search_start + HINT_WINDOW:
                        break
                    if single and index > search_start + SINGLE_LINE_HINT_WINDOW:
                        break

                if single and old_lines[0] in line.key:
                    in_line_start = index
                    continue

                if not lines_match(old_lines[0], line.key):
                    continue
                if self.walk(pattern, state, index):
                    return MatchWindow(index, index + len(old_lines) - 1, SpliceStrategy.REPLACE_LINES)

        if in_line_start is not None:
            return MatchWindow(in_line_start, in_line_start, SpliceStrategy.REPLACE_IN_LINE)

        hint = pattern.hint
        if (
            (single or pattern.old_text == "\n")
            and pattern.new_text == ""
            and hint is not None
            and 1 <= hint <= len(state.lines)
        ):
            return MatchWindow(hint - 1, hint - 1, SpliceStrategy.DELETE_LINE)
        return None

    def walk(self, pattern: LinePattern, state: FileState, anchor: int) -> bool:
        """True if every pattern line matches from ``anchor``; else record the divergence."""
        old_lines = pattern.old_lines
        total = len(old_lines)
        normalized = state.normalized_lines
        matching = 0
        for match_index, old_line in enumerate(old_lines):
            file_index = anchor + match_index
            remaining = total - matching
            # Very long blocks may have a noisy tail
            few_left = (
                total >= TRUNCATION_MIN_LINES
                and remaining * 100 < TRUNCATION_MAX_REMAINING_PERCENT * total
            )
            in_file = file_index < len(normalized)
            if (in_file and lines_match(old_line, normalized[file_index].key)) or few_left:
                matching += 1
                continue

            state.record_divergence(
                DivergenceReport(
                    matching_line_count=matching,
                    expected_line=pattern.old_lines_original[match_index],
                    expected_position=match_index + 1,
                    actual_line=state.lines[file_index] if in_file else "",
                    actual_line_number=file_index + 1,
                    matched_lines=pattern.old_lines_original[:match_index],
                    remaining_expected=state.lines[file_index:file_index + remaining],
                )
            )
            return False
        return True
