"""Data carried through a single ``str_replace`` call.

Nothing here outlives the call: the engine builds a ``FileState`` from the
file content, the strategies fill it in, and the only durable artifact is
the rewritten text in ``MatchResult.content``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from .normalize import strip_all_whitespace


class SpliceStrategy(str, Enum):
    REPLACE_LINES = "replace-lines"
    REPLACE_IN_LINE = "replace-in-line"
    DELETE_LINE = "delete-line"


@dataclass(frozen=True)
class EditRequest:
    path: str
    old_text: str
    new_text: str
    start_line_hint: Optional[int] = None  # 1-based, approximate

    @property
    def is_noop(self) -> bool:
        return self.old_text == self.new_text


@dataclass(frozen=True)
class NormalizedLine:
    original: str
    key: str
    number: int  # 1-based


@dataclass(frozen=True)
class MatchWindow:
    """Located region, as 0-based inclusive indices into the file's lines."""

    start_line: int
    end_line: int
    strategy: SpliceStrategy


@dataclass(frozen=True)
class DivergenceReport:
    matching_line_count: int
    expected_line: str
    expected_position: int  # 1-based line within old_str
    actual_line: str
    actual_line_number: int  # 1-based line within the file
    matched_lines: List[str] = field(default_factory=list)
    remaining_expected: List[str] = field(default_factory=list)

    @property
    def unchecked_line_count(self) -> int:
        return max(0, len(self.remaining_expected) - 1)


@dataclass(frozen=True)
class LinePattern:
    """``old_str``/``new_str`` prepared for the line-oriented tiers."""

    old_text: str
    new_text: str
    old_lines_original: List[str]
    old_lines: List[str]
    hint: Optional[int] = None
    search_start: Optional[int] = None  # 0-based first index considered

    @property
    def is_single_line(self) -> bool:
        return len(self.old_lines) == 1

    @property
    def new_lines(self) -> List[str]:
        return self.new_text.split("\n") if self.new_text else []


@dataclass(frozen=True)
class MatchResult:
    tier: str
    content: str
    anchor_line: int  # 0-based line where the replacement starts in ``content``
    inserted_line_count: int
    window: Optional[MatchWindow] = None
    replacements: int = 1


class AmbiguousMatchError(Exception):
    """A single-line pattern matched several lines and no hint was given."""

    def __init__(self, key: str, line_numbers: List[int]):
        self.key = key
        self.line_numbers = line_numbers
        super().__init__(f"{key!r} matches lines {line_numbers}")


class FileState:
    """File content plus the lazily built structures the tiers share."""

    def __init__(self, content: str):
        self.content = content
        self.lines: List[str] = content.split("\n")
        self.pattern: Optional[LinePattern] = None
        self.best_divergence: Optional[DivergenceReport] = None
        self._normalized: Optional[List[NormalizedLine]] = None

    @property
    def normalized_lines(self) -> List[NormalizedLine]:
        if self._normalized is None:
            self._normalized = [
                NormalizedLine(original=line, key=strip_all_whitespace(line), number=i + 1)
                for i, line in enumerate(self.lines)
            ]
        return self._normalized

    def record_divergence(self, report: DivergenceReport) -> None:
        # Highest matching count wins; ties keep the first report
        if (
            self.best_divergence is None
            or report.matching_line_count > self.best_divergence.matching_line_count
        ):
            self.best_divergence = report
