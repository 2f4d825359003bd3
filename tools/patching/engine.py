from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from . import messages
from .models import AmbiguousMatchError, EditRequest, FileState, MatchResult
from .strategies import (
    ContiguousRunStrategy,
    ExactStrategy,
    FuzzyLineStrategy,
    MatchStrategy,
    WhitespaceNormalizedStrategy,
)

logger = logging.getLogger(__name__)


def default_strategies() -> Sequence[MatchStrategy]:
    return (
        ExactStrategy(),
        WhitespaceNormalizedStrategy(),
        ContiguousRunStrategy(),
        FuzzyLineStrategy(),
    )


@dataclass(frozen=True)
class PatchOutcome:
    message: str
    content: Optional[str] = None  # None: leave the file alone
    result: Optional[MatchResult] = None

    @property
    def changed(self) -> bool:
        return self.content is not None


class PatchEngine:
    """Run the matching tiers in order; the first one that matches wins.

    ``apply`` never raises for matching problems. Ambiguity and "nothing
    matched" come back as a ``PatchOutcome`` whose message explains why and
    whose ``content`` is ``None``.
    """

    def __init__(self, strategies: Optional[Iterable[MatchStrategy]] = None):
        self.strategies = tuple(strategies) if strategies is not None else tuple(default_strategies())

    def apply(self, request: EditRequest, content: str) -> PatchOutcome:
        if request.is_noop:
            return PatchOutcome(messages.same_string())

        state = FileState(content)
        try:
            for strategy in self.strategies:
                result = strategy.try_match(request, state)
                if result is None:
                    continue
                logger.debug(
                    f"{request.path}: matched by {result.tier} tier "
                    f"(window={result.window}, replacements={result.replacements})"
                )
                return PatchOutcome(
                    message=messages.edited(
                        request.path, result.content, result.anchor_line, result.inserted_line_count
                    ),
                    content=result.content,
                    result=result,
                )
        except AmbiguousMatchError as exc:
            logger.debug(f"{request.path}: ambiguous single-line match on lines {exc.line_numbers}")
            return PatchOutcome(messages.ambiguous(exc.key, exc.line_numbers))

        logger.debug(f"{request.path}: no tier matched")
        return PatchOutcome(messages.no_match(request.path, state.best_divergence))
