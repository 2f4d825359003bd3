"""Fuzzy line-oriented patching for ``str_replace``."""

from .engine import PatchEngine, PatchOutcome, default_strategies
from .models import (
    AmbiguousMatchError,
    DivergenceReport,
    EditRequest,
    FileState,
    MatchResult,
    MatchWindow,
    NormalizedLine,
    SpliceStrategy,
)
from .strategies import (
    ContiguousRunStrategy,
    ExactStrategy,
    FuzzyLineStrategy,
    MatchStrategy,
    WhitespaceNormalizedStrategy,
)

__all__ = [
    "AmbiguousMatchError",
    "ContiguousRunStrategy",
    "DivergenceReport",
    "EditRequest",
    "ExactStrategy",
    "FileState",
    "FuzzyLineStrategy",
    "MatchResult",
    "MatchStrategy",
    "MatchWindow",
    "NormalizedLine",
    "PatchEngine",
    "PatchOutcome",
    "SpliceStrategy",
    "WhitespaceNormalizedStrategy",
    "default_strategies",
]
