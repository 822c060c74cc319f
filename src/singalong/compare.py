from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .config import ComparatorConfig


class MatchTier(Enum):
    WAITING = "waiting"
    WAITING_FOR_SINGER = "waiting for singer"
    WAITING_FOR_REFERENCE = "waiting for reference"
    PERFECT = "perfect"
    CLOSE = "close"
    NO_MATCH = "no match"


class Hint(Enum):
    NONE = ""
    RAISE = "raise"
    LOWER = "lower"


@dataclass
class MatchResult:
    tier: MatchTier
    percent: Optional[float] = None
    cents: Optional[float] = None
    hint: Hint = Hint.NONE

    @property
    def semitones(self) -> Optional[float]:
        if self.cents is None:
            return None
        return abs(self.cents) / 100.0


def cents_between(hz: float, reference_hz: float) -> float:
    return 1200.0 * math.log2(hz / reference_hz)


def compare(
    singer_hz: Optional[float],
    reference_hz: Optional[float],
    config: Optional[ComparatorConfig] = None,
) -> MatchResult:
    config = config or ComparatorConfig()
    has_singer = singer_hz is not None and singer_hz > 0
    has_reference = reference_hz is not None and reference_hz > 0
    if not has_singer and not has_reference:
        return MatchResult(MatchTier.WAITING)
    if not has_singer:
        return MatchResult(MatchTier.WAITING_FOR_SINGER)
    if not has_reference:
        return MatchResult(MatchTier.WAITING_FOR_REFERENCE)

    cents = cents_between(singer_hz, reference_hz)
    error = abs(cents)
    percent = max(0.0, 1.0 - error / config.tolerance_cents) * 100.0

    if error < config.perfect_cents:
        return MatchResult(MatchTier.PERFECT, percent, cents)

    # Positive cents means the singer is sharp.
    hint = Hint.LOWER if cents > 0 else Hint.RAISE
    tier = MatchTier.CLOSE if error < config.close_cents else MatchTier.NO_MATCH
    return MatchResult(tier, percent, cents, hint)
