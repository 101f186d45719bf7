"""FLEx engagement score weights and tier thresholds.

Weights and breakpoints MUST match the deal dashboard badges:
  hot >= 50, warm >= 15, cold >= 1, otherwise none.
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum
from typing import Any

# Subtype -> weight. Anything not listed scores 0.
SCORE_WEIGHTS: dict[str, int] = {
    "flex_term_sheet_requested": 100,
    "flex_nda_requested": 50,
    "flex_info_requested": 30,
    "flex_deal_saved": 15,
    "flex_file_downloaded": 10,
    "flex_deal_shared": 8,
    "flex_deal_viewed": 1,
}

KNOWN_SUBTYPES = frozenset(SCORE_WEIGHTS)


class Tier(str, Enum):
    """Engagement tier, ordered none < cold < warm < hot."""

    NONE = "none"
    COLD = "cold"
    WARM = "warm"
    HOT = "hot"

    @property
    def rank(self) -> int:
        return _TIER_RANK[self]


_TIER_RANK = {Tier.NONE: 0, Tier.COLD: 1, Tier.WARM: 2, Tier.HOT: 3}

# Highest first; the first threshold the score reaches wins.
TIER_THRESHOLDS: list[tuple[int, Tier]] = [
    (50, Tier.HOT),
    (15, Tier.WARM),
    (1, Tier.COLD),
]


def subtype_weight(subtype: str | None) -> int:
    """Weight of a single event subtype (0 when unknown)."""
    if not subtype:
        return 0
    return SCORE_WEIGHTS.get(subtype, 0)


def _subtype_of(event: Any) -> str | None:
    if isinstance(event, str):
        return event
    if isinstance(event, dict):
        return event.get("subtype") or event.get("activity_type")
    return getattr(event, "subtype", None)


def calculate_score(events: Iterable[Any]) -> int:
    """Sum the weights of every event. Order does not matter.

    Accepts subtype strings, dicts with ``subtype``/``activity_type`` keys,
    or objects with a ``subtype`` attribute.
    """
    return sum(subtype_weight(_subtype_of(event)) for event in events)


def classify_tier(score: int) -> Tier:
    """Map a score to its tier. Zero and negative scores are ``none``."""
    for threshold, tier in TIER_THRESHOLDS:
        if score >= threshold:
            return tier
    return Tier.NONE
