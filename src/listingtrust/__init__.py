# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Listing Trust: heuristic trust scoring for e-commerce search results.

Classifies each search-result listing from three sparse signals:
- brand: the brand name (random consonant runs, "JP" suffixes, no-brand, ...)
- title: the listing title (hype keywords, excessive length, bracket spam)
- seller: whether the seller resolves to a domestic address

and renders the verdict onto the listing element (hidden / warned / trusted).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class Verdict(StrEnum):
    """Coarse classification derived from the total score."""

    TRUSTED = "trusted"
    SAFE = "safe"
    WARNING = "warning"
    DANGER = "danger"


class Action(StrEnum):
    """Presentation action attached to a verdict."""

    SHOW_BADGE = "show_badge"
    SHOW = "show"
    SHOW_WARNING = "show_warning"
    HIDE = "hide"


class FilterOutcome(StrEnum):
    """Per-listing tag applied by one pipeline pass."""

    HIDDEN = "hidden"
    WARNED = "warned"
    TRUSTED = "trusted"
    NONE = "none"


@dataclass(frozen=True, slots=True)
class ListingInfo:
    """Read-only snapshot of one listing, taken at classification time."""

    brand_name: str = ""
    title: str = ""
    identifier: str = ""  # ASIN on the reference marketplace
    price_text: str = ""
    url: str = ""


@dataclass(frozen=True, slots=True)
class SignalResult:
    """Contribution of one signal. Negative scores are trust bonuses."""

    score: int = 0
    reasons: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class AggregateResult:
    """Sum of the brand, title and seller signals plus the derived verdict."""

    total_score: int
    brand_result: SignalResult
    title_result: SignalResult
    seller_result: SignalResult
    verdict: Verdict
    action: Action

    @property
    def reasons(self) -> list[str]:
        return [*self.brand_result.reasons, *self.title_result.reasons, *self.seller_result.reasons]


@dataclass
class PageStats:
    """Counters accumulated over one full pass."""

    total: int = 0
    hidden: int = 0
    warned: int = 0
    trusted: int = 0

    def record(self, outcome: FilterOutcome) -> None:
        self.total += 1
        if outcome is FilterOutcome.HIDDEN:
            self.hidden += 1
        elif outcome is FilterOutcome.WARNED:
            self.warned += 1
        elif outcome is FilterOutcome.TRUSTED:
            self.trusted += 1

    @property
    def unmarked(self) -> int:
        return self.total - self.hidden - self.warned - self.trusted

    def to_dict(self) -> dict[str, int]:
        return {"total": self.total, "hidden": self.hidden, "warned": self.warned, "trusted": self.trusted}
