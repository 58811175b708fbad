# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Score aggregation: brand + title + seller → total score → verdict → action.

The verdict is a step function of the total score only. Boundaries live in
``VerdictThresholds`` (lower bound inclusive for the next tier) and the
verdict → action mapping in ``VERDICT_ACTIONS``; both can be replaced by the
caller.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Protocol

from . import Action, AggregateResult, ListingInfo, SignalResult, Verdict
from .brand_checker import check_brand
from .config import TrustConfig
from .title_checker import check_title

SCORE_DOMESTIC_SELLER = -20
SCORE_OVERSEAS_SELLER = 30

REASON_DOMESTIC_SELLER = "domestic seller"
REASON_OVERSEAS_SELLER = "overseas seller: {label}"


@dataclass(frozen=True, slots=True)
class VerdictThresholds:
    """Upper bounds (exclusive) of the trusted / safe / warning tiers."""

    trusted: int = 0
    safe: int = 30
    warning: int = 50

    def __post_init__(self) -> None:
        if not self.trusted <= self.safe <= self.warning:
            raise ValueError(f"verdict thresholds must be non-decreasing: {self}")


DEFAULT_VERDICT_THRESHOLDS = VerdictThresholds()

VERDICT_ACTIONS: Mapping[Verdict, Action] = {
    Verdict.TRUSTED: Action.SHOW_BADGE,
    Verdict.SAFE: Action.SHOW,
    Verdict.WARNING: Action.SHOW_WARNING,
    Verdict.DANGER: Action.HIDE,
}

VERDICT_LABELS: Mapping[Verdict, str] = {
    Verdict.TRUSTED: "Trusted",
    Verdict.SAFE: "Safe",
    Verdict.WARNING: "Caution",
    Verdict.DANGER: "Danger",
}

VERDICT_COLORS: Mapping[Verdict, str] = {
    Verdict.TRUSTED: "#28a745",
    Verdict.SAFE: "#6c757d",
    Verdict.WARNING: "#ffc107",
    Verdict.DANGER: "#dc3545",
}


class SellerLocale(Protocol):
    """Anything carrying a resolved seller locale (cache entry or resolver result)."""

    is_domestic: bool
    address_label: str


def seller_signal(seller: SellerLocale | None) -> SignalResult:
    """Domestic → -20, overseas → +30, unknown → 0.

    A resolver result carrying ``error`` counts as unknown even though its
    ``is_domestic`` is False.
    """
    if seller is None or getattr(seller, "error", None):
        return SignalResult()
    if seller.is_domestic is True:
        return SignalResult(score=SCORE_DOMESTIC_SELLER, reasons=(REASON_DOMESTIC_SELLER,))
    if seller.is_domestic is False:
        label = seller.address_label or "unknown"
        return SignalResult(score=SCORE_OVERSEAS_SELLER, reasons=(REASON_OVERSEAS_SELLER.format(label=label),))
    return SignalResult()


def determine_verdict(total_score: int, thresholds: VerdictThresholds = DEFAULT_VERDICT_THRESHOLDS) -> Verdict:
    if total_score < thresholds.trusted:
        return Verdict.TRUSTED
    if total_score < thresholds.safe:
        return Verdict.SAFE
    if total_score < thresholds.warning:
        return Verdict.WARNING
    return Verdict.DANGER


def calculate_score(
    listing: ListingInfo,
    config: TrustConfig,
    seller: SellerLocale | None = None,
    *,
    thresholds: VerdictThresholds = DEFAULT_VERDICT_THRESHOLDS,
    actions: Mapping[Verdict, Action] = VERDICT_ACTIONS,
) -> AggregateResult:
    """Score one listing against *config*, optionally with a pre-resolved seller."""
    brand = check_brand(listing.brand_name, config.trusted_brands, config.brand_patterns)
    title = check_title(listing.title, config.title_patterns)
    seller_result = seller_signal(seller)

    total = brand.score + title.score + seller_result.score
    verdict = determine_verdict(total, thresholds)
    return AggregateResult(
        total_score=total,
        brand_result=brand,
        title_result=title,
        seller_result=seller_result,
        verdict=verdict,
        action=actions[verdict],
    )


def all_reasons(*results: SignalResult | None) -> list[str]:
    """Concatenate reasons of the given signal results, skipping None."""
    out: list[str] = []
    for r in results:
        if r is not None:
            out.extend(r.reasons)
    return out
