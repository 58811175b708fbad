# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Filter pipeline: classify every listing on a page and mark it up.

Per listing:  extract → score → exactly one outcome, in priority order

  (a) verdict trusted            → trusted  (all warning/hidden state cleared)
  (b) score >= level.hide        → hidden   (score kept for diagnostics)
  (c) score >= level.warn        → warned   (badge + dimmed)
  (d) score >  NOTICE_FLOOR      → warned   (badge only)
  (e) otherwise                  → none     (all markings cleared)

State lives on the listing element itself (classes + ``data-lt-*``
attributes) so the display-mode controller can toggle visibility later
without re-scoring. Level 0 disables the filter: listings are left unmarked,
and markings from an earlier pass are removed.

Seller context comes only from the seller cache; a full pass never fetches.
"""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass

import lxml.html
from lxml import etree

from . import Action, AggregateResult, FilterOutcome, ListingInfo, PageStats, Verdict
from .brand_checker import (
    REASON_ARTISAN,
    REASON_CONSONANT_ONLY,
    REASON_GENERIC,
    REASON_JP_SUFFIX,
    REASON_TRUSTED,
    REASON_UPPERCASE_ONLY,
)
from .config import TrustConfig
from .extraction import extract_listing_info, find_listings
from .score_calculator import (
    DEFAULT_VERDICT_THRESHOLDS,
    VERDICT_ACTIONS,
    VerdictThresholds,
    calculate_score,
)
from .seller_cache import SellerLocaleCache
from .seller_checker import extract_seller_id, seller_link_from_listing

logger = logging.getLogger("listingtrust.product_filter")

# ---------------------------------------------------------------------------
# Filter levels
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class LevelThresholds:
    """Score at or above which a listing is warned / hidden."""

    warn: float
    hide: float


LEVEL_OFF = 0
LEVEL_LIGHT = 1
LEVEL_STANDARD = 2
LEVEL_STRICT = 3
LEVEL_MAXIMUM = 4
DEFAULT_FILTER_LEVEL = LEVEL_STANDARD

FILTER_LEVELS: Mapping[int, LevelThresholds] = {
    LEVEL_LIGHT: LevelThresholds(warn=30, hide=math.inf),  # warnings only
    LEVEL_STANDARD: LevelThresholds(warn=30, hide=50),
    LEVEL_STRICT: LevelThresholds(warn=20, hide=35),
    LEVEL_MAXIMUM: LevelThresholds(warn=10, hide=25),
}

# Badge-only notice above this score, whatever the level.
NOTICE_FLOOR = 20

MAX_BADGE_REASONS = 2

# ---------------------------------------------------------------------------
# DOM markers
# ---------------------------------------------------------------------------

CLASS_TRUSTED = "lt-trusted"
CLASS_HIDDEN = "lt-hidden"
CLASS_DIMMED = "lt-dimmed"
CLASS_TRUSTED_HIDDEN = "lt-trusted-hidden"
CLASS_ALL_VISIBLE = "lt-all-visible"
CLASS_BADGE = "lt-badge"

ATTR_OUTCOME = "data-lt-outcome"
ATTR_HIDDEN = "data-lt-hidden"
ATTR_SCORE = "data-lt-score"
ATTR_BADGE = "data-lt-badge"
ATTR_PROCESSED = "data-lt-processed"

_STATE_CLASSES = (CLASS_TRUSTED, CLASS_HIDDEN, CLASS_DIMMED, CLASS_TRUSTED_HIDDEN, CLASS_ALL_VISIBLE)
_STATE_ATTRS = (ATTR_OUTCOME, ATTR_HIDDEN, ATTR_SCORE, ATTR_BADGE)

STYLE_ID = "lt-styles"
STYLES = """
.lt-hidden, .lt-trusted-hidden { display: none !important; }
.lt-dimmed { opacity: 0.5; transition: opacity 0.2s; }
.lt-dimmed:hover { opacity: 1; }
.lt-badge { display: flex !important; align-items: center; gap: 6px; padding: 8px 14px;
  border-radius: 6px; font-size: 13px; font-weight: bold; margin: 8px 0; width: fit-content; }
.lt-badge-warning { background: #fff3cd; border: 3px solid #ffc107; color: #664d03; }
.lt-badge-reasons { font-weight: normal; font-size: 11px; margin-left: 6px; opacity: 0.9; }
"""

BADGE_WARNING = "warning"
_BADGE_ICON = "⚠"
_BADGE_TEXT = "Caution"

# ---------------------------------------------------------------------------
# Reason simplification
# ---------------------------------------------------------------------------

SIMPLIFIED_REASONS: Mapping[str, str] = {
    REASON_CONSONANT_ONLY: "suspicious brand name",
    REASON_UPPERCASE_ONLY: "suspicious brand name",
    REASON_JP_SUFFIX: "JP-suffix brand",
    REASON_GENERIC: "no brand",
    REASON_TRUSTED: "trusted brand",
    REASON_ARTISAN: "domestic brand",
    "hype wording": "hype wording",
    "multiple long 【】 blocks": "bracket stuffing",
    "overseas seller": "overseas seller",
    "domestic seller": "domestic seller",
}

_TITLE_LENGTH_RE = re.compile(r"title .*long.*\(\d+ chars\)")


def simplify_reason(reason: str) -> str:
    """Shorten a reason for the badge: exact, substring, title-length, truncate."""
    if reason in SIMPLIFIED_REASONS:
        return SIMPLIFIED_REASONS[reason]
    if reason:
        for key, short in SIMPLIFIED_REASONS.items():
            if key in reason or reason in key:
                return short
    if _TITLE_LENGTH_RE.search(reason):
        return "long title"
    return reason[:10] + "…" if len(reason) > 12 else reason


def badge_reasons(reasons: Iterable[str], limit: int = MAX_BADGE_REASONS) -> list[str]:
    """Up to *limit* simplified reasons, de-duplicated, in original order."""
    out: list[str] = []
    for r in reasons:
        short = simplify_reason(r)
        if short and short not in out:
            out.append(short)
        if len(out) >= limit:
            break
    return out


# ---------------------------------------------------------------------------
# Element helpers
# ---------------------------------------------------------------------------


def _has_class(name: str) -> str:
    return f"contains(concat(' ', normalize-space(@class), ' '), ' {name} ')"


def remove_badge(element: lxml.html.HtmlElement) -> None:
    for badge in element.xpath(f".//div[{_has_class(CLASS_BADGE)}]"):
        badge.drop_tree()
    element.attrib.pop(ATTR_BADGE, None)


def clear_markings(element: lxml.html.HtmlElement) -> None:
    """Remove every class, attribute and badge this module may have added."""
    remove_badge(element)
    for cls in _STATE_CLASSES:
        element.classes.discard(cls)
    for attr in _STATE_ATTRS:
        element.attrib.pop(attr, None)
    if not element.get("class"):
        element.attrib.pop("class", None)


def _has_markings(element: lxml.html.HtmlElement) -> bool:
    return any(element.get(a) is not None for a in _STATE_ATTRS) or any(c in element.classes for c in _STATE_CLASSES)


def _badge_anchor(element: lxml.html.HtmlElement) -> tuple[lxml.html.HtmlElement, str] | None:
    """Where to insert the badge: after the title section, else before the price."""
    for xp in (
        f".//*[{_has_class('s-title-instructions-style')}]",
        f".//h2/ancestor::*[{_has_class('a-section')}][1]",
    ):
        found = element.xpath(xp)
        if found:
            return found[0], "after"
    for xp in (f".//*[{_has_class('a-price')}]", f".//*[{_has_class('a-row')} and {_has_class('a-size-base')}]"):
        found = element.xpath(xp)
        if found:
            return found[0], "before"
    return None


def add_badge(element: lxml.html.HtmlElement, reasons: Iterable[str], kind: str = BADGE_WARNING) -> None:
    remove_badge(element)

    badge = lxml.html.Element("div")
    badge.set("class", f"{CLASS_BADGE} {CLASS_BADGE}-{kind}")
    icon = etree.SubElement(badge, "span")
    icon.set("class", f"{CLASS_BADGE}-icon")
    icon.text = _BADGE_ICON
    label = etree.SubElement(badge, "span")
    label.text = _BADGE_TEXT
    shown = badge_reasons(reasons)
    if shown:
        detail = etree.SubElement(badge, "span")
        detail.set("class", f"{CLASS_BADGE}-reasons")
        detail.text = "| " + "・".join(shown)

    anchor = _badge_anchor(element)
    if anchor is None:
        element.insert(0, badge)
    elif anchor[1] == "after":
        anchor[0].addnext(badge)
    else:
        anchor[0].addprevious(badge)
    element.set(ATTR_BADGE, kind)


def ensure_styles(root: lxml.html.HtmlElement) -> bool:
    """Add the stylesheet to <head> once. False when the document has no head."""
    if root.xpath(f'//style[@id="{STYLE_ID}"]'):
        return True
    heads = root.xpath("//head")
    if not heads:
        return False
    style = etree.SubElement(heads[0], "style")
    style.set("id", STYLE_ID)
    style.text = STYLES
    return True


def outcome_of(element: lxml.html.HtmlElement) -> FilterOutcome | None:
    """Outcome stored on a listing by the last pass, or None if never classified."""
    raw = element.get(ATTR_OUTCOME)
    return FilterOutcome(raw) if raw in FilterOutcome._value2member_map_ else None


# ---------------------------------------------------------------------------
# FilterPipeline
# ---------------------------------------------------------------------------

StatsListener = Callable[[PageStats], None]


class FilterPipeline:
    """Classify and mark up the listings of one document.

    ``run_full_pass`` starts a new pass generation and reclassifies every
    listing present; ``classify_one`` is the incremental entry point for
    listings inserted later and skips listings already handled in the current
    generation. Listings added incrementally extend the current pass's stats.
    """

    def __init__(
        self,
        root: lxml.html.HtmlElement,
        *,
        seller_cache: SellerLocaleCache | None = None,
        levels: Mapping[int, LevelThresholds] = FILTER_LEVELS,
        verdict_thresholds: VerdictThresholds = DEFAULT_VERDICT_THRESHOLDS,
        verdict_actions: Mapping[Verdict, Action] = VERDICT_ACTIONS,
        inject_styles: bool = True,
    ) -> None:
        self._root = root
        self._seller_cache = seller_cache
        self._levels = levels
        self._verdict_thresholds = verdict_thresholds
        self._verdict_actions = verdict_actions
        self._inject_styles = inject_styles
        self._stats = PageStats()
        self._generation = 0
        self._listeners: list[StatsListener] = []

    # -- Accessors --

    @property
    def root(self) -> lxml.html.HtmlElement:
        return self._root

    @property
    def stats(self) -> PageStats:
        return self._stats

    @property
    def generation(self) -> int:
        return self._generation

    def listings(self) -> list[lxml.html.HtmlElement]:
        return find_listings(self._root)

    def thresholds_for(self, level: int) -> LevelThresholds | None:
        """Thresholds for *level*; None when filtering is off. Unknown → standard."""
        if level == LEVEL_OFF:
            return None
        return self._levels.get(level) or self._levels[DEFAULT_FILTER_LEVEL]

    def subscribe(self, listener: StatsListener) -> None:
        """Call *listener* with the PageStats after every full pass."""
        self._listeners.append(listener)

    # -- Scoring --

    def _seller_for(self, element: lxml.html.HtmlElement):
        if self._seller_cache is None:
            return None
        link = seller_link_from_listing(element)
        seller_id = extract_seller_id(link) if link else None
        return self._seller_cache.peek(seller_id) if seller_id else None

    def score(self, element: lxml.html.HtmlElement, config: TrustConfig) -> tuple[ListingInfo, AggregateResult]:
        info = extract_listing_info(element)
        result = calculate_score(
            info,
            config,
            self._seller_for(element),
            thresholds=self._verdict_thresholds,
            actions=self._verdict_actions,
        )
        return info, result

    # -- Outcome application --

    @staticmethod
    def apply_outcome(
        element: lxml.html.HtmlElement,
        result: AggregateResult,
        thresholds: LevelThresholds,
    ) -> FilterOutcome:
        clear_markings(element)
        score = result.total_score

        if result.verdict is Verdict.TRUSTED:
            element.classes.add(CLASS_TRUSTED)
            outcome = FilterOutcome.TRUSTED
        elif score >= thresholds.hide:
            element.classes.add(CLASS_HIDDEN)
            element.set(ATTR_HIDDEN, "true")
            element.set(ATTR_SCORE, str(score))
            outcome = FilterOutcome.HIDDEN
        elif score >= thresholds.warn:
            add_badge(element, result.reasons)
            element.classes.add(CLASS_DIMMED)
            outcome = FilterOutcome.WARNED
        elif score > NOTICE_FLOOR:
            add_badge(element, result.reasons)
            outcome = FilterOutcome.WARNED
        else:
            outcome = FilterOutcome.NONE

        element.set(ATTR_OUTCOME, outcome.value)
        return outcome

    def _classify(self, element: lxml.html.HtmlElement, config: TrustConfig, level: int) -> FilterOutcome:
        thresholds = self.thresholds_for(level)
        if thresholds is None:
            # Filter off: undo an earlier pass's markings, leave untouched listings alone.
            if element.get(ATTR_PROCESSED) is not None or _has_markings(element):
                clear_markings(element)
                element.attrib.pop(ATTR_PROCESSED, None)
            return FilterOutcome.NONE
        try:
            info, result = self.score(element, config)
            outcome = self.apply_outcome(element, result, thresholds)
        except Exception:
            logger.warning("Listing classification failed (asin=%s)", element.get("data-asin"), exc_info=True)
            return FilterOutcome.NONE
        element.set(ATTR_PROCESSED, str(self._generation))
        logger.debug(
            "Listing classified: asin=%s brand=%r score=%d verdict=%s outcome=%s",
            info.identifier,
            info.brand_name,
            result.total_score,
            result.verdict.value,
            outcome.value,
        )
        return outcome

    # -- Entry points --

    def run_full_pass(self, config: TrustConfig, level: int = DEFAULT_FILTER_LEVEL) -> PageStats:
        """Reset stats and classify every listing currently in the document."""
        self._generation += 1
        self._stats = PageStats()

        if self._inject_styles and level != LEVEL_OFF:
            ensure_styles(self._root)

        for element in self.listings():
            self._stats.record(self._classify(element, config, level))

        logger.info(
            "Filter pass %d complete: level=%d total=%d hidden=%d warned=%d trusted=%d",
            self._generation,
            level,
            self._stats.total,
            self._stats.hidden,
            self._stats.warned,
            self._stats.trusted,
        )
        for listener in self._listeners:
            listener(self._stats)
        return self._stats

    def is_processed(self, element: lxml.html.HtmlElement) -> bool:
        """True when *element* was classified in the current pass generation."""
        return self._generation > 0 and element.get(ATTR_PROCESSED) == str(self._generation)

    def classify_one(
        self,
        element: lxml.html.HtmlElement,
        config: TrustConfig,
        level: int = DEFAULT_FILTER_LEVEL,
    ) -> FilterOutcome:
        """Classify a newly inserted listing at most once per pass generation."""
        if self.is_processed(element):
            return outcome_of(element) or FilterOutcome.NONE
        if self._generation == 0:
            self._generation = 1
        outcome = self._classify(element, config, level)
        if level != LEVEL_OFF:
            self._stats.record(outcome)
        return outcome
