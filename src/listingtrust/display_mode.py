# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Banner display modes: filtered / trusted-only / show-all.

The controller only toggles visibility classes from the outcomes a
``FilterPipeline`` pass stored on each listing; it never rescores. Stored
outcomes (``data-lt-outcome``, ``data-lt-hidden``) are left untouched so that
returning to ``filtered`` restores the exact pre-toggle visibility.

Transitions::

    filtered    --show_trusted_only-->  trustedOnly
    filtered    --show_all----------->  showAll
    trustedOnly --restore------------>  filtered
    trustedOnly --show_all----------->  showAll
    showAll     --reapply_filter----->  filtered
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from enum import StrEnum

import lxml.html

from . import FilterOutcome, PageStats
from .errors import InvalidTransitionError
from .product_filter import (
    ATTR_HIDDEN,
    CLASS_ALL_VISIBLE,
    CLASS_HIDDEN,
    CLASS_TRUSTED_HIDDEN,
    FilterPipeline,
    outcome_of,
)

logger = logging.getLogger("listingtrust.display_mode")


class DisplayMode(StrEnum):
    FILTERED = "filtered"
    TRUSTED_ONLY = "trustedOnly"
    SHOW_ALL = "showAll"


class BannerAction(StrEnum):
    SHOW_TRUSTED_ONLY = "show_trusted_only"
    SHOW_ALL = "show_all"
    RESTORE = "restore"
    REAPPLY_FILTER = "reapply_filter"


TRANSITIONS: Mapping[tuple[DisplayMode, BannerAction], DisplayMode] = {
    (DisplayMode.FILTERED, BannerAction.SHOW_TRUSTED_ONLY): DisplayMode.TRUSTED_ONLY,
    (DisplayMode.FILTERED, BannerAction.SHOW_ALL): DisplayMode.SHOW_ALL,
    (DisplayMode.TRUSTED_ONLY, BannerAction.RESTORE): DisplayMode.FILTERED,
    (DisplayMode.TRUSTED_ONLY, BannerAction.SHOW_ALL): DisplayMode.SHOW_ALL,
    (DisplayMode.SHOW_ALL, BannerAction.REAPPLY_FILTER): DisplayMode.FILTERED,
}


def is_visible(element: lxml.html.HtmlElement) -> bool:
    classes = element.classes
    return CLASS_HIDDEN not in classes and CLASS_TRUSTED_HIDDEN not in classes


def _apply_filtered(element: lxml.html.HtmlElement) -> None:
    element.classes.discard(CLASS_TRUSTED_HIDDEN)
    element.classes.discard(CLASS_ALL_VISIBLE)
    if element.get(ATTR_HIDDEN) == "true":
        element.classes.add(CLASS_HIDDEN)


def _apply_trusted_only(element: lxml.html.HtmlElement) -> None:
    element.classes.discard(CLASS_ALL_VISIBLE)
    if outcome_of(element) is FilterOutcome.TRUSTED:
        element.classes.discard(CLASS_TRUSTED_HIDDEN)
    else:
        element.classes.add(CLASS_TRUSTED_HIDDEN)


def _apply_show_all(element: lxml.html.HtmlElement) -> None:
    element.classes.discard(CLASS_HIDDEN)
    element.classes.discard(CLASS_TRUSTED_HIDDEN)
    element.classes.add(CLASS_ALL_VISIBLE)


_APPLIERS = {
    DisplayMode.FILTERED: _apply_filtered,
    DisplayMode.TRUSTED_ONLY: _apply_trusted_only,
    DisplayMode.SHOW_ALL: _apply_show_all,
}


class DisplayModeController:
    """Per-document display-mode state machine.

    Subscribes to the pipeline: every full pass rewrites the listing markup,
    so the mode drops back to ``filtered``. Call ``reset()`` when the host
    replaces the document.
    """

    def __init__(self, pipeline: FilterPipeline) -> None:
        self._pipeline = pipeline
        self._mode = DisplayMode.FILTERED
        self._last_stats: PageStats | None = None
        pipeline.subscribe(self._on_pass)

    @property
    def mode(self) -> DisplayMode:
        return self._mode

    @property
    def last_stats(self) -> PageStats | None:
        return self._last_stats

    def available_actions(self) -> list[BannerAction]:
        return [action for (mode, action) in TRANSITIONS if mode is self._mode]

    def _on_pass(self, stats: PageStats) -> None:
        self._last_stats = stats
        self._mode = DisplayMode.FILTERED

    def reset(self) -> None:
        self._mode = DisplayMode.FILTERED
        self._last_stats = None

    def dispatch(self, action: BannerAction | str) -> DisplayMode:
        """Apply a banner action. Raises InvalidTransitionError if not allowed."""
        try:
            action = BannerAction(action)
        except ValueError:
            raise InvalidTransitionError(
                f"unknown banner action {action!r}", mode=self._mode.value, action=str(action)
            ) from None

        target = TRANSITIONS.get((self._mode, action))
        if target is None:
            raise InvalidTransitionError(
                f"cannot {action.value} while in {self._mode.value} mode",
                mode=self._mode.value,
                action=action.value,
            )

        previous = self._mode
        self._mode = target
        for element in self._pipeline.listings():
            self.apply_mode_to(element)
        logger.info("Display mode: %s -> %s (%s)", previous.value, target.value, action.value)
        return target

    def show_trusted_only(self) -> DisplayMode:
        return self.dispatch(BannerAction.SHOW_TRUSTED_ONLY)

    def show_all(self) -> DisplayMode:
        return self.dispatch(BannerAction.SHOW_ALL)

    def restore(self) -> DisplayMode:
        return self.dispatch(BannerAction.RESTORE)

    def reapply_filter(self) -> DisplayMode:
        return self.dispatch(BannerAction.REAPPLY_FILTER)

    def apply_mode_to(self, element: lxml.html.HtmlElement) -> None:
        """Bring one listing in line with the current mode."""
        _APPLIERS[self._mode](element)

    def visible_trusted_count(self) -> int:
        return sum(
            1
            for element in self._pipeline.listings()
            if outcome_of(element) is FilterOutcome.TRUSTED and is_visible(element)
        )

    def visible_count(self) -> int:
        return sum(1 for element in self._pipeline.listings() if is_visible(element))
