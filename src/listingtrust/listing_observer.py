# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Incremental adapter: feed newly inserted DOM nodes into the pipeline.

The host (mutation observer, scraper, test) hands over batches of inserted
nodes; every listing found in or under them is classified once through
``FilterPipeline.classify_one``. If a display-mode controller is attached,
new listings are brought in line with its current mode.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

import lxml.html

from . import FilterOutcome
from .config import TrustConfig
from .display_mode import DisplayModeController
from .extraction import find_listings
from .product_filter import DEFAULT_FILTER_LEVEL, FilterPipeline

logger = logging.getLogger("listingtrust.listing_observer")


@dataclass
class ObservedBatch:
    """What one ``on_nodes_added`` call did."""

    classified: int = 0
    skipped: int = 0
    outcomes: list[FilterOutcome] = field(default_factory=list)


class ListingObserver:
    """Translate node-insertion batches into ``classify_one`` calls."""

    def __init__(
        self,
        pipeline: FilterPipeline,
        config: TrustConfig,
        level: int = DEFAULT_FILTER_LEVEL,
        *,
        controller: DisplayModeController | None = None,
    ) -> None:
        self._pipeline = pipeline
        self._config = config
        self._level = level
        self._controller = controller

    @property
    def level(self) -> int:
        return self._level

    def update(self, *, config: TrustConfig | None = None, level: int | None = None) -> None:
        """Swap config or level for subsequent batches (e.g. after a settings change)."""
        if config is not None:
            self._config = config
        if level is not None:
            self._level = level

    def on_nodes_added(self, nodes: Iterable[lxml.html.HtmlElement]) -> ObservedBatch:
        batch = ObservedBatch()
        for node in nodes:
            if not isinstance(node, lxml.html.HtmlElement):
                continue  # text / comment nodes
            for listing in find_listings(node):
                if self._pipeline.is_processed(listing):
                    batch.skipped += 1
                    continue
                outcome = self._pipeline.classify_one(listing, self._config, self._level)
                if self._controller is not None:
                    self._controller.apply_mode_to(listing)
                batch.classified += 1
                batch.outcomes.append(outcome)

        if batch.classified:
            logger.debug("Observed batch: classified=%d skipped=%d", batch.classified, batch.skipped)
        return batch

    def scan(self) -> ObservedBatch:
        """Classify listings that appeared without a batch notification."""
        return self.on_nodes_added([self._pipeline.root])
