# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Tests for listing_observer: batches of inserted nodes → classify_one."""

from __future__ import annotations

import lxml.html
from lxml import etree

from listingtrust import FilterOutcome
from listingtrust.display_mode import DisplayModeController, is_visible
from listingtrust.listing_observer import ListingObserver
from listingtrust.product_filter import FilterPipeline, outcome_of
from tests._listing_helpers import PLAIN_TITLE, SUSPICIOUS_TITLE, TRUSTED_TITLE, default_page, listing_html


def _insert(root: lxml.html.HtmlElement, markup: str) -> lxml.html.HtmlElement:
    node = lxml.html.fragment_fromstring(markup)
    root.xpath('//div[@class="s-main-slot"]')[0].append(node)
    return node


class TestOnNodesAdded:
    def test_new_listing_classified(self, trust_config):
        root = default_page()
        pipeline = FilterPipeline(root)
        pipeline.run_full_pass(trust_config, 2)
        observer = ListingObserver(pipeline, trust_config, 2)

        node = _insert(root, listing_html("B0NEW00001", SUSPICIOUS_TITLE))
        batch = observer.on_nodes_added([node])

        assert batch.classified == 1
        assert batch.outcomes == [FilterOutcome.HIDDEN]
        assert outcome_of(node) is FilterOutcome.HIDDEN
        assert pipeline.stats.hidden == 2

    def test_wrapper_node_with_several_listings(self, trust_config):
        root = default_page()
        pipeline = FilterPipeline(root)
        pipeline.run_full_pass(trust_config, 2)
        observer = ListingObserver(pipeline, trust_config)

        wrapper = _insert(
            root,
            "<div>" + listing_html("B0NEW00001", TRUSTED_TITLE) + listing_html("B0NEW00002", PLAIN_TITLE) + "</div>",
        )
        batch = observer.on_nodes_added([wrapper])
        assert batch.classified == 2
        assert batch.outcomes == [FilterOutcome.TRUSTED, FilterOutcome.NONE]

    def test_already_processed_skipped(self, trust_config):
        root = default_page()
        pipeline = FilterPipeline(root)
        pipeline.run_full_pass(trust_config, 2)
        observer = ListingObserver(pipeline, trust_config)

        batch = observer.on_nodes_added(pipeline.listings())
        assert batch.classified == 0
        assert batch.skipped == 3
        assert pipeline.stats.total == 3

    def test_same_node_twice_in_batch(self, trust_config):
        root = default_page()
        pipeline = FilterPipeline(root)
        observer = ListingObserver(pipeline, trust_config)
        node = _insert(root, listing_html("B0NEW00001", PLAIN_TITLE))
        batch = observer.on_nodes_added([node, node])
        assert batch.classified == 1
        assert batch.skipped == 1

    def test_non_element_nodes_ignored(self, trust_config):
        pipeline = FilterPipeline(default_page())
        observer = ListingObserver(pipeline, trust_config)
        batch = observer.on_nodes_added([etree.Comment("ad slot"), "text"])
        assert batch.classified == 0

    def test_follows_trusted_only_mode(self, trust_config):
        root = default_page()
        pipeline = FilterPipeline(root)
        controller = DisplayModeController(pipeline)
        pipeline.run_full_pass(trust_config, 2)
        controller.show_trusted_only()
        observer = ListingObserver(pipeline, trust_config, controller=controller)

        plain = _insert(root, listing_html("B0NEW00001", PLAIN_TITLE))
        trusted = _insert(root, listing_html("B0NEW00002", TRUSTED_TITLE))
        observer.on_nodes_added([plain, trusted])

        assert is_visible(plain) is False
        assert is_visible(trusted) is True

    def test_level_update(self, trust_config):
        root = default_page()
        pipeline = FilterPipeline(root)
        pipeline.run_full_pass(trust_config, 2)
        observer = ListingObserver(pipeline, trust_config, 2)
        observer.update(level=1)
        node = _insert(root, listing_html("B0NEW00001", SUSPICIOUS_TITLE))
        observer.on_nodes_added([node])
        assert outcome_of(node) is FilterOutcome.WARNED


class TestScan:
    def test_scan_picks_up_unnotified_listings(self, trust_config):
        root = default_page()
        pipeline = FilterPipeline(root)
        pipeline.run_full_pass(trust_config, 2)
        node = _insert(root, listing_html("B0NEW00001", SUSPICIOUS_TITLE))

        batch = ListingObserver(pipeline, trust_config).scan()

        assert batch.classified == 1
        assert batch.skipped == 3
        assert outcome_of(node) is FilterOutcome.HIDDEN
