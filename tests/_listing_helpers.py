# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Shared HTML builders for listing / pipeline test files.

The underscore prefix keeps pytest from collecting this module. Builders are
plain functions; fixtures live in conftest.py.
"""

from __future__ import annotations

import lxml.html

# 110 chars, starts with an uppercase-only brand, one hype keyword (令和最新).
SUSPICIOUS_TITLE = ("QWERTZ 令和最新 ワイヤレスイヤホン Bluetooth5.3 " + "x" * 120)[:110]
TRUSTED_TITLE = "Anker PowerCore 10000 モバイルバッテリー 大容量"
PLAIN_TITLE = "Hikari 木製 カッティングボード 30cm"


def listing_html(
    asin: str,
    title: str,
    *,
    price: str | None = "￥1,980",
    seller_href: str | None = None,
    brand_link: str | None = None,
) -> str:
    """Markup of one search-result listing, shaped like the marketplace grid."""
    parts = [f'<div data-component-type="s-search-result" data-asin="{asin}" class="s-result-item">']
    if brand_link is not None:
        parts.append(f'<div class="a-row"><a href="/stores/{brand_link}">{brand_link}</a></div>')
    parts.append(f'<div class="a-section"><h2><a href="/dp/{asin}"><span>{title}</span></a></h2></div>')
    if price is not None:
        parts.append(f'<span class="a-price"><span class="a-offscreen">{price}</span></span>')
    if seller_href is not None:
        parts.append(f'<a href="{seller_href}"><span class="a-size-small a-color-base">販売: seller</span></a>')
    parts.append("</div>")
    return "".join(parts)


def page_html(*listings: str) -> str:
    body = "".join(listings)
    return (
        "<!DOCTYPE html><html><head><title>search</title></head>"
        f'<body><div class="s-main-slot">{body}</div></body></html>'
    )


def parse_page(*listings: str) -> lxml.html.HtmlElement:
    return lxml.html.document_fromstring(page_html(*listings))


def parse_listing(markup: str) -> lxml.html.HtmlElement:
    return lxml.html.fragment_fromstring(markup)


def by_asin(root: lxml.html.HtmlElement, asin: str) -> lxml.html.HtmlElement:
    return root.xpath(f'//*[@data-asin="{asin}"]')[0]


def default_page() -> lxml.html.HtmlElement:
    """Three listings: suspicious (hidden at level 2), trusted, plain."""
    return parse_page(
        listing_html("B0SUSPECT1", SUSPICIOUS_TITLE),
        listing_html("B0TRUSTED1", TRUSTED_TITLE),
        listing_html("B0PLAIN001", PLAIN_TITLE),
    )
