# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Best-effort field extraction from a search-result listing element.

Every field is optional: a missing node yields an empty string and an
unexpected failure mid-extraction keeps whatever was found so far.
"""

from __future__ import annotations

import logging
import re

import lxml.html

from . import ListingInfo

logger = logging.getLogger("listingtrust.extraction")

LISTING_XPATH = '//*[@data-component-type="s-search-result"]'
SELF_LISTING_XPATH = 'self::*[@data-component-type="s-search-result"]'


def _has_class(name: str) -> str:
    return f"contains(concat(' ', normalize-space(@class), ' '), ' {name} ')"


_TITLE_XPATHS: tuple[str, ...] = (
    ".//h2//a//span",
    ".//h2//span",
    f".//*[{_has_class('a-text-normal')}]",
)
_LINK_XPATHS: tuple[str, ...] = (
    ".//h2//a[@href]",
    f".//a[{_has_class('a-link-normal')} and contains(@href, '/dp/')]",
)
_BRAND_LINK_XPATH = ".//a[contains(@href, '/stores/') or contains(@href, '/brand/')]"
_BRAND_ROW_XPATH = f".//*[{_has_class('a-row')}]//*[{_has_class('a-size-base')}]"
_PRICE_XPATHS: tuple[str, ...] = (
    f".//*[{_has_class('a-price')}]//*[{_has_class('a-offscreen')}]",
    f".//*[{_has_class('a-price-whole')}]",
)

_LEADING_BRACKET_RE = re.compile(r"^【[^】]*】\s*")
_LEADING_WORD_RE = re.compile(r"^([A-Za-z][A-Za-z0-9\-.]*|[ァ-ヶー]+|[一-龠]+)")
_FIRST_TOKEN_SPLIT_RE = re.compile(r"[\s　]")
_FIRST_TOKEN_START_RE = re.compile(r"^(?:[A-Za-z0-9]|[ァ-ヶー一-龠])")
_BRACKET_CHARS_RE = re.compile(r"[()（）\[\]【】「」]")
_BRAND_LABEL_RE = re.compile(r"ブランド[:：]\s*([^\s,、]+)")

COMMON_WORDS: frozenset[str] = frozenset(
    {
        "for", "with", "and", "the", "new", "pro", "max", "mini", "plus",
        "モバイル", "ワイヤレス", "充電", "対応", "最新", "大容量", "急速",
    }
)  # fmt: skip


def is_common_word(word: str) -> bool:
    return word.lower() in COMMON_WORDS


def extract_brand_from_title(title: str) -> str | None:
    """Guess the brand from the leading word of a title.

    Titles usually start with the brand ("Anker PowerCore ..."). A leading
    【...】 promo block is skipped first.
    """
    if not title:
        return None
    clean = _LEADING_BRACKET_RE.sub("", title)

    m = _LEADING_WORD_RE.match(clean)
    if m:
        candidate = m.group(1)
        if len(candidate) >= 2 and not is_common_word(candidate):
            return candidate

    first = _FIRST_TOKEN_SPLIT_RE.split(clean)[0]
    if 2 <= len(first) <= 30 and _FIRST_TOKEN_START_RE.match(first):
        brand = _BRACKET_CHARS_RE.sub("", first).strip()
        if len(brand) >= 2 and not is_common_word(brand):
            return brand
    return None


def _first_text(element: lxml.html.HtmlElement, xpaths: tuple[str, ...]) -> str:
    for xp in xpaths:
        for node in element.xpath(xp):
            text = node.text_content().strip()
            if text:
                return text
    return ""


def _brand_from_element(element: lxml.html.HtmlElement, title: str) -> str:
    for link in element.xpath(_BRAND_LINK_XPATH):
        text = link.text_content().strip()
        if text and len(text) < 50:
            return text

    for row in element.xpath(_BRAND_ROW_XPATH):
        text = row.text_content().strip()
        if 0 < len(text) < 30 and text != title[: len(text)]:
            return text

    m = _BRAND_LABEL_RE.search(element.text_content())
    if m:
        return m.group(1)
    return ""


def extract_listing_info(element: lxml.html.HtmlElement) -> ListingInfo:
    """Snapshot brand, title, identifier, price and url of one listing."""
    fields = {"brand_name": "", "title": "", "identifier": "", "price_text": "", "url": ""}
    try:
        fields["identifier"] = element.get("data-asin") or ""
        fields["title"] = _first_text(element, _TITLE_XPATHS)

        for xp in _LINK_XPATHS:
            links = element.xpath(xp)
            if links:
                fields["url"] = links[0].get("href") or ""
                break

        fields["brand_name"] = extract_brand_from_title(fields["title"]) or _brand_from_element(
            element, fields["title"]
        )
        fields["price_text"] = _first_text(element, _PRICE_XPATHS)
    except Exception:
        logger.debug("Listing extraction incomplete (asin=%s)", fields["identifier"], exc_info=True)
    return ListingInfo(**fields)


def find_listings(root: lxml.html.HtmlElement) -> list[lxml.html.HtmlElement]:
    """Every search-result listing element under *root*, including *root* itself."""
    found = list(root.xpath(SELF_LISTING_XPATH))
    found.extend(root.xpath("." + LISTING_XPATH))
    return found


def is_listing(element: lxml.html.HtmlElement) -> bool:
    return element.get("data-component-type") == "s-search-result"
