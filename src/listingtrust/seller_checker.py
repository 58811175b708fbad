# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Seller locale resolution: is this seller domestic?

Fetches the seller's profile page through an injected async fetch capability,
strips markup, and scores prefecture / domestic / overseas keywords found in
the text. Results are cached per seller id (see ``seller_cache``).

Fail-closed: a page that cannot be fetched or that names no recognisable
address is reported as non-domestic. Fetch failures are not cached and not
retried.

Also hosts the detail-page helpers that locate a seller reference in product
page HTML or in a search-result listing element.
"""

from __future__ import annotations

import asyncio
import html as html_lib
import logging
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import httpx
import lxml.html

from .errors import SellerFetchError
from .seller_cache import SellerLocaleCache

logger = logging.getLogger("listingtrust.seller_checker")

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

OFFICIAL_SELLER = "amazon-official"
OFFICIAL_LABEL = "Amazon.co.jp"
UNRESOLVED_LABEL = "unresolved"
UNKNOWN_LABEL = "unknown"
DEFAULT_BASE_URL = "https://www.amazon.co.jp"

REQUEST_HEADERS: dict[str, str] = {
    "Accept": "text/html,application/xhtml+xml",
    "Accept-Language": "ja-JP,ja;q=0.9",
}

PREFECTURE_SCORE = 10
DOMESTIC_INDICATOR_SCORE = 5
OVERSEAS_INDICATOR_SCORE = 5

PREFECTURES: tuple[str, ...] = (
    "北海道", "青森", "岩手", "宮城", "秋田", "山形", "福島",
    "茨城", "栃木", "群馬", "埼玉", "千葉", "東京", "神奈川",
    "新潟", "富山", "石川", "福井", "山梨", "長野", "岐阜",
    "静岡", "愛知", "三重", "滋賀", "京都", "大阪", "兵庫",
    "奈良", "和歌山", "鳥取", "島根", "岡山", "広島", "山口",
    "徳島", "香川", "愛媛", "高知", "福岡", "佐賀", "長崎",
    "熊本", "大分", "宮崎", "鹿児島", "沖縄",
)  # fmt: skip

DOMESTIC_INDICATORS: tuple[str, ...] = ("日本", "Japan", "JP", "〒")

OVERSEAS_INDICATORS: tuple[str, ...] = (
    # China (provinces and manufacturing cities, simplified script)
    "中国", "China", "CN", "PRC",
    "广东", "深圳", "广州", "东莞", "佛山", "珠海", "惠州",
    "浙江", "杭州", "宁波", "温州", "义乌",
    "江苏", "苏州", "南京", "无锡",
    "上海", "北京", "天津", "重庆",
    "福建", "厦门", "泉州", "福州",
    "山东", "青岛", "济南",
    "河南", "郑州",
    "湖北", "武汉",
    "四川", "成都",
    "香港", "Hong Kong", "HK",
    # rest of Asia
    "台湾", "Taiwan", "TW",
    "韓国", "Korea", "KR",
    # US / UK
    "USA", "United States", "UK", "United Kingdom",
)  # fmt: skip

_SELLER_ID_RE = re.compile(r"seller=([A-Z0-9]+)")
_SCRIPT_RE = re.compile(r"<script[^>]*>.*?</script>", re.IGNORECASE | re.DOTALL)
_STYLE_RE = re.compile(r"<style[^>]*>.*?</style>", re.IGNORECASE | re.DOTALL)
_TAG_RE = re.compile(r"<[^>]+>")
_WS_RE = re.compile(r"\s+")

# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class FetchResponse:
    """Minimal response shape the resolver needs from a fetch capability."""

    status: int
    body: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


Fetcher = Callable[[str], Awaitable[FetchResponse]]


@dataclass(frozen=True, slots=True)
class SellerLocaleResult:
    """Resolver output. ``error`` is set only when the page could not be fetched."""

    is_domestic: bool
    address_label: str
    error: str | None = None
    from_cache: bool = False

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"isDomestic": self.is_domestic, "addressLabel": self.address_label}
        if self.error is not None:
            out["error"] = self.error
        return out


@dataclass(frozen=True, slots=True)
class LocaleAnalysis:
    """Keyword scoring of one seller page."""

    is_domestic: bool
    address_label: str
    domestic_score: int = 0
    overseas_score: int = 0
    platform_seller: bool = False


@dataclass(frozen=True, slots=True)
class SellerReference:
    """Seller link discovered on a product detail page."""

    url: str
    name: str | None = None

    @property
    def is_official(self) -> bool:
        return self.url == OFFICIAL_SELLER


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


def extract_seller_id(seller_url: str) -> str | None:
    """Seller id from the ``seller=`` query parameter, or None."""
    m = _SELLER_ID_RE.search(seller_url or "")
    return m.group(1) if m else None


def page_text(raw_html: str) -> str:
    """Strip scripts, styles and tags; collapse whitespace."""
    text = _SCRIPT_RE.sub("", raw_html)
    text = _STYLE_RE.sub("", text)
    text = _TAG_RE.sub(" ", text)
    return _WS_RE.sub(" ", html_lib.unescape(text))


def analyze_seller_page(raw_html: str) -> LocaleAnalysis:
    """Score domestic vs overseas keywords on a seller profile page.

    Domestic wins when its score is positive and not below the overseas score.
    Anything else, including a page with no keywords at all, is non-domestic.
    """
    text = page_text(raw_html or "")

    if OFFICIAL_LABEL in text and "販売元: Amazon" in text:
        return LocaleAnalysis(is_domestic=True, address_label=OFFICIAL_LABEL, platform_seller=True)

    label = ""
    domestic = 0
    overseas = 0

    for pref in PREFECTURES:
        if pref in text:
            domestic += PREFECTURE_SCORE
            label = label or pref

    for indicator in DOMESTIC_INDICATORS:
        if indicator in text:
            domestic += DOMESTIC_INDICATOR_SCORE

    for indicator in OVERSEAS_INDICATORS:
        if indicator in text:
            overseas += OVERSEAS_INDICATOR_SCORE
            label = label or indicator

    is_domestic = domestic > 0 and domestic >= overseas
    return LocaleAnalysis(
        is_domestic=is_domestic,
        address_label=label or UNKNOWN_LABEL,
        domestic_score=domestic,
        overseas_score=overseas,
    )


def absolute_seller_url(seller_ref: str, base_url: str = DEFAULT_BASE_URL) -> str:
    if seller_ref.startswith("http"):
        return seller_ref
    return f"{base_url.rstrip('/')}/{seller_ref.lstrip('/')}"


# ---------------------------------------------------------------------------
# Seller reference discovery (detail page / listing element)
# ---------------------------------------------------------------------------

_TRIGGER_HREF_RE = re.compile(r'id="sellerProfileTriggerId"[^>]*href="([^"]+)"')
_TRIGGER_NAME_RE = re.compile(r'id="sellerProfileTriggerId"[^>]*>([^<]+)<')
_BUYBOX_RE = re.compile(r'tabular-buybox-text[^>]*>.*?href="([^"]*seller=[^"]+)"[^>]*>([^<]+)', re.DOTALL)
_MERCHANT_RE = re.compile(r'id="merchant-info".*?href="([^"]*seller=[^"]+)"', re.DOTALL)
_OFFER_DISPLAY_RE = re.compile(r'offer-display-feature-text[^>]*>.*?href="[^"]*seller=([^"&]+)', re.DOTALL)
_PLATFORM_SOLD_PHRASES: tuple[str, ...] = (
    "この商品は、Amazon.co.jp が販売、発送します",
    "ships from and sold by Amazon.co.jp",
)


def find_seller_reference(raw_html: str) -> SellerReference | None:
    """Locate the seller link on a product detail page.

    Tries, in order: the seller-profile trigger, the buy-box, merchant-info,
    the offer-display seller id, then platform-sold phrasing (returns the
    official-seller sentinel). None when nothing matches.
    """
    if not raw_html:
        return None

    m = _TRIGGER_HREF_RE.search(raw_html)
    if m:
        name = _TRIGGER_NAME_RE.search(raw_html)
        return SellerReference(url=html_lib.unescape(m.group(1)), name=name.group(1).strip() if name else None)

    m = _BUYBOX_RE.search(raw_html)
    if m:
        return SellerReference(url=html_lib.unescape(m.group(1)), name=m.group(2).strip())

    m = _MERCHANT_RE.search(raw_html)
    if m:
        return SellerReference(url=html_lib.unescape(m.group(1)))

    m = _OFFER_DISPLAY_RE.search(raw_html)
    if m:
        return SellerReference(url=f"/gp/help/seller/at-a-glance.html?seller={m.group(1)}")

    if any(p in raw_html for p in _PLATFORM_SOLD_PHRASES) or (
        "販売元" in raw_html and OFFICIAL_LABEL in raw_html and "出荷元" in raw_html
    ):
        return SellerReference(url=OFFICIAL_SELLER, name=OFFICIAL_LABEL)

    logger.debug("No seller reference found in product page (%d bytes)", len(raw_html))
    return None


def seller_link_from_listing(element: lxml.html.HtmlElement) -> str | None:
    """Seller link wrapped around a listing's small seller caption, if any."""
    for span in element.iter("span"):
        classes = span.classes
        if "a-size-small" not in classes or "a-color-base" not in classes:
            continue
        for ancestor in span.iterancestors("a"):
            href = ancestor.get("href") or ""
            if "seller=" in href:
                return href
            break
    return None


# ---------------------------------------------------------------------------
# Default fetch capability
# ---------------------------------------------------------------------------


def httpx_fetcher(client: httpx.AsyncClient | None = None, *, timeout: float = 15.0) -> Fetcher:
    """Build a fetch capability on httpx. Transport errors raise SellerFetchError."""

    async def fetch(url: str) -> FetchResponse:
        try:
            if client is not None:
                resp = await client.get(url, headers=REQUEST_HEADERS)
            else:
                async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as c:
                    resp = await c.get(url, headers=REQUEST_HEADERS)
        except httpx.HTTPError as e:
            raise SellerFetchError(f"{type(e).__name__}: {e}") from e
        return FetchResponse(status=resp.status_code, body=resp.text)

    return fetch


# ---------------------------------------------------------------------------
# SellerLocaleResolver
# ---------------------------------------------------------------------------


class SellerLocaleResolver:
    """Resolve seller references to domestic/overseas with TTL caching.

    At most one fetch per seller id per TTL window: live cache entries are
    returned verbatim, and concurrent lookups of the same id share a single
    in-flight fetch.
    """

    def __init__(
        self,
        fetch: Fetcher,
        cache: SellerLocaleCache | None = None,
        *,
        base_url: str = DEFAULT_BASE_URL,
    ) -> None:
        self._fetch = fetch
        self._cache = cache if cache is not None else SellerLocaleCache()
        self._base_url = base_url
        self._inflight: dict[str, asyncio.Task[SellerLocaleResult]] = {}
        self.fetch_count = 0

    @property
    def cache(self) -> SellerLocaleCache:
        return self._cache

    async def resolve(self, seller_ref: str) -> SellerLocaleResult:
        """Resolve *seller_ref* (seller URL or ``OFFICIAL_SELLER``). Never raises."""
        if seller_ref == OFFICIAL_SELLER:
            return SellerLocaleResult(is_domestic=True, address_label=OFFICIAL_LABEL)

        seller_id = extract_seller_id(seller_ref)
        if seller_id is not None:
            entry = self._cache.get(seller_id)
            if entry is not None:
                return SellerLocaleResult(
                    is_domestic=entry.is_domestic,
                    address_label=entry.address_label,
                    from_cache=True,
                )

        if seller_id is None:
            return await self._fetch_and_analyze(seller_ref, None)

        # The fetch runs in its own task: cancelling one caller leaves the others waiting.
        task = self._inflight.get(seller_id)
        if task is not None:
            logger.debug("Joining in-flight seller lookup: %s", seller_id)
        else:
            task = asyncio.get_running_loop().create_task(self._fetch_and_analyze(seller_ref, seller_id))
            self._inflight[seller_id] = task
            task.add_done_callback(lambda _t, key=seller_id: self._inflight.pop(key, None))
        return await asyncio.shield(task)

    async def _fetch_and_analyze(self, seller_ref: str, seller_id: str | None) -> SellerLocaleResult:
        url = absolute_seller_url(seller_ref, self._base_url)
        self.fetch_count += 1
        try:
            response = await self._fetch(url)
        except Exception as e:
            logger.warning("Seller fetch failed for %s: %s", url, e)
            return SellerLocaleResult(is_domestic=False, address_label=UNRESOLVED_LABEL, error=str(e) or type(e).__name__)

        if not 200 <= response.status < 300:
            logger.warning("Seller fetch returned HTTP %d for %s", response.status, url)
            return SellerLocaleResult(
                is_domestic=False,
                address_label=UNRESOLVED_LABEL,
                error=f"HTTP {response.status}",
            )

        analysis = analyze_seller_page(response.body)
        logger.debug(
            "Seller analyzed: id=%s domestic=%s label=%s scores=%d/%d",
            seller_id,
            analysis.is_domestic,
            analysis.address_label,
            analysis.domestic_score,
            analysis.overseas_score,
        )
        if seller_id is not None:
            self._cache.put(seller_id, is_domestic=analysis.is_domestic, address_label=analysis.address_label)
        return SellerLocaleResult(is_domestic=analysis.is_domestic, address_label=analysis.address_label)
