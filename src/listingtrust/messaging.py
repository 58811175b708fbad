# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Request/response boundary between the host document and the core.

One message in, exactly one reply out. Messages are plain dicts keyed by
``action``; replies are plain dicts. Handler failures never propagate: they
come back as ``{"success": False, "error": ...}``.

Actions:
    checkSellerAddress  {sellerUrl}   → resolver result (isDomestic, addressLabel[, error])
    fetchProductPage    {productUrl}  → {sellerUrl, sellerName} or {error}
    updateStats         {type}        → bumps the cumulative outcome counter
    getStats                          → last pass PageStats + cumulative counters
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from . import FilterOutcome, PageStats
from .product_filter import FilterPipeline
from .seller_checker import DEFAULT_BASE_URL, Fetcher, SellerLocaleResolver, absolute_seller_url, find_seller_reference

logger = logging.getLogger("listingtrust.messaging")

Reply = dict[str, Any]
Handler = Callable[[Mapping[str, Any]], Awaitable[Reply]]

UNKNOWN_ACTION = "Unknown action"


class MessageRouter:
    """Dispatch host messages to the resolver and pipeline."""

    def __init__(
        self,
        resolver: SellerLocaleResolver,
        *,
        pipeline: FilterPipeline | None = None,
        fetch: Fetcher | None = None,
        base_url: str = DEFAULT_BASE_URL,
    ) -> None:
        self._resolver = resolver
        self._pipeline = pipeline
        self._fetch = fetch
        self._base_url = base_url
        self._counters: dict[str, int] = {outcome.value: 0 for outcome in FilterOutcome}
        self._handlers: dict[str, Handler] = {
            "checkSellerAddress": self._check_seller_address,
            "fetchProductPage": self._fetch_product_page,
            "updateStats": self._update_stats,
            "getStats": self._get_stats,
        }

    @property
    def counters(self) -> dict[str, int]:
        return dict(self._counters)

    def actions(self) -> list[str]:
        return list(self._handlers)

    async def handle(self, message: Mapping[str, Any]) -> Reply:
        action = message.get("action") if isinstance(message, Mapping) else None
        handler = self._handlers.get(action) if isinstance(action, str) else None
        if handler is None:
            logger.warning("Unknown message action: %r", action)
            return {"success": False, "error": UNKNOWN_ACTION}
        try:
            return await handler(message)
        except Exception as e:
            logger.error("Message handler failed: action=%s", action, exc_info=True)
            return {"success": False, "error": str(e)}

    # -- Handlers --

    async def _check_seller_address(self, message: Mapping[str, Any]) -> Reply:
        seller_url = message.get("sellerUrl")
        if not isinstance(seller_url, str) or not seller_url:
            raise ValueError("sellerUrl is required")
        result = await self._resolver.resolve(seller_url)
        return result.to_dict()

    async def _fetch_product_page(self, message: Mapping[str, Any]) -> Reply:
        product_url = message.get("productUrl")
        if not isinstance(product_url, str) or not product_url:
            raise ValueError("productUrl is required")
        if self._fetch is None:
            raise RuntimeError("no fetch capability configured")

        response = await self._fetch(absolute_seller_url(product_url, self._base_url))
        if not response.ok:
            return {"error": f"HTTP {response.status}"}
        ref = find_seller_reference(response.body)
        if ref is None:
            return {"error": "seller not found"}
        return {"sellerUrl": ref.url, "sellerName": ref.name}

    async def _update_stats(self, message: Mapping[str, Any]) -> Reply:
        outcome = FilterOutcome(message.get("type"))
        self._counters[outcome.value] += 1
        return {"success": True}

    async def _get_stats(self, message: Mapping[str, Any]) -> Reply:
        stats = self._pipeline.stats if self._pipeline is not None else PageStats()
        return {"success": True, "page": stats.to_dict(), "cumulative": self.counters}
