# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Listing Trust exception hierarchy.

All package-specific errors inherit from ListingTrustError, allowing callers
to catch the base class for any failure or specific subclasses for targeted
handling.
"""

from __future__ import annotations


class ListingTrustError(Exception):
    """Base exception for all Listing Trust errors."""


class ConfigError(ListingTrustError):
    """Trust configuration file missing required structure or unreadable."""

    def __init__(self, message: str, *, path: str = "") -> None:
        super().__init__(message)
        self.path = path


class SellerFetchError(ListingTrustError):
    """Seller page could not be retrieved (transport failure)."""


class CacheStoreError(ListingTrustError):
    """Seller cache could not be loaded from or written to its store."""


class InvalidTransitionError(ListingTrustError):
    """Display mode transition not allowed from the current mode."""

    def __init__(self, message: str, *, mode: str = "", action: str = "") -> None:
        super().__init__(message)
        self.mode = mode
        self.action = action
