# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Shared test configuration and fixtures."""

try:
    import listingtrust  # noqa: F401
except ImportError:
    raise ImportError("listingtrust is not installed. Run: pip install -e '.[dev]'") from None

import pytest

from listingtrust.config import BrandPattern, SuspiciousPatterns, TrustConfig
from listingtrust.seller_cache import InMemoryCacheStore, SellerLocaleCache


class FakeClock:
    """Manually advanced wall clock for TTL tests."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def trust_config() -> TrustConfig:
    return TrustConfig(trusted_brands={"Anker", "Sony", "Panasonic"})


@pytest.fixture
def pattern_config() -> TrustConfig:
    return TrustConfig(
        trusted_brands={"Anker"},
        suspicious_patterns=SuspiciousPatterns(
            brand=(BrandPattern(pattern=r"^[A-Z][a-z]{2}[A-Z]", score=15, reason="mixed-case shuffle"),),
        ),
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_store() -> InMemoryCacheStore:
    return InMemoryCacheStore()


@pytest.fixture
def seller_cache(memory_store, clock) -> SellerLocaleCache:
    return SellerLocaleCache(memory_store, clock=clock)
