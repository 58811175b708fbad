# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Trust configuration: trusted brands + suspicious pattern lists.

The configuration is owned by the host (settings UI, bundled JSON files) and
is read-only to the scorer. Models are frozen pydantic models so a single
instance can be shared by every listing in a pass.

Bundled file shapes:

- trusted brands:   ``{"brands": {"<category>": {"list": ["Anker", ...]}}}``
- suspicious patterns: ``{"brand_patterns": {"patterns": [{"pattern": "...",
  "score": 20, "description": "..."}]}}``
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ConfigError

logger = logging.getLogger("listingtrust.config")

# ---------------------------------------------------------------------------
# Default title keyword lists
# ---------------------------------------------------------------------------

DEFAULT_YEAR_BASED: tuple[str, ...] = (
    "令和最新",
    "2024最新",
    "2025最新",
    "2026最新",
    "最新版",
    "新型",
    "新設計",
)

DEFAULT_EXAGGERATED: tuple[str, ...] = (
    "業界トップ",
    "史上最強",
    "最強",
    "革新的",
    "進化版",
    "アップグレード版",
    "改良版",
)


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class BrandPattern(BaseModel):
    """One externally supplied brand regex and the score it adds on match."""

    model_config = ConfigDict(frozen=True)

    pattern: str = Field(description="Regular expression, matched case-insensitively")
    score: int = Field(0, description="Score added when the pattern matches")
    reason: str = Field("", description="Human-readable reason reported on match")


class TitlePatterns(BaseModel):
    """Literal keyword lists scanned in listing titles."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    year_based: tuple[str, ...] = Field(DEFAULT_YEAR_BASED, alias="yearBased")
    exaggerated: tuple[str, ...] = Field(DEFAULT_EXAGGERATED, alias="exaggerated")

    @property
    def all_keywords(self) -> tuple[str, ...]:
        return (*self.year_based, *self.exaggerated)


class SuspiciousPatterns(BaseModel):
    model_config = ConfigDict(frozen=True)

    brand: tuple[BrandPattern, ...] = ()
    title: TitlePatterns | None = None


class TrustConfig(BaseModel):
    """Scorer input owned by the host. Immutable for the duration of a pass."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    trusted_brands: frozenset[str] = Field(frozenset(), alias="trustedBrands")
    suspicious_patterns: SuspiciousPatterns = Field(default_factory=SuspiciousPatterns, alias="suspiciousPatterns")

    @field_validator("trusted_brands", mode="before")
    @classmethod
    def _drop_non_strings(cls, value: Any) -> Any:
        if isinstance(value, (list, tuple, set, frozenset)):
            return frozenset(b for b in value if isinstance(b, str) and b.strip())
        return value

    @property
    def brand_patterns(self) -> tuple[BrandPattern, ...]:
        return self.suspicious_patterns.brand

    @property
    def title_patterns(self) -> TitlePatterns | None:
        return self.suspicious_patterns.title


# ---------------------------------------------------------------------------
# Loaders
# ---------------------------------------------------------------------------


def _read_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigError(f"cannot read config file: {e}", path=str(path)) from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid JSON: {e}", path=str(path)) from e


def parse_trusted_brands(data: Any) -> list[str]:
    """Merge every category's ``list`` of the trusted-brands document."""
    if not isinstance(data, dict):
        raise ConfigError("trusted brands document must be an object")
    brands: list[str] = []
    for category in (data.get("brands") or {}).values():
        if isinstance(category, dict) and isinstance(category.get("list"), list):
            brands.extend(b for b in category["list"] if isinstance(b, str))
    return brands


def parse_brand_patterns(data: Any) -> list[BrandPattern]:
    """Read ``brand_patterns.patterns``; ``description`` becomes the reason."""
    if not isinstance(data, dict):
        raise ConfigError("suspicious patterns document must be an object")
    raw = (data.get("brand_patterns") or {}).get("patterns") or []
    patterns: list[BrandPattern] = []
    for item in raw:
        if not isinstance(item, dict) or not isinstance(item.get("pattern"), str):
            continue
        try:
            patterns.append(
                BrandPattern(
                    pattern=item["pattern"],
                    score=item.get("score", 0),
                    reason=item.get("description") or item.get("reason") or "",
                )
            )
        except ValidationError:
            logger.warning("Skipping malformed brand pattern entry: %r", item)
    return patterns


def parse_title_patterns(data: Any) -> TitlePatterns | None:
    """Optional ``title_patterns`` section with ``yearBased`` / ``exaggerated`` lists.

    An override replaces both lists: one left out is empty, not the default.
    """
    if not isinstance(data, dict) or not isinstance(data.get("title_patterns"), dict):
        return None
    raw = data["title_patterns"]
    try:
        return TitlePatterns(
            year_based=raw.get("yearBased", raw.get("year_based")) or (),
            exaggerated=raw.get("exaggerated") or (),
        )
    except ValidationError as e:
        raise ConfigError(f"invalid title_patterns: {e}") from e


def load_trust_config(
    trusted_brands_path: str | Path | None = None,
    patterns_path: str | Path | None = None,
) -> TrustConfig:
    """Build a TrustConfig from the bundled JSON files.

    Either path may be None, in which case that part of the config is empty.
    """
    brands: list[str] = []
    brand_patterns: list[BrandPattern] = []
    title_patterns: TitlePatterns | None = None

    if trusted_brands_path is not None:
        path = Path(trusted_brands_path)
        try:
            brands = parse_trusted_brands(_read_json(path))
        except ConfigError as e:
            e.path = e.path or str(path)
            raise

    if patterns_path is not None:
        path = Path(patterns_path)
        try:
            data = _read_json(path)
            brand_patterns = parse_brand_patterns(data)
            title_patterns = parse_title_patterns(data)
        except ConfigError as e:
            e.path = e.path or str(path)
            raise

    config = TrustConfig(
        trusted_brands=brands,
        suspicious_patterns=SuspiciousPatterns(brand=tuple(brand_patterns), title=title_patterns),
    )
    logger.info(
        "Trust config loaded: %d trusted brands, %d brand patterns",
        len(config.trusted_brands),
        len(config.brand_patterns),
    )
    return config
