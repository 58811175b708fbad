# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Brand-name signal: how suspicious does a listing's brand look?

Pure functions, no DOM access. Two short-circuits run first:

  1. exact (case-insensitive) membership in the trusted set  → -100
  2. kanji-only name with a traditional craft/shop suffix    → -30

Otherwise every heuristic runs independently and the scores add up, followed
by the externally supplied regex patterns.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from functools import lru_cache

from . import SignalResult
from .config import BrandPattern

logger = logging.getLogger("listingtrust.brand_checker")

# ---------------------------------------------------------------------------
# Scores and reasons
# ---------------------------------------------------------------------------

SCORE_TRUSTED = -100
SCORE_ARTISAN = -30
SCORE_GENERIC = 25
SCORE_CONSONANT_ONLY = 35
SCORE_UPPERCASE_ONLY = 30
SCORE_JP_SUFFIX = 20

REASON_TRUSTED = "trusted brand"
REASON_ARTISAN = "likely domestic artisan brand"
REASON_GENERIC = "generic / no-brand"
REASON_CONSONANT_ONLY = "random letters (4+ consonants only)"
REASON_UPPERCASE_ONLY = "uppercase only (6+ letters)"
REASON_JP_SUFFIX = "trailing JP/Japan suffix"

# ---------------------------------------------------------------------------
# Patterns
# ---------------------------------------------------------------------------

_TOKEN_SPLIT_RE = re.compile(r"[\s\-_]+")
# Explicit both-case class: re.IGNORECASE would also admit U+017F / U+212A.
_CONSONANT_ONLY_RE = re.compile(r"[bcdfghjklmnpqrstvwxyzBCDFGHJKLMNPQRSTVWXYZ]{4,}")
_UPPERCASE_ONLY_RE = re.compile(r"[A-Z]{6,}")
_JP_SUFFIX_RE = re.compile(r"(?:JP|Japan|日本)$", re.IGNORECASE)
_GENERIC_RE = re.compile(r"(?:ノーブランド|ノーブランド品|Generic|Unbranded|no brand)", re.IGNORECASE)
_KANJI_ONLY_RE = re.compile(r"[\u4e00-\u9fff]+")
_CRAFT_SUFFIX_RE = re.compile(
    r"(?:工房|製作所|商店|本舗|堂|屋|庵|軒|亭|園|房|舎|社|館|苑|荘|家|処|所|店|坊|塾|院|会|組|座|派|流"
    r"|窯|焼|塗|織|染|彫|細工|木工|鋳物|刃物|金物|漆器|陶器|硝子|ガラス|鍛冶|職人|工芸|民芸|伝統)$"
)


# ---------------------------------------------------------------------------
# Individual checks
# ---------------------------------------------------------------------------


def is_trusted_brand(name: str, trusted_brands: Iterable[str]) -> bool:
    lowered = name.lower()
    return any(isinstance(b, str) and b.lower() == lowered for b in trusted_brands)


def is_generic_brand(name: str) -> bool:
    return _GENERIC_RE.fullmatch(name) is not None


def has_consonant_only_token(name: str) -> bool:
    """True when any whitespace/hyphen/underscore-delimited token is 4+ consonants."""
    return any(_CONSONANT_ONLY_RE.fullmatch(tok) for tok in _TOKEN_SPLIT_RE.split(name))


def is_uppercase_only(name: str) -> bool:
    return _UPPERCASE_ONLY_RE.fullmatch(_TOKEN_SPLIT_RE.sub("", name)) is not None


def has_jp_suffix(name: str) -> bool:
    return _JP_SUFFIX_RE.search(name) is not None


def is_likely_artisan_brand(name: str) -> bool:
    """Kanji-only name ending in a workshop/shop/craft suffix (工房, 製作所, 窯 ...)."""
    return bool(name) and _KANJI_ONLY_RE.fullmatch(name) is not None and _CRAFT_SUFFIX_RE.search(name) is not None


@lru_cache(maxsize=256)
def _compile(pattern: str) -> re.Pattern[str] | None:
    try:
        return re.compile(pattern, re.IGNORECASE)
    except re.error as e:
        logger.warning("Skipping invalid brand pattern %r: %s", pattern, e)
        return None


def check_external_patterns(name: str, patterns: Iterable[BrandPattern]) -> SignalResult:
    """Apply host-supplied regexes. Invalid ones are skipped, never fatal."""
    score = 0
    reasons: list[str] = []
    for p in patterns:
        regex = _compile(p.pattern)
        if regex is None or not regex.search(name):
            continue
        score += p.score
        if p.reason:
            reasons.append(p.reason)
    return SignalResult(score=score, reasons=tuple(reasons))


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def check_brand(
    brand_name: str | None,
    trusted_brands: Iterable[str] = (),
    patterns: Iterable[BrandPattern] = (),
) -> SignalResult:
    """Score a brand name. Empty or whitespace-only names score 0."""
    if not brand_name or not isinstance(brand_name, str):
        return SignalResult()
    name = brand_name.strip()
    if not name:
        return SignalResult()

    if is_trusted_brand(name, trusted_brands):
        return SignalResult(score=SCORE_TRUSTED, reasons=(REASON_TRUSTED,))

    if is_likely_artisan_brand(name):
        return SignalResult(score=SCORE_ARTISAN, reasons=(REASON_ARTISAN,))

    score = 0
    reasons: list[str] = []

    if is_generic_brand(name):
        score += SCORE_GENERIC
        reasons.append(REASON_GENERIC)

    if has_consonant_only_token(name):
        score += SCORE_CONSONANT_ONLY
        reasons.append(REASON_CONSONANT_ONLY)

    if is_uppercase_only(name):
        score += SCORE_UPPERCASE_ONLY
        reasons.append(REASON_UPPERCASE_ONLY)

    if has_jp_suffix(name):
        score += SCORE_JP_SUFFIX
        reasons.append(REASON_JP_SUFFIX)

    external = check_external_patterns(name, patterns)
    score += external.score
    reasons.extend(external.reasons)

    return SignalResult(score=score, reasons=tuple(reasons))
