# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Title signal: hype keywords, excessive length and 【】 bracket stuffing."""

from __future__ import annotations

import re

from . import SignalResult
from .config import TitlePatterns

SCORE_PER_KEYWORD = 30
SCORE_LENGTH_100 = 25
SCORE_LENGTH_80 = 15
SCORE_LONG_BRACKETS = 10

LONG_BRACKET_MIN_CHARS = 20
LONG_BRACKET_MIN_COUNT = 2

_DEFAULT_PATTERNS = TitlePatterns()
_BRACKET_RE = re.compile(r"【([^】]+)】")


def find_long_brackets(title: str, min_chars: int = LONG_BRACKET_MIN_CHARS) -> list[str]:
    """Contents of 【...】 segments whose inner text is at least *min_chars* long."""
    return [m.group(1) for m in _BRACKET_RE.finditer(title) if len(m.group(1)) >= min_chars]


def check_title(title: str | None, patterns: TitlePatterns | None = None) -> SignalResult:
    """Score a listing title. Non-string or empty titles score 0.

    Length tiers are exclusive: 100+ chars adds 25, otherwise 80+ adds 15.
    """
    if not title or not isinstance(title, str):
        return SignalResult()
    patterns = patterns or _DEFAULT_PATTERNS

    score = 0
    reasons: list[str] = []

    found = [kw for kw in patterns.all_keywords if kw and kw in title]
    if found:
        score += SCORE_PER_KEYWORD * len(found)
        reasons.append(f"hype wording: {', '.join(found)}")

    length = len(title)
    if length >= 100:
        score += SCORE_LENGTH_100
        reasons.append(f"title too long ({length} chars)")
    elif length >= 80:
        score += SCORE_LENGTH_80
        reasons.append(f"title rather long ({length} chars)")

    brackets = find_long_brackets(title)
    if len(brackets) >= LONG_BRACKET_MIN_COUNT:
        score += SCORE_LONG_BRACKETS
        reasons.append(f"multiple long 【】 blocks ({len(brackets)})")

    return SignalResult(score=score, reasons=tuple(reasons))
