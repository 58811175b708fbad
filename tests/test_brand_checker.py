# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Tests for brand_checker: trusted / artisan short-circuits, additive heuristics,
external patterns."""

from __future__ import annotations

import logging
import string

import pytest

pytest.importorskip("hypothesis")

from hypothesis import given, settings  # noqa: E402
from hypothesis import strategies as st  # noqa: E402

from listingtrust.brand_checker import (  # noqa: E402
    REASON_ARTISAN,
    REASON_CONSONANT_ONLY,
    REASON_GENERIC,
    REASON_JP_SUFFIX,
    REASON_TRUSTED,
    REASON_UPPERCASE_ONLY,
    SCORE_TRUSTED,
    check_brand,
    check_external_patterns,
    has_consonant_only_token,
    is_likely_artisan_brand,
    is_uppercase_only,
)
from listingtrust.config import BrandPattern  # noqa: E402

# =========================================================================
# Empty input
# =========================================================================


class TestEmpty:
    @pytest.mark.parametrize("name", ["", "   ", None])
    def test_zero(self, name):
        result = check_brand(name, {"Anker"})
        assert result.score == 0
        assert result.reasons == ()


# =========================================================================
# Short-circuits
# =========================================================================


class TestTrusted:
    def test_exact_match(self):
        result = check_brand("Anker", {"Anker"})
        assert result.score == -100
        assert result.reasons == (REASON_TRUSTED,)

    def test_case_insensitive(self):
        assert check_brand("ANKER", {"anker"}).score == -100

    def test_surrounding_whitespace_ignored(self):
        assert check_brand("  Anker ", {"Anker"}).score == -100

    def test_dominates_other_heuristics(self):
        # Would otherwise hit consonant-only, uppercase-only and JP suffix.
        result = check_brand("TRNXKJP", {"TRNXKJP"})
        assert result.score == -100
        assert result.reasons == (REASON_TRUSTED,)

    def test_dominates_external_patterns(self):
        patterns = [BrandPattern(pattern="anker", score=50, reason="never applied")]
        assert check_brand("Anker", {"Anker"}, patterns).score == -100

    def test_substring_not_trusted(self):
        assert check_brand("Anker Japan", {"Anker"}).score != -100

    def test_non_string_entries_ignored(self):
        assert check_brand("Anker", ["Anker", None, 42]).score == -100


class TestArtisan:
    @pytest.mark.parametrize("name", ["山田工房", "田中製作所", "有田焼", "佐藤刃物"])
    def test_kanji_with_craft_suffix(self, name):
        result = check_brand(name)
        assert result.score == -30
        assert result.reasons == (REASON_ARTISAN,)

    def test_kanji_without_suffix(self):
        assert is_likely_artisan_brand("山田") is False
        assert check_brand("山田").score == 0

    def test_kana_prefix_not_artisan(self):
        assert is_likely_artisan_brand("やまだ工房") is False

    def test_trusted_wins_over_artisan(self):
        assert check_brand("山田工房", {"山田工房"}).score == -100


# =========================================================================
# Additive heuristics
# =========================================================================


class TestHeuristics:
    @pytest.mark.parametrize("name", ["Generic", "generic", "ノーブランド", "ノーブランド品", "Unbranded"])
    def test_generic(self, name):
        result = check_brand(name)
        assert REASON_GENERIC in result.reasons
        assert result.score >= 25

    def test_consonant_only_token(self):
        result = check_brand("Bzrtk Store")
        assert result.score == 35
        assert result.reasons == (REASON_CONSONANT_ONLY,)

    def test_hyphen_delimited_token(self):
        assert has_consonant_only_token("Home-XKCDW") is True

    def test_three_consonants_not_enough(self):
        assert has_consonant_only_token("Xkc") is False

    def test_vowel_breaks_run(self):
        assert has_consonant_only_token("Strength") is False

    def test_uppercase_only(self):
        result = check_brand("QWERTZ")
        assert result.score == 30
        assert result.reasons == (REASON_UPPERCASE_ONLY,)

    def test_uppercase_delimiters_stripped(self):
        assert is_uppercase_only("ABC-DEF") is True
        assert is_uppercase_only("ABCDE") is False

    @pytest.mark.parametrize("name", ["HomeJP", "Kitchen Japan", "Kitchen日本", "homejp"])
    def test_jp_suffix(self, name):
        result = check_brand(name)
        assert REASON_JP_SUFFIX in result.reasons

    def test_all_checks_accumulate(self):
        result = check_brand("TRNXKJP")
        assert result.score == 35 + 30 + 20
        assert result.reasons == (REASON_CONSONANT_ONLY, REASON_UPPERCASE_ONLY, REASON_JP_SUFFIX)

    def test_generic_does_not_stop_other_checks(self):
        patterns = [BrandPattern(pattern="^gen", score=5, reason="gen prefix")]
        result = check_brand("Generic", (), patterns)
        assert result.score == 25 + 5
        assert result.reasons == (REASON_GENERIC, "gen prefix")

    def test_ordinary_brand_scores_zero(self):
        assert check_brand("Hikari").score == 0


# =========================================================================
# External patterns
# =========================================================================


class TestExternalPatterns:
    def test_match_adds_score_and_reason(self):
        patterns = [BrandPattern(pattern="zz$", score=10, reason="double z")]
        result = check_external_patterns("Fizz", patterns)
        assert result.score == 10
        assert result.reasons == ("double z",)

    def test_case_insensitive(self):
        patterns = [BrandPattern(pattern="FIZZ", score=10, reason="fizz")]
        assert check_external_patterns("fizz", patterns).score == 10

    def test_invalid_regex_skipped_others_applied(self, caplog):
        patterns = [
            BrandPattern(pattern="[unclosed-brand-pattern", score=50, reason="broken"),
            BrandPattern(pattern="zz", score=10, reason="double z"),
        ]
        with caplog.at_level(logging.WARNING, logger="listingtrust.brand_checker"):
            result = check_brand("Fizz", (), patterns)
        assert result.score == 10
        assert result.reasons == ("double z",)
        assert "invalid brand pattern" in caplog.text

    def test_empty_reason_not_reported(self):
        patterns = [BrandPattern(pattern="zz", score=10)]
        result = check_external_patterns("Fizz", patterns)
        assert result.score == 10
        assert result.reasons == ()

    def test_config_patterns_fixture(self, pattern_config):
        result = check_brand("BorK", pattern_config.trusted_brands, pattern_config.brand_patterns)
        assert "mixed-case shuffle" in result.reasons


# =========================================================================
# Properties
# =========================================================================

_brand_names = st.text(alphabet=string.ascii_letters + string.digits, min_size=1, max_size=24)


class TestProperties:
    @given(name=_brand_names, data=st.data())
    @settings(max_examples=100)
    def test_trusted_membership_always_short_circuits(self, name, data):
        variant = "".join(c.upper() if data.draw(st.booleans()) else c.lower() for c in name)
        result = check_brand(variant, {name})
        assert result.score == SCORE_TRUSTED
        assert result.reasons == (REASON_TRUSTED,)

    @given(name=_brand_names)
    @settings(max_examples=100)
    def test_untrusted_score_never_negative(self, name):
        assert check_brand(name, ()).score >= 0
