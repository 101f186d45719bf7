"""Unit tests for engagement score weights and tier classification."""

from __future__ import annotations

import itertools

import pytest

from dealflow.engagement.scoring import (
    SCORE_WEIGHTS,
    TIER_THRESHOLDS,
    Tier,
    calculate_score,
    classify_tier,
    subtype_weight,
)


class TestScoreWeights:
    def test_weight_table(self):
        assert SCORE_WEIGHTS == {
            "flex_term_sheet_requested": 100,
            "flex_nda_requested": 50,
            "flex_info_requested": 30,
            "flex_deal_saved": 15,
            "flex_file_downloaded": 10,
            "flex_deal_shared": 8,
            "flex_deal_viewed": 1,
        }

    def test_unknown_subtype_weighs_zero(self):
        assert subtype_weight("flex_something_new") == 0
        assert subtype_weight("stage_changed") == 0

    def test_empty_subtype_weighs_zero(self):
        assert subtype_weight("") == 0
        assert subtype_weight(None) == 0


class TestCalculateScore:
    def test_view_download_nda_is_61(self):
        events = ["flex_deal_viewed", "flex_file_downloaded", "flex_nda_requested"]
        assert calculate_score(events) == 61

    def test_single_view_is_1(self):
        assert calculate_score(["flex_deal_viewed"]) == 1

    def test_no_events_is_0(self):
        assert calculate_score([]) == 0

    def test_order_independent(self):
        events = ["flex_deal_viewed", "flex_deal_saved", "flex_term_sheet_requested", "flex_deal_shared"]
        scores = {calculate_score(p) for p in itertools.permutations(events)}
        assert scores == {124}

    def test_unknown_subtypes_contribute_nothing(self):
        assert calculate_score(["flex_deal_viewed", "flex_mystery", "milestone_added"]) == 1

    def test_accepts_dicts_and_objects(self):
        class Row:
            subtype = "flex_deal_saved"

        events = [{"subtype": "flex_deal_viewed"}, {"activity_type": "flex_info_requested"}, Row()]
        assert calculate_score(events) == 46


class TestClassifyTier:
    def test_61_is_hot(self):
        assert classify_tier(61) == Tier.HOT

    def test_1_is_cold(self):
        assert classify_tier(1) == Tier.COLD

    def test_0_is_none(self):
        assert classify_tier(0) == Tier.NONE

    def test_negative_is_none(self):
        assert classify_tier(-5) == Tier.NONE

    @pytest.mark.parametrize(
        ("score", "expected"),
        [(14, Tier.COLD), (15, Tier.WARM), (49, Tier.WARM), (50, Tier.HOT), (10_000, Tier.HOT)],
    )
    def test_boundaries(self, score, expected):
        assert classify_tier(score) == expected

    def test_thresholds_descending(self):
        values = [threshold for threshold, _ in TIER_THRESHOLDS]
        assert values == sorted(values, reverse=True)

    def test_monotonic(self):
        tiers = [classify_tier(s).rank for s in range(-10, 200)]
        assert tiers == sorted(tiers)

    def test_total(self):
        for score in range(-100, 300):
            assert classify_tier(score) in set(Tier)

    def test_tier_values_serialize_as_strings(self):
        assert Tier.HOT.value == "hot"
        assert Tier.NONE == "none"
