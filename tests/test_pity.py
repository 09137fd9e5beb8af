"""Tests for pity tracking."""

import random

import pytest

from fruitgacha.config import Settings
from fruitgacha.models.tier import Tier
from fruitgacha.services.pity import MAX_FORCE_CHANCE, PityTracker
from fruitgacha.services.rarity import soft_pity_boost


@pytest.fixture
def tracker() -> PityTracker:
    return PityTracker(soft_pity=1200, hard_pity=1500)


class TestPullPosition:
    def test_next_pull_is_counter_plus_one(self) -> None:
        assert PityTracker.pulls_for_next(0) == 1
        assert PityTracker.pulls_for_next(1499) == 1500

    def test_hard_pity_reached_at_threshold(self, tracker: PityTracker) -> None:
        assert tracker.is_hard_pity(1499)
        assert not tracker.is_hard_pity(1498)

    def test_from_settings(self) -> None:
        tracker = PityTracker.from_settings(Settings(soft_pity_threshold=5, hard_pity_threshold=9))

        assert tracker.soft_pity == 5
        assert tracker.hard_pity == 9


class TestForceChance:
    def test_zero_below_soft_pity(self, tracker: PityTracker) -> None:
        assert tracker.force_chance(0) == 0.0
        assert tracker.force_chance(1198) == 0.0

    def test_zero_at_soft_threshold(self, tracker: PityTracker) -> None:
        # counter 1199 is the 1200th pull
        assert tracker.force_chance(1199) == 0.0

    def test_scales_linearly(self, tracker: PityTracker) -> None:
        assert tracker.force_chance(1349) == pytest.approx(0.25)

    def test_never_exceeds_half_before_hard_pity(self, tracker: PityTracker) -> None:
        for counter in range(1199, 1499):
            assert tracker.force_chance(counter) <= MAX_FORCE_CHANCE

    def test_certain_at_hard_pity(self, tracker: PityTracker) -> None:
        assert tracker.force_chance(1499) == 1.0
        assert tracker.force_chance(2000) == 1.0


class TestShouldForcePity:
    def test_never_below_soft_pity(self, tracker: PityTracker) -> None:
        rng = random.Random(1)

        assert not any(tracker.should_force_pity(100, rng) for _ in range(1000))

    def test_always_at_hard_pity(self, tracker: PityTracker, scripted_rng) -> None:
        rng = scripted_rng([0.999999])

        assert tracker.should_force_pity(1499, rng)

    def test_secondary_roll_between_thresholds(
        self, tracker: PityTracker, scripted_rng
    ) -> None:
        # force chance at counter 1349 is 0.25
        assert tracker.should_force_pity(1349, scripted_rng([0.1]))
        assert not tracker.should_force_pity(1349, scripted_rng([0.3]))


class TestApplyResult:
    @pytest.mark.parametrize("tier", [Tier.MYTHICAL, Tier.DIVINE])
    def test_top_tier_resets(self, tier: Tier) -> None:
        assert PityTracker.apply_result(812, tier) == 0

    @pytest.mark.parametrize(
        "tier", [Tier.COMMON, Tier.UNCOMMON, Tier.RARE, Tier.EPIC, Tier.LEGENDARY]
    )
    def test_other_tiers_increment(self, tier: Tier) -> None:
        assert PityTracker.apply_result(812, tier) == 813


class TestInfo:
    def test_percentage_of_hard_pity(self, tracker: PityTracker) -> None:
        info = tracker.info(600)

        assert info.current == 600
        assert info.percentage == 40.0
        assert info.pity_active is False

    def test_active_when_next_pull_reaches_soft_threshold(self, tracker: PityTracker) -> None:
        assert tracker.info(1198).pity_active is False
        assert tracker.info(1199).pity_active is True

    @pytest.mark.parametrize("counter", [18, 19, 20, 29])
    def test_active_matches_rate_boost(self, counter: int) -> None:
        rules = Settings(soft_pity_threshold=20, hard_pity_threshold=30)
        tracker = PityTracker.from_settings(rules)
        boosted = soft_pity_boost(tracker.pulls_for_next(counter), rules) > 1.0

        assert tracker.info(counter).pity_active is boosted

    def test_percentage_capped(self, tracker: PityTracker) -> None:
        assert tracker.info(3000).percentage == 100.0
