"""
Tests for lp_nav.math.liquidity.

Три режима (ниже / внутри / выше диапазона), автоматический swap
границ, вырожденный диапазон и целочисленное округление вниз.
"""

import pytest

from lp_nav.math.liquidity import (
    LiquidityAmounts,
    get_amount0_for_liquidity,
    get_amount1_for_liquidity,
    get_amounts_for_liquidity,
    get_amounts_for_position,
)
from lp_nav.math.ticks import Q96, get_sqrt_ratio_at_tick


# Диапазон цен [1, 4] -> sqrt в [1, 2]
SQRT_A = Q96
SQRT_B = 2 * Q96
L = 1000


class TestSingleSided:

    def test_amount0(self):
        # 1000 * (2 - 1) / (2 * 1) = 500
        assert get_amount0_for_liquidity(SQRT_A, SQRT_B, L) == 500

    def test_amount1(self):
        # 1000 * (2 - 1) = 1000
        assert get_amount1_for_liquidity(SQRT_A, SQRT_B, L) == 1000

    def test_bounds_swapped(self):
        assert get_amount0_for_liquidity(SQRT_B, SQRT_A, L) == 500
        assert get_amount1_for_liquidity(SQRT_B, SQRT_A, L) == 1000

    def test_zero_sqrt_rejected(self):
        with pytest.raises(ValueError):
            get_amount0_for_liquidity(0, SQRT_B, L)


class TestGetAmountsForLiquidity:
    """Режимы по текущей цене."""

    def test_below_range_all_token0(self):
        amounts = get_amounts_for_liquidity(SQRT_A // 2, SQRT_A, SQRT_B, L)
        assert amounts == LiquidityAmounts(amount0=500, amount1=0, liquidity=L)

    def test_at_lower_bound_all_token0(self):
        amounts = get_amounts_for_liquidity(SQRT_A, SQRT_A, SQRT_B, L)
        assert (amounts.amount0, amounts.amount1) == (500, 0)

    def test_above_range_all_token1(self):
        amounts = get_amounts_for_liquidity(3 * Q96, SQRT_A, SQRT_B, L)
        assert (amounts.amount0, amounts.amount1) == (0, 1000)

    def test_at_upper_bound_all_token1(self):
        amounts = get_amounts_for_liquidity(SQRT_B, SQRT_A, SQRT_B, L)
        assert (amounts.amount0, amounts.amount1) == (0, 1000)

    def test_in_range_floor_division(self):
        # sqrt current = 1.5: amount0 = 1000 * 0.5 / 3 = 166.67 -> 166
        #                     amount1 = 1000 * 0.5 = 500
        amounts = get_amounts_for_liquidity(3 * Q96 // 2, SQRT_A, SQRT_B, L)
        assert (amounts.amount0, amounts.amount1) == (166, 500)

    def test_bounds_auto_swapped(self):
        current = 3 * Q96 // 2
        assert get_amounts_for_liquidity(current, SQRT_B, SQRT_A, L) == get_amounts_for_liquidity(current, SQRT_A, SQRT_B, L)

    def test_degenerate_range(self):
        for current in (SQRT_A // 2, SQRT_A, 3 * Q96):
            amounts = get_amounts_for_liquidity(current, SQRT_A, SQRT_A, L)
            assert (amounts.amount0, amounts.amount1) == (0, 0)

    def test_zero_liquidity(self):
        amounts = get_amounts_for_liquidity(3 * Q96 // 2, SQRT_A, SQRT_B, 0)
        assert (amounts.amount0, amounts.amount1) == (0, 0)

    def test_results_are_int(self):
        amounts = get_amounts_for_liquidity(3 * Q96 // 2, SQRT_A, SQRT_B, 10 ** 24)
        assert isinstance(amounts.amount0, int)
        assert isinstance(amounts.amount1, int)


class TestGetAmountsForPosition:
    """Через тики."""

    def test_full_range_at_price_one(self):
        liquidity = 10 ** 18
        amounts = get_amounts_for_position(Q96, -887220, 887220, liquidity)
        # При цене 1 обе стороны ~ L
        assert amounts.amount0 == pytest.approx(liquidity, rel=1e-6)
        assert amounts.amount1 == pytest.approx(liquidity, rel=1e-6)

    def test_matches_direct_formula(self):
        liquidity = 123456789 * 10 ** 12
        sqrt_a = get_sqrt_ratio_at_tick(-600)
        sqrt_b = get_sqrt_ratio_at_tick(1200)
        current = get_sqrt_ratio_at_tick(300)

        amounts = get_amounts_for_position(current, -600, 1200, liquidity)

        assert amounts.amount0 == liquidity * Q96 * (sqrt_b - current) // (sqrt_b * current)
        assert amounts.amount1 == liquidity * (current - sqrt_a) // Q96

    def test_out_of_range_below(self):
        amounts = get_amounts_for_position(get_sqrt_ratio_at_tick(-1000), -600, 600, 10 ** 18)
        assert amounts.amount0 > 0
        assert amounts.amount1 == 0

    def test_out_of_range_above(self):
        amounts = get_amounts_for_position(get_sqrt_ratio_at_tick(1000), -600, 600, 10 ** 18)
        assert amounts.amount0 == 0
        assert amounts.amount1 > 0

    def test_invalid_tick(self):
        with pytest.raises(ValueError):
            get_amounts_for_position(Q96, -900000, 600, 10 ** 18)


class TestEndToEndScenario:
    """Позиция [-100, 100], L = 1_000_000."""

    LIQUIDITY = 1_000_000

    def test_in_range_at_tick_zero(self):
        amounts = get_amounts_for_position(get_sqrt_ratio_at_tick(0), -100, 100, self.LIQUIDITY)
        assert isinstance(amounts.amount0, int) and isinstance(amounts.amount1, int)
        assert amounts.amount0 > 0
        assert amounts.amount1 > 0
        # Диапазон симметричен вокруг цены 1
        assert abs(amounts.amount0 - amounts.amount1) <= 1

    def test_below_range_at_tick_minus_200(self):
        amounts = get_amounts_for_position(get_sqrt_ratio_at_tick(-200), -100, 100, self.LIQUIDITY)
        assert amounts.amount0 > 0
        assert amounts.amount1 == 0

    def test_idempotent(self):
        args = (get_sqrt_ratio_at_tick(37), get_sqrt_ratio_at_tick(-100), get_sqrt_ratio_at_tick(100), self.LIQUIDITY)
        assert get_amounts_for_liquidity(*args) == get_amounts_for_liquidity(*args)

    @pytest.mark.parametrize("current_tick", [-100, -37, 0, 42, 100])
    def test_non_negative_and_symmetric(self, current_tick):
        current = get_sqrt_ratio_at_tick(current_tick)
        lower, upper = get_sqrt_ratio_at_tick(-100), get_sqrt_ratio_at_tick(100)

        amounts = get_amounts_for_liquidity(current, lower, upper, self.LIQUIDITY)

        assert amounts.amount0 >= 0 and amounts.amount1 >= 0
        assert get_amounts_for_liquidity(current, upper, lower, self.LIQUIDITY) == amounts
