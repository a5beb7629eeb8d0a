"""
Concentrated-liquidity Amounts Mathematics

Формулы из whitepaper (все sqrt цены в Q64.96):
- amount0 = L * Q96 * (sqrtB - sqrtA) / (sqrtB * sqrtA)
- amount1 = L * (sqrtB - sqrtA) / Q96

Три режима по текущей цене:
- current <= lower: вся позиция в token0
- lower < current < upper: оба токена
- current >= upper: вся позиция в token1

Только целочисленная арифметика с округлением вниз, без float.
"""

from dataclasses import dataclass

from .ticks import Q96, get_sqrt_ratio_at_tick


@dataclass
class LiquidityAmounts:
    """Результат расчёта количества токенов."""
    amount0: int  # В wei/smallest unit
    amount1: int  # В wei/smallest unit
    liquidity: int


def get_amount0_for_liquidity(sqrt_ratio_a_x96: int, sqrt_ratio_b_x96: int, liquidity: int) -> int:
    """
    Количество token0 для liquidity между двумя sqrt ценами.

    Границы меняются местами, если переданы в обратном порядке.
    """
    if sqrt_ratio_a_x96 > sqrt_ratio_b_x96:
        sqrt_ratio_a_x96, sqrt_ratio_b_x96 = sqrt_ratio_b_x96, sqrt_ratio_a_x96
    if sqrt_ratio_a_x96 <= 0:
        raise ValueError("sqrt ratio must be positive")

    numerator = liquidity * Q96 * (sqrt_ratio_b_x96 - sqrt_ratio_a_x96)
    denominator = sqrt_ratio_b_x96 * sqrt_ratio_a_x96
    return numerator // denominator


def get_amount1_for_liquidity(sqrt_ratio_a_x96: int, sqrt_ratio_b_x96: int, liquidity: int) -> int:
    """Количество token1 для liquidity между двумя sqrt ценами."""
    if sqrt_ratio_a_x96 > sqrt_ratio_b_x96:
        sqrt_ratio_a_x96, sqrt_ratio_b_x96 = sqrt_ratio_b_x96, sqrt_ratio_a_x96
    return liquidity * (sqrt_ratio_b_x96 - sqrt_ratio_a_x96) // Q96


def get_amounts_for_liquidity(
    sqrt_ratio_x96: int,
    sqrt_ratio_a_x96: int,
    sqrt_ratio_b_x96: int,
    liquidity: int
) -> LiquidityAmounts:
    """
    Расчёт количества обоих токенов для заданной liquidity.

    Args:
        sqrt_ratio_x96: Текущая sqrt цена пула
        sqrt_ratio_a_x96: sqrt цена нижней границы
        sqrt_ratio_b_x96: sqrt цена верхней границы
        liquidity: Liquidity (L)

    Returns:
        LiquidityAmounts с amount0 и amount1
    """
    if sqrt_ratio_a_x96 > sqrt_ratio_b_x96:
        sqrt_ratio_a_x96, sqrt_ratio_b_x96 = sqrt_ratio_b_x96, sqrt_ratio_a_x96

    amount0 = 0
    amount1 = 0

    # Случай 1: текущая цена ниже (или на) нижней границе
    if sqrt_ratio_x96 <= sqrt_ratio_a_x96:
        amount0 = get_amount0_for_liquidity(sqrt_ratio_a_x96, sqrt_ratio_b_x96, liquidity)

    # Случай 2: текущая цена в диапазоне
    elif sqrt_ratio_x96 < sqrt_ratio_b_x96:
        amount0 = get_amount0_for_liquidity(sqrt_ratio_x96, sqrt_ratio_b_x96, liquidity)
        amount1 = get_amount1_for_liquidity(sqrt_ratio_a_x96, sqrt_ratio_x96, liquidity)

    # Случай 3: текущая цена выше (или на) верхней границе
    else:
        amount1 = get_amount1_for_liquidity(sqrt_ratio_a_x96, sqrt_ratio_b_x96, liquidity)

    return LiquidityAmounts(amount0=amount0, amount1=amount1, liquidity=liquidity)


def get_amounts_for_position(
    sqrt_price_x96: int,
    tick_lower: int,
    tick_upper: int,
    liquidity: int
) -> LiquidityAmounts:
    """
    Количество токенов позиции по текущей sqrt цене и диапазону тиков.

    Example:
        amounts = get_amounts_for_position(slot0_sqrt, -887220, 887220, 10**18)
        amounts.amount0, amounts.amount1
    """
    return get_amounts_for_liquidity(
        sqrt_price_x96,
        get_sqrt_ratio_at_tick(tick_lower),
        get_sqrt_ratio_at_tick(tick_upper),
        liquidity
    )
