"""
Concentrated-liquidity Tick Mathematics

Основные формулы:
- price(i) = 1.0001^i
- sqrtPriceX96 = sqrt(price) * 2^96

get_sqrt_ratio_at_tick повторяет TickMath.getSqrtRatioAtTick бит в бит:
те же 19 констант sqrt(1.0001^-2^k) в Q128.128, сдвиги >> 128,
инверсия для положительных тиков и >> 32 с округлением вверх до Q64.96.
sqrt_price_x96_to_price - спот цена пула (float) для NAV.
"""

# Константы
Q96 = 2 ** 96
Q192 = 2 ** 192
MAX_UINT256 = 2 ** 256 - 1
MIN_TICK = -887272
MAX_TICK = 887272
MIN_SQRT_RATIO = 4295128739
MAX_SQRT_RATIO = 1461446703485210103287273052203988822378723970342

# (бит |tick|, множитель Q128.128)
_TICK_BIT_RATIOS = (
    (0x2, 0xfff97272373d413259a46990580e213a),
    (0x4, 0xfff2e50f5f656932ef12357cf3c7fdcc),
    (0x8, 0xffe5caca7e10e4e61c3624eaa0941cd0),
    (0x10, 0xffcb9843d60f6159c9db58835c926644),
    (0x20, 0xff973b41fa98c081472e6896dfb254c0),
    (0x40, 0xff2ea16466c96a3843ec78b326b52861),
    (0x80, 0xfe5dee046a99a2a811c461f1969c3053),
    (0x100, 0xfcbe86c7900a88aedcffc83b479aa3a4),
    (0x200, 0xf987a7253ac413176f2b074cf7815e54),
    (0x400, 0xf3392b0822b70005940c7a398e4b70f3),
    (0x800, 0xe7159475a2c29b7443b29c7fa6e889d9),
    (0x1000, 0xd097f3bdfd2022b8845ad8f792aa5825),
    (0x2000, 0xa9f746462d870fdf8a65dc1f90e061e5),
    (0x4000, 0x70d869a156d2a1b890bb3df62baf32f7),
    (0x8000, 0x31be135f97d08fd981231505542fcfa6),
    (0x10000, 0x9aa508b5b7a84e1c677de54f3e99bc9),
    (0x20000, 0x5d6af8dedb81196699c329225ee604),
    (0x40000, 0x2216e584f5fa1ea926041bedfe98),
    (0x80000, 0x48a170391f7dc42444e8fa2),
)


def get_sqrt_ratio_at_tick(tick: int) -> int:
    """
    sqrt(1.0001^tick) * 2^96 как целое Q64.96.

    Args:
        tick: Тик в диапазоне [MIN_TICK, MAX_TICK]

    Returns:
        sqrtPriceX96

    Raises:
        ValueError: Тик вне допустимого диапазона

    Example:
        get_sqrt_ratio_at_tick(0)         # 2**96
        get_sqrt_ratio_at_tick(MIN_TICK)  # 4295128739
    """
    if not isinstance(tick, int) or isinstance(tick, bool):
        raise ValueError(f"Tick must be an integer, got {tick!r}")
    if tick < MIN_TICK or tick > MAX_TICK:
        raise ValueError(f"Tick {tick} out of range [{MIN_TICK}, {MAX_TICK}]")

    abs_tick = abs(tick)

    if abs_tick & 0x1:
        ratio = 0xfffcb933bd6fad37aa2d162d1a594001
    else:
        ratio = 0x100000000000000000000000000000000

    for bit, multiplier in _TICK_BIT_RATIOS:
        if abs_tick & bit:
            ratio = (ratio * multiplier) >> 128

    if tick > 0:
        ratio = MAX_UINT256 // ratio

    # Q128.128 -> Q64.96, округление вверх
    return (ratio >> 32) + (0 if ratio % (1 << 32) == 0 else 1)


def sqrt_price_x96_to_price(sqrt_price_x96: int) -> float:
    """
    Конвертация sqrtPriceX96 в цену.

    price = sqrtPriceX96^2 / 2^192 (token1 за token0 в raw единицах)

    Args:
        sqrt_price_x96: sqrtPriceX96

    Returns:
        Цена token1/token0
    """
    return sqrt_price_x96 * sqrt_price_x96 / Q192
