from .ticks import (
    Q96,
    MIN_TICK,
    MAX_TICK,
    get_sqrt_ratio_at_tick,
    sqrt_price_x96_to_price,
)
from .liquidity import (
    LiquidityAmounts,
    get_amount0_for_liquidity,
    get_amount1_for_liquidity,
    get_amounts_for_liquidity,
    get_amounts_for_position,
)
