"""
DEX capability table.

Форки Uniswap V3 отличаются раскладкой positions(), способом поиска пула
в фабрике и именем price slot. Различия описаны один раз на DEX,
вызывающий код не ветвится по имени DEX.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional

from .contracts.abis import (
    POSITION_MANAGER_ABI,
    ALGEBRA_POSITION_MANAGER_ABI,
    FACTORY_ABI,
    CL_FACTORY_ABI,
    ALGEBRA_FACTORY_ABI,
    POOL_ABI,
    CL_POOL_ABI,
    ALGEBRA_POOL_ABI,
)
from .exceptions import ConfigurationError


@dataclass(frozen=True)
class PositionLayout:
    """Индексы полей в кортеже positions(tokenId)."""
    token0: int
    token1: int
    fee: Optional[int]  # None - у форка нет поля fee
    tick_lower: int
    tick_upper: int
    liquidity: int


# nonce, operator, token0, token1, fee, tickLower, tickUpper, liquidity, ...
FEE_LAYOUT = PositionLayout(token0=2, token1=3, fee=4, tick_lower=5, tick_upper=6, liquidity=7)
# nonce, operator, token0, token1, tickLower, tickUpper, liquidity, ...
NO_FEE_LAYOUT = PositionLayout(token0=2, token1=3, fee=None, tick_lower=4, tick_upper=5, liquidity=6)


@dataclass
class PositionFields:
    """Поля позиции, нужные для оценки."""
    token0: str
    token1: str
    fee: int
    tick_lower: int
    tick_upper: int
    liquidity: int


@dataclass(frozen=True)
class DexProfile:
    """Возможности одного DEX форка."""
    name: str
    layout: PositionLayout
    position_manager_abi: List[dict]
    factory_abi: List[dict]
    pool_abi: List[dict]
    pool_lookup: str   # getPool | poolByPair
    price_slot: str    # slot0 | globalState

    def parse_position(self, raw: tuple) -> PositionFields:
        """Разбор кортежа positions() по раскладке форка."""
        layout = self.layout
        return PositionFields(
            token0=raw[layout.token0],
            token1=raw[layout.token1],
            fee=0 if layout.fee is None else int(raw[layout.fee]),
            tick_lower=int(raw[layout.tick_lower]),
            tick_upper=int(raw[layout.tick_upper]),
            liquidity=int(raw[layout.liquidity]),
        )

    def pool_lookup_args(self, token0: str, token1: str, fee: int) -> tuple:
        """Аргументы вызова поиска пула в фабрике."""
        if self.pool_lookup == "poolByPair":
            return (token0, token1)
        return (token0, token1, fee)


DEX_PROFILES: Dict[str, DexProfile] = {
    "uniswap": DexProfile(
        name="uniswap",
        layout=FEE_LAYOUT,
        position_manager_abi=POSITION_MANAGER_ABI,
        factory_abi=FACTORY_ABI,
        pool_abi=POOL_ABI,
        pool_lookup="getPool",
        price_slot="slot0",
    ),
    "pancakeswap": DexProfile(
        name="pancakeswap",
        layout=FEE_LAYOUT,
        position_manager_abi=POSITION_MANAGER_ABI,
        factory_abi=FACTORY_ABI,
        pool_abi=POOL_ABI,
        pool_lookup="getPool",
        price_slot="slot0",
    ),
    # Slipstream: поле fee в positions() - это tickSpacing
    "aerodrome": DexProfile(
        name="aerodrome",
        layout=FEE_LAYOUT,
        position_manager_abi=POSITION_MANAGER_ABI,
        factory_abi=CL_FACTORY_ABI,
        pool_abi=CL_POOL_ABI,
        pool_lookup="getPool",
        price_slot="slot0",
    ),
    "velodrome": DexProfile(
        name="velodrome",
        layout=FEE_LAYOUT,
        position_manager_abi=POSITION_MANAGER_ABI,
        factory_abi=CL_FACTORY_ABI,
        pool_abi=CL_POOL_ABI,
        pool_lookup="getPool",
        price_slot="slot0",
    ),
    "camelot": DexProfile(
        name="camelot",
        layout=NO_FEE_LAYOUT,
        position_manager_abi=ALGEBRA_POSITION_MANAGER_ABI,
        factory_abi=ALGEBRA_FACTORY_ABI,
        pool_abi=ALGEBRA_POOL_ABI,
        pool_lookup="poolByPair",
        price_slot="globalState",
    ),
}


def get_dex_profile(dex: str) -> DexProfile:
    """Профиль DEX по имени."""
    profile = DEX_PROFILES.get(dex.lower())
    if profile is None:
        raise ConfigurationError(f"Unsupported DEX: {dex}")
    return profile
