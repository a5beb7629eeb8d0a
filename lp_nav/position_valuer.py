"""
Position Valuer

Оценка NFT позиций одной сети. Для каждого чанка позиций три
последовательных прохода multicall:
1. positions(tokenId) на PositionManager
2. getPool / poolByPair на фабрике (нужны token0/token1/fee из п.1)
3. slot0 / globalState на пуле (нужен адрес пула из п.2)

Затем метаданные токенов из кэша, количества токенов по RangeMath и
NAV цена пары в базовом активе.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from web3 import Web3

from config import BASE_ASSET, MULTICALL_CHUNK_SIZE, ZERO_ADDRESS, get_contract_address, normalize_chain_name
from .dexes import get_dex_profile
from .exceptions import LpNavError, RateLimitExceededError
from .lst_prices import NumerairePricer
from .math.liquidity import get_amounts_for_position
from .math.ticks import sqrt_price_x96_to_price
from .multicall.batcher import Call, MulticallBatcher
from .tokens import TokenService

logger = logging.getLogger(__name__)

NAV_SOURCE_REDEEM = "redeem"
NAV_SOURCE_SPOT = "spot"


@dataclass
class NftPosition:
    """NFT позиция кошелька на DEX."""
    wallet: str
    dex: str
    token_id: int


@dataclass
class PositionRecord:
    """Оценённая позиция (только для отчёта, не сохраняется)."""
    wallet: str
    dex: str
    token_id: int
    chain: str
    pool: str = ZERO_ADDRESS
    token0: str = ZERO_ADDRESS
    token1: str = ZERO_ADDRESS
    fee: int = 0
    tick_lower: Optional[int] = None
    tick_upper: Optional[int] = None
    liquidity: int = 0
    sqrt_price_x96: int = 0
    amount0: Optional[int] = None
    amount1: Optional[int] = None
    token0_symbol: Optional[str] = None
    token1_symbol: Optional[str] = None
    token0_decimals: Optional[int] = None
    token1_decimals: Optional[int] = None
    nav_price: Optional[float] = None
    nav_price_source: Optional[str] = None  # NAV_SOURCE_REDEEM | NAV_SOURCE_SPOT

    @property
    def has_amounts(self) -> bool:
        return self.amount0 is not None and self.amount1 is not None


def compute_nav_price(
    token0_symbol: str,
    token1_symbol: str,
    sqrt_price_x96: int,
    pricer: NumerairePricer
) -> Tuple[float, str]:
    """
    NAV цена пары и её источник.

    - token0 = базовый актив -> курс погашения token1 (token0 за token1)
    - token1 = базовый актив -> 1 / курс погашения token0 (token0 за token1)
    - иначе (или если курс не получен / не положительный) -> спот цена
      пула sqrt^2 / 2^192 (token1 за token0, raw единицы)
    """
    if token0_symbol.upper() == BASE_ASSET:
        priced, invert = token1_symbol, False
    elif token1_symbol.upper() == BASE_ASSET:
        priced, invert = token0_symbol, True
    else:
        priced = None

    if priced is not None:
        try:
            rate = pricer.get_redeem_price(priced)
        except RateLimitExceededError:
            raise
        except LpNavError as e:
            logger.debug(f"Redeem price unavailable for {priced}: {e}")
            rate = 0.0
        if rate > 0:
            return (1 / rate if invert else rate), NAV_SOURCE_REDEEM
        logger.debug(f"Falling back to spot price for {token0_symbol}/{token1_symbol}")
    return sqrt_price_x96_to_price(sqrt_price_x96), NAV_SOURCE_SPOT


class PositionValuer:
    """
    Детали и оценка NFT позиций одной сети.

    Usage:
        valuer = PositionValuer(batcher, "base", token_service, pricer)
        records = valuer.get_position_details(nft_positions)
    """

    def __init__(
        self,
        batcher: MulticallBatcher,
        chain: str,
        token_service: TokenService,
        pricer: NumerairePricer,
        chunk_size: int = MULTICALL_CHUNK_SIZE
    ):
        self.batcher = batcher
        self.chain = normalize_chain_name(chain)
        self.token_service = token_service
        self.pricer = pricer
        self.chunk_size = chunk_size

    # ── Pass 1: positions() ───────────────────────────────────────────

    def _fetch_positions(self, chunk: List[NftPosition]) -> List[PositionRecord]:
        calls: List[Call] = []
        requested: List[NftPosition] = []
        for nft in chunk:
            manager = get_contract_address(nft.dex, self.chain, "NonfungiblePositionManager")
            if not manager:
                logger.warning(f"No {nft.dex} position manager on {self.chain}, skipping #{nft.token_id}")
                continue
            profile = get_dex_profile(nft.dex)
            calls.append(Call(manager, profile.position_manager_abi, "positions", (int(nft.token_id),)))
            requested.append(nft)

        if not calls:
            return []

        records: List[PositionRecord] = []
        for nft, result in zip(requested, self.batcher.execute_batch(calls)):
            if not result.success:
                logger.warning(f"positions({nft.token_id}) failed on {nft.dex}/{self.chain}: {result.error}")
                continue
            fields = get_dex_profile(nft.dex).parse_position(result.value)
            records.append(PositionRecord(
                wallet=nft.wallet,
                dex=nft.dex,
                token_id=int(nft.token_id),
                chain=self.chain,
                token0=Web3.to_checksum_address(fields.token0),
                token1=Web3.to_checksum_address(fields.token1),
                fee=fields.fee,
                tick_lower=fields.tick_lower,
                tick_upper=fields.tick_upper,
                liquidity=fields.liquidity,
            ))
        return records

    # ── Pass 2: pool lookup ───────────────────────────────────────────

    def _fetch_pools(self, records: List[PositionRecord]) -> None:
        calls: List[Call] = []
        pending: List[PositionRecord] = []
        for record in records:
            factory = get_contract_address(record.dex, self.chain, "Factory")
            if not factory:
                continue
            profile = get_dex_profile(record.dex)
            calls.append(Call(
                factory,
                profile.factory_abi,
                profile.pool_lookup,
                profile.pool_lookup_args(record.token0, record.token1, record.fee)
            ))
            pending.append(record)

        if not calls:
            return

        for record, result in zip(pending, self.batcher.execute_chunked(calls, self.chunk_size)):
            if result.success and isinstance(result.value, str) and result.value.startswith("0x"):
                record.pool = Web3.to_checksum_address(result.value)

    # ── Pass 3: price slot ────────────────────────────────────────────

    def _fetch_price_slots(self, records: List[PositionRecord]) -> None:
        calls: List[Call] = []
        pending: List[PositionRecord] = []
        for record in records:
            if record.pool.lower() == ZERO_ADDRESS:
                continue
            profile = get_dex_profile(record.dex)
            calls.append(Call(record.pool, profile.pool_abi, profile.price_slot))
            pending.append(record)

        if not calls:
            return

        for record, result in zip(pending, self.batcher.execute_chunked(calls, self.chunk_size)):
            if result.success:
                # Только первое поле: sqrt price
                record.sqrt_price_x96 = int(result.value[0])

    # ── Tokens, amounts, NAV ──────────────────────────────────────────

    def _apply_token_info(self, records: List[PositionRecord]) -> None:
        addresses: List[str] = []
        for record in records:
            addresses.extend([record.token0, record.token1])
        token_info = self.token_service.get_token_info(addresses)

        for record in records:
            token0 = token_info.get(record.token0.lower())
            token1 = token_info.get(record.token1.lower())
            if token0:
                record.token0_symbol = token0.symbol
                record.token0_decimals = token0.decimals
            if token1:
                record.token1_symbol = token1.symbol
                record.token1_decimals = token1.decimals

    def _value(self, record: PositionRecord) -> None:
        if not (
            record.sqrt_price_x96
            and record.tick_lower is not None
            and record.tick_upper is not None
            and record.liquidity
        ):
            return

        amounts = get_amounts_for_position(
            record.sqrt_price_x96,
            record.tick_lower,
            record.tick_upper,
            record.liquidity
        )
        record.amount0 = amounts.amount0
        record.amount1 = amounts.amount1

        if record.token0_symbol and record.token1_symbol:
            record.nav_price, record.nav_price_source = compute_nav_price(
                record.token0_symbol,
                record.token1_symbol,
                record.sqrt_price_x96,
                self.pricer
            )

    def get_position_details(self, positions: List[NftPosition]) -> List[PositionRecord]:
        """Детали, количества токенов и NAV цена для списка NFT."""
        records: List[PositionRecord] = []
        for start in range(0, len(positions), self.chunk_size):
            chunk = positions[start:start + self.chunk_size]
            chunk_records = self._fetch_positions(chunk)
            self._fetch_pools(chunk_records)
            self._fetch_price_slots(chunk_records)
            records.extend(chunk_records)

        logger.info(f"Fetched {len(records)}/{len(positions)} positions on {self.chain}")
        if not records:
            return records

        self._apply_token_info(records)
        for record in records:
            self._value(record)
        return records
