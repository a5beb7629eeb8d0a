"""
NAV report.

Позиции с liquidity > 0 группируются по кошельку и DEX. Для каждой
позиции: количества токенов в человеческих единицах, базовый токен
пары (WETH, затем USDC, USDT, затем WBTC) и NAV в базовом токене.
Итоги по классам numeraire (WETH, WBTC, стейблкоины) копятся в NavTotals.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from config import BASE_ASSET, BTC_SYMBOLS, NUMERAIRE_PRIORITY, STABLECOIN_SYMBOLS
from .position_valuer import NAV_SOURCE_SPOT, PositionRecord

logger = logging.getLogger(__name__)


@dataclass
class PositionLine:
    """Строка отчёта по одной позиции."""
    wallet: str
    dex: str
    chain: str
    token_id: int
    token0_symbol: str
    token1_symbol: str
    amount0: Optional[float]
    amount1: Optional[float]
    base_token: Optional[str] = None
    nav: Optional[float] = None


@dataclass
class NavTotals:
    """Суммарный NAV по классам numeraire."""
    weth: float = 0.0
    wbtc: float = 0.0
    stablecoin: float = 0.0

    def add(self, base_token: Optional[str], nav: Optional[float]) -> None:
        if not base_token or not nav:
            return
        if base_token == BASE_ASSET:
            self.weth += nav
        elif base_token in BTC_SYMBOLS:
            self.wbtc += nav
        elif base_token in STABLECOIN_SYMBOLS:
            self.stablecoin += nav


@dataclass
class NavReport:
    """Позиции wallet -> dex -> строки и итоги."""
    groups: Dict[str, Dict[str, List[PositionLine]]] = field(default_factory=dict)
    totals: NavTotals = field(default_factory=NavTotals)


def to_human(amount: Optional[int], decimals: int) -> Optional[float]:
    if amount is None:
        return None
    return amount / 10 ** decimals


def pick_base_token(token0_symbol: str, token1_symbol: str) -> Optional[Tuple[str, int]]:
    """(символ базового токена, сторона 0/1) по приоритету numeraire."""
    symbols = (token0_symbol.upper(), token1_symbol.upper())
    for numeraire in NUMERAIRE_PRIORITY:
        for side, symbol in enumerate(symbols):
            if symbol == numeraire:
                return numeraire, side
    return None


def price_token1_per_token0(record: PositionRecord) -> Optional[float]:
    """
    Цена token0 в token1 в человеческих единицах.

    Курс погашения хранится как token0 за token1, спот цена - как
    token1 за token0 в raw единицах (нужна поправка на decimals).
    """
    if not record.nav_price:
        return None
    if record.nav_price_source == NAV_SOURCE_SPOT:
        return record.nav_price * 10 ** (record.token0_decimals - record.token1_decimals)
    return 1 / record.nav_price


def build_position_line(record: PositionRecord) -> Optional[PositionLine]:
    """Строка отчёта; None если у позиции нет symbol/decimals токенов."""
    if (
        not record.token0_symbol
        or not record.token1_symbol
        or record.token0_decimals is None
        or record.token1_decimals is None
    ):
        return None

    line = PositionLine(
        wallet=record.wallet,
        dex=record.dex,
        chain=record.chain,
        token_id=record.token_id,
        token0_symbol=record.token0_symbol,
        token1_symbol=record.token1_symbol,
        amount0=to_human(record.amount0, record.token0_decimals),
        amount1=to_human(record.amount1, record.token1_decimals),
    )

    base = pick_base_token(record.token0_symbol, record.token1_symbol)
    if base is None:
        return line
    line.base_token = base[0]

    price = price_token1_per_token0(record)
    if price is None or line.amount0 is None or line.amount1 is None:
        return line

    if base[1] == 0:
        line.nav = line.amount0 + line.amount1 / price
    else:
        line.nav = line.amount1 + line.amount0 * price
    return line


def build_report(records: List[PositionRecord]) -> NavReport:
    """Группировка позиций с ликвидностью и подсчёт итогов."""
    report = NavReport()
    with_liquidity = [r for r in records if r.liquidity > 0]
    logger.info(f"Total positions with liquidity: {len(with_liquidity)}")

    for record in with_liquidity:
        line = build_position_line(record)
        if line is None:
            logger.debug(f"Skipping #{record.token_id} on {record.dex}: token info unavailable")
            continue
        report.groups.setdefault(record.wallet, {}).setdefault(record.dex, []).append(line)
        report.totals.add(line.base_token, line.nav)
    return report


def format_report(report: NavReport) -> List[str]:
    """Текст отчёта построчно."""
    lines: List[str] = []
    for wallet_index, (wallet, dexes) in enumerate(report.groups.items(), start=1):
        lines.append(f"Wallet {wallet_index} ({wallet})")
        for dex, positions in dexes.items():
            lines.append(f"  - {dex}")
            for p in positions:
                if p.amount0 is None or p.amount1 is None:
                    lines.append(
                        f"      - nftID {p.token_id} ({p.chain}): "
                        f"{p.token0_symbol} / {p.token1_symbol} | amounts unavailable"
                    )
                    continue
                text = (
                    f"      - nftID {p.token_id} ({p.chain}): {p.amount0:.4f} {p.token0_symbol}"
                    f" / {p.amount1:.4f} {p.token1_symbol}"
                )
                if p.nav:
                    text += f" | NAV: {p.nav:.4f} {p.base_token}"
                lines.append(text)

    lines.append("")
    lines.append("Total NAV across all wallets:")
    lines.append(f"Total WETH value: {report.totals.weth:.4f} WETH")
    lines.append(f"Total WBTC value: {report.totals.wbtc:.4f} WBTC")
    lines.append(f"Total Stablecoin value: {report.totals.stablecoin:.2f} USD")
    return lines
