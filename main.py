"""
Concentrated-liquidity NAV scanner

Поиск и оценка NFT позиций Uniswap V3 и форков во всех сетях:
1. Пулы с гейджами (aerodrome/base, velodrome/optimism) - инкрементально
2. Для каждой сети: NFT в кошельках + NFT, застейканные в гейджах
3. Детали позиций, количества токенов и NAV цена
4. Отчёт по кошелькам и итоги в WETH / WBTC / стейблкоинах

Каждая пара (dex, chain) и каждая сеть обрабатываются независимо:
фатальная ошибка одной единицы логируется, остальные продолжаются.
"""

import logging
import sys
from typing import Callable, Dict, List

from dotenv import load_dotenv
from web3 import Web3

from config import (
    GAUGE_DEX_CHAINS,
    SCAN_CHAINS,
    get_data_dir,
    get_rpc_url,
    get_wallet_addresses,
)
from lp_nav.lst_prices import NumerairePricer
from lp_nav.multicall.batcher import MulticallBatcher
from lp_nav.nft_discovery import NftScanner, StakedNftScanner
from lp_nav.pool_indexer import PoolGauge, PoolIndexer
from lp_nav.position_valuer import NftPosition, PositionRecord, PositionValuer
from lp_nav.report import NavReport, build_report, format_report
from lp_nav.storage import PoolStore, TokenStore
from lp_nav.tokens import TokenService

logger = logging.getLogger(__name__)

BatcherFactory = Callable[[str], MulticallBatcher]


def make_batcher_factory() -> BatcherFactory:
    """chain -> MulticallBatcher, один Web3 на сеть (создаётся при первом обращении)."""
    batchers: Dict[str, MulticallBatcher] = {}

    def get_batcher(chain: str) -> MulticallBatcher:
        if chain not in batchers:
            w3 = Web3(Web3.HTTPProvider(get_rpc_url(chain)))
            batchers[chain] = MulticallBatcher(w3)
        return batchers[chain]

    return get_batcher


def collect_pool_gauges(get_batcher: BatcherFactory, data_dir: str) -> List[PoolGauge]:
    """Пулы с гейджами для всех (dex, chain) с стейкингом NFT."""
    pool_gauges: List[PoolGauge] = []
    for dex, chain in GAUGE_DEX_CHAINS:
        logger.info(f"Getting {dex} pools with gauges on {chain}...")
        try:
            indexer = PoolIndexer(get_batcher(chain), dex, chain, PoolStore(data_dir, dex, chain))
            pools = indexer.get_all_pools_with_gauges()
        except Exception as e:
            logger.error(f"Failed to index {dex} pools on {chain}: {e}", exc_info=True)
            continue
        logger.info(f"Found {len(pools)} pools with gauges for {dex} on {chain}")
        pool_gauges.extend(pools)

    logger.info(f"Total pools with gauges across all DEXes: {len(pool_gauges)}")
    return pool_gauges


def collect_chain_positions(
    chain: str,
    wallets: List[str],
    pool_gauges: List[PoolGauge],
    get_batcher: BatcherFactory,
    pricer: NumerairePricer,
    data_dir: str
) -> List[PositionRecord]:
    """NFT + застейканные NFT одной сети -> оценённые позиции."""
    batcher = get_batcher(chain)

    balances = NftScanner(batcher, chain).get_nft_balances(wallets)
    logger.info(f"Found NFT balances for {len(balances)} wallet-dex combinations on {chain}")
    positions: List[NftPosition] = [p for balance in balances for p in balance.to_positions()]

    chain_gauges = {pg.gauge.lower(): pg for pg in pool_gauges if pg.chain == chain}
    if chain_gauges:
        logger.info(f"Getting staked NFTs for {chain}...")
        staked = StakedNftScanner(batcher).get_staked_nfts(
            wallets, [pg.gauge for pg in chain_gauges.values()]
        )
        logger.info(f"Found {len(staked)} staked NFT entries")
        for entry in staked:
            pool_gauge = chain_gauges.get(entry.gauge.lower())
            if pool_gauge is None:
                logger.warning(f"Could not find pool gauge for gauge {entry.gauge}")
                continue
            positions.extend(NftPosition(entry.wallet, pool_gauge.dex, nft_id) for nft_id in entry.nft_ids)

    if not positions:
        return []

    logger.info(f"Getting position details for {len(positions)} positions on {chain}...")
    token_service = TokenService(batcher, chain, TokenStore(data_dir))
    valuer = PositionValuer(batcher, chain, token_service, pricer)
    return valuer.get_position_details(positions)


def run(wallets: List[str], get_batcher: BatcherFactory, data_dir: str) -> NavReport:
    """Полный проход по всем сетям."""
    pool_gauges = collect_pool_gauges(get_batcher, data_dir)
    pricer = NumerairePricer(get_batcher)

    records: List[PositionRecord] = []
    for chain in SCAN_CHAINS:
        logger.info(f"Getting NFTs for {chain}...")
        try:
            chain_records = collect_chain_positions(
                chain, wallets, pool_gauges, get_batcher, pricer, data_dir
            )
        except Exception as e:
            logger.error(f"Failed to scan {chain}: {e}", exc_info=True)
            continue
        logger.info(f"Found {len(chain_records)} positions on {chain}")
        records.extend(chain_records)

    return build_report(records)


def main():
    """Главная функция."""
    load_dotenv()

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        handlers=[
            logging.FileHandler("lp_nav.log", encoding="utf-8"),
            logging.StreamHandler()
        ]
    )

    wallets = get_wallet_addresses()
    if not wallets:
        print("WALLET_ADDRESSES не задан в .env")
        sys.exit(1)

    report = run(wallets, make_batcher_factory(), get_data_dir())
    print("\n".join(format_report(report)))


if __name__ == "__main__":
    main()
