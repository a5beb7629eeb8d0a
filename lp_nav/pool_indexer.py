"""
Incremental pool/gauge indexer for Slipstream-style factories.

Фазы одного запуска:
1. load       - читаем {dex}-{chain}-pools.csv
2. length     - allPoolsLength() на фабрике
3. pools      - allPools(i) для индексов, которых нет в кэше -> save после каждого батча
4. gauges     - gauge() для записей с gauge_fetched=False -> save после каждого батча
5. result     - только пулы с ненулевым гейджем

Повторный запуск без новых пулов делает ровно один вызов (length).
Упавший allPools(i) не записывается и будет запрошен в следующий раз.
Упавший gauge() записывается как нулевой гейдж и больше не запрашивается.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List

from web3 import Web3

from config import MULTICALL_CHUNK_SIZE, ZERO_ADDRESS, get_contract_address, normalize_chain_name
from .dexes import get_dex_profile
from .exceptions import ConfigurationError, LpNavError
from .multicall.batcher import Call, MulticallBatcher
from .storage import PoolRecord, PoolStore

logger = logging.getLogger(__name__)


@dataclass
class PoolGauge:
    """Пул с гейджем."""
    pool: str
    gauge: str
    dex: str
    chain: str


class PoolIndexer:
    """
    Индексатор пулов одной пары (dex, chain).

    Usage:
        indexer = PoolIndexer(batcher, "aerodrome", "base", store)
        pool_gauges = indexer.get_all_pools_with_gauges()
    """

    def __init__(
        self,
        batcher: MulticallBatcher,
        dex: str,
        chain: str,
        store: PoolStore,
        chunk_size: int = MULTICALL_CHUNK_SIZE
    ):
        self.batcher = batcher
        self.chunk_size = chunk_size
        self.dex = dex
        self.chain = normalize_chain_name(chain)
        self.store = store
        self.profile = get_dex_profile(dex)

        factory = get_contract_address(dex, self.chain, "Factory")
        if not factory:
            raise ConfigurationError(f"No {dex} factory address found for chain {self.chain}")
        self.factory = Web3.to_checksum_address(factory)

    def fetch_pool_count(self) -> int:
        result = self.batcher.execute_batch([
            Call(self.factory, self.profile.factory_abi, "allPoolsLength")
        ])[0]
        if not result.success:
            raise LpNavError(f"allPoolsLength failed on {self.dex}/{self.chain}: {result.error}")
        return int(result.value)

    def fetch_missing_pools(self, records: Dict[int, PoolRecord], pool_count: int) -> int:
        """
        allPools(i) для недостающих индексов, по одному батчу.

        Кэш сохраняется после каждого батча: фатальная ошибка теряет
        только текущий батч. Возвращает число добавленных пулов.
        """
        indices = [i for i in range(pool_count) if i not in records]
        logger.info(f"Need to fetch {len(indices)} new pools for {self.dex}/{self.chain}")

        added = 0
        for start in range(0, len(indices), self.chunk_size):
            batch = indices[start:start + self.chunk_size]
            calls = [Call(self.factory, self.profile.factory_abi, "allPools", (i,)) for i in batch]
            batch_added = 0
            for index, result in zip(batch, self.batcher.execute_batch(calls)):
                if not result.success:
                    logger.warning(f"Failed to get pool for index {index}: {result.error}")
                    continue
                records[index] = PoolRecord(
                    index=index,
                    pool=Web3.to_checksum_address(result.value),
                    gauge=ZERO_ADDRESS,
                    gauge_fetched=False,
                    dex=self.dex,
                    chain=self.chain,
                )
                batch_added += 1
            if batch_added:
                self.store.save(records.values())
            added += batch_added
        logger.debug(f"Fetched {added}/{len(indices)} pools")
        return added

    def fetch_missing_gauges(self, records: Dict[int, PoolRecord]) -> int:
        """gauge() для записей без гейджа, сохранение после каждого батча."""
        pending = [r for r in sorted(records.values(), key=lambda r: r.index) if not r.gauge_fetched]
        logger.info(f"Need to fetch gauges for {len(pending)} pools")

        for start in range(0, len(pending), self.chunk_size):
            batch = pending[start:start + self.chunk_size]
            calls = [Call(r.pool, self.profile.pool_abi, "gauge") for r in batch]
            for record, result in zip(batch, self.batcher.execute_batch(calls)):
                if result.success:
                    record.gauge = Web3.to_checksum_address(result.value)
                else:
                    logger.warning(f"Failed to get gauge for pool {record.pool}: {result.error}")
                    record.gauge = ZERO_ADDRESS
                record.gauge_fetched = True
            self.store.save(records.values())
        return len(pending)

    def get_all_pools_with_gauges(self) -> List[PoolGauge]:
        """Все пулы фабрики с ненулевым гейджем (с дозагрузкой кэша)."""
        records = self.store.load()
        logger.info(f"Loaded {len(records)} entries from {self.store.path}")

        pool_count = self.fetch_pool_count()
        logger.info(f"Total number of pools on {self.dex}/{self.chain}: {pool_count}")

        self.fetch_missing_pools(records, pool_count)
        self.fetch_missing_gauges(records)

        pool_gauges = [
            PoolGauge(pool=r.pool, gauge=r.gauge, dex=r.dex or self.dex, chain=r.chain or self.chain)
            for r in sorted(records.values(), key=lambda r: r.index)
            if r.has_gauge
        ]
        logger.info(f"{len(pool_gauges)} pools with gauges on {self.dex}/{self.chain}")
        return pool_gauges
