"""
CSV кэши сканера.

- {dex}-{chain}-pools.csv: index,pool,gauge где gauge = "<address>|<1/0>"
  (1 - гейдж уже запрошен). Записи только добавляются.
- tokens.csv: address,chain,symbol,decimals. Ключ (chain, address.lower()).

Отсутствующий файл = пустой кэш. Запись атомарная: temp файл в том же
каталоге + os.replace, поэтому прерванный запуск оставляет либо старый,
либо новый файл целиком.
"""

import csv
import logging
import os
import tempfile
from dataclasses import dataclass
from typing import Dict, Iterable, List, Tuple

from config import ZERO_ADDRESS
from .exceptions import StoreError

logger = logging.getLogger(__name__)

POOL_FIELDS = ["index", "pool", "gauge"]
TOKEN_FIELDS = ["address", "chain", "symbol", "decimals"]


@dataclass
class PoolRecord:
    """Пул фабрики по индексу allPools(i) и его гейдж."""
    index: int
    pool: str
    gauge: str = ZERO_ADDRESS
    gauge_fetched: bool = False
    dex: str = ""
    chain: str = ""

    @property
    def has_gauge(self) -> bool:
        return self.gauge.lower() != ZERO_ADDRESS


@dataclass
class TokenMeta:
    """symbol/decimals токена в сети."""
    address: str
    chain: str
    symbol: str
    decimals: int

    @property
    def key(self) -> Tuple[str, str]:
        return token_key(self.chain, self.address)


def token_key(chain: str, address: str) -> Tuple[str, str]:
    return (chain, address.lower())


def atomic_write_csv(path: str, fieldnames: List[str], rows: Iterable[List]) -> None:
    """Запись CSV через temp файл + os.replace."""
    directory = os.path.dirname(os.path.abspath(path)) or "."
    os.makedirs(directory, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=".tmp_", suffix=".csv", dir=directory, text=True)
    try:
        with os.fdopen(fd, "w", newline="") as f:
            writer = csv.writer(f)
            writer.writerow(fieldnames)
            writer.writerows(rows)
        os.replace(tmp, path)
    except Exception:
        try:
            os.remove(tmp)
        except OSError:
            pass
        raise


def _read_rows(path: str) -> List[Dict[str, str]]:
    """Строки CSV как dict; отсутствующий файл - пустой список."""
    try:
        with open(path, "r", newline="") as f:
            return [row for row in csv.DictReader(f) if any(v for v in row.values())]
    except FileNotFoundError:
        return []


class PoolStore:
    """
    Кэш пулов одной пары (dex, chain).

    Usage:
        store = PoolStore("data", "aerodrome", "base")
        records = store.load()      # {index: PoolRecord}
        store.save(records.values())
    """

    def __init__(self, data_dir: str, dex: str, chain: str):
        self.dex = dex
        self.chain = chain
        self.path = os.path.join(data_dir, f"{dex}-{chain}-pools.csv")

    def load(self) -> Dict[int, PoolRecord]:
        records: Dict[int, PoolRecord] = {}
        for line_no, row in enumerate(_read_rows(self.path), start=2):
            try:
                gauge, _, fetched = (row.get("gauge") or "").partition("|")
                record = PoolRecord(
                    index=int(row["index"]),
                    pool=row["pool"],
                    gauge=gauge or ZERO_ADDRESS,
                    gauge_fetched=fetched == "1",
                    dex=self.dex,
                    chain=self.chain,
                )
            except (KeyError, TypeError, ValueError) as e:
                raise StoreError(f"Corrupted pool store {self.path} at line {line_no}: {e}") from e
            if not record.pool:
                raise StoreError(f"Corrupted pool store {self.path} at line {line_no}: empty pool")
            records[record.index] = record
        return records

    def save(self, records: Iterable[PoolRecord]) -> None:
        rows = [
            [r.index, r.pool, f"{r.gauge}|{'1' if r.gauge_fetched else '0'}"]
            for r in sorted(records, key=lambda r: r.index)
        ]
        atomic_write_csv(self.path, POOL_FIELDS, rows)
        logger.debug(f"Saved {len(rows)} pools to {self.path}")


class TokenStore:
    """Глобальный кэш метаданных токенов (все сети в одном файле)."""

    def __init__(self, data_dir: str, filename: str = "tokens.csv"):
        self.path = os.path.join(data_dir, filename)

    def load(self) -> Dict[Tuple[str, str], TokenMeta]:
        tokens: Dict[Tuple[str, str], TokenMeta] = {}
        for line_no, row in enumerate(_read_rows(self.path), start=2):
            try:
                meta = TokenMeta(
                    address=row["address"],
                    chain=row["chain"],
                    symbol=row["symbol"],
                    decimals=int(row["decimals"]),
                )
            except (KeyError, TypeError, ValueError) as e:
                raise StoreError(f"Corrupted token store {self.path} at line {line_no}: {e}") from e
            tokens[meta.key] = meta
        return tokens

    def save(self, tokens: Iterable[TokenMeta]) -> None:
        rows = [[t.address, t.chain, t.symbol, t.decimals] for t in tokens]
        atomic_write_csv(self.path, TOKEN_FIELDS, rows)
        logger.debug(f"Saved {len(rows)} tokens to {self.path}")
