"""
Token metadata cache.

Поиск в кэше и слияние с новыми данными - чистые функции
(partition_tokens / merge_tokens), сеть и запись файла - в TokenService.
"""

import logging
from typing import Dict, Iterable, List, Tuple

from .contracts.abis import ERC20_ABI
from .multicall.batcher import Call, MulticallBatcher
from .storage import TokenMeta, TokenStore, token_key

logger = logging.getLogger(__name__)

TokenCache = Dict[Tuple[str, str], TokenMeta]


def partition_tokens(
    cache: TokenCache,
    chain: str,
    addresses: Iterable[str]
) -> Tuple[Dict[str, TokenMeta], List[str]]:
    """
    Разделение адресов на найденные в кэше и отсутствующие.

    Returns:
        (hits по address.lower(), misses без дубликатов в порядке входа)
    """
    hits: Dict[str, TokenMeta] = {}
    misses: List[str] = []
    seen = set()
    for address in addresses:
        lowered = address.lower()
        if lowered in seen:
            continue
        seen.add(lowered)
        cached = cache.get(token_key(chain, address))
        if cached is not None:
            hits[lowered] = cached
        else:
            misses.append(address)
    return hits, misses


def merge_tokens(cache: TokenCache, fetched: Iterable[TokenMeta]) -> TokenCache:
    """Новый кэш = старый + fetched (исходный dict не меняется)."""
    merged = dict(cache)
    for meta in fetched:
        merged[meta.key] = meta
    return merged


class TokenService:
    """symbol/decimals токенов одной сети через кэш tokens.csv."""

    def __init__(self, batcher: MulticallBatcher, chain: str, store: TokenStore):
        self.batcher = batcher
        self.chain = chain
        self.store = store

    def fetch_tokens(self, addresses: List[str]) -> List[TokenMeta]:
        """Батч symbol()+decimals(); токен без любого из полей пропускается."""
        calls: List[Call] = []
        for address in addresses:
            calls.append(Call(address, ERC20_ABI, "symbol"))
            calls.append(Call(address, ERC20_ABI, "decimals"))

        results = self.batcher.execute_chunked(calls)

        fetched: List[TokenMeta] = []
        for i, address in enumerate(addresses):
            symbol_result = results[2 * i]
            decimals_result = results[2 * i + 1]
            if not (symbol_result.success and decimals_result.success):
                logger.warning(f"Failed to fetch token info for {address} on {self.chain}")
                continue
            fetched.append(TokenMeta(
                address=address,
                chain=self.chain,
                symbol=str(symbol_result.value),
                decimals=int(decimals_result.value),
            ))
        return fetched

    def get_token_info(self, addresses: Iterable[str]) -> Dict[str, TokenMeta]:
        """
        Метаданные токенов по address.lower().

        Кэш-хиты не делают сетевых вызовов; новые токены сохраняются в файл.
        """
        cache = self.store.load()
        hits, misses = partition_tokens(cache, self.chain, addresses)
        if not misses:
            return hits

        logger.info(f"Fetching info for {len(misses)} tokens on {self.chain} ({len(hits)} cached)")
        fetched = self.fetch_tokens(misses)
        if fetched:
            self.store.save(merge_tokens(cache, fetched).values())

        result = dict(hits)
        for meta in fetched:
            result[meta.address.lower()] = meta
        return result
