"""
Redemption rates of liquid staking tokens in units of the base asset.

Курс читается с контракта LST (stEthPerToken, getRate, ...) через
батчер сети, в которой задеплоен контракт, и делится на 1e18.
"""

import logging
from typing import Callable, Dict

from config import BASE_ASSET, LST_CONTRACTS
from .contracts.abis import rate_accessor_abi
from .exceptions import LpNavError, UnsupportedTokenError
from .multicall.batcher import Call, MulticallBatcher

logger = logging.getLogger(__name__)

RATE_PRECISION = 10 ** 18


class NumerairePricer:
    """
    Цена токена в базовом активе (WETH = 1.0).

    Args:
        get_batcher: chain -> MulticallBatcher этой сети
    """

    def __init__(self, get_batcher: Callable[[str], MulticallBatcher]):
        self.get_batcher = get_batcher
        self._rates: Dict[str, float] = {}

    def get_redeem_price(self, token_symbol: str) -> float:
        """
        Курс погашения LST.

        Raises:
            UnsupportedTokenError: символа нет в реестре LST
            LpNavError: вызов контракта не удался
        """
        symbol = token_symbol.upper()
        if symbol == BASE_ASSET:
            return 1.0
        if symbol in self._rates:
            return self._rates[symbol]

        contract = LST_CONTRACTS.get(symbol)
        if contract is None:
            raise UnsupportedTokenError(f"Unsupported token: {token_symbol}")

        batcher = self.get_batcher(contract.chain)
        result = batcher.execute_batch([
            Call(contract.address, rate_accessor_abi(contract.method), contract.method)
        ])[0]
        if not result.success:
            raise LpNavError(f"Error fetching redeem price for {token_symbol}: {result.error}")

        rate = int(result.value) / RATE_PRECISION
        logger.debug(f"{symbol} redeem rate: {rate}")
        self._rates[symbol] = rate
        return rate
