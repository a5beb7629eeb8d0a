"""
Shared fixtures for all tests.
"""

import pytest
from unittest.mock import MagicMock
from web3 import Web3

from lp_nav.contracts.abis import MULTICALL3_ABI
from lp_nav.multicall.batcher import MulticallBatcher

from fake_chain import FakeMulticall


class MockWeb3:
    """
    Мок Web3: eth.contract отдаёт фейковый Multicall3 для MULTICALL3_ABI,
    для остальных ABI - настоящий контракт web3 (только кодирование calldata).
    """

    def __init__(self, multicall: FakeMulticall):
        self._codec = Web3()
        self.eth = MagicMock()
        self.eth.chain_id = 8453
        self.eth.contract = MagicMock(side_effect=lambda address, abi: self._contract(multicall, address, abi))

    def _contract(self, multicall, address, abi):
        if abi is MULTICALL3_ABI:
            return multicall
        return self._codec.eth.contract(address=address, abi=abi)


@pytest.fixture
def fake_multicall():
    """Фейковый Multicall3 одной сети."""
    return FakeMulticall()


@pytest.fixture
def sleeps():
    """Все паузы батчера (секунды) в порядке вызова."""
    return []


@pytest.fixture
def batcher(fake_multicall, sleeps):
    """MulticallBatcher поверх фейкового Multicall3, без реальных пауз."""
    return MulticallBatcher(MockWeb3(fake_multicall), sleep=sleeps.append)


@pytest.fixture
def make_batcher(sleeps):
    """Фабрика батчеров для нескольких сетей: chain -> (batcher, fake)."""
    chains = {}

    def factory(chain: str):
        if chain not in chains:
            fake = FakeMulticall()
            chains[chain] = (MulticallBatcher(MockWeb3(fake), sleep=sleeps.append), fake)
        return chains[chain]

    return factory


@pytest.fixture
def data_dir(tmp_path):
    """Каталог CSV кэшей."""
    path = tmp_path / "data"
    path.mkdir()
    return str(path)
