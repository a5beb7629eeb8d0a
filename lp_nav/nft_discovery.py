"""
NFT discovery.

- NftScanner: NFT позиции в кошельках (balanceOf + tokenOfOwnerByIndex)
  на PositionManager каждого DEX сети; для PancakeSwap также на
  MasterChefV3 (застейканные в фарминге NFT).
- StakedNftScanner: NFT, застейканные в CL гейджах (stakedValues).
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Tuple

from web3 import Web3

from config import get_contract_address, get_dexes_for_chain, normalize_chain_name
from .contracts.abis import CL_GAUGE_ABI, ERC721_ENUMERABLE_ABI
from .multicall.batcher import Call, MulticallBatcher
from .position_valuer import NftPosition

logger = logging.getLogger(__name__)


@dataclass
class NftBalance:
    """NFT одного кошелька на одном DEX."""
    wallet: str
    dex: str
    token_ids: List[int] = field(default_factory=list)

    def to_positions(self) -> List[NftPosition]:
        return [NftPosition(self.wallet, self.dex, token_id) for token_id in self.token_ids]


@dataclass
class StakedNft:
    """NFT кошелька, застейканные в гейдже."""
    wallet: str
    gauge: str
    nft_ids: List[int]


class NftScanner:
    """
    Поиск NFT позиций кошельков в одной сети.

    Usage:
        scanner = NftScanner(batcher, "arbitrum")
        balances = scanner.get_nft_balances(wallets)
    """

    def __init__(self, batcher: MulticallBatcher, chain: str):
        self.batcher = batcher
        self.chain = normalize_chain_name(chain)

    def _balance_targets(self, dex: str) -> List[str]:
        roles = ["NonfungiblePositionManager"]
        if dex == "pancakeswap":
            roles = ["MasterChefV3", "NonfungiblePositionManager"]
        return [
            address
            for address in (get_contract_address(dex, self.chain, role) for role in roles)
            if address
        ]

    def get_nft_balances(self, wallets: List[str]) -> List[NftBalance]:
        """NFT по (wallet, dex) в порядке первого появления."""
        balance_calls: List[Call] = []
        owners: List[Tuple[str, str, str]] = []  # (wallet, dex, contract)
        for wallet in wallets:
            for dex in get_dexes_for_chain(self.chain):
                for contract in self._balance_targets(dex):
                    balance_calls.append(Call(contract, ERC721_ENUMERABLE_ABI, "balanceOf", (wallet,)))
                    owners.append((wallet, dex, contract))

        if not balance_calls:
            return []

        token_calls: List[Call] = []
        token_owners: List[Tuple[str, str]] = []
        for (wallet, dex, contract), result in zip(owners, self.batcher.execute_chunked(balance_calls)):
            if not result.success:
                logger.debug(f"balanceOf failed for {wallet} on {dex}/{self.chain}: {result.error}")
                continue
            count = int(result.value)
            for i in range(count):
                token_calls.append(Call(contract, ERC721_ENUMERABLE_ABI, "tokenOfOwnerByIndex", (wallet, i)))
                token_owners.append((wallet, dex))

        balances: Dict[Tuple[str, str], NftBalance] = {}
        if token_calls:
            for (wallet, dex), result in zip(token_owners, self.batcher.execute_chunked(token_calls)):
                if not result.success:
                    logger.warning(f"tokenOfOwnerByIndex failed for {wallet} on {dex}: {result.error}")
                    continue
                key = (wallet, dex)
                if key not in balances:
                    balances[key] = NftBalance(wallet=wallet, dex=dex)
                balances[key].token_ids.append(int(result.value))

        logger.info(f"Found {sum(len(b.token_ids) for b in balances.values())} NFTs on {self.chain}")
        return list(balances.values())


class StakedNftScanner:
    """NFT, застейканные в гейджах одной сети."""

    def __init__(self, batcher: MulticallBatcher):
        self.batcher = batcher

    def get_staked_nfts(self, wallets: List[str], gauges: List[str]) -> List[StakedNft]:
        calls: List[Call] = []
        pairs: List[Tuple[str, str]] = []
        for wallet in wallets:
            for gauge in gauges:
                calls.append(Call(gauge, CL_GAUGE_ABI, "stakedValues", (wallet,)))
                pairs.append((wallet, gauge))

        if not calls:
            return []

        staked: List[StakedNft] = []
        for (wallet, gauge), result in zip(pairs, self.batcher.execute_chunked(calls)):
            if not result.success:
                logger.warning(f"Failed to get staked NFTs for wallet {wallet} in gauge {gauge}: {result.error}")
                continue
            nft_ids = [int(nft_id) for nft_id in result.value]
            if nft_ids:
                logger.info(f"Found {len(nft_ids)} staked NFTs for wallet {wallet} in gauge {gauge}")
                staked.append(StakedNft(wallet=wallet, gauge=Web3.to_checksum_address(gauge), nft_ids=nft_ids))
        return staked
