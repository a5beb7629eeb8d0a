"""
Tests for NFT discovery (кошельки и гейджи).
"""

from config import CONTRACT_ADDRESSES
from lp_nav.contracts.abis import CL_GAUGE_ABI, ERC721_ENUMERABLE_ABI
from lp_nav.nft_discovery import NftBalance, NftScanner, StakedNft, StakedNftScanner
from lp_nav.position_valuer import NftPosition

from fake_chain import Revert, addr


WALLET = addr(0x1111)
OTHER_WALLET = addr(0x2222)

UNISWAP_PM = CONTRACT_ADDRESSES["uniswap"]["base"].position_manager
AERODROME_PM = CONTRACT_ADDRESSES["aerodrome"]["base"].position_manager
PANCAKE_PM = CONTRACT_ADDRESSES["pancakeswap"]["base"].position_manager
PANCAKE_MASTERCHEF = CONTRACT_ADDRESSES["pancakeswap"]["base"].masterchef


def register_wallet(fake, contract, holdings):
    """holdings: wallet(lower) -> список token id."""
    fake.register(
        contract, ERC721_ENUMERABLE_ABI, "balanceOf",
        lambda owner: len(holdings.get(owner, []))
    )
    fake.register(
        contract, ERC721_ENUMERABLE_ABI, "tokenOfOwnerByIndex",
        lambda owner, index: holdings[owner][index]
    )


class TestNftScanner:

    def test_balances_per_dex(self, batcher, fake_multicall):
        register_wallet(fake_multicall, UNISWAP_PM, {WALLET.lower(): [100, 101]})

        balances = NftScanner(batcher, "base").get_nft_balances([WALLET])

        assert balances == [NftBalance(wallet=WALLET, dex="uniswap", token_ids=[100, 101])]

    def test_balance_calls_cover_every_contract(self, batcher, fake_multicall):
        NftScanner(batcher, "base").get_nft_balances([WALLET])

        targets = [target for target, _, _ in fake_multicall.batches[0]]
        assert targets == [
            UNISWAP_PM.lower(),
            AERODROME_PM.lower(),
            PANCAKE_MASTERCHEF.lower(),
            PANCAKE_PM.lower(),
        ]

    def test_pancakeswap_masterchef_and_wallet(self, batcher, fake_multicall):
        register_wallet(fake_multicall, PANCAKE_MASTERCHEF, {WALLET.lower(): [7]})
        register_wallet(fake_multicall, PANCAKE_PM, {WALLET.lower(): [8]})

        balances = NftScanner(batcher, "base").get_nft_balances([WALLET])

        assert balances == [NftBalance(wallet=WALLET, dex="pancakeswap", token_ids=[7, 8])]

    def test_multiple_wallets(self, batcher, fake_multicall):
        register_wallet(fake_multicall, AERODROME_PM, {WALLET.lower(): [1], OTHER_WALLET.lower(): [2, 3]})

        balances = NftScanner(batcher, "base").get_nft_balances([WALLET, OTHER_WALLET])

        assert [(b.wallet, b.token_ids) for b in balances] == [(WALLET, [1]), (OTHER_WALLET, [2, 3])]

    def test_token_calls_chunked(self, batcher, fake_multicall):
        register_wallet(fake_multicall, UNISWAP_PM, {WALLET.lower(): list(range(150))})

        [balance] = NftScanner(batcher, "base").get_nft_balances([WALLET])

        assert len(balance.token_ids) == 150
        assert [len(b) for b in fake_multicall.batches] == [4, 100, 50]

    def test_failed_token_lookup_skipped(self, batcher, fake_multicall):
        def token_of_owner(owner, index):
            if index == 0:
                raise Revert("index out of bounds")
            return 55

        fake_multicall.register(UNISWAP_PM, ERC721_ENUMERABLE_ABI, "balanceOf", 2)
        fake_multicall.register(UNISWAP_PM, ERC721_ENUMERABLE_ABI, "tokenOfOwnerByIndex", token_of_owner)

        [balance] = NftScanner(batcher, "base").get_nft_balances([WALLET])

        assert balance.token_ids == [55]

    def test_no_nfts(self, batcher, fake_multicall):
        assert NftScanner(batcher, "base").get_nft_balances([WALLET]) == []
        assert len(fake_multicall.batches) == 1

    def test_no_wallets(self, batcher, fake_multicall):
        assert NftScanner(batcher, "base").get_nft_balances([]) == []
        assert fake_multicall.attempts == 0

    def test_to_positions(self):
        balance = NftBalance(wallet=WALLET, dex="uniswap", token_ids=[1, 2])
        assert balance.to_positions() == [
            NftPosition(WALLET, "uniswap", 1),
            NftPosition(WALLET, "uniswap", 2),
        ]


class TestStakedNftScanner:

    def test_staked_in_gauges(self, batcher, fake_multicall):
        gauge_a, gauge_b, gauge_c = addr(0x9001), addr(0x9002), addr(0x9003)
        fake_multicall.register(gauge_a, CL_GAUGE_ABI, "stakedValues", [5, 6])
        fake_multicall.register(gauge_b, CL_GAUGE_ABI, "stakedValues", [])

        staked = StakedNftScanner(batcher).get_staked_nfts([WALLET], [gauge_a.lower(), gauge_b, gauge_c])

        assert staked == [StakedNft(wallet=WALLET, gauge=gauge_a, nft_ids=[5, 6])]

    def test_per_wallet(self, batcher, fake_multicall):
        gauge = addr(0x9001)
        fake_multicall.register(
            gauge, CL_GAUGE_ABI, "stakedValues",
            lambda depositor: [9] if depositor == OTHER_WALLET.lower() else []
        )

        staked = StakedNftScanner(batcher).get_staked_nfts([WALLET, OTHER_WALLET], [gauge])

        assert staked == [StakedNft(wallet=OTHER_WALLET, gauge=gauge, nft_ids=[9])]

    def test_no_gauges(self, batcher, fake_multicall):
        assert StakedNftScanner(batcher).get_staked_nfts([WALLET], []) == []
        assert fake_multicall.attempts == 0
