"""
Tests for NAV report.

Базовый токен пары, NAV в базовом токене для цены погашения и спот
цены, итоги по классам numeraire и текст отчёта.
"""

import pytest

from lp_nav.position_valuer import NAV_SOURCE_REDEEM, NAV_SOURCE_SPOT, PositionRecord
from lp_nav.report import (
    NavTotals,
    build_position_line,
    build_report,
    format_report,
    pick_base_token,
    price_token1_per_token0,
    to_human,
)

from fake_chain import addr


WALLET = addr(0x1111)
OTHER_WALLET = addr(0x2222)


def make_record(**overrides) -> PositionRecord:
    """Позиция WETH/wstETH: 1 WETH + 1 wstETH, курс погашения 1.2."""
    values = dict(
        wallet=WALLET,
        dex="uniswap",
        token_id=1,
        chain="mainnet",
        liquidity=10 ** 18,
        amount0=10 ** 18,
        amount1=10 ** 18,
        token0_symbol="WETH",
        token1_symbol="wstETH",
        token0_decimals=18,
        token1_decimals=18,
        nav_price=1.2,
        nav_price_source=NAV_SOURCE_REDEEM,
    )
    values.update(overrides)
    return PositionRecord(**values)


def usdc_weth_record(**overrides) -> PositionRecord:
    """2000 USDC + 1 WETH при цене 2000 USDC/WETH (спот, raw token1 за token0)."""
    values = dict(
        token0_symbol="USDC",
        token1_symbol="WETH",
        token0_decimals=6,
        token1_decimals=18,
        amount0=2000 * 10 ** 6,
        amount1=10 ** 18,
        nav_price=5e8,
        nav_price_source=NAV_SOURCE_SPOT,
    )
    values.update(overrides)
    return make_record(**values)


class TestHelpers:

    def test_to_human(self):
        assert to_human(1500000, 6) == 1.5
        assert to_human(None, 18) is None

    @pytest.mark.parametrize("pair, expected", [
        (("WETH", "USDC"), ("WETH", 0)),
        (("USDC", "WETH"), ("WETH", 1)),
        (("wbtc", "usdt"), ("USDT", 1)),
        (("USDC", "USDT"), ("USDC", 0)),
        (("WBTC", "cbBTC"), ("WBTC", 0)),
        (("ARB", "OP"), None),
    ])
    def test_pick_base_token(self, pair, expected):
        assert pick_base_token(*pair) == expected

    def test_price_from_redeem(self):
        assert price_token1_per_token0(make_record()) == pytest.approx(1 / 1.2)

    def test_price_from_spot_adjusts_decimals(self):
        assert price_token1_per_token0(usdc_weth_record()) == pytest.approx(0.0005)

    def test_no_price(self):
        assert price_token1_per_token0(make_record(nav_price=None)) is None


class TestBuildPositionLine:

    def test_weth_wsteth_redeem_rate(self):
        # token0 = WETH: nav = amount0 + amount1 * 1.15
        line = build_position_line(make_record(
            token1_symbol="WSTETH", amount0=2 * 10 ** 18, amount1=3 * 10 ** 18, nav_price=1.15
        ))
        assert line.base_token == "WETH"
        assert line.nav == pytest.approx(2 + 3 * 1.15)

    def test_redeem_base_token0(self):
        line = build_position_line(make_record())
        assert line.base_token == "WETH"
        assert (line.amount0, line.amount1) == (1.0, 1.0)
        # 1 WETH + 1 wstETH * 1.2
        assert line.nav == pytest.approx(2.2)

    def test_redeem_base_token1(self):
        # wstETH/WETH: курс хранится как token0 за token1 = 1 / 1.2
        line = build_position_line(make_record(
            token0_symbol="wstETH", token1_symbol="WETH", nav_price=1 / 1.2
        ))
        assert line.base_token == "WETH"
        assert line.nav == pytest.approx(2.2)

    def test_spot_with_decimals(self):
        line = build_position_line(usdc_weth_record())
        assert line.base_token == "WETH"
        assert (line.amount0, line.amount1) == (2000.0, 1.0)
        assert line.nav == pytest.approx(2.0)

    def test_stablecoin_base(self):
        # 1 WBTC = 60000 USDC: raw token1 за token0 = 60000 * 10^(6-8)
        line = build_position_line(make_record(
            token0_symbol="WBTC", token1_symbol="USDC",
            token0_decimals=8, token1_decimals=6,
            amount0=10 ** 8, amount1=60000 * 10 ** 6,
            nav_price=600.0, nav_price_source=NAV_SOURCE_SPOT,
        ))
        assert line.base_token == "USDC"
        assert line.nav == pytest.approx(120000.0)

    def test_no_numeraire(self):
        line = build_position_line(make_record(token0_symbol="ARB", token1_symbol="OP"))
        assert line.base_token is None
        assert line.nav is None

    def test_missing_amounts(self):
        line = build_position_line(make_record(amount0=None, amount1=None, nav_price=None))
        assert line.amount0 is None
        assert line.nav is None

    def test_missing_token_info(self):
        assert build_position_line(make_record(token1_symbol=None)) is None
        assert build_position_line(make_record(token0_decimals=None)) is None


class TestNavTotals:

    def test_buckets(self):
        totals = NavTotals()
        totals.add("WETH", 1.5)
        totals.add("WBTC", 0.1)
        totals.add("USDC", 100.0)
        totals.add("USDT", 50.0)
        totals.add(None, 10.0)
        totals.add("WETH", None)
        assert totals == NavTotals(weth=1.5, wbtc=0.1, stablecoin=150.0)


class TestBuildReport:

    def test_groups_by_wallet_and_dex(self):
        records = [
            make_record(token_id=1),
            make_record(token_id=2, dex="aerodrome", chain="base"),
            make_record(token_id=3, wallet=OTHER_WALLET),
        ]

        report = build_report(records)

        assert list(report.groups) == [WALLET, OTHER_WALLET]
        assert list(report.groups[WALLET]) == ["uniswap", "aerodrome"]
        assert [p.token_id for p in report.groups[OTHER_WALLET]["uniswap"]] == [3]
        assert report.totals.weth == pytest.approx(6.6)

    def test_zero_liquidity_excluded(self):
        report = build_report([make_record(liquidity=0)])
        assert report.groups == {}
        assert report.totals == NavTotals()

    def test_missing_token_info_excluded(self):
        report = build_report([make_record(token0_symbol=None)])
        assert report.groups == {}


class TestFormatReport:

    def test_text(self):
        report = build_report([make_record(), usdc_weth_record(token_id=2, amount0=None, amount1=None)])

        lines = format_report(report)

        assert lines[0] == f"Wallet 1 ({WALLET})"
        assert lines[1] == "  - uniswap"
        assert lines[2] == "      - nftID 1 (mainnet): 1.0000 WETH / 1.0000 wstETH | NAV: 2.2000 WETH"
        assert lines[3] == "      - nftID 2 (mainnet): USDC / WETH | amounts unavailable"
        assert lines[-4:] == [
            "Total NAV across all wallets:",
            "Total WETH value: 2.2000 WETH",
            "Total WBTC value: 0.0000 WBTC",
            "Total Stablecoin value: 0.00 USD",
        ]

    def test_empty(self):
        assert format_report(build_report([])) == [
            "",
            "Total NAV across all wallets:",
            "Total WETH value: 0.0000 WETH",
            "Total WBTC value: 0.0000 WBTC",
            "Total Stablecoin value: 0.00 USD",
        ]
