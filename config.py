"""
Configuration for the concentrated-liquidity NAV scanner

Конфигурация сетей, DEX контрактов и констант сканирования.
RPC URL и кошельки читаются из окружения (.env загружается в main.py).
"""

import os
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from lp_nav.exceptions import ConfigurationError


@dataclass
class ChainConfig:
    """Конфигурация сети."""
    name: str
    chain_id: int
    rpc_env: str          # Имя переменной окружения с RPC URL


@dataclass
class DexContracts:
    """Адреса контрактов одного DEX в одной сети."""
    position_manager: str
    factory: str
    masterchef: str = ""  # PancakeSwap MasterChefV3 (застейканные NFT)

    def get(self, role: str) -> Optional[str]:
        """Адрес по роли контракта или None если роль не задана."""
        address = {
            "NonfungiblePositionManager": self.position_manager,
            "Factory": self.factory,
            "MasterChefV3": self.masterchef,
        }.get(role)
        return address or None


@dataclass
class LstContract:
    """Контракт liquid staking токена с курсом погашения."""
    symbol: str
    chain: str
    address: str
    method: str


# ============================================================
# SCAN SETTINGS
# ============================================================

# Multicall3 deployed at same address on all chains
MULTICALL3_ADDRESS = "0xcA11bde05977b3631167028862bE2a173976CA11"

MULTICALL_CHUNK_SIZE = 100
SLEEP_TIME = 1.0          # Пауза после каждого батча, секунды
MAX_RETRIES = 5           # Ретраи на rate limit (6-я ошибка фатальна)

# Подстроки сообщений об ошибке, по которым детектится rate limit
RATE_LIMIT_MARKERS = ("rate limit", "too many requests")

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

DEFAULT_DATA_DIR = "data"

# ============================================================
# CHAIN CONFIGURATIONS
# ============================================================

MAINNET = ChainConfig(
    name="mainnet",
    chain_id=1,
    rpc_env="MAINNET_RPC_URL",
)

BASE = ChainConfig(
    name="base",
    chain_id=8453,
    rpc_env="BASE_RPC_URL",
)

OPTIMISM = ChainConfig(
    name="optimism",
    chain_id=10,
    rpc_env="OPTIMISM_RPC_URL",
)

ARBITRUM = ChainConfig(
    name="arbitrum",
    chain_id=42161,
    rpc_env="ARBITRUM_RPC_URL",
)

BSC = ChainConfig(
    name="bsc",
    chain_id=56,
    rpc_env="BSC_RPC_URL",
)

CHAINS: Dict[str, ChainConfig] = {
    "mainnet": MAINNET,
    "base": BASE,
    "optimism": OPTIMISM,
    "arbitrum": ARBITRUM,
    "bsc": BSC,
}

# Сети, на которых ищем NFT позиции
SCAN_CHAINS: List[str] = ["mainnet", "base", "optimism", "arbitrum", "bsc"]

# (dex, chain) пары с гейджами (стейкинг NFT)
GAUGE_DEX_CHAINS: List[Tuple[str, str]] = [
    ("aerodrome", "base"),
    ("velodrome", "optimism"),
]

# ============================================================
# DEX CONTRACTS
# ============================================================

CONTRACT_ADDRESSES: Dict[str, Dict[str, DexContracts]] = {
    "uniswap": {
        "mainnet": DexContracts(
            position_manager="0xC36442b4a4522E871399CD717aBDD847Ab11FE88",
            factory="0x1F98431c8aD98523631AE4a59f267346ea31F984",
        ),
        "base": DexContracts(
            position_manager="0x03a520b32C04BF3bEEf7BEb72E919cf822Ed34f1",
            factory="0x33128a8fC17869897dcE68Ed026d694621f6FDfD",
        ),
        "arbitrum": DexContracts(
            position_manager="0xC36442b4a4522E871399CD717aBDD847Ab11FE88",
            factory="0x1F98431c8aD98523631AE4a59f267346ea31F984",
        ),
        "optimism": DexContracts(
            position_manager="0xC36442b4a4522E871399CD717aBDD847Ab11FE88",
            factory="0x1F98431c8aD98523631AE4a59f267346ea31F984",
        ),
        "bsc": DexContracts(
            position_manager="0x7b8A01B39D58278b5DE7e48c8449c9f4F5170613",
            factory="0xdB1d10011AD0Ff90774D0C6Bb92e5C5c8b4461F7",
        ),
    },
    "aerodrome": {
        "base": DexContracts(
            position_manager="0x827922686190790b37229fd06084350e74485b72",
            factory="0x5e7BB104d84c7CB9B682AaC2F3d509f5F406809A",  # CLFactory
        ),
    },
    "velodrome": {
        "optimism": DexContracts(
            position_manager="0x416b433906b1b72fa758e166e239c43d68dc6f29",
            factory="0xcc0bddb707055e04e497ab22a59c2af4391cd12f",  # CLFactory
        ),
    },
    "pancakeswap": {
        "mainnet": DexContracts(
            position_manager="0x46A15B0b27311cedF172AB29E4f4766fbE7F4364",
            factory="0x0BFbCF9fa4f9C56B0F40a671Ad40E0805A091865",
            masterchef="0x556B9306565093C855AEA9AE92A594704c2Cd59e",
        ),
        "base": DexContracts(
            position_manager="0x46A15B0b27311cedF172AB29E4f4766fbE7F4364",
            factory="0x0BFbCF9fa4f9C56B0F40a671Ad40E0805A091865",
            masterchef="0xC6A2Db661D5a5690172d8eB0a7DEA2d3008665A3",
        ),
        "arbitrum": DexContracts(
            position_manager="0x46A15B0b27311cedF172AB29E4f4766fbE7F4364",
            factory="0x0BFbCF9fa4f9C56B0F40a671Ad40E0805A091865",
            masterchef="0x5e09ACf80C0296740eC5d6F643005a4ef8DaA694",
        ),
        "bsc": DexContracts(
            position_manager="0x46A15B0b27311cedF172AB29E4f4766fbE7F4364",
            factory="0x0BFbCF9fa4f9C56B0F40a671Ad40E0805A091865",
            masterchef="0x556B9306565093C855AEA9AE92A594704c2Cd59e",
        ),
    },
    "camelot": {
        "arbitrum": DexContracts(
            position_manager="0x00c7f3082833e796a5b3e4bd59f6642ff44dcd15",
            factory="0x1a3c9B1d2F0529D97f2afC5136Cc23e58f1FD35B",
        ),
    },
}

# ============================================================
# NUMERAIRES
# ============================================================

# Базовый актив процесса: 1 единица = 1
BASE_ASSET = "WETH"
BTC_SYMBOLS = ("WBTC",)
STABLECOIN_SYMBOLS = ("USDC", "USDT")

# Порядок выбора базового токена пары в отчёте
NUMERAIRE_PRIORITY = ("WETH", "USDC", "USDT", "WBTC")

# ============================================================
# LIQUID STAKING TOKENS
# ============================================================

LST_CONTRACTS: Dict[str, LstContract] = {
    "WSTETH": LstContract(
        symbol="WSTETH",
        chain="mainnet",
        address="0x7f39C581F595B53c5cb19bD0b3f8dA6c935E2Ca0",
        method="stEthPerToken",
    ),
    "RETH": LstContract(
        symbol="RETH",
        chain="optimism",
        address="0xae78736Cd615f374D3085123A210448E74Fc6393",
        method="getExchangeRate",
    ),
    "WEETH": LstContract(
        symbol="WEETH",
        chain="mainnet",
        address="0xCd5fE23C85820F7B72D0926FC9b05b43E359b7ee",
        method="getRate",
    ),
    "EZETH": LstContract(
        symbol="EZETH",
        chain="mainnet",
        address="0x387dBc0fB00b26fb085aa658527D5BE98302c84C",
        method="getRate",
    ),
    "CBETH": LstContract(
        symbol="CBETH",
        chain="mainnet",
        address="0xBe9895146f7AF43049ca1c1AE358B0541Ea49704",
        method="exchangeRate",
    ),
    "RSETH": LstContract(
        symbol="RSETH",
        chain="optimism",
        address="0x1373A61449C26CC3F48C1B4c547322eDAa36eB12",
        method="getRate",
    ),
}
# wrsETH погашается по курсу rsETH
LST_CONTRACTS["WRSETH"] = LST_CONTRACTS["RSETH"]


# ============================================================
# HELPER FUNCTIONS
# ============================================================

_CHAIN_ALIASES = {
    "op mainnet": "optimism",
    "optimism": "optimism",
    "base": "base",
    "mainnet": "mainnet",
    "ethereum": "mainnet",
    "arbitrum one": "arbitrum",
    "arbitrum": "arbitrum",
    "bsc": "bsc",
    "bnb smart chain": "bsc",
}


def normalize_chain_name(chain_name: str) -> str:
    """Приведение имени сети к внутреннему формату (mainnet/base/...)."""
    name = chain_name.strip().lower()
    if name not in _CHAIN_ALIASES:
        raise ConfigurationError(f"Unsupported chain: {chain_name}")
    return _CHAIN_ALIASES[name]


def get_chain_config(chain_name: str) -> ChainConfig:
    """Получение конфигурации по имени сети."""
    return CHAINS[normalize_chain_name(chain_name)]


def get_contract_address(dex: str, chain_name: str, role: str) -> Optional[str]:
    """
    Адрес контракта DEX по роли.

    Отсутствие адреса не ошибка: вызывающий код пропускает зависимый вызов.
    """
    contracts = CONTRACT_ADDRESSES.get(dex, {}).get(normalize_chain_name(chain_name))
    if contracts is None:
        return None
    return contracts.get(role)


def get_dexes_for_chain(chain_name: str) -> List[str]:
    """DEX'ы, у которых есть контракты в сети."""
    chain = normalize_chain_name(chain_name)
    return [dex for dex, chains in CONTRACT_ADDRESSES.items() if chain in chains]


def get_rpc_url(chain_name: str) -> str:
    """RPC URL сети из окружения (<CHAIN>_RPC_URL)."""
    chain = get_chain_config(chain_name)
    rpc_url = os.getenv(chain.rpc_env)
    if not rpc_url:
        raise ConfigurationError(f"{chain.rpc_env} is required")
    return rpc_url


def get_wallet_addresses() -> List[str]:
    """Кошельки из WALLET_ADDRESSES (через запятую, только 0x...)."""
    raw = os.getenv("WALLET_ADDRESSES", "")
    return [
        address.strip()
        for address in raw.split(",")
        if address.strip().startswith("0x")
    ]


def get_data_dir() -> str:
    """Каталог для CSV кэшей пулов и токенов."""
    return os.getenv("LPNAV_DATA_DIR", DEFAULT_DATA_DIR)
