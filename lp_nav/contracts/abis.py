"""
ABI definitions for concentrated-liquidity DEX forks, gauges, LST and Multicall3.

Только view-функции, которые читает сканер.
"""

# Multicall3 aggregate3 (allowFailure на каждом вызове)
MULTICALL3_ABI = [
    {
        "inputs": [
            {
                "components": [
                    {"name": "target", "type": "address"},
                    {"name": "allowFailure", "type": "bool"},
                    {"name": "callData", "type": "bytes"}
                ],
                "name": "calls",
                "type": "tuple[]"
            }
        ],
        "name": "aggregate3",
        "outputs": [
            {
                "components": [
                    {"name": "success", "type": "bool"},
                    {"name": "returnData", "type": "bytes"}
                ],
                "name": "returnData",
                "type": "tuple[]"
            }
        ],
        "stateMutability": "payable",
        "type": "function"
    }
]

# ERC20 - symbol/decimals для кэша токенов
ERC20_ABI = [
    {
        "inputs": [],
        "name": "symbol",
        "outputs": [{"name": "", "type": "string"}],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "inputs": [],
        "name": "decimals",
        "outputs": [{"name": "", "type": "uint8"}],
        "stateMutability": "view",
        "type": "function"
    }
]

# ERC721 Enumerable - перечисление NFT кошелька (PositionManager, MasterChefV3)
ERC721_ENUMERABLE_ABI = [
    {
        "inputs": [{"name": "owner", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "inputs": [
            {"name": "owner", "type": "address"},
            {"name": "index", "type": "uint256"}
        ],
        "name": "tokenOfOwnerByIndex",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function"
    }
]

# NonfungiblePositionManager (Uniswap V3 / PancakeSwap V3 / Slipstream)
# Slipstream (Aerodrome/Velodrome) на месте fee отдаёт tickSpacing (int24)
POSITION_MANAGER_ABI = ERC721_ENUMERABLE_ABI + [
    {
        "inputs": [{"name": "tokenId", "type": "uint256"}],
        "name": "positions",
        "outputs": [
            {"name": "nonce", "type": "uint96"},
            {"name": "operator", "type": "address"},
            {"name": "token0", "type": "address"},
            {"name": "token1", "type": "address"},
            {"name": "fee", "type": "int24"},
            {"name": "tickLower", "type": "int24"},
            {"name": "tickUpper", "type": "int24"},
            {"name": "liquidity", "type": "uint128"},
            {"name": "feeGrowthInside0LastX128", "type": "uint256"},
            {"name": "feeGrowthInside1LastX128", "type": "uint256"},
            {"name": "tokensOwed0", "type": "uint128"},
            {"name": "tokensOwed1", "type": "uint128"}
        ],
        "stateMutability": "view",
        "type": "function"
    }
]

# Algebra (Camelot V3) NonfungiblePositionManager - без поля fee
ALGEBRA_POSITION_MANAGER_ABI = ERC721_ENUMERABLE_ABI + [
    {
        "inputs": [{"name": "tokenId", "type": "uint256"}],
        "name": "positions",
        "outputs": [
            {"name": "nonce", "type": "uint96"},
            {"name": "operator", "type": "address"},
            {"name": "token0", "type": "address"},
            {"name": "token1", "type": "address"},
            {"name": "tickLower", "type": "int24"},
            {"name": "tickUpper", "type": "int24"},
            {"name": "liquidity", "type": "uint128"},
            {"name": "feeGrowthInside0LastX128", "type": "uint256"},
            {"name": "feeGrowthInside1LastX128", "type": "uint256"},
            {"name": "tokensOwed0", "type": "uint128"},
            {"name": "tokensOwed1", "type": "uint128"}
        ],
        "stateMutability": "view",
        "type": "function"
    }
]

# Uniswap V3 Factory
FACTORY_ABI = [
    {
        "inputs": [
            {"name": "tokenA", "type": "address"},
            {"name": "tokenB", "type": "address"},
            {"name": "fee", "type": "uint24"}
        ],
        "name": "getPool",
        "outputs": [{"name": "pool", "type": "address"}],
        "stateMutability": "view",
        "type": "function"
    }
]

# Slipstream CLFactory (Aerodrome/Velodrome): пулы по tickSpacing + перечисление
CL_FACTORY_ABI = [
    {
        "inputs": [
            {"name": "tokenA", "type": "address"},
            {"name": "tokenB", "type": "address"},
            {"name": "tickSpacing", "type": "int24"}
        ],
        "name": "getPool",
        "outputs": [{"name": "", "type": "address"}],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "inputs": [],
        "name": "allPoolsLength",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "inputs": [{"name": "", "type": "uint256"}],
        "name": "allPools",
        "outputs": [{"name": "", "type": "address"}],
        "stateMutability": "view",
        "type": "function"
    }
]

# Algebra Factory (Camelot V3) - пул определяется только парой токенов
ALGEBRA_FACTORY_ABI = [
    {
        "inputs": [
            {"name": "", "type": "address"},
            {"name": "", "type": "address"}
        ],
        "name": "poolByPair",
        "outputs": [{"name": "", "type": "address"}],
        "stateMutability": "view",
        "type": "function"
    }
]

# Pool slot0 - читаем только первые два поля.
# Хвост slot0 отличается между форками (feeProtocol uint8/uint32, unlocked),
# поэтому он не декларируется.
POOL_ABI = [
    {
        "inputs": [],
        "name": "slot0",
        "outputs": [
            {"name": "sqrtPriceX96", "type": "uint160"},
            {"name": "tick", "type": "int24"}
        ],
        "stateMutability": "view",
        "type": "function"
    }
]

# Slipstream CLPool: slot0 + адрес гейджа
CL_POOL_ABI = POOL_ABI + [
    {
        "inputs": [],
        "name": "gauge",
        "outputs": [{"name": "", "type": "address"}],
        "stateMutability": "view",
        "type": "function"
    }
]

# Algebra pool: globalState вместо slot0, первое поле - sqrt price
ALGEBRA_POOL_ABI = [
    {
        "inputs": [],
        "name": "globalState",
        "outputs": [
            {"name": "price", "type": "uint160"},
            {"name": "tick", "type": "int24"}
        ],
        "stateMutability": "view",
        "type": "function"
    }
]

# Slipstream CLGauge - NFT, застейканные депозитором
CL_GAUGE_ABI = [
    {
        "inputs": [{"name": "depositor", "type": "address"}],
        "name": "stakedValues",
        "outputs": [{"name": "", "type": "uint256[]"}],
        "stateMutability": "view",
        "type": "function"
    }
]


def rate_accessor_abi(method: str) -> list:
    """ABI для курса погашения LST: function <method>() view returns (uint256)."""
    return [
        {
            "inputs": [],
            "name": method,
            "outputs": [{"name": "", "type": "uint256"}],
            "stateMutability": "view",
            "type": "function"
        }
    ]
