"""Constants and configuration for the vault withdrawals monitor."""

# Minimal ABI for the vault contract - only the view functions the monitor reads.
# The vault is the single entry point: it also exposes the addresses of its trading
# account ("virtual user") and of the risk engine that prices that account.
VAULT_MIN_ABI: list[dict] = [
    {
        "type": "function",
        "name": "vaultInfo",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [
            {
                "name": "",
                "type": "tuple",
                "components": [
                    {"name": "totalShares", "type": "uint256"},  # 0
                    {"name": "totalWithdrawRequested", "type": "uint256"},  # 1
                    {"name": "redeemPeriod", "type": "uint64"},  # 2
                    {"name": "liquidationStartTs", "type": "int64"},  # 3
                    {"name": "liquidationDelegate", "type": "address"},  # 4
                    {"name": "spotMarketIndex", "type": "uint16"},  # 5
                ],
            }
        ],
    },
    {
        "type": "function",
        "name": "userAccount",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "address"}],
    },
    {
        "type": "function",
        "name": "riskEngine",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "address"}],
    },
    {
        "type": "function",
        "name": "equityInDepositAsset",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "type": "function",
        "name": "depositorsCount",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "type": "function",
        "name": "batchDepositorsInfo",
        "stateMutability": "view",
        "inputs": [
            {"name": "offset", "type": "uint256"},
            {"name": "limit", "type": "uint256"},
        ],
        "outputs": [
            {
                "name": "",
                "type": "tuple[]",
                "components": [
                    {"name": "depositor", "type": "address"},  # 0
                    {"name": "authority", "type": "address"},  # 1
                    {"name": "withdrawRequestShares", "type": "uint256"},  # 2
                    {"name": "withdrawRequestTs", "type": "int64"},  # 3
                ],
            }
        ],
    },
]

# Minimal ABI for the risk engine - withdrawal limits of a trading account and spot market metadata.
RISK_ENGINE_MIN_ABI: list[dict] = [
    {
        "type": "function",
        "name": "withdrawalLimit",
        "stateMutability": "view",
        "inputs": [
            {"name": "user", "type": "address"},
            {"name": "marketIndex", "type": "uint16"},
            {"name": "withMarginBuffer", "type": "bool"},
        ],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "type": "function",
        "name": "spotMarket",
        "stateMutability": "view",
        "inputs": [{"name": "marketIndex", "type": "uint16"}],
        "outputs": [
            {
                "name": "",
                "type": "tuple",
                "components": [
                    {"name": "name", "type": "bytes32"},  # 0
                    {"name": "decimals", "type": "uint8"},  # 1
                    {"name": "mint", "type": "address"},  # 2
                ],
            }
        ],
    },
]

# Scheduling
DEFAULT_POLL_INTERVAL_S = 60
DEFAULT_MAX_CONSECUTIVE_FAILURES = 1

# RPC
DEFAULT_TIMEOUT = 30
DEFAULT_DEPOSITORS_PAGE_SIZE = 200

# Environment variables
ENV_RPC_URL = "RPC_HTTP_URL"
ENV_VAULT_ADDRESS = "VAULT_ADDRESS"
ENV_POLL_INTERVAL = "POLL_INTERVAL_S"
ENV_MAX_CONSECUTIVE_FAILURES = "MAX_CONSECUTIVE_FAILURES"
ENV_LOG_LEVEL = "LOG_LEVEL"

LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")
LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"

# Cache settings
CACHE_DIR_NAME = ".vaults_monitor_cache"
CACHE_VERSION = "1"  # Increment to invalidate all caches
