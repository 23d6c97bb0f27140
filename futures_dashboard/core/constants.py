"""Shared constants: exchange endpoints, income categories, cache keys, tolerances."""

# --- Exchange endpoints (USDT-M futures) ---
MAINNET_BASE_URL = "https://fapi.binance.com"
TESTNET_BASE_URL = "https://testnet.binancefuture.com"

BALANCE_ENDPOINT = "/fapi/v3/balance"
ACCOUNT_TRADES_ENDPOINT = "/fapi/v1/userTrades"
INCOME_HISTORY_ENDPOINT = "/fapi/v1/income"
OPEN_POSITIONS_ENDPOINT = "/fapi/v3/positionRisk"
OPEN_ORDERS_ENDPOINT = "/fapi/v1/openOrders"

BALANCE_ASSET = "USDT"

# --- Income categories ---
FUNDING_FEE = "FUNDING_FEE"
COMMISSION = "COMMISSION"
REALIZED_PNL = "REALIZED_PNL"

COMMISSION_INCOME_TYPES = (FUNDING_FEE, COMMISSION)

DAYS_TO_FETCH = 6
INCOME_MULTIPLIER = 10

# --- Cache keys ---
CACHE_BALANCE = "Binance_Balance"
CACHE_ACCOUNT_TRADES = "Binance_Account_Trades"
CACHE_INCOME_HISTORY = "Binance_Income_History"
CACHE_OPEN_POSITIONS = "Binance_Open_Positions"
CACHE_OPEN_ORDERS = "Binance_Open_Orders"

# --- Reconstruction tolerances ---
FLAT_EPSILON = 1e-8
CLOSE_EPSILON = 9e-4
CLOSE_ROUNDING_DIGITS = 8
PNL_ROUNDING_DIGITS = 2
