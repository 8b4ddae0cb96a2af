"""
Application constants.

Centralized constants for the donation ledger.
"""

# ========================================================================
# BLOCKCHAIN CONSTANTS
# ========================================================================

# Blockchain operation timeouts (in seconds)
BLOCKCHAIN_TIMEOUT = 30.0  # Standard RPC reads (get_transaction, get_block, etc.)
INCLUSION_TIMEOUT = 180.0  # Waiting for a submitted transfer to be mined
BLOCKCHAIN_RPC_TIMEOUT = 30  # RPC provider HTTP timeout

# Gas for a plain native-asset transfer
NATIVE_TRANSFER_GAS_LIMIT = 21000
MAX_GAS_PRICE_GWEI = 200

# Verification retry settings (not-yet-indexed transactions)
VERIFICATION_MAX_RETRIES = 5
VERIFICATION_RETRY_DELAY = 2.0  # Base delay in seconds for exponential backoff

# Amount tolerance: |actual - expected| <= expected // AMOUNT_TOLERANCE_DIVISOR (1%)
AMOUNT_TOLERANCE_DIVISOR = 100

# Native asset precision (wei per ether)
NATIVE_DECIMALS = 18

# ========================================================================
# CHAINS
# ========================================================================

SEPOLIA_CHAIN_ID = 11155111
MAINNET_CHAIN_ID = 1

EXPLORER_BASE_URLS: dict[int, str] = {
    SEPOLIA_CHAIN_ID: "https://sepolia.etherscan.io",
    MAINNET_CHAIN_ID: "https://etherscan.io",
}

# ========================================================================
# ONE-TIME CODES
# ========================================================================

OTP_CODE_LENGTH = 6
OTP_TTL_SECONDS = 600  # 10 minutes
OTP_MAX_ATTEMPTS = 5
OTP_KEY_PREFIX = "otp"

# ========================================================================
# LEDGER REPAIR
# ========================================================================

REPAIR_BATCH_SIZE = 500
PENDING_VERIFICATION_BATCH_SIZE = 100
