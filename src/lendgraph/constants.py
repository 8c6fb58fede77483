__all__ = (
    "DUST_THRESHOLD",
    "EXP_SCALE",
    "MANTISSA_DECIMALS",
    "NATIVE_ASSET_DECIMALS",
    "NATIVE_ASSET_NAME",
    "NATIVE_ASSET_SYMBOL",
    "ORACLE_PRICE_DECIMALS",
    "ZERO_ADDRESS",
)

from eth_typing import ChecksumAddress

from lendgraph.checksum_cache import get_checksum_address

ZERO_ADDRESS: ChecksumAddress = get_checksum_address("0x0000000000000000000000000000000000000000")

# Rates, indices, factors and exchange rates are fixed-point integers with 18 decimal places
MANTISSA_DECIMALS = 18
EXP_SCALE = 10**MANTISSA_DECIMALS

# Oracle prices are scaled so that price * amount (in the asset's smallest unit) has 36 decimals
ORACLE_PRICE_DECIMALS = 36

# A residual borrow balance below this amount (in the underlying's smallest unit) is considered
# closed for adjusted borrower counts
DUST_THRESHOLD = 10

# Markets for the chain's native asset have no underlying() function
NATIVE_ASSET_NAME = "BNB"
NATIVE_ASSET_SYMBOL = "BNB"
NATIVE_ASSET_DECIMALS = 18
