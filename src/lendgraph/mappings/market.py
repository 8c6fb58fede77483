"""
Market-level state refreshed from contract reads, and the fixed-point conversions used for the
display fields.
"""

import decimal
from decimal import ROUND_DOWN, Decimal

from lendgraph.constants import EXP_SCALE, ORACLE_PRICE_DECIMALS
from lendgraph.contracts import ContractReader, best_effort
from lendgraph.database.models import MarketTable, PoolTable
from lendgraph.repository import EntityRepository

# Enough digits to hold any uint256 with its fractional part intact
_DECIMAL_PRECISION = 100


def truncate_decimal(value: Decimal, decimals: int) -> Decimal:
    """
    Truncate (never round) a decimal to the given number of fractional digits.
    """

    with decimal.localcontext() as ctx:
        ctx.prec = _DECIMAL_PRECISION
        return value.quantize(Decimal(1).scaleb(-decimals), rounding=ROUND_DOWN)


def mantissa_to_decimal(value: int, decimals: int) -> Decimal:
    """
    Convert an integer amount in an asset's smallest unit to a decimal amount of the asset,
    truncated to the asset's precision.
    """

    with decimal.localcontext() as ctx:
        ctx.prec = _DECIMAL_PRECISION
        return truncate_decimal(Decimal(value) / Decimal(10) ** decimals, decimals)


def oracle_price_to_usd(price_mantissa: int, underlying_decimals: int) -> Decimal:
    """
    Convert an oracle price to the USD price of one whole unit of the underlying.

    Oracle prices are scaled by 10^(36 - underlying decimals), so that multiplying by an amount in
    the underlying's smallest unit gives a value with 36 decimal places.
    """

    with decimal.localcontext() as ctx:
        ctx.prec = _DECIMAL_PRECISION
        return truncate_decimal(
            Decimal(price_mantissa) / Decimal(10) ** (ORACLE_PRICE_DECIMALS - underlying_decimals),
            underlying_decimals,
        )


def vtokens_to_underlying(amount: int, exchange_rate_mantissa: int) -> int:
    return exchange_rate_mantissa * amount // EXP_SCALE


def update_market(
    repository: EntityRepository,
    reader: ContractReader,
    market: MarketTable,
    block_number: int,
    block_timestamp: int,
) -> MarketTable:
    """
    Refresh the interest-dependent state of a market from the contract at the given block.

    The refresh runs at most once per block: if the market has already been refreshed at this
    block or later, it is returned unchanged. Interest rates and the USD price are best-effort
    reads, all other reads must succeed.
    """

    if market.accrual_block_number >= block_number:
        return market

    market.exchange_rate_mantissa = reader.exchange_rate(market.id, block_identifier=block_number)
    market.borrow_index_mantissa = reader.borrow_index(market.id, block_identifier=block_number)
    market.reserves_mantissa = reader.total_reserves(market.id, block_identifier=block_number)
    market.cash = mantissa_to_decimal(
        reader.cash(market.id, block_identifier=block_number),
        market.underlying_decimals,
    )

    # Rate reads depend on the interest rate model contract and can revert for reasons outside
    # the market's control
    market.borrow_rate_mantissa = best_effort(
        reader.borrow_rate_per_block,
        market.id,
        block_identifier=block_number,
        fallback=0,
    )
    market.supply_rate_mantissa = best_effort(
        reader.supply_rate_per_block,
        market.id,
        block_identifier=block_number,
        fallback=0,
    )

    market.total_borrows_mantissa = reader.total_borrows(market.id, block_identifier=block_number)
    market.total_supply_mantissa = reader.total_supply(market.id, block_identifier=block_number)

    if (oracle := _get_price_oracle(repository, reader, market, block_number)) is not None:
        price_mantissa = best_effort(
            reader.underlying_price,
            oracle,
            market.id,
            block_identifier=block_number,
            fallback=None,
        )
        if price_mantissa is not None:
            market.underlying_price_usd = oracle_price_to_usd(
                price_mantissa, market.underlying_decimals
            )

    market.accrual_block_number = block_number
    market.block_timestamp = block_timestamp
    repository.save(market)
    return market


def _get_price_oracle(
    repository: EntityRepository,
    reader: ContractReader,
    market: MarketTable,
    block_number: int,
) -> str | None:
    pool = repository.load(PoolTable, market.pool_id)
    if pool is not None and pool.price_oracle_address is not None:
        return pool.price_oracle_address

    return best_effort(
        reader.price_oracle,
        market.pool_id,
        block_identifier=block_number,
        fallback=None,
    )
