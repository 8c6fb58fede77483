from decimal import Decimal

import pytest
from conftest import MARKET, ORACLE, POOL, FakeContractReader

from lendgraph.database.models import MarketTable, PoolTable
from lendgraph.mappings.market import (
    mantissa_to_decimal,
    oracle_price_to_usd,
    truncate_decimal,
    update_market,
    vtokens_to_underlying,
)
from lendgraph.repository import EntityRepository, get_or_create_market


@pytest.fixture
def market(repository: EntityRepository, reader: FakeContractReader) -> MarketTable:
    market = get_or_create_market(repository, reader, MARKET, block_number=100, block_timestamp=300)
    repository.save(market)
    return market


def test_truncate_decimal():
    assert truncate_decimal(Decimal("1.999"), 2) == Decimal("1.99")
    assert truncate_decimal(Decimal("-1.999"), 2) == Decimal("-1.99")
    assert truncate_decimal(Decimal(5), 0) == Decimal(5)


def test_mantissa_to_decimal():
    assert mantissa_to_decimal(1_500_000, 6) == Decimal("1.5")
    assert mantissa_to_decimal(1, 18) == Decimal("0.000000000000000001")
    assert mantissa_to_decimal(2**256 - 1, 18) == Decimal(
        "115792089237316195423570985008687907853269984665640564039457.584007913129639935"
    )


def test_oracle_price_to_usd():
    # $1 for an 18 decimal token and for a 6 decimal token
    assert oracle_price_to_usd(10**18, 18) == Decimal(1)
    assert oracle_price_to_usd(10**30, 6) == Decimal(1)
    # Digits beyond the token's precision are truncated
    assert oracle_price_to_usd(1_234_567, 6) == Decimal(0)


def test_vtokens_to_underlying():
    assert vtokens_to_underlying(100 * 10**8, 2 * 10**26) == 2 * 10**26 * 100 * 10**8 // 10**18
    assert vtokens_to_underlying(3, 10**17) == 0


def test_update_market(
    repository: EntityRepository, reader: FakeContractReader, market: MarketTable
):
    reader.set_market_values(
        MARKET,
        exchangeRateStored=2 * 10**17,
        borrowIndex=11 * 10**17,
        totalReserves=50,
        getCash=1_500_000_000_000_000_000,
        borrowRatePerBlock=100,
        supplyRatePerBlock=40,
        totalBorrows=7_000,
        totalSupply=9_000,
    )
    reader.prices[(ORACLE.lower(), MARKET.lower())] = 3 * 10**18

    update_market(repository, reader, market, block_number=150, block_timestamp=450)

    assert market.exchange_rate_mantissa == 2 * 10**17
    assert market.borrow_index_mantissa == 11 * 10**17
    assert market.reserves_mantissa == 50
    assert market.cash == Decimal("1.5")
    assert market.borrow_rate_mantissa == 100
    assert market.supply_rate_mantissa == 40
    assert market.total_borrows_mantissa == 7_000
    assert market.total_supply_mantissa == 9_000
    assert market.underlying_price_usd == Decimal(3)
    assert market.accrual_block_number == 150
    assert market.block_timestamp == 450


def test_update_market_runs_once_per_block(
    repository: EntityRepository, reader: FakeContractReader, market: MarketTable
):
    update_market(repository, reader, market, block_number=150, block_timestamp=450)

    reader.set_market_values(MARKET, exchangeRateStored=5 * 10**17)
    reader.calls.clear()
    update_market(repository, reader, market, block_number=150, block_timestamp=450)

    assert reader.calls == []
    assert market.exchange_rate_mantissa == 2 * 10**17

    update_market(repository, reader, market, block_number=151, block_timestamp=453)
    assert market.exchange_rate_mantissa == 5 * 10**17


def test_update_market_rate_fallback(
    repository: EntityRepository, reader: FakeContractReader, market: MarketTable
):
    reader.set_market_values(MARKET, borrowRatePerBlock=100, supplyRatePerBlock=40, totalSupply=9)
    reader.failing |= {"borrowRatePerBlock()", "supplyRatePerBlock()"}

    update_market(repository, reader, market, block_number=150, block_timestamp=450)

    assert market.borrow_rate_mantissa == 0
    assert market.supply_rate_mantissa == 0
    assert market.total_supply_mantissa == 9
    assert market.accrual_block_number == 150


def test_update_market_keeps_price_when_oracle_fails(
    repository: EntityRepository, reader: FakeContractReader, market: MarketTable
):
    reader.prices[(ORACLE.lower(), MARKET.lower())] = 2 * 10**18
    update_market(repository, reader, market, block_number=150, block_timestamp=450)
    assert market.underlying_price_usd == Decimal(2)

    reader.failing.add("getUnderlyingPrice(address)")
    update_market(repository, reader, market, block_number=151, block_timestamp=453)
    assert market.underlying_price_usd == Decimal(2)


def test_update_market_prefers_pool_oracle(
    repository: EntityRepository, reader: FakeContractReader, market: MarketTable
):
    pool_oracle = "0x" + "d2" * 20
    pool = repository.require(PoolTable, POOL.lower())
    pool.price_oracle_address = pool_oracle
    repository.save(pool)
    reader.prices[(pool_oracle, MARKET.lower())] = 4 * 10**18

    update_market(repository, reader, market, block_number=150, block_timestamp=450)

    assert market.underlying_price_usd == Decimal(4)
    assert not any(call[0] == "oracle()" for call in reader.calls)
