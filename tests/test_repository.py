from decimal import Decimal

import pytest
from conftest import (
    ALICE,
    DISTRIBUTOR,
    MARKET,
    NATIVE_MARKET,
    OTHER_MARKET,
    POOL,
    REWARD_TOKEN,
    UNDERLYING,
    FakeContractReader,
)

from lendgraph.database.models import AccountTable, MarketTable, PoolTable, RewardSpeedTable
from lendgraph.exceptions import ContractReadError, EntityNotFound, RecordExists
from lendgraph.identifiers import get_reward_speed_id
from lendgraph.repository import (
    EntityRepository,
    get_or_create_account,
    get_or_create_account_vtoken,
    get_or_create_market,
    get_or_create_pool,
    get_or_create_rewards_distributor,
)


def test_load_and_require(repository: EntityRepository):
    assert repository.load(AccountTable, ALICE.lower()) is None
    with pytest.raises(EntityNotFound, match="Account"):
        repository.require(AccountTable, ALICE.lower())

    account = get_or_create_account(repository, ALICE)
    repository.save(account)

    assert repository.require(AccountTable, ALICE.lower()) is account


def test_get_or_create_returns_unsaved_entity(repository: EntityRepository):
    account = get_or_create_account(repository, ALICE)
    assert account.count_liquidator == 0
    assert repository.load(AccountTable, ALICE.lower()) is None

    repository.save(account)
    assert get_or_create_account(repository, ALICE) is account


def test_save_overwrites_previous_state(repository: EntityRepository):
    pool = get_or_create_pool(repository, POOL)
    repository.save(pool)

    pool.close_factor_mantissa = 5 * 10**17
    repository.save(pool)
    repository.session.expire_all()

    assert repository.require(PoolTable, POOL.lower()).close_factor_mantissa == 5 * 10**17


def test_create_record_is_write_once(repository: EntityRepository):
    repository.create_record(get_or_create_account(repository, ALICE))
    with pytest.raises(RecordExists):
        repository.create_record(
            AccountTable(
                id=ALICE.lower(),
                count_liquidator=0,
                count_liquidated=0,
                has_borrowed=False,
            )
        )


def test_market_creation(repository: EntityRepository, reader: FakeContractReader):
    reader.set_market_values(MARKET, reserveFactorMantissa=10**17)

    market = get_or_create_market(
        repository, reader, MARKET, block_number=100, block_timestamp=300
    )
    repository.save(market)

    assert market.id == MARKET.lower()
    assert market.pool_id == POOL.lower()
    assert market.symbol == "vUSDT"
    assert market.underlying_address == UNDERLYING.lower()
    assert market.underlying_symbol == "USDT"
    assert market.underlying_decimals == 18
    assert market.reserve_factor_mantissa == 10**17
    assert market.created_timestamp == 300
    assert market.underlying_price_usd == Decimal(0)
    assert market.is_listed is False
    assert market.borrower_count == market.borrower_count_adjusted == market.supplier_count == 0
    assert repository.load(PoolTable, POOL.lower()) is not None


def test_market_creation_uses_given_pool(repository: EntityRepository, reader: FakeContractReader):
    other_pool = "0x" + "a2" * 20
    market = get_or_create_market(
        repository, reader, MARKET, block_number=100, block_timestamp=300, pool_address=other_pool
    )
    assert market.pool_id == other_pool
    assert not any(call[0] == "comptroller()" for call in reader.calls)


def test_native_market_creation(repository: EntityRepository, reader: FakeContractReader):
    market = get_or_create_market(
        repository, reader, NATIVE_MARKET, block_number=100, block_timestamp=300
    )
    assert market.underlying_address is None
    assert market.underlying_symbol == "BNB"
    assert market.underlying_decimals == 18


def test_market_creation_fails_when_underlying_is_unreachable(
    repository: EntityRepository, reader: FakeContractReader
):
    reader.unreachable.add("underlying()")
    with pytest.raises(ContractReadError) as exc_info:
        get_or_create_market(repository, reader, MARKET, block_number=100, block_timestamp=300)

    assert exc_info.value.transient is True
    assert repository.load(MarketTable, MARKET.lower()) is None


def test_market_creation_fails_on_must_succeed_read(
    repository: EntityRepository, reader: FakeContractReader
):
    reader.failing.add("comptroller()")
    with pytest.raises(ContractReadError):
        get_or_create_market(repository, reader, MARKET, block_number=100, block_timestamp=300)
    assert repository.load(MarketTable, MARKET.lower()) is None


def test_market_creation_tolerates_best_effort_reads(
    repository: EntityRepository, reader: FakeContractReader
):
    reader.failing |= {"reserveFactorMantissa()", "interestRateModel()"}
    market = get_or_create_market(
        repository, reader, MARKET, block_number=100, block_timestamp=300
    )
    assert market.reserve_factor_mantissa == 0
    assert market.interest_rate_model_address is None


def test_account_vtoken_seeded_from_previous_block(
    repository: EntityRepository, reader: FakeContractReader
):
    reader.snapshots[(MARKET.lower(), ALICE.lower())] = (5_000, 300)
    market = get_or_create_market(repository, reader, MARKET, block_number=100, block_timestamp=0)
    account = get_or_create_account(repository, ALICE)
    repository.save(market, account)

    account_vtoken = get_or_create_account_vtoken(
        repository, reader, market, account, block_number=100
    )

    assert account_vtoken.account_supply_balance_mantissa == 5_000
    assert account_vtoken.account_borrow_balance_mantissa == 300
    assert ("getAccountSnapshot(address)", (MARKET.lower(), ALICE.lower()), 99) in reader.calls


def test_rewards_distributor_snapshot(repository: EntityRepository, reader: FakeContractReader):
    reader.reward_tokens[DISTRIBUTOR.lower()] = REWARD_TOKEN
    reader.pool_markets[POOL.lower()] = [MARKET, OTHER_MARKET]
    reader.speeds[(DISTRIBUTOR.lower(), MARKET.lower())] = (11, 22)
    reader.speeds[(DISTRIBUTOR.lower(), OTHER_MARKET.lower())] = (0, 33)

    pool = get_or_create_pool(repository, POOL)
    repository.save(pool)
    distributor = get_or_create_rewards_distributor(
        repository, reader, DISTRIBUTOR, pool, block_number=100
    )

    assert distributor.reward_token_address == REWARD_TOKEN.lower()
    speed = repository.require(RewardSpeedTable, get_reward_speed_id(DISTRIBUTOR, MARKET))
    assert speed.borrow_speed_per_block_mantissa == 11
    assert speed.supply_speed_per_block_mantissa == 22
    other_speed = repository.require(
        RewardSpeedTable, get_reward_speed_id(DISTRIBUTOR, OTHER_MARKET)
    )
    assert other_speed.supply_speed_per_block_mantissa == 33

    # A second registration returns the existing distributor without reading again
    reader.calls.clear()
    assert (
        get_or_create_rewards_distributor(repository, reader, DISTRIBUTOR, pool, block_number=200)
        is distributor
    )
    assert reader.calls == []
