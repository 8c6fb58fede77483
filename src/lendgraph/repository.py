"""
Load and save entities by key, and the creation rule for each entity kind.

All entity mutation performed by the mapping rules goes through an `EntityRepository`. The
`get_or_create_*` functions return an existing entity, or a new unsaved one constructed by the
kind's creation rule. Callers save every entity they modify.
"""

from collections.abc import Callable
from decimal import Decimal

from sqlalchemy.orm import Session

from lendgraph.constants import NATIVE_ASSET_DECIMALS, NATIVE_ASSET_NAME, NATIVE_ASSET_SYMBOL
from lendgraph.contracts import ContractReader, best_effort
from lendgraph.database.models import (
    AccountTable,
    AccountVTokenTable,
    Base,
    DelegateTable,
    MarketActionTable,
    MarketTable,
    PoolActionTable,
    PoolTable,
    RewardSpeedTable,
    RewardsDistributorTable,
)
from lendgraph.exceptions import ContractReadError, EntityNotFound, RecordExists
from lendgraph.identifiers import (
    get_account_id,
    get_account_vtoken_id,
    get_delegate_id,
    get_market_action_id,
    get_market_id,
    get_pool_action_id,
    get_pool_id,
    get_reward_speed_id,
    get_rewards_distributor_id,
)
from lendgraph.logging import logger


def _kind_name(kind: type[Base]) -> str:
    return kind.__name__.removesuffix("Table")


class EntityRepository:
    """
    Entity access over a SQLAlchemy session. Saving flushes immediately so that later loads in the
    same transaction observe the saved state.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def load[EntityT: Base](self, kind: type[EntityT], key: str) -> EntityT | None:
        return self.session.get(kind, key)

    def require[EntityT: Base](self, kind: type[EntityT], key: str) -> EntityT:
        """
        Load an entity that must already exist.
        """

        if (entity := self.load(kind, key)) is None:
            raise EntityNotFound(kind=_kind_name(kind), key=key)
        return entity

    def get_or_create[EntityT: Base](
        self,
        kind: type[EntityT],
        key: str,
        factory: Callable[[], EntityT],
    ) -> EntityT:
        if (entity := self.load(kind, key)) is None:
            entity = factory()
        return entity

    def save(self, *entities: Base) -> None:
        self.session.add_all(entities)
        self.session.flush()

    def create_record(self, record: Base) -> None:
        """
        Save a write-once history record.
        """

        key: str = record.id  # type: ignore[attr-defined]
        if self.load(type(record), key) is not None:
            raise RecordExists(kind=_kind_name(type(record)), key=key)
        self.save(record)


def get_or_create_account(repository: EntityRepository, address: str) -> AccountTable:
    account_id = get_account_id(address)
    return repository.get_or_create(
        AccountTable,
        account_id,
        lambda: AccountTable(
            id=account_id,
            count_liquidator=0,
            count_liquidated=0,
            has_borrowed=False,
        ),
    )


def get_or_create_pool(repository: EntityRepository, comptroller: str) -> PoolTable:
    pool_id = get_pool_id(comptroller)
    return repository.get_or_create(
        PoolTable,
        pool_id,
        lambda: PoolTable(
            id=pool_id,
            close_factor_mantissa=0,
            liquidation_incentive_mantissa=0,
            min_liquidatable_collateral_mantissa=0,
        ),
    )


def _create_market(
    repository: EntityRepository,
    reader: ContractReader,
    market_address: str,
    pool_address: str | None,
    block_number: int,
    block_timestamp: int,
) -> MarketTable:
    if pool_address is None:
        pool_address = reader.governing_pool_of(market_address, block_identifier=block_number)

    pool = get_or_create_pool(repository, pool_address)
    repository.save(pool)

    name, symbol, vtoken_decimals = reader.token_metadata(
        market_address, block_identifier=block_number
    )

    underlying_address: str | None
    try:
        underlying_address = reader.underlying(market_address, block_identifier=block_number)
    except ContractReadError as exc:
        if exc.transient:
            raise
        # Markets for the native asset have no underlying token
        underlying_address = None
        underlying_name, underlying_symbol, underlying_decimals = (
            NATIVE_ASSET_NAME,
            NATIVE_ASSET_SYMBOL,
            NATIVE_ASSET_DECIMALS,
        )
    else:
        underlying_name, underlying_symbol, underlying_decimals = reader.token_metadata(
            underlying_address, block_identifier=block_number
        )

    interest_rate_model = best_effort(
        reader.interest_rate_model,
        market_address,
        block_identifier=block_number,
        fallback=None,
    )

    logger.info(f"Creating market {symbol} ({market_address}) in pool {pool.id}")

    return MarketTable(
        id=get_market_id(market_address),
        pool_id=pool.id,
        name=name,
        symbol=symbol,
        vtoken_decimals=vtoken_decimals,
        underlying_address=None if underlying_address is None else underlying_address.lower(),
        underlying_name=underlying_name,
        underlying_symbol=underlying_symbol,
        underlying_decimals=underlying_decimals,
        underlying_price_usd=Decimal(0),
        created_timestamp=block_timestamp,
        is_listed=False,
        collateral_factor_mantissa=0,
        liquidation_threshold_mantissa=0,
        borrow_cap_mantissa=0,
        supply_cap_mantissa=0,
        reserve_factor_mantissa=best_effort(
            reader.reserve_factor,
            market_address,
            block_identifier=block_number,
            fallback=0,
        ),
        interest_rate_model_address=(
            None if interest_rate_model is None else interest_rate_model.lower()
        ),
        accrual_block_number=0,
        block_timestamp=block_timestamp,
        exchange_rate_mantissa=0,
        borrow_index_mantissa=0,
        reserves_mantissa=0,
        cash=Decimal(0),
        borrow_rate_mantissa=0,
        supply_rate_mantissa=0,
        total_borrows_mantissa=0,
        total_supply_mantissa=0,
        borrower_count=0,
        borrower_count_adjusted=0,
        supplier_count=0,
    )


def get_or_create_market(
    repository: EntityRepository,
    reader: ContractReader,
    market_address: str,
    block_number: int,
    block_timestamp: int,
    pool_address: str | None = None,
) -> MarketTable:
    """
    Get a market, creating it if it has not been seen before.

    The governing pool is taken from `pool_address` when the triggering event identifies it,
    otherwise it is read from the market contract. A failed must-succeed read raises
    `ContractReadError` and nothing is created.
    """

    return repository.get_or_create(
        MarketTable,
        get_market_id(market_address),
        lambda: _create_market(
            repository=repository,
            reader=reader,
            market_address=market_address,
            pool_address=pool_address,
            block_number=block_number,
            block_timestamp=block_timestamp,
        ),
    )


def get_or_create_account_vtoken(
    repository: EntityRepository,
    reader: ContractReader,
    market: MarketTable,
    account: AccountTable,
    block_number: int,
) -> AccountVTokenTable:
    """
    Get the position of an account in a market.

    A new position is seeded from the market's account snapshot at the block before the
    triggering event, so the balances reflect the state before any event in that block is
    applied.
    """

    def _create() -> AccountVTokenTable:
        supplied, borrowed = reader.account_snapshot(
            market.id,
            account.id,
            block_identifier=max(block_number - 1, 0),
        )
        return AccountVTokenTable(
            id=get_account_vtoken_id(market.id, account.id),
            account_id=account.id,
            market_id=market.id,
            entered_market=False,
            accrual_block_number=0,
            account_supply_balance_mantissa=supplied,
            account_borrow_balance_mantissa=borrowed,
            account_borrow_index_mantissa=0,
            total_underlying_supplied_mantissa=0,
            total_underlying_redeemed_mantissa=0,
            total_underlying_borrowed_mantissa=0,
            total_underlying_repaid_mantissa=0,
        )

    return repository.get_or_create(
        AccountVTokenTable,
        get_account_vtoken_id(market.id, account.id),
        _create,
    )


def get_or_create_reward_speed(
    repository: EntityRepository,
    distributor: RewardsDistributorTable,
    market_address: str,
) -> RewardSpeedTable:
    reward_speed_id = get_reward_speed_id(distributor.id, market_address)
    return repository.get_or_create(
        RewardSpeedTable,
        reward_speed_id,
        lambda: RewardSpeedTable(
            id=reward_speed_id,
            rewards_distributor_id=distributor.id,
            market_address=market_address.lower(),
            borrow_speed_per_block_mantissa=0,
            supply_speed_per_block_mantissa=0,
        ),
    )


def get_or_create_rewards_distributor(
    repository: EntityRepository,
    reader: ContractReader,
    distributor_address: str,
    pool: PoolTable,
    block_number: int,
) -> RewardsDistributorTable:
    """
    Get a rewards distributor. A new distributor is saved together with a snapshot of the current
    reward speeds for every market in its pool, since it may have been emitting rewards before
    it was first observed.
    """

    distributor_id = get_rewards_distributor_id(distributor_address)
    if (distributor := repository.load(RewardsDistributorTable, distributor_id)) is not None:
        return distributor

    distributor = RewardsDistributorTable(
        id=distributor_id,
        pool_id=pool.id,
        reward_token_address=reader.reward_token(
            distributor_address, block_identifier=block_number
        ).lower(),
    )
    market_addresses = reader.all_markets(pool.id, block_identifier=block_number)
    reward_speeds = []
    for market_address in market_addresses:
        reward_speed = get_or_create_reward_speed(repository, distributor, market_address)
        (
            reward_speed.borrow_speed_per_block_mantissa,
            reward_speed.supply_speed_per_block_mantissa,
        ) = reader.reward_speeds(distributor_address, market_address, block_identifier=block_number)
        reward_speeds.append(reward_speed)

    repository.save(distributor, *reward_speeds)
    logger.info(
        f"Registered rewards distributor {distributor_id} for pool {pool.id} "
        f"with {len(reward_speeds)} market speeds"
    )
    return distributor


def get_or_create_pool_action(
    repository: EntityRepository, pool: PoolTable, action: str
) -> PoolActionTable:
    pool_action_id = get_pool_action_id(pool.id, action)
    return repository.get_or_create(
        PoolActionTable,
        pool_action_id,
        lambda: PoolActionTable(
            id=pool_action_id,
            pool_id=pool.id,
            action=action,
            paused=False,
        ),
    )


def get_or_create_market_action(
    repository: EntityRepository, market: MarketTable, action: int
) -> MarketActionTable:
    market_action_id = get_market_action_id(market.id, action)
    return repository.get_or_create(
        MarketActionTable,
        market_action_id,
        lambda: MarketActionTable(
            id=market_action_id,
            market_id=market.id,
            action=action,
            paused=False,
        ),
    )


def get_or_create_delegate(repository: EntityRepository, address: str) -> DelegateTable:
    delegate_id = get_delegate_id(address)
    return repository.get_or_create(
        DelegateTable,
        delegate_id,
        lambda: DelegateTable(
            id=delegate_id,
            delegated_votes_mantissa=0,
            delegator_count=0,
        ),
    )
