"""
Rules for events emitted by comptrollers (pools) and the pool registry.
"""

from lendgraph.database.models import AccountVTokenTable, MarketTable, PoolTable
from lendgraph.events import (
    ActionPaused,
    ActionPausedMarket,
    MarketEntered,
    MarketExited,
    MarketSupported,
    MarketUnlisted,
    NewBorrowCap,
    NewCloseFactor,
    NewCollateralFactor,
    NewLiquidationIncentive,
    NewLiquidationThreshold,
    NewMinLiquidatableCollateral,
    NewPauseGuardian,
    NewPriceOracle,
    NewRewardsDistributor,
    NewSupplyCap,
    PoolMetadataUpdated,
    PoolNameSet,
    PoolRegistered,
)
from lendgraph.identifiers import get_market_id
from lendgraph.mappings.context import EventHandlerContext
from lendgraph.mappings.vtoken import touch_account_vtoken
from lendgraph.repository import (
    get_or_create_market,
    get_or_create_market_action,
    get_or_create_pool,
    get_or_create_pool_action,
    get_or_create_rewards_distributor,
)


def _get_emitting_pool(context: EventHandlerContext) -> PoolTable:
    pool = get_or_create_pool(context.repository, context.event.log.address)
    context.repository.save(pool)
    return pool


def _get_pool_market(context: EventHandlerContext, market_address: str) -> MarketTable:
    """
    Get a market referenced by a pool event, creating it under the emitting pool if necessary.
    """

    market = get_or_create_market(
        repository=context.repository,
        reader=context.reader,
        market_address=market_address,
        block_number=context.block_number,
        block_timestamp=context.block_timestamp,
        pool_address=context.event.log.address,
    )
    context.repository.save(market)
    return market


def process_market_supported_event(context: EventHandlerContext[MarketSupported]) -> None:
    """
    Process a MarketSupported event. The collateral factor and liquidation threshold are reset,
    their values arrive with later events.
    """

    market = _get_pool_market(context, context.event.v_token)
    market.is_listed = True
    market.collateral_factor_mantissa = 0
    market.liquidation_threshold_mantissa = 0
    context.repository.save(market)


def process_market_unlisted_event(context: EventHandlerContext[MarketUnlisted]) -> None:
    market = context.repository.require(MarketTable, get_market_id(context.event.v_token))
    market.is_listed = False
    context.repository.save(market)


def _set_entered_market(
    context: EventHandlerContext[MarketEntered] | EventHandlerContext[MarketExited],
    *,
    entered: bool,
) -> AccountVTokenTable:
    market = _get_pool_market(context, context.event.v_token)
    account, account_vtoken = touch_account_vtoken(context, market, context.event.account)
    account_vtoken.entered_market = entered
    context.repository.save(account, account_vtoken)
    return account_vtoken


def process_market_entered_event(context: EventHandlerContext[MarketEntered]) -> None:
    _set_entered_market(context, entered=True)


def process_market_exited_event(context: EventHandlerContext[MarketExited]) -> None:
    _set_entered_market(context, entered=False)


def process_new_close_factor_event(context: EventHandlerContext[NewCloseFactor]) -> None:
    pool = _get_emitting_pool(context)
    pool.close_factor_mantissa = context.event.new_close_factor_mantissa
    context.repository.save(pool)


def process_new_collateral_factor_event(
    context: EventHandlerContext[NewCollateralFactor],
) -> None:
    market = _get_pool_market(context, context.event.v_token)
    market.collateral_factor_mantissa = context.event.new_collateral_factor_mantissa
    context.repository.save(market)


def process_new_liquidation_threshold_event(
    context: EventHandlerContext[NewLiquidationThreshold],
) -> None:
    market = _get_pool_market(context, context.event.v_token)
    market.liquidation_threshold_mantissa = context.event.new_liquidation_threshold_mantissa
    context.repository.save(market)


def process_new_liquidation_incentive_event(
    context: EventHandlerContext[NewLiquidationIncentive],
) -> None:
    pool = _get_emitting_pool(context)
    pool.liquidation_incentive_mantissa = context.event.new_liquidation_incentive_mantissa
    context.repository.save(pool)


def process_new_price_oracle_event(context: EventHandlerContext[NewPriceOracle]) -> None:
    pool = _get_emitting_pool(context)
    pool.price_oracle_address = context.event.new_price_oracle.lower()
    context.repository.save(pool)


def process_new_pause_guardian_event(context: EventHandlerContext[NewPauseGuardian]) -> None:
    pool = _get_emitting_pool(context)
    pool.pause_guardian_address = context.event.new_pause_guardian.lower()
    context.repository.save(pool)


def process_new_min_liquidatable_collateral_event(
    context: EventHandlerContext[NewMinLiquidatableCollateral],
) -> None:
    pool = _get_emitting_pool(context)
    pool.min_liquidatable_collateral_mantissa = context.event.new_min_liquidatable_collateral
    context.repository.save(pool)


def process_new_borrow_cap_event(context: EventHandlerContext[NewBorrowCap]) -> None:
    market = context.repository.require(MarketTable, get_market_id(context.event.v_token))
    market.borrow_cap_mantissa = context.event.new_borrow_cap
    context.repository.save(market)


def process_new_supply_cap_event(context: EventHandlerContext[NewSupplyCap]) -> None:
    market = context.repository.require(MarketTable, get_market_id(context.event.v_token))
    market.supply_cap_mantissa = context.event.new_supply_cap
    context.repository.save(market)


def process_action_paused_market_event(context: EventHandlerContext[ActionPausedMarket]) -> None:
    event = context.event
    market = _get_pool_market(context, event.v_token)
    market_action = get_or_create_market_action(context.repository, market, event.action)
    market_action.paused = event.pause_state
    context.repository.save(market_action)


def process_action_paused_event(context: EventHandlerContext[ActionPaused]) -> None:
    event = context.event
    pool = _get_emitting_pool(context)
    pool_action = get_or_create_pool_action(context.repository, pool, event.action)
    pool_action.paused = event.pause_state
    context.repository.save(pool_action)


def process_new_rewards_distributor_event(
    context: EventHandlerContext[NewRewardsDistributor],
) -> None:
    pool = _get_emitting_pool(context)
    get_or_create_rewards_distributor(
        repository=context.repository,
        reader=context.reader,
        distributor_address=context.event.rewards_distributor,
        pool=pool,
        block_number=context.block_number,
    )


def process_pool_registered_event(context: EventHandlerContext[PoolRegistered]) -> None:
    event = context.event
    name, creator, _, block_posted, timestamp_posted = event.pool

    pool = get_or_create_pool(context.repository, event.comptroller)
    pool.name = name
    pool.creator = creator.lower()
    pool.block_posted = block_posted
    pool.timestamp_posted = timestamp_posted
    context.repository.save(pool)


def process_pool_name_set_event(context: EventHandlerContext[PoolNameSet]) -> None:
    pool = get_or_create_pool(context.repository, context.event.comptroller)
    pool.name = context.event.new_name
    context.repository.save(pool)


def process_pool_metadata_updated_event(
    context: EventHandlerContext[PoolMetadataUpdated],
) -> None:
    category, logo_url, description = context.event.new_metadata

    pool = get_or_create_pool(context.repository, context.event.comptroller)
    pool.category = category
    pool.logo_url = logo_url
    pool.description = description
    context.repository.save(pool)
