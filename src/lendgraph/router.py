from collections.abc import Callable
from typing import Any

from lendgraph import events
from lendgraph.exceptions import UnknownEvent
from lendgraph.mappings import governance, pool, rewards, vtoken
from lendgraph.mappings.context import EventHandlerContext

type EventHandler = Callable[[EventHandlerContext[Any]], None]

EVENT_HANDLERS: dict[type[events.LendingEvent], EventHandler] = {
    # Comptroller
    events.MarketSupported: pool.process_market_supported_event,
    events.MarketUnlisted: pool.process_market_unlisted_event,
    events.MarketEntered: pool.process_market_entered_event,
    events.MarketExited: pool.process_market_exited_event,
    events.NewCloseFactor: pool.process_new_close_factor_event,
    events.NewCollateralFactor: pool.process_new_collateral_factor_event,
    events.NewLiquidationThreshold: pool.process_new_liquidation_threshold_event,
    events.NewLiquidationIncentive: pool.process_new_liquidation_incentive_event,
    events.NewPriceOracle: pool.process_new_price_oracle_event,
    events.NewPauseGuardian: pool.process_new_pause_guardian_event,
    events.NewMinLiquidatableCollateral: pool.process_new_min_liquidatable_collateral_event,
    events.NewBorrowCap: pool.process_new_borrow_cap_event,
    events.NewSupplyCap: pool.process_new_supply_cap_event,
    events.ActionPausedMarket: pool.process_action_paused_market_event,
    events.ActionPaused: pool.process_action_paused_event,
    events.NewRewardsDistributor: pool.process_new_rewards_distributor_event,
    # Pool registry
    events.PoolRegistered: pool.process_pool_registered_event,
    events.PoolNameSet: pool.process_pool_name_set_event,
    events.PoolMetadataUpdated: pool.process_pool_metadata_updated_event,
    # Markets
    events.Mint: vtoken.process_mint_event,
    events.MintV1: vtoken.process_mint_v1_event,
    events.MintBehalf: vtoken.process_mint_behalf_event,
    events.MintBehalfV1: vtoken.process_mint_behalf_v1_event,
    events.Redeem: vtoken.process_redeem_event,
    events.RedeemV1: vtoken.process_redeem_v1_event,
    events.Borrow: vtoken.process_borrow_event,
    events.RepayBorrow: vtoken.process_repay_borrow_event,
    events.LiquidateBorrow: vtoken.process_liquidate_borrow_event,
    events.Transfer: vtoken.process_transfer_event,
    events.AccrueInterest: vtoken.process_accrue_interest_event,
    events.NewReserveFactor: vtoken.process_new_reserve_factor_event,
    events.NewMarketInterestRateModel: vtoken.process_new_market_interest_rate_model_event,
    # Rewards distributors
    events.RewardTokenBorrowSpeedUpdated: rewards.process_reward_token_borrow_speed_updated_event,
    events.RewardTokenSupplySpeedUpdated: rewards.process_reward_token_supply_speed_updated_event,
    # Governance
    events.ProposalCreated: governance.process_proposal_created_event,
    events.ProposalCanceled: governance.process_proposal_canceled_event,
    events.ProposalQueued: governance.process_proposal_queued_event,
    events.ProposalExecuted: governance.process_proposal_executed_event,
    events.VoteCastAlpha: governance.process_vote_cast_alpha_event,
    events.VoteCastBravo: governance.process_vote_cast_bravo_event,
    events.DelegateChanged: governance.process_delegate_changed_event,
    events.DelegateVotesChanged: governance.process_delegate_votes_changed_event,
}


def dispatch_event(context: EventHandlerContext) -> None:
    """
    Dispatch event to appropriate handler based on event type.
    """

    event_type = type(context.event)
    if event_type not in EVENT_HANDLERS:
        raise UnknownEvent(event_name=event_type.__name__)

    handler = EVENT_HANDLERS[event_type]
    handler(context)
