"""
Rules for events emitted by rewards distributors.
"""

from lendgraph.database.models import RewardsDistributorTable
from lendgraph.events import RewardTokenBorrowSpeedUpdated, RewardTokenSupplySpeedUpdated
from lendgraph.identifiers import get_rewards_distributor_id
from lendgraph.mappings.context import EventHandlerContext
from lendgraph.repository import get_or_create_reward_speed


def _get_emitting_distributor(context: EventHandlerContext) -> RewardsDistributorTable:
    # Distributors are registered by their pool before they can emit speed updates
    return context.repository.require(
        RewardsDistributorTable,
        get_rewards_distributor_id(context.event.log.address),
    )


def process_reward_token_borrow_speed_updated_event(
    context: EventHandlerContext[RewardTokenBorrowSpeedUpdated],
) -> None:
    distributor = _get_emitting_distributor(context)
    reward_speed = get_or_create_reward_speed(
        context.repository, distributor, context.event.v_token
    )
    reward_speed.borrow_speed_per_block_mantissa = context.event.new_speed
    context.repository.save(reward_speed)


def process_reward_token_supply_speed_updated_event(
    context: EventHandlerContext[RewardTokenSupplySpeedUpdated],
) -> None:
    distributor = _get_emitting_distributor(context)
    reward_speed = get_or_create_reward_speed(
        context.repository, distributor, context.event.v_token
    )
    reward_speed.supply_speed_per_block_mantissa = context.event.new_speed
    context.repository.save(reward_speed)
