from collections.abc import Callable
from typing import Any

import pytest
from conftest import DISTRIBUTOR, MARKET, POOL, REWARD_TOKEN, EventStream, FakeContractReader

from lendgraph.database.models import RewardSpeedTable
from lendgraph.events import (
    NewRewardsDistributor,
    RewardTokenBorrowSpeedUpdated,
    RewardTokenSupplySpeedUpdated,
)
from lendgraph.exceptions import EntityNotFound
from lendgraph.identifiers import get_reward_speed_id
from lendgraph.mappings.context import EventHandlerContext
from lendgraph.repository import EntityRepository
from lendgraph.router import dispatch_event


@pytest.fixture
def apply(make_context: Callable[..., EventHandlerContext[Any]]) -> Callable[..., None]:
    def _apply(*events: Any) -> None:
        for event in events:
            dispatch_event(make_context(event))

    return _apply


@pytest.fixture
def distributor(apply: Callable[..., None], stream: EventStream, reader: FakeContractReader):
    reader.reward_tokens[DISTRIBUTOR.lower()] = REWARD_TOKEN
    reader.pool_markets[POOL.lower()] = [MARKET]
    reader.speeds[(DISTRIBUTOR.lower(), MARKET.lower())] = (5, 6)
    apply(
        stream(
            NewRewardsDistributor,
            POOL,
            rewards_distributor=DISTRIBUTOR,
            reward_token=REWARD_TOKEN,
        )
    )


def _speed(repository: EntityRepository) -> RewardSpeedTable:
    return repository.require(RewardSpeedTable, get_reward_speed_id(DISTRIBUTOR, MARKET))


@pytest.mark.usefixtures("distributor")
def test_speeds_snapshotted_at_registration(repository: EntityRepository):
    speed = _speed(repository)
    assert speed.borrow_speed_per_block_mantissa == 5
    assert speed.supply_speed_per_block_mantissa == 6


@pytest.mark.usefixtures("distributor")
def test_speed_updates(
    apply: Callable[..., None], stream: EventStream, repository: EntityRepository
):
    apply(
        stream(RewardTokenBorrowSpeedUpdated, DISTRIBUTOR, v_token=MARKET, new_speed=50),
        stream(RewardTokenSupplySpeedUpdated, DISTRIBUTOR, v_token=MARKET, new_speed=0),
    )

    speed = _speed(repository)
    assert speed.borrow_speed_per_block_mantissa == 50
    assert speed.supply_speed_per_block_mantissa == 0


@pytest.mark.usefixtures("distributor")
def test_speed_update_for_new_market(
    apply: Callable[..., None], stream: EventStream, repository: EntityRepository
):
    new_market = "0x" + "b9" * 20
    apply(stream(RewardTokenSupplySpeedUpdated, DISTRIBUTOR, v_token=new_market, new_speed=7))

    speed = repository.require(RewardSpeedTable, get_reward_speed_id(DISTRIBUTOR, new_market))
    assert speed.supply_speed_per_block_mantissa == 7
    assert speed.borrow_speed_per_block_mantissa == 0


def test_speed_update_from_unknown_distributor(apply: Callable[..., None], stream: EventStream):
    with pytest.raises(EntityNotFound):
        apply(stream(RewardTokenBorrowSpeedUpdated, DISTRIBUTOR, v_token=MARKET, new_speed=1))
