from sqlalchemy.orm import Mapped, relationship

from .base import Address, Base, BigInteger
from .types import ForeignKeyPoolId, ForeignKeyRewardsDistributorId, PrimaryKeyEntityId


class RewardsDistributorTable(Base):
    __tablename__ = "rewards_distributors"

    id: Mapped[PrimaryKeyEntityId]
    pool_id: Mapped[ForeignKeyPoolId]
    reward_token_address: Mapped[Address]

    # Relationships
    reward_speeds: Mapped[list["RewardSpeedTable"]] = relationship(
        "RewardSpeedTable",
        back_populates="rewards_distributor",
    )


class RewardSpeedTable(Base):
    """
    The per-block reward emission of one distributor for one market. The market is stored as a
    plain address because a distributor can report speeds for markets that were never observed.
    """

    __tablename__ = "reward_speeds"

    id: Mapped[PrimaryKeyEntityId]
    rewards_distributor_id: Mapped[ForeignKeyRewardsDistributorId]
    market_address: Mapped[Address]

    borrow_speed_per_block_mantissa: Mapped[BigInteger]
    supply_speed_per_block_mantissa: Mapped[BigInteger]

    # Relationships
    rewards_distributor: Mapped["RewardsDistributorTable"] = relationship(
        "RewardsDistributorTable",
        back_populates="reward_speeds",
    )
