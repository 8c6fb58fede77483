from sqlalchemy.orm import Mapped

from .base import Base
from .types import ForeignKeyMarketId, ForeignKeyPoolId, PrimaryKeyEntityId


class PoolActionTable(Base):
    """
    A pool-wide pause switch, keyed by the action name emitted by the comptroller.
    """

    __tablename__ = "pool_actions"

    id: Mapped[PrimaryKeyEntityId]
    pool_id: Mapped[ForeignKeyPoolId]
    action: Mapped[str]
    paused: Mapped[bool]


class MarketActionTable(Base):
    """
    A per-market pause switch, keyed by the numeric action code.
    """

    __tablename__ = "market_actions"

    id: Mapped[PrimaryKeyEntityId]
    market_id: Mapped[ForeignKeyMarketId]
    action: Mapped[int]
    paused: Mapped[bool]
