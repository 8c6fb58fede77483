from .base import Base
from .governance import DelegateTable, ProposalStatus, ProposalTable, VoteSupport, VoteTable
from .lending import (
    AccountTable,
    AccountVTokenTable,
    AccountVTokenTransactionTable,
    BorrowEventTable,
    LiquidationEventTable,
    MarketTable,
    MintEventTable,
    PoolTable,
    RedeemEventTable,
    RepayEventTable,
    TransferEventTable,
)
from .pause import MarketActionTable, PoolActionTable
from .rewards import RewardSpeedTable, RewardsDistributorTable

__all__ = (
    "AccountTable",
    "AccountVTokenTable",
    "AccountVTokenTransactionTable",
    "Base",
    "BorrowEventTable",
    "DelegateTable",
    "LiquidationEventTable",
    "MarketActionTable",
    "MarketTable",
    "MintEventTable",
    "PoolActionTable",
    "PoolTable",
    "ProposalStatus",
    "ProposalTable",
    "RedeemEventTable",
    "RepayEventTable",
    "RewardSpeedTable",
    "RewardsDistributorTable",
    "TransferEventTable",
    "VoteSupport",
    "VoteTable",
)
