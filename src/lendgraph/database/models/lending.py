from sqlalchemy import Index
from sqlalchemy.orm import Mapped, relationship

from .base import Address, Base, BigDecimal, BigInteger, TransactionHash
from .types import (
    ForeignKeyAccountId,
    ForeignKeyAccountVTokenId,
    ForeignKeyMarketId,
    ForeignKeyPoolId,
    PrimaryKeyEntityId,
)


class PoolTable(Base):
    """
    A comptroller and the isolated group of markets it governs.
    """

    __tablename__ = "pools"

    id: Mapped[PrimaryKeyEntityId]

    # Pool registry metadata
    name: Mapped[str | None]
    creator: Mapped[Address | None]
    block_posted: Mapped[int | None]
    timestamp_posted: Mapped[int | None]
    category: Mapped[str | None]
    logo_url: Mapped[str | None]
    description: Mapped[str | None]

    # Risk parameters
    price_oracle_address: Mapped[Address | None]
    pause_guardian_address: Mapped[Address | None]
    close_factor_mantissa: Mapped[BigInteger]
    liquidation_incentive_mantissa: Mapped[BigInteger]
    min_liquidatable_collateral_mantissa: Mapped[BigInteger]

    # Relationships
    markets: Mapped[list["MarketTable"]] = relationship(
        "MarketTable",
        back_populates="pool",
    )


class MarketTable(Base):
    """
    A vToken contract: one lending market for one underlying asset, governed by one pool.
    """

    __tablename__ = "markets"

    id: Mapped[PrimaryKeyEntityId]
    pool_id: Mapped[ForeignKeyPoolId]

    name: Mapped[str]
    symbol: Mapped[str]
    vtoken_decimals: Mapped[int]
    underlying_address: Mapped[Address | None]
    underlying_name: Mapped[str]
    underlying_symbol: Mapped[str]
    underlying_decimals: Mapped[int]
    underlying_price_usd: Mapped[BigDecimal]
    created_timestamp: Mapped[int]

    # Configuration
    is_listed: Mapped[bool]
    collateral_factor_mantissa: Mapped[BigInteger]
    liquidation_threshold_mantissa: Mapped[BigInteger]
    borrow_cap_mantissa: Mapped[BigInteger]
    supply_cap_mantissa: Mapped[BigInteger]
    reserve_factor_mantissa: Mapped[BigInteger]
    interest_rate_model_address: Mapped[Address | None]

    # Interest accrual state, refreshed at most once per block
    accrual_block_number: Mapped[int]
    block_timestamp: Mapped[int]
    exchange_rate_mantissa: Mapped[BigInteger]
    borrow_index_mantissa: Mapped[BigInteger]
    reserves_mantissa: Mapped[BigInteger]
    cash: Mapped[BigDecimal]
    borrow_rate_mantissa: Mapped[BigInteger]
    supply_rate_mantissa: Mapped[BigInteger]
    total_borrows_mantissa: Mapped[BigInteger]
    total_supply_mantissa: Mapped[BigInteger]

    # Aggregates, adjusted by exactly one per detected transition
    borrower_count: Mapped[int]
    borrower_count_adjusted: Mapped[int]
    supplier_count: Mapped[int]

    # Relationships
    pool: Mapped["PoolTable"] = relationship(
        "PoolTable",
        back_populates="markets",
    )
    account_vtokens: Mapped[list["AccountVTokenTable"]] = relationship(
        "AccountVTokenTable",
        back_populates="market",
    )


class AccountTable(Base):
    __tablename__ = "accounts"

    id: Mapped[PrimaryKeyEntityId]
    count_liquidator: Mapped[int]
    count_liquidated: Mapped[int]
    has_borrowed: Mapped[bool]

    # Relationships
    positions: Mapped[list["AccountVTokenTable"]] = relationship(
        "AccountVTokenTable",
        back_populates="account",
    )


class AccountVTokenTable(Base):
    """
    The position of one account in one market.
    """

    __tablename__ = "account_vtokens"

    id: Mapped[PrimaryKeyEntityId]
    account_id: Mapped[ForeignKeyAccountId]
    market_id: Mapped[ForeignKeyMarketId]

    entered_market: Mapped[bool]
    accrual_block_number: Mapped[int]
    account_supply_balance_mantissa: Mapped[BigInteger]
    account_borrow_balance_mantissa: Mapped[BigInteger]
    account_borrow_index_mantissa: Mapped[BigInteger]
    total_underlying_supplied_mantissa: Mapped[BigInteger]
    total_underlying_redeemed_mantissa: Mapped[BigInteger]
    total_underlying_borrowed_mantissa: Mapped[BigInteger]
    total_underlying_repaid_mantissa: Mapped[BigInteger]

    # Relationships
    account: Mapped["AccountTable"] = relationship(
        "AccountTable",
        back_populates="positions",
    )
    market: Mapped["MarketTable"] = relationship(
        "MarketTable",
        back_populates="account_vtokens",
    )
    transactions: Mapped[list["AccountVTokenTransactionTable"]] = relationship(
        "AccountVTokenTransactionTable",
        back_populates="account_vtoken",
    )


Index(
    "ix_account_vtokens_account_market",
    AccountVTokenTable.account_id,
    AccountVTokenTable.market_id,
    unique=True,
)


class HistoryRecordMixin:
    """
    Columns shared by the write-once records kept for each processed log.
    """

    block_number: Mapped[int]
    block_timestamp: Mapped[int]
    transaction_hash: Mapped[TransactionHash]


class AccountVTokenTransactionTable(HistoryRecordMixin, Base):
    __tablename__ = "account_vtoken_transactions"

    id: Mapped[PrimaryKeyEntityId]
    account_vtoken_id: Mapped[ForeignKeyAccountVTokenId]
    log_index: Mapped[int]

    # Relationships
    account_vtoken: Mapped["AccountVTokenTable"] = relationship(
        "AccountVTokenTable",
        back_populates="transactions",
    )


class MintEventTable(HistoryRecordMixin, Base):
    __tablename__ = "mint_events"

    id: Mapped[PrimaryKeyEntityId]
    market_id: Mapped[ForeignKeyMarketId]

    minter: Mapped[Address]
    payer: Mapped[Address | None]
    amount_mantissa: Mapped[BigInteger]
    vtokens_mantissa: Mapped[BigInteger]
    account_balance_mantissa: Mapped[BigInteger]


class RedeemEventTable(HistoryRecordMixin, Base):
    __tablename__ = "redeem_events"

    id: Mapped[PrimaryKeyEntityId]
    market_id: Mapped[ForeignKeyMarketId]

    redeemer: Mapped[Address]
    amount_mantissa: Mapped[BigInteger]
    vtokens_mantissa: Mapped[BigInteger]
    account_balance_mantissa: Mapped[BigInteger]


class BorrowEventTable(HistoryRecordMixin, Base):
    __tablename__ = "borrow_events"

    id: Mapped[PrimaryKeyEntityId]
    market_id: Mapped[ForeignKeyMarketId]

    borrower: Mapped[Address]
    amount_mantissa: Mapped[BigInteger]
    account_borrows_mantissa: Mapped[BigInteger]
    underlying_symbol: Mapped[str]


class RepayEventTable(HistoryRecordMixin, Base):
    __tablename__ = "repay_events"

    id: Mapped[PrimaryKeyEntityId]
    market_id: Mapped[ForeignKeyMarketId]

    borrower: Mapped[Address]
    payer: Mapped[Address]
    amount_mantissa: Mapped[BigInteger]
    account_borrows_mantissa: Mapped[BigInteger]
    underlying_symbol: Mapped[str]


class TransferEventTable(HistoryRecordMixin, Base):
    __tablename__ = "transfer_events"

    id: Mapped[PrimaryKeyEntityId]
    market_id: Mapped[ForeignKeyMarketId]

    from_address: Mapped[Address]
    to_address: Mapped[Address]
    amount_mantissa: Mapped[BigInteger]
    underlying_amount_mantissa: Mapped[BigInteger]
    vtoken_symbol: Mapped[str]


class LiquidationEventTable(HistoryRecordMixin, Base):
    __tablename__ = "liquidation_events"

    id: Mapped[PrimaryKeyEntityId]
    market_id: Mapped[ForeignKeyMarketId]
    collateral_market_id: Mapped[ForeignKeyMarketId]

    liquidator: Mapped[Address]
    borrower: Mapped[Address]
    seize_tokens_mantissa: Mapped[BigInteger]
    repay_amount_mantissa: Mapped[BigInteger]
    underlying_symbol: Mapped[str]
    vtoken_collateral_symbol: Mapped[str]


__all__ = (
    "AccountTable",
    "AccountVTokenTable",
    "AccountVTokenTransactionTable",
    "BorrowEventTable",
    "LiquidationEventTable",
    "MarketTable",
    "MintEventTable",
    "PoolTable",
    "RedeemEventTable",
    "RepayEventTable",
    "TransferEventTable",
)
