"""Initial schema

Revision ID: 9f2c41d7a8b3
Revises:
Create Date: 2026-10-18 09:12:44.081523

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

import lendgraph.database.models

# revision identifiers, used by Alembic.
revision: str = "9f2c41d7a8b3"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _big_integer() -> sa.types.TypeEngine:
    return lendgraph.database.models.base.IntMappedToString()


def _big_decimal() -> sa.types.TypeEngine:
    return lendgraph.database.models.base.DecimalMappedToString()


def _history_columns() -> list[sa.Column]:
    return [
        sa.Column("block_number", sa.Integer(), nullable=False),
        sa.Column("block_timestamp", sa.Integer(), nullable=False),
        sa.Column("transaction_hash", sa.String(length=66), nullable=False),
    ]


def _create_fk_indexes(table: str, columns: list[str]) -> None:
    with op.batch_alter_table(table, schema=None) as batch_op:
        for column in columns:
            batch_op.create_index(batch_op.f(f"ix_{table}_{column}"), [column], unique=False)


def upgrade() -> None:
    """Upgrade schema."""

    op.create_table(
        "pools",
        sa.Column("id", sa.String(length=160), nullable=False),
        sa.Column("name", sa.Text(), nullable=True),
        sa.Column("creator", sa.String(length=42), nullable=True),
        sa.Column("block_posted", sa.Integer(), nullable=True),
        sa.Column("timestamp_posted", sa.Integer(), nullable=True),
        sa.Column("category", sa.Text(), nullable=True),
        sa.Column("logo_url", sa.Text(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("price_oracle_address", sa.String(length=42), nullable=True),
        sa.Column("pause_guardian_address", sa.String(length=42), nullable=True),
        sa.Column("close_factor_mantissa", _big_integer(), nullable=False),
        sa.Column("liquidation_incentive_mantissa", _big_integer(), nullable=False),
        sa.Column("min_liquidatable_collateral_mantissa", _big_integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "accounts",
        sa.Column("id", sa.String(length=160), nullable=False),
        sa.Column("count_liquidator", sa.Integer(), nullable=False),
        sa.Column("count_liquidated", sa.Integer(), nullable=False),
        sa.Column("has_borrowed", sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "markets",
        sa.Column("id", sa.String(length=160), nullable=False),
        sa.Column("pool_id", sa.Text(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("symbol", sa.Text(), nullable=False),
        sa.Column("vtoken_decimals", sa.Integer(), nullable=False),
        sa.Column("underlying_address", sa.String(length=42), nullable=True),
        sa.Column("underlying_name", sa.Text(), nullable=False),
        sa.Column("underlying_symbol", sa.Text(), nullable=False),
        sa.Column("underlying_decimals", sa.Integer(), nullable=False),
        sa.Column("underlying_price_usd", _big_decimal(), nullable=False),
        sa.Column("created_timestamp", sa.Integer(), nullable=False),
        sa.Column("is_listed", sa.Boolean(), nullable=False),
        sa.Column("collateral_factor_mantissa", _big_integer(), nullable=False),
        sa.Column("liquidation_threshold_mantissa", _big_integer(), nullable=False),
        sa.Column("borrow_cap_mantissa", _big_integer(), nullable=False),
        sa.Column("supply_cap_mantissa", _big_integer(), nullable=False),
        sa.Column("reserve_factor_mantissa", _big_integer(), nullable=False),
        sa.Column("interest_rate_model_address", sa.String(length=42), nullable=True),
        sa.Column("accrual_block_number", sa.Integer(), nullable=False),
        sa.Column("block_timestamp", sa.Integer(), nullable=False),
        sa.Column("exchange_rate_mantissa", _big_integer(), nullable=False),
        sa.Column("borrow_index_mantissa", _big_integer(), nullable=False),
        sa.Column("reserves_mantissa", _big_integer(), nullable=False),
        sa.Column("cash", _big_decimal(), nullable=False),
        sa.Column("borrow_rate_mantissa", _big_integer(), nullable=False),
        sa.Column("supply_rate_mantissa", _big_integer(), nullable=False),
        sa.Column("total_borrows_mantissa", _big_integer(), nullable=False),
        sa.Column("total_supply_mantissa", _big_integer(), nullable=False),
        sa.Column("borrower_count", sa.Integer(), nullable=False),
        sa.Column("borrower_count_adjusted", sa.Integer(), nullable=False),
        sa.Column("supplier_count", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(
            ["pool_id"],
            ["pools.id"],
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    _create_fk_indexes("markets", ["pool_id"])

    op.create_table(
        "account_vtokens",
        sa.Column("id", sa.String(length=160), nullable=False),
        sa.Column("account_id", sa.Text(), nullable=False),
        sa.Column("market_id", sa.Text(), nullable=False),
        sa.Column("entered_market", sa.Boolean(), nullable=False),
        sa.Column("accrual_block_number", sa.Integer(), nullable=False),
        sa.Column("account_supply_balance_mantissa", _big_integer(), nullable=False),
        sa.Column("account_borrow_balance_mantissa", _big_integer(), nullable=False),
        sa.Column("account_borrow_index_mantissa", _big_integer(), nullable=False),
        sa.Column("total_underlying_supplied_mantissa", _big_integer(), nullable=False),
        sa.Column("total_underlying_redeemed_mantissa", _big_integer(), nullable=False),
        sa.Column("total_underlying_borrowed_mantissa", _big_integer(), nullable=False),
        sa.Column("total_underlying_repaid_mantissa", _big_integer(), nullable=False),
        sa.ForeignKeyConstraint(
            ["account_id"],
            ["accounts.id"],
        ),
        sa.ForeignKeyConstraint(
            ["market_id"],
            ["markets.id"],
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    _create_fk_indexes("account_vtokens", ["account_id", "market_id"])
    with op.batch_alter_table("account_vtokens", schema=None) as batch_op:
        batch_op.create_index(
            "ix_account_vtokens_account_market", ["account_id", "market_id"], unique=True
        )

    op.create_table(
        "account_vtoken_transactions",
        sa.Column("id", sa.String(length=160), nullable=False),
        sa.Column("account_vtoken_id", sa.Text(), nullable=False),
        sa.Column("log_index", sa.Integer(), nullable=False),
        *_history_columns(),
        sa.ForeignKeyConstraint(
            ["account_vtoken_id"],
            ["account_vtokens.id"],
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    _create_fk_indexes("account_vtoken_transactions", ["account_vtoken_id"])

    op.create_table(
        "mint_events",
        sa.Column("id", sa.String(length=160), nullable=False),
        sa.Column("market_id", sa.Text(), nullable=False),
        sa.Column("minter", sa.String(length=42), nullable=False),
        sa.Column("payer", sa.String(length=42), nullable=True),
        sa.Column("amount_mantissa", _big_integer(), nullable=False),
        sa.Column("vtokens_mantissa", _big_integer(), nullable=False),
        sa.Column("account_balance_mantissa", _big_integer(), nullable=False),
        *_history_columns(),
        sa.ForeignKeyConstraint(
            ["market_id"],
            ["markets.id"],
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "redeem_events",
        sa.Column("id", sa.String(length=160), nullable=False),
        sa.Column("market_id", sa.Text(), nullable=False),
        sa.Column("redeemer", sa.String(length=42), nullable=False),
        sa.Column("amount_mantissa", _big_integer(), nullable=False),
        sa.Column("vtokens_mantissa", _big_integer(), nullable=False),
        sa.Column("account_balance_mantissa", _big_integer(), nullable=False),
        *_history_columns(),
        sa.ForeignKeyConstraint(
            ["market_id"],
            ["markets.id"],
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "borrow_events",
        sa.Column("id", sa.String(length=160), nullable=False),
        sa.Column("market_id", sa.Text(), nullable=False),
        sa.Column("borrower", sa.String(length=42), nullable=False),
        sa.Column("amount_mantissa", _big_integer(), nullable=False),
        sa.Column("account_borrows_mantissa", _big_integer(), nullable=False),
        sa.Column("underlying_symbol", sa.Text(), nullable=False),
        *_history_columns(),
        sa.ForeignKeyConstraint(
            ["market_id"],
            ["markets.id"],
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "repay_events",
        sa.Column("id", sa.String(length=160), nullable=False),
        sa.Column("market_id", sa.Text(), nullable=False),
        sa.Column("borrower", sa.String(length=42), nullable=False),
        sa.Column("payer", sa.String(length=42), nullable=False),
        sa.Column("amount_mantissa", _big_integer(), nullable=False),
        sa.Column("account_borrows_mantissa", _big_integer(), nullable=False),
        sa.Column("underlying_symbol", sa.Text(), nullable=False),
        *_history_columns(),
        sa.ForeignKeyConstraint(
            ["market_id"],
            ["markets.id"],
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "transfer_events",
        sa.Column("id", sa.String(length=160), nullable=False),
        sa.Column("market_id", sa.Text(), nullable=False),
        sa.Column("from_address", sa.String(length=42), nullable=False),
        sa.Column("to_address", sa.String(length=42), nullable=False),
        sa.Column("amount_mantissa", _big_integer(), nullable=False),
        sa.Column("underlying_amount_mantissa", _big_integer(), nullable=False),
        sa.Column("vtoken_symbol", sa.Text(), nullable=False),
        *_history_columns(),
        sa.ForeignKeyConstraint(
            ["market_id"],
            ["markets.id"],
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "liquidation_events",
        sa.Column("id", sa.String(length=160), nullable=False),
        sa.Column("market_id", sa.Text(), nullable=False),
        sa.Column("collateral_market_id", sa.Text(), nullable=False),
        sa.Column("liquidator", sa.String(length=42), nullable=False),
        sa.Column("borrower", sa.String(length=42), nullable=False),
        sa.Column("seize_tokens_mantissa", _big_integer(), nullable=False),
        sa.Column("repay_amount_mantissa", _big_integer(), nullable=False),
        sa.Column("underlying_symbol", sa.Text(), nullable=False),
        sa.Column("vtoken_collateral_symbol", sa.Text(), nullable=False),
        *_history_columns(),
        sa.ForeignKeyConstraint(
            ["market_id"],
            ["markets.id"],
        ),
        sa.ForeignKeyConstraint(
            ["collateral_market_id"],
            ["markets.id"],
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    for table in ("mint_events", "redeem_events", "borrow_events", "repay_events"):
        _create_fk_indexes(table, ["market_id"])
    _create_fk_indexes("transfer_events", ["market_id"])
    _create_fk_indexes("liquidation_events", ["market_id", "collateral_market_id"])

    op.create_table(
        "pool_actions",
        sa.Column("id", sa.String(length=160), nullable=False),
        sa.Column("pool_id", sa.Text(), nullable=False),
        sa.Column("action", sa.Text(), nullable=False),
        sa.Column("paused", sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(
            ["pool_id"],
            ["pools.id"],
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    _create_fk_indexes("pool_actions", ["pool_id"])
    op.create_table(
        "market_actions",
        sa.Column("id", sa.String(length=160), nullable=False),
        sa.Column("market_id", sa.Text(), nullable=False),
        sa.Column("action", sa.Integer(), nullable=False),
        sa.Column("paused", sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(
            ["market_id"],
            ["markets.id"],
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    _create_fk_indexes("market_actions", ["market_id"])

    op.create_table(
        "rewards_distributors",
        sa.Column("id", sa.String(length=160), nullable=False),
        sa.Column("pool_id", sa.Text(), nullable=False),
        sa.Column("reward_token_address", sa.String(length=42), nullable=False),
        sa.ForeignKeyConstraint(
            ["pool_id"],
            ["pools.id"],
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    _create_fk_indexes("rewards_distributors", ["pool_id"])
    op.create_table(
        "reward_speeds",
        sa.Column("id", sa.String(length=160), nullable=False),
        sa.Column("rewards_distributor_id", sa.Text(), nullable=False),
        sa.Column("market_address", sa.String(length=42), nullable=False),
        sa.Column("borrow_speed_per_block_mantissa", _big_integer(), nullable=False),
        sa.Column("supply_speed_per_block_mantissa", _big_integer(), nullable=False),
        sa.ForeignKeyConstraint(
            ["rewards_distributor_id"],
            ["rewards_distributors.id"],
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    _create_fk_indexes("reward_speeds", ["rewards_distributor_id"])

    op.create_table(
        "proposals",
        sa.Column("id", sa.String(length=160), nullable=False),
        sa.Column("proposer", sa.String(length=42), nullable=False),
        sa.Column(
            "status",
            sa.Enum(
                "PENDING",
                "ACTIVE",
                "CANCELED",
                "DEFEATED",
                "SUCCEEDED",
                "QUEUED",
                "EXPIRED",
                "EXECUTED",
                name="proposalstatus",
            ),
            nullable=False,
        ),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("targets", sa.JSON(), nullable=False),
        sa.Column("values", sa.JSON(), nullable=False),
        sa.Column("signatures", sa.JSON(), nullable=False),
        sa.Column("calldatas", sa.JSON(), nullable=False),
        sa.Column("start_block", sa.Integer(), nullable=False),
        sa.Column("end_block", sa.Integer(), nullable=False),
        sa.Column("created_block", sa.Integer(), nullable=False),
        sa.Column("created_timestamp", sa.Integer(), nullable=False),
        sa.Column("queued_block", sa.Integer(), nullable=True),
        sa.Column("eta", sa.Integer(), nullable=True),
        sa.Column("executed_block", sa.Integer(), nullable=True),
        sa.Column("canceled_block", sa.Integer(), nullable=True),
        sa.Column("for_votes_mantissa", _big_integer(), nullable=False),
        sa.Column("against_votes_mantissa", _big_integer(), nullable=False),
        sa.Column("abstain_votes_mantissa", _big_integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "votes",
        sa.Column("id", sa.String(length=160), nullable=False),
        sa.Column("proposal_id", sa.Text(), nullable=False),
        sa.Column("voter", sa.String(length=42), nullable=False),
        sa.Column(
            "support",
            sa.Enum("AGAINST", "FOR", "ABSTAIN", name="votesupport"),
            nullable=False,
        ),
        sa.Column("votes_mantissa", _big_integer(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("block_number", sa.Integer(), nullable=False),
        sa.Column("block_timestamp", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(
            ["proposal_id"],
            ["proposals.id"],
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    _create_fk_indexes("votes", ["proposal_id"])
    with op.batch_alter_table("votes", schema=None) as batch_op:
        batch_op.create_index("ix_votes_proposal_voter", ["proposal_id", "voter"], unique=True)

    op.create_table(
        "delegates",
        sa.Column("id", sa.String(length=160), nullable=False),
        sa.Column("delegated_votes_mantissa", _big_integer(), nullable=False),
        sa.Column("delegator_count", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )


def downgrade() -> None:
    """Downgrade schema."""
    msg = "Downgrade is not supported for this migration."
    raise NotImplementedError(msg)
