import enum
from typing import Any

from sqlalchemy import JSON, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Address, Base, BigInteger
from .types import ForeignKeyProposalId, PrimaryKeyEntityId


class ProposalStatus(enum.Enum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    CANCELED = "CANCELED"
    DEFEATED = "DEFEATED"
    SUCCEEDED = "SUCCEEDED"
    QUEUED = "QUEUED"
    EXPIRED = "EXPIRED"
    EXECUTED = "EXECUTED"


class VoteSupport(enum.Enum):
    AGAINST = 0
    FOR = 1
    ABSTAIN = 2


class ProposalTable(Base):
    __tablename__ = "proposals"

    id: Mapped[PrimaryKeyEntityId]
    proposer: Mapped[Address]
    status: Mapped[ProposalStatus]
    description: Mapped[str]

    # Actions, stored in submission order. uint256 call values are kept as decimal strings.
    targets: Mapped[list[str]] = mapped_column(JSON)
    values: Mapped[list[str]] = mapped_column(JSON)
    signatures: Mapped[list[str]] = mapped_column(JSON)
    calldatas: Mapped[list[str]] = mapped_column(JSON)

    start_block: Mapped[int]
    end_block: Mapped[int]
    created_block: Mapped[int]
    created_timestamp: Mapped[int]
    queued_block: Mapped[int | None]
    eta: Mapped[int | None]
    executed_block: Mapped[int | None]
    canceled_block: Mapped[int | None]

    for_votes_mantissa: Mapped[BigInteger]
    against_votes_mantissa: Mapped[BigInteger]
    abstain_votes_mantissa: Mapped[BigInteger]

    # Relationships
    votes: Mapped[list["VoteTable"]] = relationship(
        "VoteTable",
        back_populates="proposal",
    )

    @property
    def actions(self) -> list[dict[str, Any]]:
        return [
            {"target": target, "value": int(value), "signature": signature, "calldata": calldata}
            for target, value, signature, calldata in zip(
                self.targets, self.values, self.signatures, self.calldatas, strict=True
            )
        ]


class VoteTable(Base):
    __tablename__ = "votes"

    id: Mapped[PrimaryKeyEntityId]
    proposal_id: Mapped[ForeignKeyProposalId]

    voter: Mapped[Address]
    support: Mapped[VoteSupport]
    votes_mantissa: Mapped[BigInteger]
    reason: Mapped[str | None]
    block_number: Mapped[int]
    block_timestamp: Mapped[int]

    # Relationships
    proposal: Mapped["ProposalTable"] = relationship(
        "ProposalTable",
        back_populates="votes",
    )


Index(
    "ix_votes_proposal_voter",
    VoteTable.proposal_id,
    VoteTable.voter,
    unique=True,
)


class DelegateTable(Base):
    __tablename__ = "delegates"

    id: Mapped[PrimaryKeyEntityId]
    delegated_votes_mantissa: Mapped[BigInteger]
    delegator_count: Mapped[int]
