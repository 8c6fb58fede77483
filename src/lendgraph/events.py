"""
Typed records for the logs emitted by the lending protocol contracts.

Each event class declares its Solidity parameter list in `PARAMETERS`, which is used both to derive
the topic hash and to decode a raw log into an instance. Field names of the dataclass match the
parameter names.
"""

from dataclasses import dataclass
from typing import Any, ClassVar, NamedTuple

import eth_abi.abi
from eth_abi.exceptions import DecodingError
from eth_abi.grammar import ABIType, BasicType, TupleType, parse
from eth_typing import ChecksumAddress
from hexbytes import HexBytes
from web3.types import LogReceipt

from lendgraph.checksum_cache import get_checksum_address
from lendgraph.exceptions import DecodingFailure
from lendgraph.functions import event_topic


class EventParameter(NamedTuple):
    name: str
    abi_type: str
    indexed: bool = False


@dataclass(frozen=True, slots=True)
class LogContext:
    """
    The position and origin of a log in the chain.
    """

    address: ChecksumAddress
    block_number: int
    block_timestamp: int
    transaction_hash: HexBytes
    transaction_index: int
    log_index: int

    @property
    def position(self) -> tuple[int, int, int]:
        return self.block_number, self.transaction_index, self.log_index


@dataclass(frozen=True, slots=True)
class LendingEvent:
    NAME: ClassVar[str]
    PARAMETERS: ClassVar[tuple[EventParameter, ...]]

    log: LogContext

    @classmethod
    def signature(cls) -> str:
        return f"{cls.NAME}({','.join(param.abi_type for param in cls.PARAMETERS)})"

    @classmethod
    def topic(cls) -> HexBytes:
        return event_topic(cls.signature())


# Comptroller (pool) events


@dataclass(frozen=True, slots=True)
class MarketSupported(LendingEvent):
    NAME = "MarketSupported"
    PARAMETERS = (EventParameter("v_token", "address"),)

    v_token: ChecksumAddress


@dataclass(frozen=True, slots=True)
class MarketUnlisted(LendingEvent):
    NAME = "MarketUnlisted"
    PARAMETERS = (EventParameter("v_token", "address", indexed=True),)

    v_token: ChecksumAddress


@dataclass(frozen=True, slots=True)
class MarketEntered(LendingEvent):
    NAME = "MarketEntered"
    PARAMETERS = (
        EventParameter("v_token", "address", indexed=True),
        EventParameter("account", "address", indexed=True),
    )

    v_token: ChecksumAddress
    account: ChecksumAddress


@dataclass(frozen=True, slots=True)
class MarketExited(LendingEvent):
    NAME = "MarketExited"
    PARAMETERS = (
        EventParameter("v_token", "address", indexed=True),
        EventParameter("account", "address", indexed=True),
    )

    v_token: ChecksumAddress
    account: ChecksumAddress


@dataclass(frozen=True, slots=True)
class NewCloseFactor(LendingEvent):
    NAME = "NewCloseFactor"
    PARAMETERS = (
        EventParameter("old_close_factor_mantissa", "uint256"),
        EventParameter("new_close_factor_mantissa", "uint256"),
    )

    old_close_factor_mantissa: int
    new_close_factor_mantissa: int


@dataclass(frozen=True, slots=True)
class NewCollateralFactor(LendingEvent):
    NAME = "NewCollateralFactor"
    PARAMETERS = (
        EventParameter("v_token", "address"),
        EventParameter("old_collateral_factor_mantissa", "uint256"),
        EventParameter("new_collateral_factor_mantissa", "uint256"),
    )

    v_token: ChecksumAddress
    old_collateral_factor_mantissa: int
    new_collateral_factor_mantissa: int


@dataclass(frozen=True, slots=True)
class NewLiquidationThreshold(LendingEvent):
    NAME = "NewLiquidationThreshold"
    PARAMETERS = (
        EventParameter("v_token", "address"),
        EventParameter("old_liquidation_threshold_mantissa", "uint256"),
        EventParameter("new_liquidation_threshold_mantissa", "uint256"),
    )

    v_token: ChecksumAddress
    old_liquidation_threshold_mantissa: int
    new_liquidation_threshold_mantissa: int


@dataclass(frozen=True, slots=True)
class NewLiquidationIncentive(LendingEvent):
    NAME = "NewLiquidationIncentive"
    PARAMETERS = (
        EventParameter("old_liquidation_incentive_mantissa", "uint256"),
        EventParameter("new_liquidation_incentive_mantissa", "uint256"),
    )

    old_liquidation_incentive_mantissa: int
    new_liquidation_incentive_mantissa: int


@dataclass(frozen=True, slots=True)
class NewPriceOracle(LendingEvent):
    NAME = "NewPriceOracle"
    PARAMETERS = (
        EventParameter("old_price_oracle", "address"),
        EventParameter("new_price_oracle", "address"),
    )

    old_price_oracle: ChecksumAddress
    new_price_oracle: ChecksumAddress


@dataclass(frozen=True, slots=True)
class NewPauseGuardian(LendingEvent):
    NAME = "NewPauseGuardian"
    PARAMETERS = (
        EventParameter("old_pause_guardian", "address"),
        EventParameter("new_pause_guardian", "address"),
    )

    old_pause_guardian: ChecksumAddress
    new_pause_guardian: ChecksumAddress


@dataclass(frozen=True, slots=True)
class NewMinLiquidatableCollateral(LendingEvent):
    NAME = "NewMinLiquidatableCollateral"
    PARAMETERS = (
        EventParameter("old_min_liquidatable_collateral", "uint256"),
        EventParameter("new_min_liquidatable_collateral", "uint256"),
    )

    old_min_liquidatable_collateral: int
    new_min_liquidatable_collateral: int


@dataclass(frozen=True, slots=True)
class NewBorrowCap(LendingEvent):
    NAME = "NewBorrowCap"
    PARAMETERS = (
        EventParameter("v_token", "address", indexed=True),
        EventParameter("new_borrow_cap", "uint256"),
    )

    v_token: ChecksumAddress
    new_borrow_cap: int


@dataclass(frozen=True, slots=True)
class NewSupplyCap(LendingEvent):
    NAME = "NewSupplyCap"
    PARAMETERS = (
        EventParameter("v_token", "address", indexed=True),
        EventParameter("new_supply_cap", "uint256"),
    )

    v_token: ChecksumAddress
    new_supply_cap: int


@dataclass(frozen=True, slots=True)
class ActionPausedMarket(LendingEvent):
    NAME = "ActionPausedMarket"
    PARAMETERS = (
        EventParameter("v_token", "address"),
        EventParameter("action", "uint8"),
        EventParameter("pause_state", "bool"),
    )

    v_token: ChecksumAddress
    action: int
    pause_state: bool


@dataclass(frozen=True, slots=True)
class ActionPaused(LendingEvent):
    NAME = "ActionPaused"
    PARAMETERS = (
        EventParameter("action", "string"),
        EventParameter("pause_state", "bool"),
    )

    action: str
    pause_state: bool


@dataclass(frozen=True, slots=True)
class NewRewardsDistributor(LendingEvent):
    NAME = "NewRewardsDistributor"
    PARAMETERS = (
        EventParameter("rewards_distributor", "address", indexed=True),
        EventParameter("reward_token", "address", indexed=True),
    )

    rewards_distributor: ChecksumAddress
    reward_token: ChecksumAddress


# Pool registry events


@dataclass(frozen=True, slots=True)
class PoolRegistered(LendingEvent):
    NAME = "PoolRegistered"
    PARAMETERS = (
        EventParameter("comptroller", "address", indexed=True),
        # (name, creator, comptroller, blockPosted, timestampPosted)
        EventParameter("pool", "(string,address,address,uint256,uint256)"),
    )

    comptroller: ChecksumAddress
    pool: tuple[str, ChecksumAddress, ChecksumAddress, int, int]


@dataclass(frozen=True, slots=True)
class PoolNameSet(LendingEvent):
    NAME = "PoolNameSet"
    PARAMETERS = (
        EventParameter("comptroller", "address", indexed=True),
        EventParameter("old_name", "string"),
        EventParameter("new_name", "string"),
    )

    comptroller: ChecksumAddress
    old_name: str
    new_name: str


@dataclass(frozen=True, slots=True)
class PoolMetadataUpdated(LendingEvent):
    NAME = "PoolMetadataUpdated"
    PARAMETERS = (
        EventParameter("comptroller", "address", indexed=True),
        # (category, logoURL, description)
        EventParameter("old_metadata", "(string,string,string)"),
        EventParameter("new_metadata", "(string,string,string)"),
    )

    comptroller: ChecksumAddress
    old_metadata: tuple[str, str, str]
    new_metadata: tuple[str, str, str]


# Market (vToken) events


@dataclass(frozen=True, slots=True)
class Mint(LendingEvent):
    NAME = "Mint"
    PARAMETERS = (
        EventParameter("minter", "address"),
        EventParameter("mint_amount", "uint256"),
        EventParameter("mint_tokens", "uint256"),
        EventParameter("account_balance", "uint256"),
    )

    minter: ChecksumAddress
    mint_amount: int
    mint_tokens: int
    account_balance: int


@dataclass(frozen=True, slots=True)
class MintV1(LendingEvent):
    NAME = "Mint"
    PARAMETERS = (
        EventParameter("minter", "address"),
        EventParameter("mint_amount", "uint256"),
        EventParameter("mint_tokens", "uint256"),
    )

    minter: ChecksumAddress
    mint_amount: int
    mint_tokens: int


@dataclass(frozen=True, slots=True)
class MintBehalf(LendingEvent):
    NAME = "MintBehalf"
    PARAMETERS = (
        EventParameter("payer", "address"),
        EventParameter("receiver", "address"),
        EventParameter("mint_amount", "uint256"),
        EventParameter("mint_tokens", "uint256"),
        EventParameter("account_balance", "uint256"),
    )

    payer: ChecksumAddress
    receiver: ChecksumAddress
    mint_amount: int
    mint_tokens: int
    account_balance: int


@dataclass(frozen=True, slots=True)
class MintBehalfV1(LendingEvent):
    NAME = "MintBehalf"
    PARAMETERS = (
        EventParameter("payer", "address"),
        EventParameter("receiver", "address"),
        EventParameter("mint_amount", "uint256"),
        EventParameter("mint_tokens", "uint256"),
    )

    payer: ChecksumAddress
    receiver: ChecksumAddress
    mint_amount: int
    mint_tokens: int


@dataclass(frozen=True, slots=True)
class Redeem(LendingEvent):
    NAME = "Redeem"
    PARAMETERS = (
        EventParameter("redeemer", "address"),
        EventParameter("redeem_amount", "uint256"),
        EventParameter("redeem_tokens", "uint256"),
        EventParameter("account_balance", "uint256"),
    )

    redeemer: ChecksumAddress
    redeem_amount: int
    redeem_tokens: int
    account_balance: int


@dataclass(frozen=True, slots=True)
class RedeemV1(LendingEvent):
    NAME = "Redeem"
    PARAMETERS = (
        EventParameter("redeemer", "address"),
        EventParameter("redeem_amount", "uint256"),
        EventParameter("redeem_tokens", "uint256"),
    )

    redeemer: ChecksumAddress
    redeem_amount: int
    redeem_tokens: int


@dataclass(frozen=True, slots=True)
class Borrow(LendingEvent):
    NAME = "Borrow"
    PARAMETERS = (
        EventParameter("borrower", "address"),
        EventParameter("borrow_amount", "uint256"),
        EventParameter("account_borrows", "uint256"),
        EventParameter("total_borrows", "uint256"),
    )

    borrower: ChecksumAddress
    borrow_amount: int
    account_borrows: int
    total_borrows: int


@dataclass(frozen=True, slots=True)
class RepayBorrow(LendingEvent):
    NAME = "RepayBorrow"
    PARAMETERS = (
        EventParameter("payer", "address"),
        EventParameter("borrower", "address"),
        EventParameter("repay_amount", "uint256"),
        EventParameter("account_borrows", "uint256"),
        EventParameter("total_borrows", "uint256"),
    )

    payer: ChecksumAddress
    borrower: ChecksumAddress
    repay_amount: int
    account_borrows: int
    total_borrows: int


@dataclass(frozen=True, slots=True)
class LiquidateBorrow(LendingEvent):
    NAME = "LiquidateBorrow"
    PARAMETERS = (
        EventParameter("liquidator", "address"),
        EventParameter("borrower", "address"),
        EventParameter("repay_amount", "uint256"),
        EventParameter("v_token_collateral", "address"),
        EventParameter("seize_tokens", "uint256"),
    )

    liquidator: ChecksumAddress
    borrower: ChecksumAddress
    repay_amount: int
    v_token_collateral: ChecksumAddress
    seize_tokens: int


@dataclass(frozen=True, slots=True)
class Transfer(LendingEvent):
    NAME = "Transfer"
    PARAMETERS = (
        EventParameter("from_", "address", indexed=True),
        EventParameter("to", "address", indexed=True),
        EventParameter("amount", "uint256"),
    )

    from_: ChecksumAddress
    to: ChecksumAddress
    amount: int


@dataclass(frozen=True, slots=True)
class AccrueInterest(LendingEvent):
    NAME = "AccrueInterest"
    PARAMETERS = (
        EventParameter("cash_prior", "uint256"),
        EventParameter("interest_accumulated", "uint256"),
        EventParameter("borrow_index", "uint256"),
        EventParameter("total_borrows", "uint256"),
    )

    cash_prior: int
    interest_accumulated: int
    borrow_index: int
    total_borrows: int


@dataclass(frozen=True, slots=True)
class NewReserveFactor(LendingEvent):
    NAME = "NewReserveFactor"
    PARAMETERS = (
        EventParameter("old_reserve_factor_mantissa", "uint256"),
        EventParameter("new_reserve_factor_mantissa", "uint256"),
    )

    old_reserve_factor_mantissa: int
    new_reserve_factor_mantissa: int


@dataclass(frozen=True, slots=True)
class NewMarketInterestRateModel(LendingEvent):
    NAME = "NewMarketInterestRateModel"
    PARAMETERS = (
        EventParameter("old_interest_rate_model", "address"),
        EventParameter("new_interest_rate_model", "address"),
    )

    old_interest_rate_model: ChecksumAddress
    new_interest_rate_model: ChecksumAddress


# Rewards distributor events


@dataclass(frozen=True, slots=True)
class RewardTokenBorrowSpeedUpdated(LendingEvent):
    NAME = "RewardTokenBorrowSpeedUpdated"
    PARAMETERS = (
        EventParameter("v_token", "address", indexed=True),
        EventParameter("new_speed", "uint256"),
    )

    v_token: ChecksumAddress
    new_speed: int


@dataclass(frozen=True, slots=True)
class RewardTokenSupplySpeedUpdated(LendingEvent):
    NAME = "RewardTokenSupplySpeedUpdated"
    PARAMETERS = (
        EventParameter("v_token", "address", indexed=True),
        EventParameter("new_speed", "uint256"),
    )

    v_token: ChecksumAddress
    new_speed: int


# Governance events


@dataclass(frozen=True, slots=True)
class ProposalCreated(LendingEvent):
    NAME = "ProposalCreated"
    PARAMETERS = (
        EventParameter("id", "uint256"),
        EventParameter("proposer", "address"),
        EventParameter("targets", "address[]"),
        EventParameter("values", "uint256[]"),
        EventParameter("signatures", "string[]"),
        EventParameter("calldatas", "bytes[]"),
        EventParameter("start_block", "uint256"),
        EventParameter("end_block", "uint256"),
        EventParameter("description", "string"),
    )

    id: int
    proposer: ChecksumAddress
    targets: tuple[ChecksumAddress, ...]
    values: tuple[int, ...]
    signatures: tuple[str, ...]
    calldatas: tuple[HexBytes, ...]
    start_block: int
    end_block: int
    description: str


@dataclass(frozen=True, slots=True)
class ProposalCanceled(LendingEvent):
    NAME = "ProposalCanceled"
    PARAMETERS = (EventParameter("id", "uint256"),)

    id: int


@dataclass(frozen=True, slots=True)
class ProposalQueued(LendingEvent):
    NAME = "ProposalQueued"
    PARAMETERS = (
        EventParameter("id", "uint256"),
        EventParameter("eta", "uint256"),
    )

    id: int
    eta: int


@dataclass(frozen=True, slots=True)
class ProposalExecuted(LendingEvent):
    NAME = "ProposalExecuted"
    PARAMETERS = (EventParameter("id", "uint256"),)

    id: int


@dataclass(frozen=True, slots=True)
class VoteCastAlpha(LendingEvent):
    """
    A vote on a GovernorAlpha proposal, where support is a simple yes/no.
    """

    NAME = "VoteCast"
    PARAMETERS = (
        EventParameter("voter", "address"),
        EventParameter("proposal_id", "uint256"),
        EventParameter("support", "bool"),
        EventParameter("votes", "uint256"),
    )

    voter: ChecksumAddress
    proposal_id: int
    support: bool
    votes: int


@dataclass(frozen=True, slots=True)
class VoteCastBravo(LendingEvent):
    """
    A vote on a GovernorBravo proposal: support is 0 (against), 1 (for) or 2 (abstain).
    """

    NAME = "VoteCast"
    PARAMETERS = (
        EventParameter("voter", "address", indexed=True),
        EventParameter("proposal_id", "uint256"),
        EventParameter("support", "uint8"),
        EventParameter("votes", "uint256"),
        EventParameter("reason", "string"),
    )

    voter: ChecksumAddress
    proposal_id: int
    support: int
    votes: int
    reason: str


@dataclass(frozen=True, slots=True)
class DelegateChanged(LendingEvent):
    NAME = "DelegateChanged"
    PARAMETERS = (
        EventParameter("delegator", "address", indexed=True),
        EventParameter("from_delegate", "address", indexed=True),
        EventParameter("to_delegate", "address", indexed=True),
    )

    delegator: ChecksumAddress
    from_delegate: ChecksumAddress
    to_delegate: ChecksumAddress


@dataclass(frozen=True, slots=True)
class DelegateVotesChanged(LendingEvent):
    NAME = "DelegateVotesChanged"
    PARAMETERS = (
        EventParameter("delegate", "address", indexed=True),
        EventParameter("previous_balance", "uint256"),
        EventParameter("new_balance", "uint256"),
    )

    delegate: ChecksumAddress
    previous_balance: int
    new_balance: int


POOL_EVENTS: tuple[type[LendingEvent], ...] = (
    MarketSupported,
    MarketUnlisted,
    MarketEntered,
    MarketExited,
    NewCloseFactor,
    NewCollateralFactor,
    NewLiquidationThreshold,
    NewLiquidationIncentive,
    NewPriceOracle,
    NewPauseGuardian,
    NewMinLiquidatableCollateral,
    NewBorrowCap,
    NewSupplyCap,
    ActionPausedMarket,
    ActionPaused,
    NewRewardsDistributor,
)
POOL_REGISTRY_EVENTS: tuple[type[LendingEvent], ...] = (
    PoolRegistered,
    PoolNameSet,
    PoolMetadataUpdated,
)
MARKET_EVENTS: tuple[type[LendingEvent], ...] = (
    Mint,
    MintV1,
    MintBehalf,
    MintBehalfV1,
    Redeem,
    RedeemV1,
    Borrow,
    RepayBorrow,
    LiquidateBorrow,
    Transfer,
    AccrueInterest,
    NewReserveFactor,
    NewMarketInterestRateModel,
)
REWARDS_EVENTS: tuple[type[LendingEvent], ...] = (
    RewardTokenBorrowSpeedUpdated,
    RewardTokenSupplySpeedUpdated,
)
GOVERNANCE_EVENTS: tuple[type[LendingEvent], ...] = (
    ProposalCreated,
    ProposalCanceled,
    ProposalQueued,
    ProposalExecuted,
    VoteCastAlpha,
    VoteCastBravo,
    DelegateChanged,
    DelegateVotesChanged,
)

ALL_EVENTS = (
    POOL_EVENTS + POOL_REGISTRY_EVENTS + MARKET_EVENTS + REWARDS_EVENTS + GOVERNANCE_EVENTS
)
EVENT_TYPES_BY_TOPIC: dict[HexBytes, type[LendingEvent]] = {
    event_type.topic(): event_type for event_type in ALL_EVENTS
}


def _normalize_value(abi_type: ABIType, value: Any) -> Any:
    """
    Convert a value decoded by eth_abi into the form held by the event records: addresses are
    checksummed, byte strings are wrapped as HexBytes, and arrays become tuples.
    """

    if abi_type.is_array:
        return tuple(_normalize_value(abi_type.item_type, item) for item in value)

    match abi_type:
        case TupleType():
            return tuple(
                _normalize_value(component, item)
                for component, item in zip(abi_type.components, value, strict=True)
            )
        case BasicType(base="address"):
            return get_checksum_address(value)
        case BasicType(base="bytes"):
            return HexBytes(value)
        case _:
            return value


def decode_log(log: LogReceipt, block_timestamp: int) -> LendingEvent:
    """
    Decode a raw log into its typed event record.

    Indexed parameters are decoded from the topics, the remainder from the data field.
    """

    topics = [HexBytes(topic) for topic in log["topics"]]
    if not topics:
        raise DecodingFailure(reason="log has no topics")

    try:
        event_type = EVENT_TYPES_BY_TOPIC[topics[0]]
    except KeyError:
        raise DecodingFailure(reason=f"unknown topic {topics[0].to_0x_hex()}") from None

    indexed_parameters = [param for param in event_type.PARAMETERS if param.indexed]
    data_parameters = [param for param in event_type.PARAMETERS if not param.indexed]

    if len(topics) != len(indexed_parameters) + 1:
        raise DecodingFailure(
            reason=(
                f"{event_type.signature()} expects {len(indexed_parameters)} indexed "
                f"parameters, log has {len(topics) - 1}"
            )
        )

    try:
        indexed_values = [
            eth_abi.abi.decode(types=[param.abi_type], data=topic)[0]
            for param, topic in zip(indexed_parameters, topics[1:], strict=True)
        ]
        data_values = eth_abi.abi.decode(
            types=[param.abi_type for param in data_parameters],
            data=HexBytes(log["data"]),
        )
    except DecodingError as exc:
        raise DecodingFailure(reason=f"{event_type.signature()}: {exc}") from exc

    decoded: dict[str, Any] = {}
    for param, value in zip(
        indexed_parameters + data_parameters,
        [*indexed_values, *data_values],
        strict=True,
    ):
        decoded[param.name] = _normalize_value(parse(param.abi_type), value)

    return event_type(
        log=LogContext(
            address=get_checksum_address(log["address"]),
            block_number=log["blockNumber"],
            block_timestamp=block_timestamp,
            transaction_hash=HexBytes(log["transactionHash"]),
            transaction_index=log["transactionIndex"],
            log_index=log["logIndex"],
        ),
        **decoded,
    )
