"""
Rules for events emitted by market (vToken) contracts.

A supply or redemption emits a Transfer alongside the Mint/Redeem event, and a liquidation emits
a RepayBorrow and a seizing Transfer. Token balances are therefore only moved by the Transfer
rule, and the Mint/Redeem/LiquidateBorrow rules only maintain counters and history.
"""

from lendgraph.constants import ZERO_ADDRESS
from lendgraph.database.models import (
    AccountTable,
    AccountVTokenTable,
    AccountVTokenTransactionTable,
    BorrowEventTable,
    LiquidationEventTable,
    MarketTable,
    MintEventTable,
    RedeemEventTable,
    RepayEventTable,
    TransferEventTable,
)
from lendgraph.events import (
    AccrueInterest,
    Borrow,
    LendingEvent,
    LiquidateBorrow,
    Mint,
    MintBehalf,
    MintBehalfV1,
    MintV1,
    NewMarketInterestRateModel,
    NewReserveFactor,
    Redeem,
    RedeemV1,
    RepayBorrow,
    Transfer,
)
from lendgraph.identifiers import get_account_vtoken_transaction_id, get_transaction_id
from lendgraph.logging import logger
from lendgraph.mappings.context import EventHandlerContext, VerboseConfig
from lendgraph.mappings.market import update_market, vtokens_to_underlying
from lendgraph.repository import (
    get_or_create_account,
    get_or_create_account_vtoken,
    get_or_create_market,
)


def _get_emitting_market(context: EventHandlerContext) -> MarketTable:
    market = get_or_create_market(
        repository=context.repository,
        reader=context.reader,
        market_address=context.event.log.address,
        block_number=context.block_number,
        block_timestamp=context.block_timestamp,
    )
    context.repository.save(market)
    return market


def _record_id(event: LendingEvent) -> str:
    return get_transaction_id(event.log.transaction_hash, event.log.log_index)


def _history_fields(event: LendingEvent) -> dict[str, int | str]:
    return {
        "block_number": event.log.block_number,
        "block_timestamp": event.log.block_timestamp,
        "transaction_hash": event.log.transaction_hash.to_0x_hex(),
    }


def touch_account_vtoken(
    context: EventHandlerContext,
    market: MarketTable,
    account_address: str,
) -> tuple[AccountTable, AccountVTokenTable]:
    """
    Resolve the account and its position in the market, and record that this event touched the
    position. The position's accrual block is set to the event's block. Callers save both
    entities after applying their changes.
    """

    event = context.event
    account = get_or_create_account(context.repository, account_address)
    context.repository.save(account)

    account_vtoken = get_or_create_account_vtoken(
        repository=context.repository,
        reader=context.reader,
        market=market,
        account=account,
        block_number=context.block_number,
    )
    account_vtoken.accrual_block_number = context.block_number
    context.repository.save(account_vtoken)

    transaction_id = get_account_vtoken_transaction_id(
        account.id, event.log.transaction_hash, event.log.log_index
    )
    if context.repository.load(AccountVTokenTransactionTable, transaction_id) is None:
        context.repository.save(
            AccountVTokenTransactionTable(
                id=transaction_id,
                account_vtoken_id=account_vtoken.id,
                log_index=event.log.log_index,
                **_history_fields(event),
            )
        )

    if VerboseConfig.is_verbose(account_address=account.id, tx_hash=event.log.transaction_hash):
        logger.info(
            f"{type(event).__name__} touched {account.id} in {market.symbol}: "
            f"supply={account_vtoken.account_supply_balance_mantissa}, "
            f"borrow={account_vtoken.account_borrow_balance_mantissa}"
        )

    return account, account_vtoken


def _process_mint(
    context: EventHandlerContext,
    minter: str,
    payer: str | None,
    mint_amount: int,
    mint_tokens: int,
    account_balance: int,
) -> None:
    market = _get_emitting_market(context)

    context.repository.create_record(
        MintEventTable(
            id=_record_id(context.event),
            market_id=market.id,
            minter=minter.lower(),
            payer=None if payer is None else payer.lower(),
            amount_mantissa=mint_amount,
            vtokens_mantissa=mint_tokens,
            account_balance_mantissa=account_balance,
            **_history_fields(context.event),
        )
    )

    # The minted tokens are the entire balance only if the account held nothing before
    if mint_tokens == account_balance:
        market.supplier_count += 1
    context.repository.save(market)


def _process_redeem(
    context: EventHandlerContext,
    redeemer: str,
    redeem_amount: int,
    redeem_tokens: int,
    account_balance: int,
) -> None:
    market = _get_emitting_market(context)

    context.repository.create_record(
        RedeemEventTable(
            id=_record_id(context.event),
            market_id=market.id,
            redeemer=redeemer.lower(),
            amount_mantissa=redeem_amount,
            vtokens_mantissa=redeem_tokens,
            account_balance_mantissa=account_balance,
            **_history_fields(context.event),
        )
    )

    if account_balance == 0:
        market.supplier_count -= 1
    context.repository.save(market)


def process_mint_event(context: EventHandlerContext[Mint]) -> None:
    """
    Process a Mint event, which reports the minter's balance after the mint.
    """

    event = context.event
    _process_mint(
        context,
        minter=event.minter,
        payer=None,
        mint_amount=event.mint_amount,
        mint_tokens=event.mint_tokens,
        account_balance=event.account_balance,
    )


def process_mint_behalf_event(context: EventHandlerContext[MintBehalf]) -> None:
    event = context.event
    _process_mint(
        context,
        minter=event.receiver,
        payer=event.payer,
        mint_amount=event.mint_amount,
        mint_tokens=event.mint_tokens,
        account_balance=event.account_balance,
    )


def process_mint_v1_event(context: EventHandlerContext[MintV1]) -> None:
    """
    Process a legacy Mint event. The balance after the mint is not part of the event and is read
    from the market contract at the event's block.
    """

    event = context.event
    _process_mint(
        context,
        minter=event.minter,
        payer=None,
        mint_amount=event.mint_amount,
        mint_tokens=event.mint_tokens,
        account_balance=context.reader.balance_of(
            event.log.address, event.minter, block_identifier=context.block_number
        ),
    )


def process_mint_behalf_v1_event(context: EventHandlerContext[MintBehalfV1]) -> None:
    event = context.event
    _process_mint(
        context,
        minter=event.receiver,
        payer=event.payer,
        mint_amount=event.mint_amount,
        mint_tokens=event.mint_tokens,
        account_balance=context.reader.balance_of(
            event.log.address, event.receiver, block_identifier=context.block_number
        ),
    )


def process_redeem_event(context: EventHandlerContext[Redeem]) -> None:
    event = context.event
    _process_redeem(
        context,
        redeemer=event.redeemer,
        redeem_amount=event.redeem_amount,
        redeem_tokens=event.redeem_tokens,
        account_balance=event.account_balance,
    )


def process_redeem_v1_event(context: EventHandlerContext[RedeemV1]) -> None:
    event = context.event
    _process_redeem(
        context,
        redeemer=event.redeemer,
        redeem_amount=event.redeem_amount,
        redeem_tokens=event.redeem_tokens,
        account_balance=context.reader.balance_of(
            event.log.address, event.redeemer, block_identifier=context.block_number
        ),
    )


def process_borrow_event(context: EventHandlerContext[Borrow]) -> None:
    """
    Process a Borrow event.

    The account became a borrower if its total borrows equal the amount just borrowed, i.e. it
    owed nothing before.
    """

    event = context.event
    market = _get_emitting_market(context)

    account, account_vtoken = touch_account_vtoken(context, market, event.borrower)
    account.has_borrowed = True
    account_vtoken.account_borrow_balance_mantissa = event.account_borrows
    account_vtoken.account_borrow_index_mantissa = market.borrow_index_mantissa
    account_vtoken.total_underlying_borrowed_mantissa += event.borrow_amount

    context.repository.create_record(
        BorrowEventTable(
            id=_record_id(event),
            market_id=market.id,
            borrower=event.borrower.lower(),
            amount_mantissa=event.borrow_amount,
            account_borrows_mantissa=event.account_borrows,
            underlying_symbol=market.underlying_symbol,
            **_history_fields(event),
        )
    )

    if event.account_borrows == event.borrow_amount:
        market.borrower_count += 1
        market.borrower_count_adjusted += 1

    context.repository.save(account, account_vtoken, market)


def process_repay_borrow_event(context: EventHandlerContext[RepayBorrow]) -> None:
    """
    Process a RepayBorrow event.

    A repayment leaving no debt removes the borrower from both counts. A repayment leaving a
    residual debt below the dust threshold (typically left behind by a liquidation) removes the
    borrower from the adjusted count only, since the position still exists.

    The account's borrow index is kept at the market's value after a full repayment.
    """

    event = context.event
    market = _get_emitting_market(context)

    account, account_vtoken = touch_account_vtoken(context, market, event.borrower)
    account_vtoken.account_borrow_balance_mantissa = event.account_borrows
    account_vtoken.account_borrow_index_mantissa = market.borrow_index_mantissa
    account_vtoken.total_underlying_repaid_mantissa += event.repay_amount

    context.repository.create_record(
        RepayEventTable(
            id=_record_id(event),
            market_id=market.id,
            borrower=event.borrower.lower(),
            payer=event.payer.lower(),
            amount_mantissa=event.repay_amount,
            account_borrows_mantissa=event.account_borrows,
            underlying_symbol=market.underlying_symbol,
            **_history_fields(event),
        )
    )

    if event.account_borrows == 0:
        market.borrower_count -= 1
        market.borrower_count_adjusted -= 1
    elif event.account_borrows < context.dust_threshold:
        market.borrower_count_adjusted -= 1

    context.repository.save(account, account_vtoken, market)


def process_liquidate_borrow_event(context: EventHandlerContext[LiquidateBorrow]) -> None:
    """
    Process a LiquidateBorrow event.

    The repayment and the seized collateral are handled by the RepayBorrow and Transfer events
    emitted with it, so only the liquidation counters and the history record are updated here.
    """

    event = context.event

    liquidator = get_or_create_account(context.repository, event.liquidator)
    liquidator.count_liquidator += 1
    context.repository.save(liquidator)

    borrower = get_or_create_account(context.repository, event.borrower)
    borrower.count_liquidated += 1
    context.repository.save(borrower)

    repay_market = _get_emitting_market(context)
    collateral_market = get_or_create_market(
        repository=context.repository,
        reader=context.reader,
        market_address=event.v_token_collateral,
        block_number=context.block_number,
        block_timestamp=context.block_timestamp,
    )
    context.repository.save(collateral_market)

    context.repository.create_record(
        LiquidationEventTable(
            id=_record_id(event),
            market_id=repay_market.id,
            collateral_market_id=collateral_market.id,
            liquidator=liquidator.id,
            borrower=borrower.id,
            seize_tokens_mantissa=event.seize_tokens,
            repay_amount_mantissa=event.repay_amount,
            underlying_symbol=repay_market.underlying_symbol,
            vtoken_collateral_symbol=collateral_market.symbol,
            **_history_fields(event),
        )
    )


def process_transfer_event(context: EventHandlerContext[Transfer]) -> None:
    """
    Process a Transfer event for a market token.

    Transfers are emitted by mints (from the market itself), redemptions (to the market itself),
    liquidation seizures, and plain transfers. The sender's balance is reduced unless the tokens
    were minted, and the receiver's balance is increased unless the tokens were sent to the
    market. Tokens sent to the market by anything other than a redemption are not recorded.
    """

    event = context.event
    market = _get_emitting_market(context)

    # Mints, redemptions and seizures have already refreshed the market in this block
    market = update_market(
        repository=context.repository,
        reader=context.reader,
        market=market,
        block_number=context.block_number,
        block_timestamp=context.block_timestamp,
    )

    amount_underlying = vtokens_to_underlying(event.amount, market.exchange_rate_mantissa)
    sender = event.from_.lower()
    receiver = event.to.lower()

    if sender not in {ZERO_ADDRESS.lower(), market.id}:
        account, account_vtoken = touch_account_vtoken(context, market, sender)
        account_vtoken.account_supply_balance_mantissa -= event.amount
        account_vtoken.total_underlying_redeemed_mantissa += amount_underlying
        context.repository.save(account, account_vtoken)

    if receiver != market.id:
        account, account_vtoken = touch_account_vtoken(context, market, receiver)
        account_vtoken.account_supply_balance_mantissa += event.amount
        account_vtoken.total_underlying_supplied_mantissa += amount_underlying
        context.repository.save(account, account_vtoken)

    context.repository.create_record(
        TransferEventTable(
            id=_record_id(event),
            market_id=market.id,
            from_address=sender,
            to_address=receiver,
            amount_mantissa=event.amount,
            underlying_amount_mantissa=amount_underlying,
            vtoken_symbol=market.symbol,
            **_history_fields(event),
        )
    )


def process_accrue_interest_event(context: EventHandlerContext[AccrueInterest]) -> None:
    market = _get_emitting_market(context)
    update_market(
        repository=context.repository,
        reader=context.reader,
        market=market,
        block_number=context.block_number,
        block_timestamp=context.block_timestamp,
    )


def process_new_reserve_factor_event(context: EventHandlerContext[NewReserveFactor]) -> None:
    market = _get_emitting_market(context)
    market.reserve_factor_mantissa = context.event.new_reserve_factor_mantissa
    context.repository.save(market)


def process_new_market_interest_rate_model_event(
    context: EventHandlerContext[NewMarketInterestRateModel],
) -> None:
    market = _get_emitting_market(context)
    market.interest_rate_model_address = context.event.new_interest_rate_model.lower()
    context.repository.save(market)


