"""
Market counters checked against a direct model of every account's balance, for arbitrary
sequences of supply and borrow activity.
"""

from collections.abc import Generator
from contextlib import contextmanager

from conftest import ALICE, BOB, CAROL, MARKET, EventStream, FakeContractReader
from hypothesis import given, settings
from hypothesis import strategies as st
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from lendgraph.database.models import Base, MarketTable
from lendgraph.database.operations import enable_sqlite_savepoints
from lendgraph.events import Borrow, LendingEvent, Mint, Redeem, RepayBorrow
from lendgraph.indexer import EventIndexer

DUST_THRESHOLD = 1_000

actions = st.lists(
    st.tuples(
        st.sampled_from([ALICE, BOB, CAROL]),
        st.booleans(),
        st.integers(min_value=1, max_value=5_000),
    ),
    max_size=30,
)


@contextmanager
def _indexed_market(events: list[LendingEvent]) -> Generator[MarketTable, None, None]:
    reader = FakeContractReader()
    reader.add_market(MARKET, exchangeRateStored=2 * 10**17, borrowIndex=10**18)

    engine = enable_sqlite_savepoints(create_engine("sqlite://"))
    Base.metadata.create_all(engine)
    with Session(engine) as session:
        result = EventIndexer(
            session=session, reader=reader, dust_threshold=DUST_THRESHOLD
        ).process_events(events)
        assert result.failed == 0
        yield session.get(MarketTable, MARKET.lower())
    engine.dispose()


@settings(max_examples=50, deadline=None)
@given(actions=actions)
def test_supplier_count_tracks_nonzero_balances(actions: list[tuple[str, bool, int]]):
    stream = EventStream()
    balances = dict.fromkeys((ALICE, BOB, CAROL), 0)
    events: list[LendingEvent] = []

    for account, is_mint, amount in actions:
        if is_mint:
            balances[account] += amount
            events.append(
                stream(
                    Mint,
                    MARKET,
                    minter=account,
                    mint_amount=amount,
                    mint_tokens=amount,
                    account_balance=balances[account],
                )
            )
        elif balances[account]:
            tokens = min(amount, balances[account])
            balances[account] -= tokens
            events.append(
                stream(
                    Redeem,
                    MARKET,
                    redeemer=account,
                    redeem_amount=tokens,
                    redeem_tokens=tokens,
                    account_balance=balances[account],
                )
            )

    if not events:
        return

    with _indexed_market(events) as market:
        assert market.supplier_count == sum(1 for balance in balances.values() if balance)


@settings(max_examples=50, deadline=None)
@given(actions=actions)
def test_borrower_counts_track_nonzero_debt(actions: list[tuple[str, bool, int]]):
    stream = EventStream()
    debts = dict.fromkeys((ALICE, BOB, CAROL), 0)
    dust_repayments = 0
    events: list[LendingEvent] = []

    for account, is_borrow, amount in actions:
        if is_borrow:
            debts[account] += amount
            events.append(
                stream(
                    Borrow,
                    MARKET,
                    borrower=account,
                    borrow_amount=amount,
                    account_borrows=debts[account],
                    total_borrows=sum(debts.values()),
                )
            )
        elif debts[account]:
            repaid = min(amount, debts[account])
            debts[account] -= repaid
            if 0 < debts[account] < DUST_THRESHOLD:
                dust_repayments += 1
            events.append(
                stream(
                    RepayBorrow,
                    MARKET,
                    payer=account,
                    borrower=account,
                    repay_amount=repaid,
                    account_borrows=debts[account],
                    total_borrows=sum(debts.values()),
                )
            )

    if not events:
        return

    borrowers = sum(1 for debt in debts.values() if debt)
    with _indexed_market(events) as market:
        assert market.borrower_count == borrowers
        assert market.borrower_count_adjusted == borrowers - dust_repayments
