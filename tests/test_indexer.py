import pytest
from conftest import ALICE, BOB, MARKET, POOL, EventStream, FakeContractReader, make_log
from sqlalchemy.orm import Session

from lendgraph.database.models import AccountTable, MarketTable
from lendgraph.events import (
    Borrow,
    LiquidateBorrow,
    MarketSupported,
    MarketUnlisted,
    RepayBorrow,
)
from lendgraph.exceptions import EntityNotFound, EventOrderError, EventProcessingError
from lendgraph.indexer import EventIndexer
from lendgraph.mappings.context import EventHandlerContext
from lendgraph.repository import get_or_create_account
from lendgraph.router import EVENT_HANDLERS

UNKNOWN_MARKET = "0x" + "bf" * 20


@pytest.fixture
def indexer(session: Session, reader: FakeContractReader) -> EventIndexer:
    return EventIndexer(session=session, reader=reader, dust_threshold=1_000)


def _borrow(stream: EventStream, account_borrows: int = 100) -> Borrow:
    return stream(
        Borrow,
        MARKET,
        borrower=ALICE,
        borrow_amount=100,
        account_borrows=account_borrows,
        total_borrows=account_borrows,
    )


def test_process_events(indexer: EventIndexer, stream: EventStream, session: Session):
    result = indexer.process_events(
        [
            stream(MarketSupported, POOL, v_token=MARKET),
            _borrow(stream),
        ]
    )

    assert result.processed == 2
    assert result.failed == 0
    assert session.get(MarketTable, MARKET.lower()).borrower_count == 1


def test_failed_event_does_not_stop_the_stream(
    indexer: EventIndexer, stream: EventStream, session: Session
):
    result = indexer.process_events(
        [
            stream(MarketUnlisted, POOL, v_token=MARKET),
            stream(MarketSupported, POOL, v_token=MARKET),
        ]
    )

    assert result.processed == 1
    assert result.failed == 1
    (failure,) = result.failures
    assert isinstance(failure, EventProcessingError)
    assert isinstance(failure.__cause__, EntityNotFound)
    assert isinstance(failure.event, MarketUnlisted)
    assert session.get(MarketTable, MARKET.lower()).is_listed is True


def test_failed_event_leaves_no_partial_update(
    indexer: EventIndexer, stream: EventStream, session: Session
):
    # The collateral market cannot be created, after the liquidator and borrower were updated
    event = stream(
        LiquidateBorrow,
        MARKET,
        liquidator=BOB,
        borrower=ALICE,
        repay_amount=10,
        v_token_collateral=UNKNOWN_MARKET,
        seize_tokens=1,
    )

    with pytest.raises(EventProcessingError):
        indexer.process_event(event)

    assert session.get(AccountTable, BOB.lower()) is None
    assert session.get(AccountTable, ALICE.lower()) is None
    assert session.get(MarketTable, MARKET.lower()) is None

    # The session is still usable
    indexer.process_event(stream(MarketSupported, POOL, v_token=MARKET))
    session.commit()
    assert session.get(MarketTable, MARKET.lower()) is not None


def test_earlier_state_survives_a_failure(
    indexer: EventIndexer, stream: EventStream, session: Session
):
    indexer.process_event(_borrow(stream))
    with pytest.raises(EventProcessingError):
        indexer.process_event(stream(MarketUnlisted, POOL, v_token=UNKNOWN_MARKET))

    assert session.get(MarketTable, MARKET.lower()).borrower_count == 1


def test_out_of_order_event(indexer: EventIndexer):
    later = MarketSupported(log=make_log(POOL, block_number=10, log_index=3), v_token=MARKET)
    earlier = MarketSupported(log=make_log(POOL, block_number=10, log_index=2), v_token=MARKET)

    indexer.process_event(later)
    with pytest.raises(EventOrderError):
        indexer.process_event(earlier)
    with pytest.raises(EventOrderError):
        indexer.process_event(later)


def test_out_of_order_event_in_stream(indexer: EventIndexer):
    result = indexer.process_events(
        [
            MarketSupported(log=make_log(POOL, block_number=10, log_index=3), v_token=MARKET),
            MarketSupported(log=make_log(POOL, block_number=9, log_index=0), v_token=MARKET),
        ]
    )

    assert result.processed == 1
    assert result.failed == 1


def test_dust_threshold_is_applied(indexer: EventIndexer, stream: EventStream, session: Session):
    indexer.process_events([_borrow(stream, account_borrows=5_000)])
    indexer.process_events(
        [
            stream(
                RepayBorrow,
                MARKET,
                payer=ALICE,
                borrower=ALICE,
                repay_amount=4_001,
                account_borrows=999,
                total_borrows=999,
            )
        ]
    )

    market = session.get(MarketTable, MARKET.lower())
    assert market.borrower_count == 1
    assert market.borrower_count_adjusted == 0


def test_unexpected_error_rolls_back_and_propagates(
    indexer: EventIndexer,
    stream: EventStream,
    session: Session,
    monkeypatch: pytest.MonkeyPatch,
):
    def broken_handler(context: EventHandlerContext) -> None:
        context.repository.save(get_or_create_account(context.repository, ALICE))
        raise TypeError("unsupported operand")

    monkeypatch.setitem(EVENT_HANDLERS, MarketSupported, broken_handler)

    with pytest.raises(TypeError):
        indexer.process_event(stream(MarketSupported, POOL, v_token=MARKET))

    assert session.get(AccountTable, ALICE.lower()) is None
    assert not session.in_nested_transaction()
