import pathlib
import pickle

import pytest

from lendgraph.checksum_cache import get_checksum_address
from lendgraph.events import LogContext, ProposalCanceled
from lendgraph.exceptions import (
    ContractReadError,
    DecodingFailure,
    EntityNotFound,
    EventOrderError,
    EventProcessingError,
    InvalidAddress,
    InvalidProposalTransition,
    LendgraphError,
    LogFetchingTimeout,
    RecordExists,
    UnknownEvent,
)
from lendgraph.exceptions.database import BackupExists


def _event() -> ProposalCanceled:
    return ProposalCanceled(
        log=LogContext(
            address=get_checksum_address("0x" + "aa" * 20),
            block_number=1,
            block_timestamp=3,
            transaction_hash=b"\x01" * 32,
            transaction_index=0,
            log_index=4,
        ),
        id=7,
    )


@pytest.mark.parametrize(
    "exception",
    [
        InvalidAddress("0x1234"),
        ContractReadError(function="getCash()", address="0x" + "bb" * 20, error="reverted"),
        ContractReadError(
            function="underlying()", address="0x" + "bb" * 20, error="timed out", transient=True
        ),
        EntityNotFound(kind="Market", key="0x" + "bb" * 20),
        RecordExists(kind="MintEvent", key="0x" + "01" * 32 + "-4"),
        UnknownEvent(event_name="Approval"),
        EventOrderError(position=(1, 0, 0), last_position=(2, 0, 0)),
        InvalidProposalTransition(proposal_id="7", current="EXECUTED", requested="CANCELED"),
        DecodingFailure(reason="log has no topics"),
        LogFetchingTimeout(max_retries=10),
        BackupExists(path=pathlib.Path("/tmp/lendgraph.db.bak")),
    ],
    ids=lambda exception: type(exception).__name__,
)
def test_exception_pickling(exception: LendgraphError) -> None:
    """
    Test that each exception carrying constructor arguments can be pickled and unpickled with
    its message intact.
    """

    unpickled_exception = pickle.loads(pickle.dumps(exception))

    assert type(unpickled_exception) is type(exception)
    assert unpickled_exception.message == exception.message
    assert str(unpickled_exception) == str(exception)


def test_event_processing_error_pickling() -> None:
    original_exception = EventProcessingError(event=_event(), reason="Market 0x00 does not exist")

    unpickled_exception = pickle.loads(pickle.dumps(original_exception))

    assert type(unpickled_exception) is EventProcessingError
    assert unpickled_exception.event == original_exception.event
    assert unpickled_exception.reason == original_exception.reason
    assert unpickled_exception.message == original_exception.message


def test_base_exception_message() -> None:
    assert LendgraphError().message is None
    assert LendgraphError(message="something went wrong").message == "something went wrong"


def test_contract_read_error_keeps_transient_flag() -> None:
    exception = ContractReadError(
        function="underlying()", address="0x" + "bb" * 20, error="timed out", transient=True
    )
    assert pickle.loads(pickle.dumps(exception)).transient is True
