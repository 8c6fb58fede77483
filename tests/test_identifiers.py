import pytest
from hypothesis import given
from hypothesis import strategies as st

from lendgraph.checksum_cache import get_checksum_address
from lendgraph.exceptions import InvalidAddress, LendgraphValueError
from lendgraph.identifiers import (
    ID_SEPARATOR,
    get_account_id,
    get_account_vtoken_id,
    get_account_vtoken_transaction_id,
    get_market_action_id,
    get_pool_action_id,
    get_proposal_id,
    get_reward_speed_id,
    get_transaction_id,
    get_vote_id,
)

addresses = st.binary(min_size=20, max_size=20)
hashes = st.binary(min_size=32, max_size=32)
log_indices = st.integers(min_value=0, max_value=2**32)


def test_address_normalization():
    address = "0x" + "ab" * 20
    checksummed = get_checksum_address(address)

    assert get_account_id(address) == address
    assert get_account_id(checksummed) == address
    assert get_account_id(bytes.fromhex("ab" * 20)) == address


@pytest.mark.parametrize(
    "address",
    ["", "0x1234", "0x" + "zz" * 20, b"\x00" * 19],
)
def test_malformed_address_is_rejected(address: str | bytes):
    with pytest.raises(InvalidAddress):
        get_account_id(address)


def test_malformed_hash_is_rejected():
    with pytest.raises(LendgraphValueError):
        get_transaction_id(b"\x00" * 31, 0)
    with pytest.raises(LendgraphValueError):
        get_transaction_id("not a hash", 0)
    with pytest.raises(LendgraphValueError):
        get_transaction_id(b"\x00" * 32, -1)


def test_pool_action_names_are_validated():
    pool = "0x" + "a1" * 20
    assert get_pool_action_id(pool, "Mint") == f"{pool}{ID_SEPARATOR}Mint"

    with pytest.raises(LendgraphValueError):
        get_pool_action_id(pool, "")
    with pytest.raises(LendgraphValueError):
        get_pool_action_id(pool, f"Mint{ID_SEPARATOR}Redeem")
    with pytest.raises(LendgraphValueError):
        get_market_action_id(pool, -1)


def test_proposal_ids():
    assert get_proposal_id(42) == "42"
    with pytest.raises(LendgraphValueError):
        get_proposal_id(-1)


def test_same_inputs_give_same_keys():
    tx_hash = "0x" + "12" * 32
    assert get_transaction_id(tx_hash, 3) == get_transaction_id(bytes.fromhex("12" * 32), 3)


@given(a=st.tuples(addresses, addresses), b=st.tuples(addresses, addresses))
def test_account_vtoken_keys_are_injective(a: tuple[bytes, bytes], b: tuple[bytes, bytes]):
    assert (get_account_vtoken_id(*a) == get_account_vtoken_id(*b)) == (a == b)


@given(a=st.tuples(addresses, addresses), b=st.tuples(addresses, addresses))
def test_reward_speed_keys_are_injective(a: tuple[bytes, bytes], b: tuple[bytes, bytes]):
    assert (get_reward_speed_id(*a) == get_reward_speed_id(*b)) == (a == b)


@given(a=st.tuples(hashes, log_indices), b=st.tuples(hashes, log_indices))
def test_transaction_keys_are_injective(a: tuple[bytes, int], b: tuple[bytes, int]):
    assert (get_transaction_id(*a) == get_transaction_id(*b)) == (a == b)


@given(
    a=st.tuples(addresses, hashes, log_indices),
    b=st.tuples(addresses, hashes, log_indices),
)
def test_account_transaction_keys_are_injective(
    a: tuple[bytes, bytes, int], b: tuple[bytes, bytes, int]
):
    assert (get_account_vtoken_transaction_id(*a) == get_account_vtoken_transaction_id(*b)) == (
        a == b
    )


@given(
    a=st.tuples(st.integers(min_value=0, max_value=2**64), addresses),
    b=st.tuples(st.integers(min_value=0, max_value=2**64), addresses),
)
def test_vote_keys_are_injective(a: tuple[int, bytes], b: tuple[int, bytes]):
    assert (get_vote_id(*a) == get_vote_id(*b)) == (a == b)


@given(
    a=st.tuples(addresses, st.integers(min_value=0, max_value=255)),
    b=st.tuples(addresses, st.integers(min_value=0, max_value=255)),
)
def test_market_action_keys_are_injective(a: tuple[bytes, int], b: tuple[bytes, int]):
    assert (get_market_action_id(*a) == get_market_action_id(*b)) == (a == b)
