"""
Deterministic entity keys.

Every key is a pure function of immutable inputs (contract/account addresses, transaction hashes,
log indices, proposal numbers), so re-deriving a key is always safe. Addresses are normalized to
lowercase 0x-prefixed hex. Composite keys join their parts with `ID_SEPARATOR`, which never
appears in a hex address, a hex hash, or a decimal number.
"""

from eth_utils.address import is_address
from hexbytes import HexBytes

from lendgraph.exceptions import InvalidAddress, LendgraphValueError

ID_SEPARATOR = "-"


def _normalize_address(address: str | bytes) -> str:
    match address:
        case bytes() if len(address) == 20:
            return "0x" + address.hex()
        case str() if is_address(address):
            return address.lower()
        case _:
            raise InvalidAddress(address)


def _normalize_hash(tx_hash: str | bytes) -> str:
    try:
        hash_bytes = HexBytes(tx_hash)
    except (TypeError, ValueError):
        raise LendgraphValueError(message=f"Invalid transaction hash {tx_hash!r}") from None
    if len(hash_bytes) != 32:
        raise LendgraphValueError(message=f"Invalid transaction hash {tx_hash!r}")
    return hash_bytes.to_0x_hex()


def _join(*parts: str) -> str:
    return ID_SEPARATOR.join(parts)


def get_account_id(account: str | bytes) -> str:
    return _normalize_address(account)


def get_market_id(market: str | bytes) -> str:
    return _normalize_address(market)


def get_pool_id(comptroller: str | bytes) -> str:
    return _normalize_address(comptroller)


def get_rewards_distributor_id(distributor: str | bytes) -> str:
    return _normalize_address(distributor)


def get_account_vtoken_id(market: str | bytes, account: str | bytes) -> str:
    return _join(_normalize_address(market), _normalize_address(account))


def get_reward_speed_id(distributor: str | bytes, market: str | bytes) -> str:
    return _join(_normalize_address(distributor), _normalize_address(market))


def get_pool_action_id(pool: str | bytes, action: str) -> str:
    """
    Key for a pool-wide pause switch. Action names are free-form strings emitted by the
    comptroller, so they are rejected if empty or if they contain the separator.
    """

    if not action or ID_SEPARATOR in action:
        raise LendgraphValueError(message=f"Invalid action name {action!r}")
    return _join(_normalize_address(pool), action)


def get_market_action_id(market: str | bytes, action: int) -> str:
    if action < 0:
        raise LendgraphValueError(message=f"Invalid action code {action}")
    return _join(_normalize_address(market), str(action))


def get_transaction_id(tx_hash: str | bytes, log_index: int) -> str:
    """
    Key for a write-once history record: the transaction hash and the log index of the event
    that produced it.
    """

    if log_index < 0:
        raise LendgraphValueError(message=f"Invalid log index {log_index}")
    return _join(_normalize_hash(tx_hash), str(log_index))


def get_account_vtoken_transaction_id(
    account: str | bytes,
    tx_hash: str | bytes,
    log_index: int,
) -> str:
    return _join(_normalize_address(account), get_transaction_id(tx_hash, log_index))


def get_proposal_id(proposal_id: int) -> str:
    if proposal_id < 0:
        raise LendgraphValueError(message=f"Invalid proposal id {proposal_id}")
    return str(proposal_id)


def get_vote_id(proposal_id: int, voter: str | bytes) -> str:
    return _join(get_proposal_id(proposal_id), _normalize_address(voter))


def get_delegate_id(delegate: str | bytes) -> str:
    return _normalize_address(delegate)
