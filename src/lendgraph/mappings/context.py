import os
from dataclasses import dataclass
from typing import ClassVar

from hexbytes import HexBytes

from lendgraph.constants import DUST_THRESHOLD
from lendgraph.contracts import ContractReader
from lendgraph.events import LendingEvent
from lendgraph.repository import EntityRepository


@dataclass
class EventHandlerContext[EventT: LendingEvent]:
    """Context object passed to event handlers containing all necessary state."""

    repository: EntityRepository
    reader: ContractReader
    event: EventT
    dust_threshold: int = DUST_THRESHOLD

    @property
    def block_number(self) -> int:
        return self.event.log.block_number

    @property
    def block_timestamp(self) -> int:
        return self.event.log.block_timestamp


class VerboseConfig:
    """Runtime configurable verbose logging settings for event processing."""

    all_enabled: ClassVar[bool] = False
    accounts: ClassVar[set[str]] = set()
    transactions: ClassVar[set[HexBytes]] = set()

    @classmethod
    def toggle_all(cls, *, enabled: bool | None = None) -> bool:
        """Toggle or set verbose logging for all events. Returns the new state."""
        if enabled is None:
            cls.all_enabled = not cls.all_enabled
        else:
            cls.all_enabled = enabled
        return cls.all_enabled

    @classmethod
    def add_account(cls, account_address: str) -> None:
        cls.accounts.add(account_address.lower())

    @classmethod
    def remove_account(cls, account_address: str) -> None:
        cls.accounts.discard(account_address.lower())

    @classmethod
    def add_transaction(cls, tx_hash: HexBytes | str) -> None:
        cls.transactions.add(HexBytes(tx_hash))

    @classmethod
    def remove_transaction(cls, tx_hash: HexBytes | str) -> None:
        cls.transactions.discard(HexBytes(tx_hash))

    @classmethod
    def clear(cls) -> None:
        cls.all_enabled = False
        cls.accounts.clear()
        cls.transactions.clear()

    @classmethod
    def is_verbose(
        cls,
        account_address: str | None = None,
        tx_hash: HexBytes | None = None,
    ) -> bool:
        """Check if verbose logging should be enabled for the given context."""
        return (
            cls.all_enabled
            or (account_address is not None and account_address.lower() in cls.accounts)
            or (tx_hash is not None and tx_hash in cls.transactions)
        )


def _init_verbose_config_from_env() -> None:
    """Initialize VerboseConfig from environment variables."""
    # LENDGRAPH_VERBOSE_ALL: Set to "1", "true", or "yes" to enable
    if os.environ.get("LENDGRAPH_VERBOSE_ALL", "").lower() in {"1", "true", "yes"}:
        VerboseConfig.toggle_all(enabled=True)

    # LENDGRAPH_VERBOSE_ACCOUNTS: Comma-separated list of addresses
    for address in os.environ.get("LENDGRAPH_VERBOSE_ACCOUNTS", "").split(","):
        if address_ := address.strip():
            VerboseConfig.add_account(address_)

    # LENDGRAPH_VERBOSE_TX: Comma-separated list of transaction hashes
    for tx_hash in os.environ.get("LENDGRAPH_VERBOSE_TX", "").split(","):
        if tx_hash_ := tx_hash.strip():
            VerboseConfig.add_transaction(tx_hash_)


# Initialize from environment on module load
_init_verbose_config_from_env()
