import logging
import os
import tempfile
from collections.abc import Callable, Generator
from typing import Any

# Keep the configuration file and database out of the user's home directory
os.environ.setdefault("LENDGRAPH_CONFIG_DIR", tempfile.mkdtemp(prefix="lendgraph-tests-"))

import pytest  # noqa: E402
from eth_typing import ChecksumAddress  # noqa: E402
from hexbytes import HexBytes  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402
from web3.types import BlockIdentifier  # noqa: E402

from lendgraph.checksum_cache import get_checksum_address  # noqa: E402
from lendgraph.database.models import Base  # noqa: E402
from lendgraph.database.operations import enable_sqlite_savepoints  # noqa: E402
from lendgraph.events import LendingEvent, LogContext  # noqa: E402
from lendgraph.exceptions import ContractReadError  # noqa: E402
from lendgraph.logging import logger  # noqa: E402
from lendgraph.mappings.context import EventHandlerContext, VerboseConfig  # noqa: E402
from lendgraph.repository import EntityRepository  # noqa: E402

POOL = get_checksum_address("0x" + "a1" * 20)
MARKET = get_checksum_address("0x" + "b1" * 20)
OTHER_MARKET = get_checksum_address("0x" + "b2" * 20)
NATIVE_MARKET = get_checksum_address("0x" + "b3" * 20)
UNDERLYING = get_checksum_address("0x" + "c1" * 20)
OTHER_UNDERLYING = get_checksum_address("0x" + "c2" * 20)
ORACLE = get_checksum_address("0x" + "d1" * 20)
DISTRIBUTOR = get_checksum_address("0x" + "e1" * 20)
REWARD_TOKEN = get_checksum_address("0x" + "e2" * 20)
ALICE = get_checksum_address("0x" + "01" * 20)
BOB = get_checksum_address("0x" + "02" * 20)
CAROL = get_checksum_address("0x" + "03" * 20)


class FakeContractReader:
    """
    An in-memory `ContractReader`. Values are keyed by lowercase address. Any method named in
    `failing` raises `ContractReadError`, as does a read for which no value was configured. Any
    method named in `unreachable` raises a transient `ContractReadError`.
    """

    def __init__(self) -> None:
        self.pools: dict[str, str] = {}
        self.snapshots: dict[tuple[str, str], tuple[int, int]] = {}
        self.balances: dict[tuple[str, str], int] = {}
        self.metadata: dict[str, tuple[str, str, int]] = {}
        self.underlyings: dict[str, str] = {}
        self.market_values: dict[str, dict[str, int]] = {}
        self.prices: dict[tuple[str, str], int] = {}
        self.oracles: dict[str, str] = {}
        self.reward_tokens: dict[str, str] = {}
        self.pool_markets: dict[str, list[str]] = {}
        self.speeds: dict[tuple[str, str], tuple[int, int]] = {}
        self.failing: set[str] = set()
        self.unreachable: set[str] = set()
        self.calls: list[tuple[str, tuple[Any, ...], BlockIdentifier | None]] = []

    def _read(
        self,
        function: str,
        values: dict[Any, Any],
        key: Any,
        block_identifier: BlockIdentifier | None,
    ) -> Any:
        self.calls.append((function, key if isinstance(key, tuple) else (key,), block_identifier))
        address = key[0] if isinstance(key, tuple) else key
        if function in self.unreachable:
            raise ContractReadError(
                function=function, address=address, error="read timed out", transient=True
            )
        if function in self.failing or key not in values:
            raise ContractReadError(function=function, address=address, error="execution reverted")
        return values[key]

    def _market_value(
        self, function: str, market: str, block_identifier: BlockIdentifier | None
    ) -> int:
        self.calls.append((function, (market.lower(),), block_identifier))
        if function in self.failing:
            raise ContractReadError(function=function, address=market, error="execution reverted")
        return self.market_values.get(market.lower(), {}).get(function, 0)

    def add_market(
        self,
        market: str,
        pool: str = POOL,
        underlying: str | None = UNDERLYING,
        symbol: str = "vUSDT",
        underlying_symbol: str = "USDT",
        underlying_decimals: int = 18,
        **market_values: int,
    ) -> None:
        self.pools[market.lower()] = get_checksum_address(pool)
        self.metadata[market.lower()] = (f"Venus {underlying_symbol}", symbol, 8)
        if underlying is not None:
            self.underlyings[market.lower()] = get_checksum_address(underlying)
            self.metadata[underlying.lower()] = (
                underlying_symbol,
                underlying_symbol,
                underlying_decimals,
            )
        self.market_values[market.lower()] = {}
        self.set_market_values(market, **market_values)

    def set_market_values(self, market: str, **market_values: int) -> None:
        """
        Set values returned by the market's getters, keyed by getter name, e.g. `getCash=100`.
        """

        self.market_values.setdefault(market.lower(), {}).update(
            {f"{name}()": value for name, value in market_values.items()}
        )

    def governing_pool_of(
        self, market: str, block_identifier: BlockIdentifier | None = None
    ) -> ChecksumAddress:
        return self._read("comptroller()", self.pools, market.lower(), block_identifier)

    def account_snapshot(
        self, market: str, account: str, block_identifier: BlockIdentifier | None = None
    ) -> tuple[int, int]:
        self.calls.append(
            ("getAccountSnapshot(address)", (market.lower(), account.lower()), block_identifier)
        )
        if "getAccountSnapshot(address)" in self.failing:
            raise ContractReadError(
                function="getAccountSnapshot(address)", address=market, error="execution reverted"
            )
        return self.snapshots.get((market.lower(), account.lower()), (0, 0))

    def exchange_rate(self, market: str, block_identifier: BlockIdentifier | None = None) -> int:
        return self._market_value("exchangeRateStored()", market, block_identifier)

    def borrow_index(self, market: str, block_identifier: BlockIdentifier | None = None) -> int:
        return self._market_value("borrowIndex()", market, block_identifier)

    def total_reserves(self, market: str, block_identifier: BlockIdentifier | None = None) -> int:
        return self._market_value("totalReserves()", market, block_identifier)

    def cash(self, market: str, block_identifier: BlockIdentifier | None = None) -> int:
        return self._market_value("getCash()", market, block_identifier)

    def borrow_rate_per_block(
        self, market: str, block_identifier: BlockIdentifier | None = None
    ) -> int:
        return self._market_value("borrowRatePerBlock()", market, block_identifier)

    def supply_rate_per_block(
        self, market: str, block_identifier: BlockIdentifier | None = None
    ) -> int:
        return self._market_value("supplyRatePerBlock()", market, block_identifier)

    def total_borrows(self, market: str, block_identifier: BlockIdentifier | None = None) -> int:
        return self._market_value("totalBorrows()", market, block_identifier)

    def total_supply(self, market: str, block_identifier: BlockIdentifier | None = None) -> int:
        return self._market_value("totalSupply()", market, block_identifier)

    def reserve_factor(self, market: str, block_identifier: BlockIdentifier | None = None) -> int:
        return self._market_value("reserveFactorMantissa()", market, block_identifier)

    def interest_rate_model(
        self, market: str, block_identifier: BlockIdentifier | None = None
    ) -> ChecksumAddress:
        self.calls.append(("interestRateModel()", (market.lower(),), block_identifier))
        if "interestRateModel()" in self.failing:
            raise ContractReadError(
                function="interestRateModel()", address=market, error="execution reverted"
            )
        return get_checksum_address("0x" + "f1" * 20)

    def reward_token(
        self, distributor: str, block_identifier: BlockIdentifier | None = None
    ) -> ChecksumAddress:
        return self._read(
            "rewardToken()", self.reward_tokens, distributor.lower(), block_identifier
        )

    def all_markets(
        self, pool: str, block_identifier: BlockIdentifier | None = None
    ) -> list[ChecksumAddress]:
        return [
            get_checksum_address(market)
            for market in self._read(
                "getAllMarkets()", self.pool_markets, pool.lower(), block_identifier
            )
        ]

    def reward_speeds(
        self, distributor: str, market: str, block_identifier: BlockIdentifier | None = None
    ) -> tuple[int, int]:
        return self._read(
            "rewardTokenSpeeds(address)",
            self.speeds,
            (distributor.lower(), market.lower()),
            block_identifier,
        )

    def balance_of(
        self, token: str, account: str, block_identifier: BlockIdentifier | None = None
    ) -> int:
        self.calls.append(
            ("balanceOf(address)", (token.lower(), account.lower()), block_identifier)
        )
        if "balanceOf(address)" in self.failing:
            raise ContractReadError(
                function="balanceOf(address)", address=token, error="execution reverted"
            )
        return self.balances.get((token.lower(), account.lower()), 0)

    def token_metadata(
        self, token: str, block_identifier: BlockIdentifier | None = None
    ) -> tuple[str, str, int]:
        return self._read("symbol()", self.metadata, token.lower(), block_identifier)

    def underlying(
        self, market: str, block_identifier: BlockIdentifier | None = None
    ) -> ChecksumAddress:
        return self._read("underlying()", self.underlyings, market.lower(), block_identifier)

    def underlying_price(
        self, oracle: str, market: str, block_identifier: BlockIdentifier | None = None
    ) -> int:
        return self._read(
            "getUnderlyingPrice(address)",
            self.prices,
            (oracle.lower(), market.lower()),
            block_identifier,
        )

    def price_oracle(
        self, pool: str, block_identifier: BlockIdentifier | None = None
    ) -> ChecksumAddress:
        return self._read("oracle()", self.oracles, pool.lower(), block_identifier)


@pytest.fixture(autouse=True)
def _reset_verbose_config() -> Generator[None, None, None]:
    yield
    VerboseConfig.clear()


@pytest.fixture(scope="session", autouse=True)
def _set_lendgraph_logging() -> None:
    """
    Set the logging level to DEBUG for the test run
    """
    logger.setLevel(logging.DEBUG)


@pytest.fixture
def session() -> Generator[Session, None, None]:
    engine = enable_sqlite_savepoints(create_engine("sqlite://"))
    Base.metadata.create_all(engine)
    with Session(engine) as session:
        yield session
    engine.dispose()


@pytest.fixture
def repository(session: Session) -> EntityRepository:
    return EntityRepository(session)


@pytest.fixture
def reader() -> FakeContractReader:
    reader = FakeContractReader()
    reader.add_market(MARKET, exchangeRateStored=2 * 10**17, borrowIndex=10**18)
    reader.add_market(
        OTHER_MARKET,
        underlying=OTHER_UNDERLYING,
        symbol="vBTC",
        underlying_symbol="BTCB",
        exchangeRateStored=3 * 10**17,
        borrowIndex=10**18,
    )
    reader.add_market(
        NATIVE_MARKET,
        underlying=None,
        symbol="vBNB",
        exchangeRateStored=2 * 10**17,
        borrowIndex=10**18,
    )
    reader.oracles[POOL.lower()] = ORACLE
    return reader


def make_log(
    address: str,
    block_number: int = 100,
    log_index: int = 0,
    transaction_index: int = 0,
    transaction_hash: str | bytes | None = None,
    block_timestamp: int | None = None,
) -> LogContext:
    if transaction_hash is None:
        transaction_hash = block_number.to_bytes(16, "big") + transaction_index.to_bytes(16, "big")
    return LogContext(
        address=get_checksum_address(address),
        block_number=block_number,
        block_timestamp=block_number * 3 if block_timestamp is None else block_timestamp,
        transaction_hash=HexBytes(transaction_hash),
        transaction_index=transaction_index,
        log_index=log_index,
    )


class EventStream:
    """
    Builds events at strictly increasing log positions, one block per call unless told otherwise.
    """

    def __init__(self, start_block: int = 100) -> None:
        self.block_number = start_block
        self.log_index = 0

    def __call__[EventT: LendingEvent](
        self,
        event_type: type[EventT],
        address: str,
        *,
        same_block: bool = False,
        **fields: Any,
    ) -> EventT:
        if same_block:
            self.log_index += 1
        else:
            self.block_number += 1
            self.log_index = 0
        return event_type(
            log=make_log(address, block_number=self.block_number, log_index=self.log_index),
            **fields,
        )


@pytest.fixture
def stream() -> EventStream:
    return EventStream()


@pytest.fixture
def make_context(
    repository: EntityRepository, reader: FakeContractReader
) -> Callable[..., EventHandlerContext[Any]]:
    def _make_context(event: LendingEvent, dust_threshold: int = 10) -> EventHandlerContext[Any]:
        return EventHandlerContext(
            repository=repository,
            reader=reader,
            event=event,
            dust_threshold=dust_threshold,
        )

    return _make_context
