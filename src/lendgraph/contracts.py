"""
Point-in-time contract reads.

The mapping rules never talk to an RPC endpoint directly, they receive a `ContractReader`. Every
read takes an explicit block identifier supplied by the caller, and every failed read raises
`ContractReadError`. Whether a failure aborts the event or degrades to a fallback value is decided
by the caller, see `best_effort`.

Transient transport errors are retried here with exponential backoff. Reverts and undecodable
responses are not retried.
"""

from collections.abc import Callable, Sequence
from typing import Any, Protocol

from eth_abi.exceptions import DecodingError
from eth_typing import ChecksumAddress
from requests.exceptions import RequestException
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential_jitter
from web3 import Web3
from web3._utils.threads import Timeout
from web3.exceptions import Web3Exception
from web3.types import BlockIdentifier

from lendgraph.checksum_cache import get_checksum_address
from lendgraph.exceptions import ContractReadError
from lendgraph.functions import encode_function_calldata, raw_call
from lendgraph.logging import logger

TRANSIENT_ERRORS = (Timeout, RequestException, ConnectionError, TimeoutError)


class ContractReader(Protocol):
    def governing_pool_of(
        self, market: str, block_identifier: BlockIdentifier | None = None
    ) -> ChecksumAddress: ...

    def account_snapshot(
        self, market: str, account: str, block_identifier: BlockIdentifier | None = None
    ) -> tuple[int, int]: ...

    def exchange_rate(
        self, market: str, block_identifier: BlockIdentifier | None = None
    ) -> int: ...

    def borrow_index(self, market: str, block_identifier: BlockIdentifier | None = None) -> int: ...

    def total_reserves(
        self, market: str, block_identifier: BlockIdentifier | None = None
    ) -> int: ...

    def cash(self, market: str, block_identifier: BlockIdentifier | None = None) -> int: ...

    def borrow_rate_per_block(
        self, market: str, block_identifier: BlockIdentifier | None = None
    ) -> int: ...

    def supply_rate_per_block(
        self, market: str, block_identifier: BlockIdentifier | None = None
    ) -> int: ...

    def total_borrows(
        self, market: str, block_identifier: BlockIdentifier | None = None
    ) -> int: ...

    def total_supply(self, market: str, block_identifier: BlockIdentifier | None = None) -> int: ...

    def reward_token(
        self, distributor: str, block_identifier: BlockIdentifier | None = None
    ) -> ChecksumAddress: ...

    def all_markets(
        self, pool: str, block_identifier: BlockIdentifier | None = None
    ) -> list[ChecksumAddress]: ...

    def reward_speeds(
        self, distributor: str, market: str, block_identifier: BlockIdentifier | None = None
    ) -> tuple[int, int]: ...

    def balance_of(
        self, token: str, account: str, block_identifier: BlockIdentifier | None = None
    ) -> int: ...

    def token_metadata(
        self, token: str, block_identifier: BlockIdentifier | None = None
    ) -> tuple[str, str, int]: ...

    def underlying(
        self, market: str, block_identifier: BlockIdentifier | None = None
    ) -> ChecksumAddress: ...

    def underlying_price(
        self, oracle: str, market: str, block_identifier: BlockIdentifier | None = None
    ) -> int: ...

    def price_oracle(
        self, pool: str, block_identifier: BlockIdentifier | None = None
    ) -> ChecksumAddress: ...

    def reserve_factor(
        self, market: str, block_identifier: BlockIdentifier | None = None
    ) -> int: ...

    def interest_rate_model(
        self, market: str, block_identifier: BlockIdentifier | None = None
    ) -> ChecksumAddress: ...


class Web3ContractReader:
    """
    A `ContractReader` performing one `eth_call` per read through a `Web3` instance.
    """

    def __init__(self, w3: Web3, max_retries: int = 3) -> None:
        self.w3 = w3
        self.max_retries = max_retries

    def _call(
        self,
        address: str,
        function_prototype: str,
        return_types: list[str],
        block_identifier: BlockIdentifier | None,
        function_arguments: Sequence[Any] | None = None,
    ) -> tuple[Any, ...]:
        retrier = Retrying(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential_jitter(max=10),
            retry=retry_if_exception_type(TRANSIENT_ERRORS),
            reraise=True,
        )

        try:
            return retrier(
                raw_call,
                w3=self.w3,
                address=get_checksum_address(address),
                calldata=encode_function_calldata(
                    function_prototype=function_prototype,
                    function_arguments=function_arguments,
                ),
                return_types=return_types,
                block_identifier=block_identifier,
            )
        except (Web3Exception, DecodingError, ValueError, *TRANSIENT_ERRORS) as exc:
            logger.debug(f"{function_prototype} at {address} (block {block_identifier}): {exc}")
            raise ContractReadError(
                function=function_prototype,
                address=address,
                error=str(exc) or type(exc).__name__,
                transient=isinstance(exc, TRANSIENT_ERRORS),
            ) from exc

    def _call_uint(
        self,
        address: str,
        function_prototype: str,
        block_identifier: BlockIdentifier | None,
        function_arguments: Sequence[Any] | None = None,
    ) -> int:
        (value,) = self._call(
            address=address,
            function_prototype=function_prototype,
            return_types=["uint256"],
            block_identifier=block_identifier,
            function_arguments=function_arguments,
        )
        return int(value)

    def _call_address(
        self,
        address: str,
        function_prototype: str,
        block_identifier: BlockIdentifier | None,
    ) -> ChecksumAddress:
        (result,) = self._call(
            address=address,
            function_prototype=function_prototype,
            return_types=["address"],
            block_identifier=block_identifier,
        )
        return get_checksum_address(result)

    def governing_pool_of(
        self, market: str, block_identifier: BlockIdentifier | None = None
    ) -> ChecksumAddress:
        return self._call_address(market, "comptroller()", block_identifier)

    def account_snapshot(
        self, market: str, account: str, block_identifier: BlockIdentifier | None = None
    ) -> tuple[int, int]:
        """
        Get the (supplied vToken balance, borrow balance) pair for the account.
        """

        error_code, vtoken_balance, borrow_balance, _ = self._call(
            address=market,
            function_prototype="getAccountSnapshot(address)",
            return_types=["uint256", "uint256", "uint256", "uint256"],
            block_identifier=block_identifier,
            function_arguments=[get_checksum_address(account)],
        )
        if error_code != 0:
            raise ContractReadError(
                function="getAccountSnapshot(address)",
                address=market,
                error=f"error code {error_code}",
            )
        return vtoken_balance, borrow_balance

    def exchange_rate(self, market: str, block_identifier: BlockIdentifier | None = None) -> int:
        return self._call_uint(market, "exchangeRateStored()", block_identifier)

    def borrow_index(self, market: str, block_identifier: BlockIdentifier | None = None) -> int:
        return self._call_uint(market, "borrowIndex()", block_identifier)

    def total_reserves(self, market: str, block_identifier: BlockIdentifier | None = None) -> int:
        return self._call_uint(market, "totalReserves()", block_identifier)

    def cash(self, market: str, block_identifier: BlockIdentifier | None = None) -> int:
        return self._call_uint(market, "getCash()", block_identifier)

    def borrow_rate_per_block(
        self, market: str, block_identifier: BlockIdentifier | None = None
    ) -> int:
        return self._call_uint(market, "borrowRatePerBlock()", block_identifier)

    def supply_rate_per_block(
        self, market: str, block_identifier: BlockIdentifier | None = None
    ) -> int:
        return self._call_uint(market, "supplyRatePerBlock()", block_identifier)

    def total_borrows(self, market: str, block_identifier: BlockIdentifier | None = None) -> int:
        return self._call_uint(market, "totalBorrows()", block_identifier)

    def total_supply(self, market: str, block_identifier: BlockIdentifier | None = None) -> int:
        return self._call_uint(market, "totalSupply()", block_identifier)

    def reward_token(
        self, distributor: str, block_identifier: BlockIdentifier | None = None
    ) -> ChecksumAddress:
        return self._call_address(distributor, "rewardToken()", block_identifier)

    def all_markets(
        self, pool: str, block_identifier: BlockIdentifier | None = None
    ) -> list[ChecksumAddress]:
        (markets,) = self._call(
            address=pool,
            function_prototype="getAllMarkets()",
            return_types=["address[]"],
            block_identifier=block_identifier,
        )
        return [get_checksum_address(market) for market in markets]

    def reward_speeds(
        self, distributor: str, market: str, block_identifier: BlockIdentifier | None = None
    ) -> tuple[int, int]:
        """
        Get the (borrow speed, supply speed) per-block mantissas for the market.
        """

        market_address = get_checksum_address(market)
        borrow_speed = self._call_uint(
            distributor,
            "rewardTokenBorrowSpeeds(address)",
            block_identifier,
            function_arguments=[market_address],
        )
        supply_speed = self._call_uint(
            distributor,
            "rewardTokenSupplySpeeds(address)",
            block_identifier,
            function_arguments=[market_address],
        )
        return borrow_speed, supply_speed

    def balance_of(
        self, token: str, account: str, block_identifier: BlockIdentifier | None = None
    ) -> int:
        return self._call_uint(
            token,
            "balanceOf(address)",
            block_identifier,
            function_arguments=[get_checksum_address(account)],
        )

    def token_metadata(
        self, token: str, block_identifier: BlockIdentifier | None = None
    ) -> tuple[str, str, int]:
        """
        Get the (name, symbol, decimals) of an ERC-20 token.
        """

        (name,) = self._call(token, "name()", ["string"], block_identifier)
        (symbol,) = self._call(token, "symbol()", ["string"], block_identifier)
        (decimals,) = self._call(token, "decimals()", ["uint8"], block_identifier)
        return name, symbol, decimals

    def underlying(
        self, market: str, block_identifier: BlockIdentifier | None = None
    ) -> ChecksumAddress:
        return self._call_address(market, "underlying()", block_identifier)

    def underlying_price(
        self, oracle: str, market: str, block_identifier: BlockIdentifier | None = None
    ) -> int:
        return self._call_uint(
            oracle,
            "getUnderlyingPrice(address)",
            block_identifier,
            function_arguments=[get_checksum_address(market)],
        )

    def reserve_factor(self, market: str, block_identifier: BlockIdentifier | None = None) -> int:
        return self._call_uint(market, "reserveFactorMantissa()", block_identifier)

    def interest_rate_model(
        self, market: str, block_identifier: BlockIdentifier | None = None
    ) -> ChecksumAddress:
        return self._call_address(market, "interestRateModel()", block_identifier)

    def price_oracle(
        self, pool: str, block_identifier: BlockIdentifier | None = None
    ) -> ChecksumAddress:
        return self._call_address(pool, "oracle()", block_identifier)


def best_effort[T](
    read: Callable[..., T],
    *args: Any,
    fallback: T,
    **kwargs: Any,
) -> T:
    """
    Perform a read whose failure must not abort the event, substituting the fallback value.
    """

    try:
        return read(*args, **kwargs)
    except ContractReadError as exc:
        logger.warning(f"{exc.message}. Using fallback value {fallback!r}.")
        return fallback
