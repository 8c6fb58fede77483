import operator
from collections.abc import Iterable
from typing import cast

import click
import eth_abi.abi
import tqdm
from eth_typing import ChecksumAddress
from hexbytes import HexBytes
from sqlalchemy import select
from web3 import Web3
from web3.types import BlockParams, LogReceipt

from lendgraph.checksum_cache import get_checksum_address
from lendgraph.cli import cli
from lendgraph.config import save_config_to_file, settings
from lendgraph.contracts import Web3ContractReader
from lendgraph.database import check_database_version, db_session
from lendgraph.database.models import MarketTable, RewardsDistributorTable
from lendgraph.events import (
    GOVERNANCE_EVENTS,
    MARKET_EVENTS,
    POOL_EVENTS,
    POOL_REGISTRY_EVENTS,
    REWARDS_EVENTS,
    LendingEvent,
    MarketSupported,
    NewRewardsDistributor,
    decode_log,
)
from lendgraph.exceptions import DecodingFailure
from lendgraph.functions import fetch_logs_retrying, get_number_for_block_identifier
from lendgraph.indexer import EventIndexer
from lendgraph.logging import logger

from .utils import get_web3_from_config

ROOT_TOPICS = [
    event_type.topic() for event_type in POOL_EVENTS + POOL_REGISTRY_EVENTS + GOVERNANCE_EVENTS
]
MARKET_TOPICS = [event_type.topic() for event_type in MARKET_EVENTS]
REWARDS_TOPICS = [event_type.topic() for event_type in REWARDS_EVENTS]


def resolve_to_block(to_block: str, w3: Web3) -> int:
    """
    Resolve a block number, a block tag, or a block tag with an offset (e.g. 'latest:-64') to a
    block number.
    """

    if to_block.isdigit():
        return int(to_block)

    if ":" in to_block:
        block_tag, offset = cast("tuple[BlockParams, str]", to_block.split(":", 1))
        block_offset = int(offset.strip())
    else:
        block_tag = cast("BlockParams", to_block)
        block_offset = 0

    if block_tag not in {"latest", "earliest", "pending", "safe", "finalized"}:
        msg = f"Invalid block tag: {block_tag}"
        raise ValueError(msg)

    return get_number_for_block_identifier(identifier=block_tag, w3=w3) + block_offset


def discover_markets(logs: Iterable[LogReceipt]) -> set[ChecksumAddress]:
    """
    Get the addresses of markets listed by the MarketSupported events in the logs.
    """

    market_supported_topic = MarketSupported.topic()
    markets: set[ChecksumAddress] = set()
    for log in logs:
        if log["topics"] and HexBytes(log["topics"][0]) == market_supported_topic:
            (market_address,) = eth_abi.abi.decode(types=["address"], data=HexBytes(log["data"]))
            markets.add(get_checksum_address(market_address))
    return markets


def discover_rewards_distributors(logs: Iterable[LogReceipt]) -> set[ChecksumAddress]:
    """
    Get the addresses of rewards distributors added by the NewRewardsDistributor events in the
    logs.
    """

    new_distributor_topic = NewRewardsDistributor.topic()
    distributors: set[ChecksumAddress] = set()
    for log in logs:
        if len(log["topics"]) > 1 and HexBytes(log["topics"][0]) == new_distributor_topic:
            (distributor_address,) = eth_abi.abi.decode(
                types=["address"], data=HexBytes(log["topics"][1])
            )
            distributors.add(get_checksum_address(distributor_address))
    return distributors


def sort_logs(logs: Iterable[LogReceipt]) -> list[LogReceipt]:
    """
    Remove duplicate logs and sort the remainder into chain order.
    """

    unique_logs = {(log["blockNumber"], log["logIndex"]): log for log in logs}
    return sorted(
        unique_logs.values(),
        key=operator.itemgetter("blockNumber", "transactionIndex", "logIndex"),
    )


class BlockTimestampCache:
    def __init__(self, w3: Web3) -> None:
        self.w3 = w3
        self._timestamps: dict[int, int] = {}

    def get(self, block_number: int) -> int:
        if block_number not in self._timestamps:
            self._timestamps[block_number] = self.w3.eth.get_block(block_number)["timestamp"]
        return self._timestamps[block_number]


def fetch_events(
    *,
    w3: Web3,
    start_block: int,
    end_block: int,
    root_addresses: list[ChecksumAddress],
    markets: set[ChecksumAddress],
    distributors: set[ChecksumAddress],
    timestamps: BlockTimestampCache,
    max_blocks_per_request: int,
) -> list[LendingEvent]:
    """
    Fetch and decode all events in the block range.

    Logs from the root contracts are fetched first. Markets and rewards distributors listed in
    those logs are added to the known sets before their own logs are fetched.
    """

    root_logs = fetch_logs_retrying(
        w3=w3,
        start_block=start_block,
        end_block=end_block,
        max_blocks_per_request=max_blocks_per_request,
        address=root_addresses,
        topic_signature=[ROOT_TOPICS],
    )

    new_markets = discover_markets(root_logs) - markets
    new_distributors = discover_rewards_distributors(root_logs) - distributors
    if new_markets:
        logger.info(f"Discovered {len(new_markets)} new markets")
    if new_distributors:
        logger.info(f"Discovered {len(new_distributors)} new rewards distributors")
    markets |= new_markets
    distributors |= new_distributors

    all_logs = list(root_logs)
    if markets:
        all_logs.extend(
            fetch_logs_retrying(
                w3=w3,
                start_block=start_block,
                end_block=end_block,
                max_blocks_per_request=max_blocks_per_request,
                address=sorted(markets),
                topic_signature=[MARKET_TOPICS],
            )
        )
    if distributors:
        all_logs.extend(
            fetch_logs_retrying(
                w3=w3,
                start_block=start_block,
                end_block=end_block,
                max_blocks_per_request=max_blocks_per_request,
                address=sorted(distributors),
                topic_signature=[REWARDS_TOPICS],
            )
        )

    events: list[LendingEvent] = []
    for log in sort_logs(all_logs):
        try:
            events.append(decode_log(log, block_timestamp=timestamps.get(log["blockNumber"])))
        except DecodingFailure as exc:
            logger.warning(
                f"Skipping log {log['logIndex']} in block {log['blockNumber']}: {exc.message}"
            )
    return events


@cli.group()
def index() -> None:
    """
    Indexer commands
    """


@index.command(
    "update",
    help="Index events from the configured contracts up to the given block.",
)
@click.option(
    "--chunk",
    "chunk_size",
    default=None,
    type=int,
    help=(
        "The maximum number of blocks to process before committing changes to the database. "
        "Defaults to the configured chunk size."
    ),
)
@click.option(
    "--to-block",
    "to_block",
    default="latest:-64",
    show_default=True,
    help=(
        "The last block in the update range. Must be a valid block identifier: "
        "'earliest', 'finalized', 'safe', 'latest', 'pending'. An identifier can be given with an "
        "optional offset, e.g. 'latest:-64' stops 64 blocks before the chain tip, "
        "'safe:128' stops 128 blocks after the last 'safe' block."
    ),
)
@click.option(
    "--no-progress",
    "no_progress",
    is_flag=True,
    default=False,
    show_default=True,
    help="Disable progress bars.",
)
def index_update(
    *,
    chunk_size: int | None,
    to_block: str,
    no_progress: bool,
) -> None:
    """
    Index events from the configured contracts.

    Processes events from the block after the last update to the specified block, committing
    the entity store and recording the last indexed block after each chunk.

    Args:
        chunk_size: Maximum number of blocks to process before committing changes.
        to_block: Target block identifier (e.g., 'latest', 'latest:-64', 'finalized:128').
        no_progress: If True, disable progress bars.
    """

    indexer_settings = settings.indexer
    if not indexer_settings.contracts:
        click.echo("No contracts are configured for indexing.")
        return

    if chunk_size is None:
        chunk_size = indexer_settings.chunk_size
    if chunk_size <= 0:
        msg = "Chunk size must be positive"
        raise click.BadParameter(msg, param_hint="--chunk")

    check_database_version()

    chain_id = indexer_settings.chain_id
    w3 = get_web3_from_config(chain_id=chain_id)

    last_block = resolve_to_block(to_block, w3)
    current_block_number = get_number_for_block_identifier(identifier="latest", w3=w3)
    if last_block > current_block_number:
        msg = f"{to_block} is ahead of the current chain tip."
        raise ValueError(msg)

    initial_start_block = working_start_block = (
        indexer_settings.start_block
        if indexer_settings.last_update_block is None
        else indexer_settings.last_update_block + 1
    )
    if initial_start_block > last_block:
        click.echo(f"Chain {chain_id} has not advanced since the last update.")
        return

    root_addresses = [get_checksum_address(address) for address in indexer_settings.contracts]
    timestamps = BlockTimestampCache(w3)

    with db_session() as session:
        indexer = EventIndexer(
            session=session,
            reader=Web3ContractReader(w3),
            dust_threshold=indexer_settings.dust_threshold,
        )
        markets = {
            get_checksum_address(market_id) for market_id in session.scalars(select(MarketTable.id))
        }
        distributors = {
            get_checksum_address(distributor_id)
            for distributor_id in session.scalars(select(RewardsDistributorTable.id))
        }

        block_pbar = tqdm.tqdm(
            total=last_block - initial_start_block + 1,
            bar_format="{desc} {percentage:3.1f}% |{bar}|",
            leave=False,
            disable=no_progress,
        )

        total_failures = 0
        while True:
            working_end_block = min(last_block, working_start_block + chunk_size - 1)

            block_pbar.set_description(
                f"Processing block range {working_start_block:,} -> {working_end_block:,}"
            )
            block_pbar.refresh()

            events = fetch_events(
                w3=w3,
                start_block=working_start_block,
                end_block=working_end_block,
                root_addresses=root_addresses,
                markets=markets,
                distributors=distributors,
                timestamps=timestamps,
                max_blocks_per_request=indexer_settings.max_blocks_per_request,
            )
            result = indexer.process_events(
                tqdm.tqdm(
                    events,
                    desc="Processing events",
                    leave=False,
                    disable=no_progress,
                )
            )
            for failure in result.failures:
                logger.error(failure.message)
            total_failures += result.failed

            session.commit()
            indexer_settings.last_update_block = working_end_block
            save_config_to_file(settings)
            logger.debug(
                f"Committed {result.processed} events for blocks "
                f"{working_start_block}-{working_end_block}"
            )

            block_pbar.n = working_end_block - initial_start_block + 1
            block_pbar.refresh()

            if working_end_block == last_block:
                break
            working_start_block = working_end_block + 1

        block_pbar.close()

    click.echo(
        f"Indexed chain {chain_id} through block {last_block:,}"
        + (f" ({total_failures} events failed)" if total_failures else "")
    )
