from .checksum_cache import get_checksum_address
from .config import settings
from .logging import logger
from .version import __version__

# isort: split

from .contracts import ContractReader, Web3ContractReader, best_effort
from .events import ALL_EVENTS, LendingEvent, LogContext, decode_log
from .indexer import EventIndexer, IndexingResult
from .repository import EntityRepository
from .router import EVENT_HANDLERS, dispatch_event

__all__ = (
    "ALL_EVENTS",
    "EVENT_HANDLERS",
    "ContractReader",
    "EntityRepository",
    "EventIndexer",
    "IndexingResult",
    "LendingEvent",
    "LogContext",
    "Web3ContractReader",
    "__version__",
    "best_effort",
    "decode_log",
    "dispatch_event",
    "get_checksum_address",
    "logger",
    "settings",
)
