from lendgraph.exceptions.base import (
    InvalidAddress,
    LendgraphError,
    LendgraphValueError,
)
from lendgraph.exceptions.contract import ContractReadError
from lendgraph.exceptions.fetching import DecodingFailure, FetchingError, LogFetchingTimeout
from lendgraph.exceptions.indexing import (
    EventOrderError,
    EventProcessingError,
    IndexingError,
    InvalidProposalTransition,
    UnknownEvent,
)
from lendgraph.exceptions.repository import EntityNotFound, RecordExists, RepositoryError

from . import base, contract, database, fetching, indexing, repository

__all__ = (
    "ContractReadError",
    "DecodingFailure",
    "EntityNotFound",
    "EventOrderError",
    "EventProcessingError",
    "FetchingError",
    "IndexingError",
    "InvalidAddress",
    "InvalidProposalTransition",
    "LendgraphError",
    "LendgraphValueError",
    "LogFetchingTimeout",
    "RecordExists",
    "RepositoryError",
    "UnknownEvent",
    "base",
    "contract",
    "database",
    "fetching",
    "indexing",
    "repository",
)
