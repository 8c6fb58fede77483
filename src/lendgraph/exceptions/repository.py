from typing import Any

from lendgraph.exceptions.base import LendgraphError


class RepositoryError(LendgraphError):
    """
    Exception raised inside the entity repository.
    """


class EntityNotFound(RepositoryError):
    """
    Raised when an event refers to an entity that must already exist, e.g. an unlisting event for a
    market that was never created.
    """

    def __init__(self, kind: str, key: str) -> None:
        self.kind = kind
        self.key = key
        super().__init__(message=f"{kind} {key} does not exist")

    def __reduce__(self) -> tuple[Any, ...]:
        # Pickling will raise an exception if a reduction method is not defined
        return self.__class__, (self.kind, self.key)


class RecordExists(RepositoryError):
    """
    Raised when a write-once history record is created twice.
    """

    def __init__(self, kind: str, key: str) -> None:
        self.kind = kind
        self.key = key
        super().__init__(message=f"{kind} {key} has already been recorded")

    def __reduce__(self) -> tuple[Any, ...]:
        return self.__class__, (self.kind, self.key)
