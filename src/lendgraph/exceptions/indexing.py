from typing import TYPE_CHECKING, Any

from lendgraph.exceptions.base import LendgraphError

if TYPE_CHECKING:
    from lendgraph.events import LendingEvent


class IndexingError(LendgraphError):
    """
    Exception raised while projecting events onto entities.
    """


class UnknownEvent(IndexingError):
    """
    Raised by the dispatch router when no handler is registered for an event type.
    """

    def __init__(self, event_name: str) -> None:
        self.event_name = event_name
        super().__init__(message=f"No handler registered for event {event_name}")

    def __reduce__(self) -> tuple[Any, ...]:
        return self.__class__, (self.event_name,)


class EventOrderError(IndexingError):
    """
    Raised when an event is delivered at or before the position of the last processed event.
    """

    def __init__(self, position: tuple[int, int, int], last_position: tuple[int, int, int]) -> None:
        self.position = position
        self.last_position = last_position
        super().__init__(
            message=f"Event at position {position} delivered after position {last_position}"
        )

    def __reduce__(self) -> tuple[Any, ...]:
        return self.__class__, (self.position, self.last_position)


class InvalidProposalTransition(IndexingError):
    """
    Raised when a governance event would move a proposal into a status not reachable from its
    current status.
    """

    def __init__(self, proposal_id: str, current: str, requested: str) -> None:
        self.proposal_id = proposal_id
        self.current = current
        self.requested = requested
        super().__init__(
            message=f"Proposal {proposal_id} cannot move from {current} to {requested}"
        )

    def __reduce__(self) -> tuple[Any, ...]:
        return self.__class__, (self.proposal_id, self.current, self.requested)


class EventProcessingError(IndexingError):
    """
    Raised when a single event could not be applied. The entity store is left as it was before
    the event, and processing of later events may continue.
    """

    def __init__(self, event: "LendingEvent", reason: str) -> None:
        self.event = event
        self.reason = reason
        super().__init__(
            message=(
                f"Failed to process {type(event).__name__} at block {event.log.block_number}, "
                f"log index {event.log.log_index}: {reason}"
            )
        )

    def __reduce__(self) -> tuple[Any, ...]:
        return self.__class__, (self.event, self.reason)
