"""
Ordered processing of a decoded event stream.

Each event is applied inside a savepoint. If a rule fails, the savepoint is rolled back so that no
partial update from that event is kept, and the failure is reported for that event alone.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field

from sqlalchemy.orm import Session

from lendgraph.constants import DUST_THRESHOLD
from lendgraph.contracts import ContractReader
from lendgraph.events import LendingEvent
from lendgraph.exceptions import EventOrderError, EventProcessingError, LendgraphError
from lendgraph.logging import logger
from lendgraph.mappings.context import EventHandlerContext
from lendgraph.repository import EntityRepository
from lendgraph.router import dispatch_event


@dataclass
class IndexingResult:
    processed: int = 0
    failures: list[EventProcessingError] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return len(self.failures)


class EventIndexer:
    """
    Applies events to the entity store one at a time, in delivery order.
    """

    def __init__(
        self,
        session: Session,
        reader: ContractReader,
        dust_threshold: int = DUST_THRESHOLD,
    ) -> None:
        self.session = session
        self.repository = EntityRepository(session)
        self.reader = reader
        self.dust_threshold = dust_threshold
        self.last_position: tuple[int, int, int] | None = None

    def process_event(self, event: LendingEvent) -> None:
        """
        Apply a single event.

        Raises `EventOrderError` if the event is not positioned after the last processed event,
        and `EventProcessingError` if the event could not be applied. In both cases the entity
        store is unchanged.
        Any other exception also rolls back the event before it propagates.
        """

        position = event.log.position
        if self.last_position is not None and position <= self.last_position:
            raise EventOrderError(position=position, last_position=self.last_position)

        context = EventHandlerContext(
            repository=self.repository,
            reader=self.reader,
            event=event,
            dust_threshold=self.dust_threshold,
        )

        try:
            with self.session.begin_nested():
                dispatch_event(context)
        except (LendgraphError, ArithmeticError, LookupError) as exc:
            logger.exception(
                f"Failed to process {type(event).__name__} from {event.log.address} at block "
                f"{event.log.block_number} (tx {event.log.transaction_hash.to_0x_hex()}, "
                f"log index {event.log.log_index})"
            )
            raise EventProcessingError(
                event=event,
                reason=getattr(exc, "message", None) or str(exc) or type(exc).__name__,
            ) from exc
        finally:
            self.last_position = position

    def process_events(self, events: Iterable[LendingEvent]) -> IndexingResult:
        """
        Apply a stream of events. A failed event is recorded in the result and processing
        continues with the next event.
        """

        result = IndexingResult()
        for event in events:
            try:
                self.process_event(event)
            except (EventProcessingError, EventOrderError) as exc:
                if isinstance(exc, EventOrderError):
                    logger.error(exc.message)
                    exc = EventProcessingError(event=event, reason=exc.message or "out of order")
                result.failures.append(exc)
            else:
                result.processed += 1
        return result
