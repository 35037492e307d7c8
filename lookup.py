import asyncio
import logging
from enum import Enum
from typing import Callable, List, Optional

import codec
from exceptions import EmptyIdentifier, HerbTraceError, NotFound, StoreFault
from schemas import BatchRecord, TimelineEntry
from store import BatchStore
from timeline import aggregate

logger = logging.getLogger(__name__)


class LookupState(str, Enum):
    IDLE = "idle"
    SEARCHING = "searching"
    FOUND = "found"
    NOT_FOUND = "not_found"
    ERROR = "error"


class LookupController:
    """Runs batch searches for one consumer and keeps the latest outcome.

    Only the most recent ``search`` counts: a search that is overtaken by a
    newer one (or by ``reset``) drops its result when it completes.
    """

    def __init__(self, store: BatchStore):
        self._store = store
        self._generation = 0
        self._observers: List[Callable[["LookupController", LookupState], None]] = []
        self.state = LookupState.IDLE
        self.batch_id: Optional[str] = None
        self.record: Optional[BatchRecord] = None
        self.timeline: List[TimelineEntry] = []
        self.payload: Optional[str] = None
        self.error: Optional[HerbTraceError] = None

    @property
    def message(self) -> Optional[str]:
        return self.error.message if self.error else None

    def subscribe(self, observer) -> None:
        self._observers.append(observer)

    def _set_state(self, state: LookupState) -> None:
        logger.debug("lookup %s -> %s", self.state.value, state.value)
        self.state = state
        for observer in list(self._observers):
            observer(self, state)

    def _clear(self) -> None:
        self.batch_id = None
        self.record = None
        self.timeline = []
        self.payload = None
        self.error = None

    def reset(self) -> None:
        self._generation += 1
        self._clear()
        self._set_state(LookupState.IDLE)

    async def search(self, batch_id: str) -> Optional[LookupState]:
        """Look a batch up and return the resulting state.

        Returns None if a newer search replaced this one before it finished.
        Raises EmptyIdentifier straight away for a blank ID.
        """
        self._generation += 1
        generation = self._generation
        batch_id = (batch_id or "").strip()
        self._clear()
        if not batch_id:
            self.error = EmptyIdentifier()
            self._set_state(LookupState.IDLE)
            raise self.error

        self.batch_id = batch_id
        self._set_state(LookupState.SEARCHING)
        record = None
        try:
            record = await asyncio.to_thread(self._store.lookup, batch_id)
            timeline = aggregate(record)
        except asyncio.CancelledError:
            if generation == self._generation:
                self._clear()
                self._set_state(LookupState.IDLE)
            raise
        except NotFound as e:
            outcome, error = LookupState.NOT_FOUND, e
        except Exception as e:
            logger.exception("lookup of batch %s failed", batch_id)
            error = e if isinstance(e, StoreFault) else StoreFault()
            if error is not e:
                error.__cause__ = e
            outcome = LookupState.ERROR
        else:
            outcome, error = LookupState.FOUND, None

        if generation != self._generation:
            logger.debug("dropping superseded result for batch %s", batch_id)
            return None

        self.error = error
        if outcome is LookupState.FOUND:
            self.record = record
            self.timeline = timeline
            self.payload = codec.encode(batch_id)
        self._set_state(outcome)
        return outcome
