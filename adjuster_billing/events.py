"""Domain events published by the billing engine"""
import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, ClassVar, Dict, List, Union

from .models import DailyTally, FirmConfig, Job

logger = logging.getLogger(__name__)

JOB_COMPLETED = 'job:completed'
DAY_FINALIZED = 'day:finalized'
FIRM_DELETED = 'firm:deleted'
ALL_EVENTS = '*'


@dataclass(frozen=True)
class JobCompleted:
    job: Job
    name: ClassVar[str] = JOB_COMPLETED


@dataclass(frozen=True)
class DayFinalized:
    tally: DailyTally
    name: ClassVar[str] = DAY_FINALIZED


@dataclass(frozen=True)
class FirmDeleted:
    firm: FirmConfig
    name: ClassVar[str] = FIRM_DELETED


BillingEvent = Union[JobCompleted, DayFinalized, FirmDeleted]
Handler = Callable[[BillingEvent], None]


class EventBus:
    """
    Observer registry for engine notifications.

    Subscribers are called synchronously in registration order. The engine
    never waits on their results, and a failing subscriber does not stop
    the others or the operation that emitted the event.
    """

    def __init__(self):
        self._handlers: Dict[str, List[Handler]] = defaultdict(list)

    def subscribe(self, event_name: str, handler: Handler) -> Callable[[], None]:
        """
        Register a handler for one event name, or ALL_EVENTS for every event.

        Returns:
            A callable that removes the subscription
        """
        self._handlers[event_name].append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers[event_name]:
                self._handlers[event_name].remove(handler)

        return unsubscribe

    def emit(self, event: BillingEvent) -> None:
        for handler in list(self._handlers[event.name]) + list(self._handlers[ALL_EVENTS]):
            try:
                handler(event)
            except Exception:
                logger.exception("Subscriber failed while handling %s", event.name)
