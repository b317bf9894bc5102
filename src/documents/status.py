"""Persisted processing status: a finite state machine.

    pending --start--> processing --succeed--> completed
       |                    |
       +------fail------> error --retry--> pending

``completed`` is terminal. Any other (status, event) pair is rejected, so a
document can never jump from ``error`` straight to ``completed``.
"""

from src.core.exceptions import InvalidTransitionError
from src.core.models.enums import ProcessingEvent, ProcessingStatus

TRANSITIONS: dict[tuple[ProcessingStatus, ProcessingEvent], ProcessingStatus] = {
    (ProcessingStatus.pending, ProcessingEvent.start): ProcessingStatus.processing,
    (ProcessingStatus.pending, ProcessingEvent.fail): ProcessingStatus.error,
    (ProcessingStatus.processing, ProcessingEvent.succeed): ProcessingStatus.completed,
    (ProcessingStatus.processing, ProcessingEvent.fail): ProcessingStatus.error,
    (ProcessingStatus.error, ProcessingEvent.retry): ProcessingStatus.pending,
}


def next_status(current: ProcessingStatus, event: ProcessingEvent) -> ProcessingStatus:
    """Return the status reached by applying *event* to *current*.

    Raises InvalidTransitionError when the pair is not in the table.
    """
    try:
        return TRANSITIONS[(ProcessingStatus(current), ProcessingEvent(event))]
    except KeyError:
        raise InvalidTransitionError(ProcessingStatus(current).value, ProcessingEvent(event).value)


def can_apply(current: ProcessingStatus, event: ProcessingEvent) -> bool:
    return (ProcessingStatus(current), ProcessingEvent(event)) in TRANSITIONS


def is_in_flight(status: ProcessingStatus) -> bool:
    return ProcessingStatus(status) in (ProcessingStatus.pending, ProcessingStatus.processing)
