"""
Post-commit moderation events.

The moderation and submission services emit an event once a state change has
been committed. Listeners (the Discord notifier) are registered at startup and
run in background tasks: a slow or failing listener never reaches the caller.
"""

import asyncio
import enum
import logging
from typing import Awaitable, Callable, Dict, List, Set

logger = logging.getLogger(__name__)

Listener = Callable[[str, Dict], Awaitable[object]]

_listeners: List[Listener] = []

# Strong references to in-flight deliveries until they finish
_pending_tasks: Set[asyncio.Task] = set()


class ModerationEventType(str, enum.Enum):
    """Event emitted after a committed submission or moderation change."""

    SUBMISSION_CREATED = "submission_created"
    FIRST_APPROVAL = "first_approval"
    APPROVED = "approved"
    REJECTED = "rejected"


def register_listener(listener: Listener) -> None:
    """Register an async listener; registering the same callable twice is a no-op."""
    if listener not in _listeners:
        _listeners.append(listener)


def clear_listeners() -> None:
    """Remove every registered listener."""
    _listeners.clear()


def get_listeners() -> List[Listener]:
    return list(_listeners)


async def _deliver(listener: Listener, event_name: str, payload: Dict) -> None:
    try:
        await listener(event_name, payload)
    except Exception as e:
        logger.error(
            f"Moderation event listener {getattr(listener, '__name__', listener)} "
            f"failed for {event_name}: {e}",
            exc_info=True,
        )


async def emit(event_type: ModerationEventType, payload: Dict) -> None:
    """
    Schedule delivery of an event to every listener and return immediately.

    Each listener runs in its own task so a slow notification never holds up
    the request that committed the change. Listener errors are logged.
    """
    event_name = ModerationEventType(event_type).value
    for listener in list(_listeners):
        task = asyncio.create_task(_deliver(listener, event_name, payload))
        _pending_tasks.add(task)
        task.add_done_callback(_pending_tasks.discard)


async def wait_for_pending() -> None:
    """Wait until every scheduled listener call has finished."""
    while _pending_tasks:
        await asyncio.gather(*list(_pending_tasks), return_exceptions=True)
