"""
Outbound notifications.

Messages use the same envelope as commands:
    {"type": "<event>", "payload": {...}}
"""

from enum import Enum
from typing import Any


class EventType(str, Enum):
    """Notifications sent to connections."""
    STATE = "state"
    PARTICIPANT_JOINED = "participant-joined"
    PARTICIPANT_LEFT = "participant-left"
    ITEM_ADDED = "item-added"
    VOTE_UPDATED = "vote-updated"
    PHASE_CHANGED = "phase-changed"
    CLOSED = "closed"
    TIMER_STARTED = "timer-started"
    BRAINSTORM_ITEMS_SELECTED = "brainstorm-items-selected"
    BRAINSTORM_COMMENT_ADDED = "brainstorm-comment-added"
    ACTION_POINT_ADDED = "action-point-added"
    ACTION_POINT_UPDATED = "action-point-updated"
    ERROR = "error"


def event(event_type: EventType, payload: Any) -> dict[str, Any]:
    """Build a notification envelope."""
    return {"type": event_type.value, "payload": payload}


def error_event(message: str) -> dict[str, Any]:
    return event(EventType.ERROR, {"message": message})
