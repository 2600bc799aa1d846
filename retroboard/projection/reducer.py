"""
Projection Reducer - Rebuilds a client-side mirror from the event stream.

The reducer is the single point of mirror mutation.
All changes go through apply_event().

Design principles:
- Pure function: (mirror, event) -> new mirror; the input is never touched
- One small reducer per event kind
- Events arriving before the first full snapshot are ignored
- Merge rules:
    state                          replace everything
    participant-joined, item-added,
    brainstorm-comment-added,
    action-point-added             append if the key is absent
    vote-updated,
    action-point-updated           replace the matching entry by id
    participant-left               remove by name
    phase-changed, timer-started,
    closed, brainstorm-items-
    selected                       overwrite the fields
"""

from __future__ import annotations
from copy import deepcopy
from dataclasses import dataclass, field
from typing import Any, Callable

from ..relay.events import EventType
from ..session.state import Phase

Mirror = dict[str, Any]
EventReducer = Callable[[Mirror, Any], Mirror]


def _append_if_absent(collection: str, key: str) -> EventReducer:
    def reduce(mirror: Mirror, payload: dict) -> Mirror:
        entries = mirror.get(collection, [])
        if any(entry.get(key) == payload.get(key) for entry in entries):
            return mirror
        return {**mirror, collection: [*entries, dict(payload)]}
    return reduce


def _reduce_state(mirror: Mirror | None, payload: Mirror) -> Mirror:
    return deepcopy(payload)


def _reduce_participant_left(mirror: Mirror, payload: dict) -> Mirror:
    participants = [p for p in mirror.get("participants", []) if p.get("name") != payload.get("name")]
    return {**mirror, "participants": participants}


def _reduce_vote_updated(mirror: Mirror, payload: dict) -> Mirror:
    items = [
        {**item, "votes": list(payload.get("votes", []))}
        if item.get("id") == payload.get("itemId") else item
        for item in mirror.get("items", [])
    ]
    return {**mirror, "items": items}


def _reduce_action_point_updated(mirror: Mirror, payload: dict) -> Mirror:
    action_points = [
        dict(payload) if ap.get("id") == payload.get("id") else ap
        for ap in mirror.get("actionPoints", [])
    ]
    return {**mirror, "actionPoints": action_points}


def _reduce_phase_changed(mirror: Mirror, payload: dict) -> Mirror:
    # The server clears the countdown on every phase change
    return {**mirror, "phase": payload.get("phase"), "timerEndsAt": None}


def _reduce_timer_started(mirror: Mirror, payload: dict) -> Mirror:
    return {**mirror, "timerEndsAt": payload.get("endsAt")}


def _reduce_closed(mirror: Mirror, payload: dict) -> Mirror:
    return {
        **mirror,
        "phase": Phase.CLOSED.value,
        "closedAt": payload.get("closedAt"),
        "timerEndsAt": None,
    }


def _reduce_brainstorm_items_selected(mirror: Mirror, payload: dict) -> Mirror:
    return {**mirror, "brainstormItemIds": list(payload.get("itemIds", []))}


REDUCERS: dict[EventType, EventReducer] = {
    EventType.PARTICIPANT_JOINED: _append_if_absent("participants", "name"),
    EventType.PARTICIPANT_LEFT: _reduce_participant_left,
    EventType.ITEM_ADDED: _append_if_absent("items", "id"),
    EventType.VOTE_UPDATED: _reduce_vote_updated,
    EventType.PHASE_CHANGED: _reduce_phase_changed,
    EventType.CLOSED: _reduce_closed,
    EventType.TIMER_STARTED: _reduce_timer_started,
    EventType.BRAINSTORM_ITEMS_SELECTED: _reduce_brainstorm_items_selected,
    EventType.BRAINSTORM_COMMENT_ADDED: _append_if_absent("brainstormComments", "id"),
    EventType.ACTION_POINT_ADDED: _append_if_absent("actionPoints", "id"),
    EventType.ACTION_POINT_UPDATED: _reduce_action_point_updated,
}


def apply_event(mirror: Mirror | None, event_type: EventType | str, payload: Any) -> Mirror | None:
    """
    Apply one event to a mirror.

    Returns the new mirror (the same object when nothing changed).
    """
    event_type = EventType(event_type)
    if event_type == EventType.STATE:
        return _reduce_state(mirror, payload)
    if mirror is None:
        return None
    reducer = REDUCERS.get(event_type)
    if reducer is None:
        return mirror
    return reducer(mirror, payload)


@dataclass
class ClientProjection:
    """
    Local mirror of a session as one client sees it.

    Holds the identity the client joined with and the last error the
    server reported to it. Error notifications never touch the mirror.
    """
    participant_name: str = ""
    admin_token: str = ""
    mirror: Mirror | None = None
    last_error: str = ""
    applied: int = field(default=0, repr=False)

    @property
    def is_admin(self) -> bool:
        return self.admin_token != ""

    @property
    def phase(self) -> Phase | None:
        if not self.mirror:
            return None
        return Phase(self.mirror["phase"])

    def apply(self, message: dict[str, Any]) -> None:
        """Apply one {"type", "payload"} envelope in arrival order."""
        event_type = EventType(message["type"])
        payload = message.get("payload")
        if event_type == EventType.ERROR:
            self.last_error = (payload or {}).get("message", "")
            return
        self.mirror = apply_event(self.mirror, event_type, payload)
        self.applied += 1

    def clear_error(self) -> None:
        self.last_error = ""
