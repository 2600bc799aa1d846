"""
Derived views over a projection mirror.

All functions are pure: they read the mirror and return new lists or
strings, never modifying the mirror.
"""

from __future__ import annotations
from datetime import datetime
from typing import Any

from ..session.state import (
    NEXT_PHASE_LABELS,
    PHASE_LABELS,
    Phase,
    VOTING_PHASES,
    parse_timestamp,
)

Mirror = dict[str, Any]

_GOOD_PHASES = {Phase.GOOD_ITEMS, Phase.GOOD_VOTING}
_IMPROVE_PHASES = {Phase.IMPROVE_ITEMS, Phase.IMPROVE_VOTING}
_SORTED_PHASES = VOTING_PHASES | {Phase.BRAINSTORMING, Phase.CLOSED}


def _phase(mirror: Mirror) -> Phase:
    return Phase(mirror["phase"])


def phase_label(mirror: Mirror | None) -> str:
    return PHASE_LABELS[_phase(mirror)] if mirror else ""


def next_phase_label(mirror: Mirror | None) -> str:
    return NEXT_PHASE_LABELS.get(_phase(mirror), "") if mirror else ""


def is_item_phase(mirror: Mirror) -> bool:
    return _phase(mirror) in {Phase.GOOD_ITEMS, Phase.IMPROVE_ITEMS}


def is_voting_phase(mirror: Mirror) -> bool:
    return _phase(mirror) in VOTING_PHASES


def current_category(mirror: Mirror) -> str:
    return "improve" if _phase(mirror) in _IMPROVE_PHASES else "good"


def sort_by_votes(items: list[dict]) -> list[dict]:
    """Most votes first; ties keep their original order."""
    return sorted(items, key=lambda item: len(item.get("votes", [])), reverse=True)


def items_in_category(mirror: Mirror, category: str) -> list[dict]:
    return sort_by_votes([i for i in mirror.get("items", []) if i.get("category") == category])


def brainstorm_items(mirror: Mirror) -> list[dict]:
    selected = set(mirror.get("brainstormItemIds", []))
    return [i for i in mirror.get("items", []) if i.get("id") in selected]


def visible_items(mirror: Mirror) -> list[dict]:
    """Items shown in the current phase."""
    phase = _phase(mirror)
    items = mirror.get("items", [])
    if phase in _GOOD_PHASES:
        return [i for i in items if i.get("category") == "good"]
    if phase in _IMPROVE_PHASES:
        return [i for i in items if i.get("category") == "improve"]
    if phase == Phase.BRAINSTORMING:
        return brainstorm_items(mirror)
    return list(items)


def sorted_visible_items(mirror: Mirror) -> list[dict]:
    """Visible items, ranked by votes once voting has started."""
    items = visible_items(mirror)
    if _phase(mirror) in _SORTED_PHASES:
        return sort_by_votes(items)
    return items


def comments_for_item(mirror: Mirror, item_id: str) -> list[dict]:
    return [c for c in mirror.get("brainstormComments", []) if c.get("itemId") == item_id]


def action_points_for_item(mirror: Mirror, item_id: str) -> list[dict]:
    return [ap for ap in mirror.get("actionPoints", []) if ap.get("itemId") == item_id]


def countdown_text(mirror: Mirror | None, now: datetime) -> str:
    """
    Remaining timer as "m:ss", "Time is up!" once elapsed, or "" if no
    timer is running.
    """
    if not mirror or not mirror.get("timerEndsAt"):
        return ""
    remaining_ms = max(0, int((parse_timestamp(mirror["timerEndsAt"]) - now).total_seconds() * 1000))
    if remaining_ms == 0:
        return "Time is up!"
    minutes = remaining_ms // 60000
    seconds = (remaining_ms % 60000) // 1000
    return f"{minutes}:{seconds:02d}"
