"""
Session Module - The one live retrospective and its rules.

A session represents one retrospective meeting:
- Created by an admin, who receives the admin secret
- Moves through a fixed sequence of phases
- Collects items, votes, brainstorm notes and action points
- Archived when it reaches CLOSED

Only one non-closed session exists at a time.
"""

from .errors import (
    RetroError,
    ConflictError,
    AuthError,
    StateError,
    NotFoundError,
    PersistenceError,
)
from .state import (
    Phase,
    PHASE_ORDER,
    PHASE_LABELS,
    NEXT_PHASE_LABELS,
    Category,
    Session,
    Participant,
    RetroItem,
    BrainstormComment,
    ActionPoint,
    next_phase,
)
from .manager import RetroManager

__all__ = [
    "RetroError",
    "ConflictError",
    "AuthError",
    "StateError",
    "NotFoundError",
    "PersistenceError",
    "Phase",
    "PHASE_ORDER",
    "PHASE_LABELS",
    "NEXT_PHASE_LABELS",
    "Category",
    "Session",
    "Participant",
    "RetroItem",
    "BrainstormComment",
    "ActionPoint",
    "next_phase",
    "RetroManager",
]
