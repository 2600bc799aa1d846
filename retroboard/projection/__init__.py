"""
Projection Module - Client-side mirror of a session.

A client never queries the session directly after joining: it applies
the event stream, in arrival order, to its own copy.
"""

from .reducer import ClientProjection, apply_event, REDUCERS
from . import views

__all__ = [
    "ClientProjection",
    "apply_event",
    "REDUCERS",
    "views",
]
