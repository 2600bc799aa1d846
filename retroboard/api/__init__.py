"""
API Module - HTTP and event-stream boundary.

Exposes the retro manager to the page layer:
1. Create a session and receive the admin secret
2. Fetch live or archived snapshots
3. Export a session as CSV
4. Join the event stream and exchange commands/events
"""

from .schemas import (
    CreateRetroRequest,
    CreateRetroResponse,
    SessionSnapshot,
    PastRetroInfo,
    RetroListResponse,
    ErrorResponse,
    HealthResponse,
)
from .app import create_app

__all__ = [
    "CreateRetroRequest",
    "CreateRetroResponse",
    "SessionSnapshot",
    "PastRetroInfo",
    "RetroListResponse",
    "ErrorResponse",
    "HealthResponse",
    "create_app",
]
