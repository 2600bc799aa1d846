"""
Storage Module - Durable home of the active session and the archive.

The store is a narrow collaborator of the manager:
- save/load/clear the single active snapshot
- archive closed sessions (JSON + CSV)
- list and look up archived sessions
"""

from .base import SessionStore, ArchivedSummary
from .csv_report import render_csv, sanitize_sprint_name
from .file_store import FileSessionStore

__all__ = [
    "SessionStore",
    "ArchivedSummary",
    "FileSessionStore",
    "render_csv",
    "sanitize_sprint_name",
]
