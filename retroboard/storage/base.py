"""
Session Store interface.

The manager only talks to storage through this narrow surface, so the
on-disk format can be swapped without touching the state machine.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass

from ..session.state import Session
from .csv_report import render_csv


@dataclass
class ArchivedSummary:
    """Listing entry for a closed session."""
    session_id: str
    sprint_name: str
    date: str
    file: str

    def to_dict(self) -> dict[str, str]:
        return {
            "id": self.session_id,
            "sprintName": self.sprint_name,
            "date": self.date,
            "file": self.file,
        }


class SessionStore(ABC):
    """
    Durable slot for the one active session plus an archive of closed ones.

    Implementations raise OSError (or a subclass) when a write fails;
    the manager turns that into a PersistenceError.
    """

    @abstractmethod
    def save_active(self, session: Session) -> None:
        """Overwrite the active slot with a full snapshot."""

    @abstractmethod
    def load_active(self) -> Session | None:
        """Return the active snapshot, or None if the slot is empty."""

    @abstractmethod
    def clear_active(self) -> None:
        """Remove the active slot."""

    @abstractmethod
    def archive(self, session: Session) -> str:
        """Write an immutable JSON + CSV copy. Returns the archive locator."""

    @abstractmethod
    def list_archived(self) -> list[ArchivedSummary]:
        """Summaries of every archived session."""

    @abstractmethod
    def find_by_id(self, session_id: str) -> Session | None:
        """Look in the active slot first, then in the archive."""

    def render_csv(self, session: Session) -> str:
        return render_csv(session)
