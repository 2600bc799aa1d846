"""
File Session Store - JSON files on local disk.

Layout under the data directory:
    active-retro.json                              Active session (overwritten)
    retros/retro-<id>-<sprint>-<date>.json         Archived snapshot
    retros/retro-<id>-<sprint>-<date>.csv          Archived CSV report

Design decisions:
- Simple file-based storage, no database
- Last write wins on the active slot; no versioning
- Archive names are built from id + sanitized sprint name + close date,
  so two different sessions never share a file
"""

from __future__ import annotations
import json
import logging
import os
from pathlib import Path

from ..session.state import Session, parse_timestamp, utc_now
from .base import ArchivedSummary, SessionStore
from .csv_report import render_csv, sanitize_sprint_name

logger = logging.getLogger(__name__)

ACTIVE_FILENAME = "active-retro.json"
ARCHIVE_DIRNAME = "retros"


class FileSessionStore(SessionStore):
    """
    File-based store for the active session and the archive.

    Usage:
        store = FileSessionStore(data_dir="./data")

        store.save_active(session)
        restored = store.load_active()

        store.archive(session)
        store.clear_active()
    """

    def __init__(self, data_dir: str | Path):
        self.data_dir = Path(data_dir).resolve()
        self.archive_dir = self.data_dir / ARCHIVE_DIRNAME
        self.active_path = self.data_dir / ACTIVE_FILENAME

        self.archive_dir.mkdir(parents=True, exist_ok=True)

    # =========================================================================
    # Active slot
    # =========================================================================

    def save_active(self, session: Session) -> None:
        self._write_text(self.active_path, json.dumps(session.to_dict(), indent=2))

    def load_active(self) -> Session | None:
        if not self.active_path.exists():
            return None
        return self._load_session(self.active_path)

    def clear_active(self) -> None:
        self.active_path.unlink(missing_ok=True)

    # =========================================================================
    # Archive
    # =========================================================================

    def archive(self, session: Session) -> str:
        """
        Write the JSON snapshot and CSV report of a closed session.

        Returns the JSON filename used as the archive locator.
        """
        base_name = self._archive_base_name(session)
        json_path = self.archive_dir / f"{base_name}.json"

        # Same name but different session id: pick a free suffix
        suffix = 1
        while json_path.exists() and self._stored_id(json_path) != session.session_id:
            suffix += 1
            json_path = self.archive_dir / f"{base_name}-{suffix}.json"

        csv_path = json_path.with_suffix(".csv")
        self._write_text(json_path, json.dumps(session.to_dict(), indent=2))
        try:
            self._write_text(csv_path, render_csv(session))
        except OSError:
            # A snapshot without its report is not an archive
            json_path.unlink(missing_ok=True)
            raise
        logger.info("Archived session %s to %s", session.session_id, json_path.name)
        return json_path.name

    def list_archived(self) -> list[ArchivedSummary]:
        summaries = []
        for path in self._archive_files():
            session = self._try_load(path)
            if session is None:
                continue
            summaries.append(ArchivedSummary(
                session_id=session.session_id,
                sprint_name=session.sprint_name,
                date=session.created_at,
                file=path.name,
            ))
        return summaries

    def find_by_id(self, session_id: str) -> Session | None:
        active = self.load_active()
        if active and active.session_id == session_id:
            return active

        for path in self._archive_files():
            session = self._try_load(path)
            if session and session.session_id == session_id:
                return session
        return None

    # =========================================================================
    # Helpers
    # =========================================================================

    def _archive_base_name(self, session: Session) -> str:
        closed = parse_timestamp(session.closed_at) if session.closed_at else utc_now()
        safe_name = sanitize_sprint_name(session.sprint_name)
        return f"retro-{session.session_id}-{safe_name}-{closed.date().isoformat()}"

    def _archive_files(self) -> list[Path]:
        if not self.archive_dir.exists():
            return []
        return sorted(self.archive_dir.glob("*.json"))

    def _stored_id(self, path: Path) -> str | None:
        session = self._try_load(path)
        return session.session_id if session else None

    def _load_session(self, path: Path) -> Session:
        with open(path, "r", encoding="utf-8") as f:
            return Session.from_dict(json.load(f))

    def _try_load(self, path: Path) -> Session | None:
        try:
            return self._load_session(path)
        except (OSError, ValueError, KeyError) as e:
            logger.warning("Skipping unreadable archive file %s: %s", path.name, e)
            return None

    def _write_text(self, path: Path, content: str) -> None:
        """Write through a temp file so readers never see a partial file."""
        tmp_path = path.with_name(path.name + ".tmp")
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                f.write(content)
            os.replace(tmp_path, path)
        except OSError:
            tmp_path.unlink(missing_ok=True)
            raise
