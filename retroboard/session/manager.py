"""
Retro Manager - Owns the single authoritative retrospective session.

LIFECYCLE:
1. Admin creates a session → phase LOBBY, fresh id and admin secret
2. Participants join (any phase before CLOSED, late joiners welcome)
3. Admin advances the phase one step at a time:
   LOBBY → GOOD_ITEMS → GOOD_VOTING → IMPROVE_ITEMS → IMPROVE_VOTING
         → BRAINSTORMING → ACTION_POINTS → CLOSED
4. Each phase unlocks exactly one kind of contribution
5. On CLOSED the session is archived and the active slot is cleared;
   the closed session stays readable in memory until the next create

CONCURRENCY:
- Every operation runs under one lock: check-then-append sequences
  (name uniqueness, vote uniqueness) never interleave
- No operation blocks on anything but the store write

PERSISTENCE:
- Validate fully, mutate in memory, then write the snapshot
- A failed write rolls the in-memory session back and raises
  PersistenceError
"""

from __future__ import annotations
from contextlib import contextmanager
from copy import deepcopy
from datetime import datetime, timedelta
from typing import Callable, Iterator, TYPE_CHECKING
import hmac
import logging
import threading

from .errors import (
    AuthError,
    ConflictError,
    NotFoundError,
    PersistenceError,
    StateError,
)
from .state import (
    ActionPoint,
    BrainstormComment,
    Category,
    Participant,
    Phase,
    RetroItem,
    Session,
    VOTING_PHASES,
    format_timestamp,
    new_admin_token,
    next_phase,
    short_id,
    utc_now,
)

if TYPE_CHECKING:
    from ..storage.base import SessionStore

logger = logging.getLogger(__name__)

DEFAULT_TIMER_DURATION = 300


class RetroManager:
    """
    Session state machine.

    Responsibilities:
    - Hold at most one session (restored from the store at startup)
    - Enforce phase gates, admin authorization and uniqueness rules
    - Persist after every successful mutation

    Usage:
        manager = RetroManager(store)
        created = manager.create_session("Sprint 12", 300)
        manager.add_participant("Alice", manager.is_admin_token(created["adminToken"]))
        manager.change_phase(created["adminToken"])
    """

    def __init__(
        self,
        store: SessionStore,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._store = store
        self._clock = clock
        self._lock = threading.RLock()
        self._session: Session | None = store.load_active()
        if self._session:
            logger.info(
                "Restored active session %s (%s) in phase %s",
                self._session.session_id,
                self._session.sprint_name,
                self._session.phase.value,
            )

    # =========================================================================
    # Queries
    # =========================================================================

    @property
    def store(self) -> SessionStore:
        return self._store

    def get_session(self) -> Session | None:
        """The in-memory session, possibly closed."""
        return self._session

    def public_snapshot(self) -> dict | None:
        """Session snapshot without the admin secret."""
        with self._lock:
            if self._session is None:
                return None
            return self._session.public_dict()

    def has_participant(self, name: str) -> bool:
        with self._lock:
            return bool(self._session and self._session.get_participant(name))

    def is_admin_token(self, token: str | None) -> bool:
        """Exact match against the session's admin secret."""
        if not token or self._session is None:
            return False
        return hmac.compare_digest(
            self._session.admin_token.encode("utf-8"),
            token.encode("utf-8"),
        )

    # =========================================================================
    # Session lifecycle
    # =========================================================================

    def create_session(
        self,
        sprint_name: str,
        timer_duration: int = DEFAULT_TIMER_DURATION,
    ) -> dict[str, str]:
        """
        Start a new session in LOBBY.

        Returns:
            {"id": ..., "adminToken": ...}
        """
        with self._lock:
            if self._session and not self._session.is_closed:
                raise ConflictError("A retro is already in progress. Close it first.")

            session = Session(
                session_id=short_id(),
                sprint_name=sprint_name,
                admin_token=new_admin_token(),
                created_at=self._now(),
                timer_duration=timer_duration,
            )
            previous = self._session
            self._session = session
            try:
                self._store.save_active(session)
            except OSError as e:
                self._session = previous
                raise self._write_failed(e) from e

            logger.info("Created session %s (%s)", session.session_id, sprint_name)
            return {"id": session.session_id, "adminToken": session.admin_token}

    def change_phase(self, admin_token: str | None) -> Phase:
        """Advance to the immediate successor phase. Admin only."""
        with self._lock:
            session = self._require_session()
            self._require_admin(admin_token)

            successor = next_phase(session.phase)
            if successor is None:
                raise StateError("Already at the last phase")

            if successor == Phase.CLOSED:
                self._close(session)
            else:
                with self._mutation(session):
                    session.phase = successor
                    session.timer_ends_at = None

            logger.info("Session %s moved to phase %s", session.session_id, successor.value)
            return successor

    # =========================================================================
    # Participants
    # =========================================================================

    def add_participant(self, name: str, is_admin: bool) -> Participant:
        with self._lock:
            session = self._require_open_session()
            if session.get_participant(name):
                raise ConflictError(f'Participant "{name}" already exists')

            participant = Participant(name=name, is_admin=is_admin, joined_at=self._now())
            with self._mutation(session):
                session.participants.append(participant)
            return participant

    def remove_participant(self, name: str) -> None:
        """Drop a participant by name. No-op if absent."""
        with self._lock:
            session = self._session
            if session is None or session.is_closed or not session.get_participant(name):
                return
            with self._mutation(session):
                session.participants = [p for p in session.participants if p.name != name]

    # =========================================================================
    # Items and votes
    # =========================================================================

    def add_item(self, text: str, author: str, category: Category | str) -> RetroItem:
        category = Category(category)
        with self._lock:
            session = self._require_session()
            if session.phase != category.collection_phase:
                raise StateError(
                    f"Cannot add {category.value} items in phase {session.phase.value}"
                )

            item = RetroItem(
                item_id=short_id(),
                text=text,
                author=author,
                category=category,
                created_at=self._now(),
            )
            with self._mutation(session):
                session.items.append(item)
            return item

    def vote(self, item_id: str, voter: str) -> list[str]:
        """Add a vote. A voter may vote for an item only once."""
        with self._lock:
            item = self._require_votable_item(item_id)
            if voter in item.votes:
                raise ConflictError("You already voted for this item")

            with self._mutation(self._session):
                item.votes.append(voter)
            return list(item.votes)

    def unvote(self, item_id: str, voter: str) -> list[str]:
        """Remove a vote. Removing an absent vote is not an error."""
        with self._lock:
            item = self._require_votable_item(item_id)
            with self._mutation(self._session):
                item.votes = [v for v in item.votes if v != voter]
            return list(item.votes)

    # =========================================================================
    # Timer
    # =========================================================================

    def start_timer(self, admin_token: str | None, duration: int) -> str:
        """
        Set the advisory countdown. Admin only.

        Expiry drives nothing on the server; the admin still has to
        change the phase. Returns the absolute end time.
        """
        with self._lock:
            self._require_session()
            self._require_admin(admin_token)
            session = self._require_open_session()

            ends_at = format_timestamp(self._clock() + timedelta(seconds=duration))
            with self._mutation(session):
                session.timer_ends_at = ends_at
                session.timer_duration = duration
            return ends_at

    # =========================================================================
    # Brainstorming and action points
    # =========================================================================

    def select_brainstorm_items(self, admin_token: str | None, item_ids: list[str]) -> list[str]:
        """Replace the brainstorm selection. Admin only, improve items only."""
        with self._lock:
            self._require_session()
            self._require_admin(admin_token)
            session = self._require_open_session()

            for item_id in item_ids:
                item = session.get_item(item_id)
                if item is None or item.category != Category.IMPROVE:
                    raise NotFoundError(f"Item {item_id} not found or not an improvement item")

            selection = list(dict.fromkeys(item_ids))
            with self._mutation(session):
                session.brainstorm_item_ids = selection
            return list(selection)

    def add_brainstorm_comment(self, item_id: str, text: str, author: str) -> BrainstormComment:
        # item_id is not checked against the current selection
        with self._lock:
            session = self._require_phase(Phase.BRAINSTORMING, "Brainstorming is not active")

            comment = BrainstormComment(
                comment_id=short_id(),
                item_id=item_id,
                text=text,
                author=author,
                created_at=self._now(),
            )
            with self._mutation(session):
                session.brainstorm_comments.append(comment)
            return comment

    def add_action_point(
        self,
        text: str,
        assignee: str,
        created_by: str,
        item_id: str = "",
    ) -> ActionPoint:
        with self._lock:
            session = self._require_phase(
                Phase.ACTION_POINTS, "Action points phase is not active"
            )

            action_point = ActionPoint(
                action_point_id=short_id(),
                text=text,
                assignee=assignee,
                created_by=created_by,
                item_id=item_id,
            )
            with self._mutation(session):
                session.action_points.append(action_point)
            return action_point

    def assign_action_point(self, action_point_id: str, assignee: str) -> ActionPoint:
        """Overwrite the assignee. Last write wins."""
        with self._lock:
            session = self._require_phase(
                Phase.ACTION_POINTS, "Action points phase is not active"
            )
            action_point = session.get_action_point(action_point_id)
            if action_point is None:
                raise NotFoundError("Action point not found")

            with self._mutation(session):
                action_point.assignee = assignee
            return action_point

    # =========================================================================
    # Export
    # =========================================================================

    def export_csv(self) -> str:
        with self._lock:
            return self._store.render_csv(self._require_session())

    # =========================================================================
    # Internals
    # =========================================================================

    def _now(self) -> str:
        return format_timestamp(self._clock())

    def _require_session(self) -> Session:
        if self._session is None:
            raise NotFoundError("No active retro")
        return self._session

    def _require_open_session(self) -> Session:
        session = self._require_session()
        if session.is_closed:
            raise StateError("The retro is closed")
        return session

    def _require_admin(self, admin_token: str | None) -> None:
        if not self.is_admin_token(admin_token):
            raise AuthError("Unauthorized")

    def _require_phase(self, phase: Phase, message: str) -> Session:
        session = self._require_session()
        if session.phase != phase:
            raise StateError(message)
        return session

    def _require_votable_item(self, item_id: str) -> RetroItem:
        session = self._require_session()
        if session.phase not in VOTING_PHASES:
            raise StateError("Voting is not allowed in this phase")
        item = session.get_item(item_id)
        if item is None:
            raise NotFoundError("Item not found")
        return item

    @contextmanager
    def _mutation(self, session: Session) -> Iterator[None]:
        """Apply an in-memory change, then write it; restore on write failure."""
        snapshot = deepcopy(session)
        yield
        try:
            self._store.save_active(session)
        except OSError as e:
            self._session = snapshot
            raise self._write_failed(e) from e

    def _close(self, session: Session) -> None:
        snapshot = deepcopy(session)
        session.phase = Phase.CLOSED
        session.timer_ends_at = None
        session.closed_at = self._now()
        try:
            self._store.archive(session)
            self._store.clear_active()
        except OSError as e:
            self._session = snapshot
            raise self._write_failed(e) from e

    def _write_failed(self, error: OSError) -> PersistenceError:
        logger.error("Failed to persist session: %s", error)
        return PersistenceError(f"Failed to save retro: {error}")
