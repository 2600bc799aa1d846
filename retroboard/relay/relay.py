"""
Event Relay - Maps connection commands to manager calls and back.

Flow for one command:
    1. Validate the payload against its command model
    2. Check the connection context (joined? still the live session?
       which name? which token?)
    3. Call the manager
    4. Success → broadcast the resulting event to the whole room
       Failure → send an error to the originating connection only

The relay holds one lock across steps 1-4, so the manager mutation and
its broadcast are never interleaved with another command: every room
member observes events in the order the session changed.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Callable
import logging
import threading

from pydantic import ValidationError

from ..session import Phase, RetroError, RetroManager
from .commands import (
    COMMAND_MODELS,
    AddActionPointCommand,
    AddBrainstormCommentCommand,
    AddItemCommand,
    AssignActionPointCommand,
    ChangePhaseCommand,
    Command,
    CommandType,
    JoinCommand,
    SelectBrainstormItemsCommand,
    StartTimerCommand,
    VoteCommand,
)
from .events import EventType, error_event, event
from .rooms import Connection, RoomRegistry

logger = logging.getLogger(__name__)


@dataclass
class ConnectionContext:
    """What a connection bound itself to on join. Empty before join."""
    participant_name: str | None = None
    admin_token: str | None = None
    session_id: str | None = None

    @property
    def is_bound(self) -> bool:
        return bool(self.session_id and self.participant_name)


class EventRelay:
    """
    Protocol layer between connections and the RetroManager.

    Usage:
        relay = EventRelay(manager)
        relay.connect(connection)
        relay.dispatch(connection, {"type": "join", "payload": {...}})
        relay.disconnect(connection)
    """

    def __init__(self, manager: RetroManager, rooms: RoomRegistry | None = None):
        self.manager = manager
        self.rooms = rooms or RoomRegistry()
        self._contexts: dict[str, ConnectionContext] = {}
        self._lock = threading.RLock()

    # =========================================================================
    # Connection lifecycle
    # =========================================================================

    def connect(self, connection: Connection) -> ConnectionContext:
        with self._lock:
            return self._contexts.setdefault(connection.connection_id, ConnectionContext())

    def context(self, connection: Connection) -> ConnectionContext:
        return self.connect(connection)

    def disconnect(self, connection: Connection) -> None:
        """
        Leave the room and tell the others.

        The participant stays in the session roster; a reconnect under
        the same name is a plain re-join.
        """
        with self._lock:
            ctx = self._contexts.pop(connection.connection_id, None)
            if ctx is None or ctx.session_id is None:
                return
            self.rooms.unsubscribe(ctx.session_id, connection)
            if ctx.participant_name:
                self.rooms.publish(
                    ctx.session_id,
                    event(EventType.PARTICIPANT_LEFT, {"name": ctx.participant_name}),
                )

    # =========================================================================
    # Command handling
    # =========================================================================

    def dispatch(self, connection: Connection, message: Any) -> None:
        """Handle one raw {"type", "payload"} envelope."""
        if not isinstance(message, dict) or "type" not in message:
            connection.send(error_event("Malformed message"))
            return
        self.handle(connection, message["type"], message.get("payload"))

    def handle(self, connection: Connection, command: str, payload: dict | None) -> None:
        try:
            command_type = CommandType(command)
        except ValueError:
            connection.send(error_event(f"Unknown command: {command}"))
            return

        try:
            parsed = COMMAND_MODELS[command_type].model_validate(payload or {})
        except ValidationError as e:
            connection.send(error_event(_describe_validation_error(command_type, e)))
            return

        with self._lock:
            ctx = self.connect(connection)
            if command_type != CommandType.JOIN and not ctx.is_bound:
                logger.debug("Ignoring %s from unbound connection %s",
                             command_type.value, connection.connection_id)
                return
            if command_type != CommandType.JOIN and not self._is_live(ctx):
                connection.send(error_event("Retro not found"))
                return

            handler = self._get_handler(command_type)
            try:
                handler(connection, ctx, parsed)
            except RetroError as e:
                logger.debug("Rejected %s from %s: %s",
                             command_type.value, ctx.participant_name, e.message)
                connection.send(error_event(e.message))

    def _get_handler(
        self, command_type: CommandType
    ) -> Callable[[Connection, ConnectionContext, Command], None]:
        handlers = {
            CommandType.JOIN: self._handle_join,
            CommandType.ADD_ITEM: self._handle_add_item,
            CommandType.VOTE: self._handle_vote,
            CommandType.UNVOTE: self._handle_unvote,
            CommandType.CHANGE_PHASE: self._handle_change_phase,
            CommandType.START_TIMER: self._handle_start_timer,
            CommandType.SELECT_BRAINSTORM_ITEMS: self._handle_select_brainstorm_items,
            CommandType.ADD_BRAINSTORM_COMMENT: self._handle_add_brainstorm_comment,
            CommandType.ADD_ACTION_POINT: self._handle_add_action_point,
            CommandType.ASSIGN_ACTION_POINT: self._handle_assign_action_point,
        }
        return handlers[command_type]

    def _is_live(self, ctx: ConnectionContext) -> bool:
        """True if the connection is bound to the manager's current session."""
        session = self.manager.get_session()
        return session is not None and session.session_id == ctx.session_id

    def _broadcast(self, ctx: ConnectionContext, event_type: EventType, payload: Any) -> None:
        self.rooms.publish(ctx.session_id, event(event_type, payload))

    # =========================================================================
    # Handlers
    # =========================================================================

    def _handle_join(self, connection: Connection, ctx: ConnectionContext, cmd: JoinCommand):
        session = self.manager.get_session()
        if session is None or session.session_id != cmd.retro_id:
            connection.send(error_event("Retro not found"))
            return

        if ctx.session_id and ctx.session_id != cmd.retro_id:
            self.rooms.unsubscribe(ctx.session_id, connection)

        ctx.session_id = cmd.retro_id
        ctx.participant_name = cmd.participant_name
        ctx.admin_token = cmd.admin_token
        self.rooms.subscribe(cmd.retro_id, connection)

        if not self.manager.has_participant(cmd.participant_name):
            try:
                participant = self.manager.add_participant(
                    cmd.participant_name,
                    self.manager.is_admin_token(cmd.admin_token),
                )
            except RetroError:
                self.rooms.unsubscribe(cmd.retro_id, connection)
                ctx.session_id = ctx.participant_name = ctx.admin_token = None
                raise
            logger.info("%s joined session %s", participant.name, cmd.retro_id)
            self._broadcast(ctx, EventType.PARTICIPANT_JOINED, participant.to_dict())

        connection.send(event(EventType.STATE, self.manager.public_snapshot()))

    def _handle_add_item(self, connection, ctx: ConnectionContext, cmd: AddItemCommand):
        item = self.manager.add_item(cmd.text, ctx.participant_name, cmd.category)
        self._broadcast(ctx, EventType.ITEM_ADDED, item.to_dict())

    def _handle_vote(self, connection, ctx: ConnectionContext, cmd: VoteCommand):
        votes = self.manager.vote(cmd.item_id, ctx.participant_name)
        self._broadcast(ctx, EventType.VOTE_UPDATED, {"itemId": cmd.item_id, "votes": votes})

    def _handle_unvote(self, connection, ctx: ConnectionContext, cmd: VoteCommand):
        votes = self.manager.unvote(cmd.item_id, ctx.participant_name)
        self._broadcast(ctx, EventType.VOTE_UPDATED, {"itemId": cmd.item_id, "votes": votes})

    def _handle_change_phase(self, connection, ctx: ConnectionContext, cmd: ChangePhaseCommand):
        phase = self.manager.change_phase(ctx.admin_token)
        self._broadcast(ctx, EventType.PHASE_CHANGED, {"phase": phase.value})
        if phase == Phase.CLOSED:
            self._broadcast(ctx, EventType.CLOSED, {"closedAt": self.manager.get_session().closed_at})

    def _handle_start_timer(self, connection, ctx: ConnectionContext, cmd: StartTimerCommand):
        ends_at = self.manager.start_timer(ctx.admin_token, cmd.duration)
        self._broadcast(ctx, EventType.TIMER_STARTED, {"endsAt": ends_at})

    def _handle_select_brainstorm_items(
        self, connection, ctx: ConnectionContext, cmd: SelectBrainstormItemsCommand
    ):
        item_ids = self.manager.select_brainstorm_items(ctx.admin_token, cmd.item_ids)
        self._broadcast(ctx, EventType.BRAINSTORM_ITEMS_SELECTED, {"itemIds": item_ids})

    def _handle_add_brainstorm_comment(
        self, connection, ctx: ConnectionContext, cmd: AddBrainstormCommentCommand
    ):
        comment = self.manager.add_brainstorm_comment(cmd.item_id, cmd.text, ctx.participant_name)
        self._broadcast(ctx, EventType.BRAINSTORM_COMMENT_ADDED, comment.to_dict())

    def _handle_add_action_point(
        self, connection, ctx: ConnectionContext, cmd: AddActionPointCommand
    ):
        action_point = self.manager.add_action_point(
            cmd.text, cmd.assignee, ctx.participant_name, cmd.item_id
        )
        self._broadcast(ctx, EventType.ACTION_POINT_ADDED, action_point.to_dict())

    def _handle_assign_action_point(
        self, connection, ctx: ConnectionContext, cmd: AssignActionPointCommand
    ):
        action_point = self.manager.assign_action_point(cmd.action_point_id, cmd.assignee)
        self._broadcast(ctx, EventType.ACTION_POINT_UPDATED, action_point.to_dict())


def _describe_validation_error(command_type: CommandType, error: ValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ())) or "payload"
    return f"Invalid {command_type.value} payload: {location}: {first.get('msg')}"
