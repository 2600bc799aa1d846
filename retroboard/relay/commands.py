"""
Inbound command payloads.

Every message a connection sends is an envelope
    {"type": "<command>", "payload": {...}}
and the payload is validated against the model registered for the
command before anything reaches the manager. Field aliases match the
camelCase names clients send.
"""

from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, Field


class CommandType(str, Enum):
    """Commands accepted on the event stream."""
    JOIN = "join"
    ADD_ITEM = "add-item"
    VOTE = "vote"
    UNVOTE = "unvote"
    CHANGE_PHASE = "change-phase"
    START_TIMER = "start-timer"
    SELECT_BRAINSTORM_ITEMS = "select-brainstorm-items"
    ADD_BRAINSTORM_COMMENT = "add-brainstorm-comment"
    ADD_ACTION_POINT = "add-action-point"
    ASSIGN_ACTION_POINT = "assign-action-point"


class Command(BaseModel):
    model_config = {"populate_by_name": True, "extra": "ignore"}


class JoinCommand(Command):
    retro_id: str = Field(alias="retroId")
    participant_name: str = Field(alias="participantName", min_length=1)
    admin_token: Optional[str] = Field(None, alias="adminToken")


class AddItemCommand(Command):
    text: str = Field(min_length=1)
    category: Literal["good", "improve"]


class VoteCommand(Command):
    item_id: str = Field(alias="itemId")


class ChangePhaseCommand(Command):
    pass


class StartTimerCommand(Command):
    duration: int = Field(ge=1, description="Countdown length in seconds")


class SelectBrainstormItemsCommand(Command):
    item_ids: list[str] = Field(alias="itemIds")


class AddBrainstormCommentCommand(Command):
    item_id: str = Field(alias="itemId")
    text: str = Field(min_length=1)


class AddActionPointCommand(Command):
    text: str = Field(min_length=1)
    assignee: str = ""
    item_id: str = Field("", alias="itemId")


class AssignActionPointCommand(Command):
    action_point_id: str = Field(alias="actionPointId")
    assignee: str


COMMAND_MODELS: dict[CommandType, type[Command]] = {
    CommandType.JOIN: JoinCommand,
    CommandType.ADD_ITEM: AddItemCommand,
    CommandType.VOTE: VoteCommand,
    CommandType.UNVOTE: VoteCommand,
    CommandType.CHANGE_PHASE: ChangePhaseCommand,
    CommandType.START_TIMER: StartTimerCommand,
    CommandType.SELECT_BRAINSTORM_ITEMS: SelectBrainstormItemsCommand,
    CommandType.ADD_BRAINSTORM_COMMENT: AddBrainstormCommentCommand,
    CommandType.ADD_ACTION_POINT: AddActionPointCommand,
    CommandType.ASSIGN_ACTION_POINT: AssignActionPointCommand,
}
