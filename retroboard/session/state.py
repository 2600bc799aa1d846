"""
Session State - The retrospective aggregate and its child entities.

Design principles:
- One root aggregate (Session) owns every child entity
- Serializable: to_dict()/from_dict() use the camelCase wire format
  shared by the snapshot file, the archive and connected clients
- The admin secret never leaves the process through public_dict()
- Children are append-mostly; only votes and assignees change in place
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any
import uuid


class Phase(Enum):
    """Stages of a retrospective, in their fixed order."""
    LOBBY = "lobby"
    GOOD_ITEMS = "good_items"
    GOOD_VOTING = "good_voting"
    IMPROVE_ITEMS = "improve_items"
    IMPROVE_VOTING = "improve_voting"
    BRAINSTORMING = "brainstorming"
    ACTION_POINTS = "action_points"
    CLOSED = "closed"


PHASE_ORDER: list[Phase] = [
    Phase.LOBBY,
    Phase.GOOD_ITEMS,
    Phase.GOOD_VOTING,
    Phase.IMPROVE_ITEMS,
    Phase.IMPROVE_VOTING,
    Phase.BRAINSTORMING,
    Phase.ACTION_POINTS,
    Phase.CLOSED,
]

PHASE_LABELS: dict[Phase, str] = {
    Phase.LOBBY: "Lobby - Waiting for participants",
    Phase.GOOD_ITEMS: "What Went Well",
    Phase.GOOD_VOTING: "Vote: What Went Well",
    Phase.IMPROVE_ITEMS: "What Could Be Better",
    Phase.IMPROVE_VOTING: "Vote: What Could Be Better",
    Phase.BRAINSTORMING: "Brainstorming",
    Phase.ACTION_POINTS: "Action Points",
    Phase.CLOSED: "Retrospective Closed",
}

NEXT_PHASE_LABELS: dict[Phase, str] = {
    Phase.LOBBY: "Start: What Went Well",
    Phase.GOOD_ITEMS: "Start Voting: What Went Well",
    Phase.GOOD_VOTING: "Start: What Could Be Better",
    Phase.IMPROVE_ITEMS: "Start Voting: What Could Be Better",
    Phase.IMPROVE_VOTING: "Start Brainstorming",
    Phase.BRAINSTORMING: "Move to Action Points",
    Phase.ACTION_POINTS: "Close Retrospective",
}

VOTING_PHASES = frozenset({Phase.GOOD_VOTING, Phase.IMPROVE_VOTING})


def next_phase(phase: Phase) -> Phase | None:
    """Immediate successor of a phase, or None past the last one."""
    index = PHASE_ORDER.index(phase)
    if index >= len(PHASE_ORDER) - 1:
        return None
    return PHASE_ORDER[index + 1]


class Category(Enum):
    """Item categories."""
    GOOD = "good"
    IMPROVE = "improve"

    @property
    def collection_phase(self) -> Phase:
        """The only phase in which items of this category may be added."""
        if self is Category.GOOD:
            return Phase.GOOD_ITEMS
        return Phase.IMPROVE_ITEMS

    @property
    def section_label(self) -> str:
        return PHASE_LABELS[self.collection_phase]


def short_id() -> str:
    """Opaque 8-character identifier."""
    return uuid.uuid4().hex[:8]


def new_admin_token() -> str:
    return str(uuid.uuid4())


def format_timestamp(moment: datetime) -> str:
    """UTC ISO-8601 with millisecond precision and a Z suffix."""
    moment = moment.astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime:
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Participant:
    """A named member of the session. The name is the identity key."""
    name: str
    is_admin: bool
    joined_at: str

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "isAdmin": self.is_admin, "joinedAt": self.joined_at}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Participant:
        return cls(
            name=data["name"],
            is_admin=bool(data.get("isAdmin", False)),
            joined_at=data.get("joinedAt", ""),
        )


@dataclass
class RetroItem:
    """
    A "went well" or "could be better" item.

    votes keeps insertion order but behaves as a set: a voter
    appears at most once.
    """
    item_id: str
    text: str
    author: str
    category: Category
    created_at: str
    votes: list[str] = field(default_factory=list)

    @property
    def vote_count(self) -> int:
        return len(self.votes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.item_id,
            "text": self.text,
            "author": self.author,
            "votes": list(self.votes),
            "category": self.category.value,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RetroItem:
        return cls(
            item_id=data["id"],
            text=data["text"],
            author=data["author"],
            category=Category(data["category"]),
            created_at=data.get("createdAt", ""),
            votes=list(data.get("votes", [])),
        )


@dataclass
class BrainstormComment:
    comment_id: str
    item_id: str
    text: str
    author: str
    created_at: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.comment_id,
            "itemId": self.item_id,
            "text": self.text,
            "author": self.author,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BrainstormComment:
        return cls(
            comment_id=data["id"],
            item_id=data["itemId"],
            text=data["text"],
            author=data["author"],
            created_at=data.get("createdAt", ""),
        )


@dataclass
class ActionPoint:
    """A follow-up attached to a brainstorm item. Only the assignee changes."""
    action_point_id: str
    text: str
    assignee: str
    created_by: str
    item_id: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.action_point_id,
            "text": self.text,
            "assignee": self.assignee,
            "createdBy": self.created_by,
            "itemId": self.item_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ActionPoint:
        return cls(
            action_point_id=data["id"],
            text=data["text"],
            assignee=data.get("assignee", ""),
            created_by=data.get("createdBy", ""),
            item_id=data.get("itemId", ""),
        )


@dataclass
class Session:
    """
    The retrospective aggregate.

    Contains:
    - Identity and admin secret (admin_token is fixed at creation)
    - Current phase
    - Roster, items, brainstorm comments and selection, action points
    - Advisory timer state (duration default + absolute end time)
    """
    session_id: str
    sprint_name: str
    admin_token: str
    created_at: str
    phase: Phase = Phase.LOBBY
    participants: list[Participant] = field(default_factory=list)
    items: list[RetroItem] = field(default_factory=list)
    brainstorm_comments: list[BrainstormComment] = field(default_factory=list)
    brainstorm_item_ids: list[str] = field(default_factory=list)
    action_points: list[ActionPoint] = field(default_factory=list)
    timer_duration: int = 300
    timer_ends_at: str | None = None
    closed_at: str | None = None

    @property
    def is_closed(self) -> bool:
        return self.phase == Phase.CLOSED

    def get_participant(self, name: str) -> Participant | None:
        for participant in self.participants:
            if participant.name == name:
                return participant
        return None

    def get_item(self, item_id: str) -> RetroItem | None:
        for item in self.items:
            if item.item_id == item_id:
                return item
        return None

    def get_action_point(self, action_point_id: str) -> ActionPoint | None:
        for action_point in self.action_points:
            if action_point.action_point_id == action_point_id:
                return action_point
        return None

    def items_in(self, category: Category) -> list[RetroItem]:
        return [item for item in self.items if item.category == category]

    def to_dict(self) -> dict[str, Any]:
        """Full snapshot, including the admin secret. Storage only."""
        data = self.public_dict()
        data["adminToken"] = self.admin_token
        return data

    def public_dict(self) -> dict[str, Any]:
        """Snapshot safe to send to any client."""
        return {
            "id": self.session_id,
            "sprintName": self.sprint_name,
            "phase": self.phase.value,
            "participants": [p.to_dict() for p in self.participants],
            "items": [i.to_dict() for i in self.items],
            "brainstormComments": [c.to_dict() for c in self.brainstorm_comments],
            "brainstormItemIds": list(self.brainstorm_item_ids),
            "actionPoints": [a.to_dict() for a in self.action_points],
            "timerDuration": self.timer_duration,
            "timerEndsAt": self.timer_ends_at,
            "createdAt": self.created_at,
            "closedAt": self.closed_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Session:
        return cls(
            session_id=data["id"],
            sprint_name=data["sprintName"],
            admin_token=data.get("adminToken", ""),
            created_at=data.get("createdAt", ""),
            phase=Phase(data.get("phase", Phase.LOBBY.value)),
            participants=[Participant.from_dict(p) for p in data.get("participants", [])],
            items=[RetroItem.from_dict(i) for i in data.get("items", [])],
            brainstorm_comments=[
                BrainstormComment.from_dict(c) for c in data.get("brainstormComments", [])
            ],
            brainstorm_item_ids=list(data.get("brainstormItemIds", [])),
            action_points=[ActionPoint.from_dict(a) for a in data.get("actionPoints", [])],
            timer_duration=int(data.get("timerDuration", 300)),
            timer_ends_at=data.get("timerEndsAt"),
            closed_at=data.get("closedAt"),
        )
