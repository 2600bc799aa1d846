"""
Pydantic Schemas for the HTTP API.

These models define the exact contract with the page layer. Field
aliases carry the camelCase names clients use; responses are
serialized by alias.

Error responses are always {"error": "<message>"}:
- 400: invalid request, or the operation was rejected
- 404: session not found
- 500: the session could not be saved
"""

from typing import Literal, Optional

from pydantic import BaseModel, Field


class CamelModel(BaseModel):
    model_config = {"populate_by_name": True}


# =============================================================================
# Requests
# =============================================================================

class CreateRetroRequest(CamelModel):
    """Body of POST /api/retro."""
    sprint_name: Optional[str] = Field(None, alias="sprintName")
    timer_duration: Optional[int] = Field(
        None, alias="timerDuration", ge=1, description="Default countdown in seconds"
    )


# =============================================================================
# Session snapshot
# =============================================================================

class ParticipantInfo(CamelModel):
    name: str
    is_admin: bool = Field(alias="isAdmin")
    joined_at: str = Field(alias="joinedAt")


class ItemInfo(CamelModel):
    id: str
    text: str
    author: str
    votes: list[str] = Field(default_factory=list)
    category: Literal["good", "improve"]
    created_at: str = Field(alias="createdAt")


class BrainstormCommentInfo(CamelModel):
    id: str
    item_id: str = Field(alias="itemId")
    text: str
    author: str
    created_at: str = Field(alias="createdAt")


class ActionPointInfo(CamelModel):
    id: str
    text: str
    assignee: str = ""
    created_by: str = Field(alias="createdBy")
    item_id: str = Field("", alias="itemId")


class SessionSnapshot(CamelModel):
    """Full session state without the admin secret."""
    id: str
    sprint_name: str = Field(alias="sprintName")
    phase: str
    participants: list[ParticipantInfo] = Field(default_factory=list)
    items: list[ItemInfo] = Field(default_factory=list)
    brainstorm_comments: list[BrainstormCommentInfo] = Field(
        default_factory=list, alias="brainstormComments"
    )
    brainstorm_item_ids: list[str] = Field(default_factory=list, alias="brainstormItemIds")
    action_points: list[ActionPointInfo] = Field(default_factory=list, alias="actionPoints")
    timer_duration: int = Field(alias="timerDuration")
    timer_ends_at: Optional[str] = Field(None, alias="timerEndsAt")
    created_at: str = Field(alias="createdAt")
    closed_at: Optional[str] = Field(None, alias="closedAt")


# =============================================================================
# Responses
# =============================================================================

class CreateRetroResponse(CamelModel):
    retro_id: str = Field(alias="retroId")
    admin_token: str = Field(alias="adminToken")


class PastRetroInfo(CamelModel):
    id: str
    sprint_name: str = Field(alias="sprintName")
    date: str
    file: str


class RetroListResponse(CamelModel):
    active: Optional[SessionSnapshot] = None
    past_retros: list[PastRetroInfo] = Field(default_factory=list, alias="pastRetros")


class ErrorResponse(BaseModel):
    error: str


class HealthResponse(BaseModel):
    status: str
    service: str
    version: str
