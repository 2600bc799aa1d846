"""
FastAPI Application - HTTP API and event stream.

Endpoints:
    POST   /api/retro               Create the session
    GET    /api/retro/{id}          Public snapshot (live or archived)
    GET    /api/retro/{id}/export   CSV attachment
    GET    /api/retros              Active snapshot + archived summaries
    WS     /api/ws                  Event stream (commands in, events out)
    GET    /health                  Health check

Event stream messages are JSON envelopes {"type": ..., "payload": ...}.
Commands: join, add-item, vote, unvote, change-phase, start-timer,
select-brainstorm-items, add-brainstorm-comment, add-action-point,
assign-action-point.
"""

from typing import Optional, Union
import asyncio
import json
import logging
import uuid

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from .. import __version__
from ..config import Settings
from ..relay import EventRelay, error_event
from ..session import (
    NotFoundError,
    PersistenceError,
    RetroError,
    RetroManager,
)
from ..storage import FileSessionStore, sanitize_sprint_name
from .schemas import (
    CreateRetroRequest,
    CreateRetroResponse,
    ErrorResponse,
    HealthResponse,
    PastRetroInfo,
    RetroListResponse,
    SessionSnapshot,
)
from .websocket import QueueConnection, pump

logger = logging.getLogger(__name__)


def create_app(
    manager: Optional[RetroManager] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        manager: Optional RetroManager (built from settings if not provided)
        settings: Optional Settings (read from the environment if not provided)

    Returns:
        FastAPI application instance
    """
    settings = settings or Settings.from_env()
    if manager is None:
        manager = RetroManager(FileSessionStore(settings.data_dir))
    store = manager.store
    relay = EventRelay(manager)

    app = FastAPI(
        title="Retroboard API",
        description="Live, phased sprint retrospectives.",
        version=__version__,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
    )
    app.state.manager = manager
    app.state.relay = relay

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    # =========================================================================
    # Error helpers
    # =========================================================================

    def make_error_response(message: str, status_code: int = 400) -> JSONResponse:
        """Create a standardized error response."""
        return JSONResponse(
            status_code=status_code,
            content=ErrorResponse(error=message).model_dump(),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.debug("Validation error: %s", exc.errors())
        first = exc.errors()[0] if exc.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg')}" if location else "Invalid request"
        return make_error_response(message)

    @app.exception_handler(RetroError)
    async def retro_exception_handler(request: Request, exc: RetroError):
        if isinstance(exc, NotFoundError):
            return make_error_response(exc.message, status_code=404)
        if isinstance(exc, PersistenceError):
            return make_error_response(exc.message, status_code=500)
        return make_error_response(exc.message)

    # =========================================================================
    # Session Endpoints
    # =========================================================================

    @app.post(
        "/api/retro",
        response_model=CreateRetroResponse,
        responses={400: {"model": ErrorResponse}},
        tags=["Retro"],
        summary="Create the retrospective session",
    )
    async def create_retro(body: CreateRetroRequest) -> Union[CreateRetroResponse, JSONResponse]:
        """
        Create a new session in the lobby.

        Fails while another session is still open. The returned
        `adminToken` is the only proof of admin rights.
        """
        if not body.sprint_name:
            return make_error_response("sprintName is required")

        created = manager.create_session(
            body.sprint_name,
            body.timer_duration or settings.default_timer_duration,
        )
        return CreateRetroResponse(retro_id=created["id"], admin_token=created["adminToken"])

    @app.get(
        "/api/retro/{retro_id}",
        response_model=SessionSnapshot,
        responses={404: {"model": ErrorResponse}},
        tags=["Retro"],
        summary="Get a session snapshot",
    )
    async def get_retro(retro_id: str) -> Union[SessionSnapshot, JSONResponse]:
        """Live session if the id matches, otherwise the archived copy."""
        session = manager.get_session()
        if session and session.session_id == retro_id:
            return SessionSnapshot.model_validate(manager.public_snapshot())

        archived = store.find_by_id(retro_id)
        if archived:
            return SessionSnapshot.model_validate(archived.public_dict())

        return make_error_response("Retro not found", status_code=404)

    @app.get(
        "/api/retro/{retro_id}/export",
        responses={
            200: {"content": {"text/csv": {}}},
            404: {"model": ErrorResponse},
        },
        tags=["Retro"],
        summary="Export a session as CSV",
    )
    async def export_retro(retro_id: str) -> Response:
        session = manager.get_session()
        if session and session.session_id == retro_id:
            csv_text = manager.export_csv()
        else:
            session = store.find_by_id(retro_id)
            if session is None:
                return make_error_response("Retro not found", status_code=404)
            csv_text = store.render_csv(session)

        filename = f"retro-{sanitize_sprint_name(session.sprint_name)}.csv"
        return Response(
            content=csv_text,
            media_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    @app.get(
        "/api/retros",
        response_model=RetroListResponse,
        tags=["Retro"],
        summary="List the active and archived sessions",
    )
    async def list_retros() -> RetroListResponse:
        snapshot = manager.public_snapshot()
        return RetroListResponse(
            active=SessionSnapshot.model_validate(snapshot) if snapshot else None,
            past_retros=[
                PastRetroInfo.model_validate(summary.to_dict())
                for summary in store.list_archived()
            ],
        )

    # =========================================================================
    # Event Stream
    # =========================================================================

    @app.websocket("/api/ws")
    async def event_stream(websocket: WebSocket):
        """
        Bidirectional event stream.

        The connection must send `join` before any other command;
        commands from a connection that has not joined are ignored.
        Successful commands are broadcast to everyone in the session,
        errors go back to the sender only.
        """
        await websocket.accept()

        connection = QueueConnection(uuid.uuid4().hex, asyncio.get_running_loop())
        relay.connect(connection)
        sender = asyncio.create_task(pump(websocket, connection))

        try:
            while True:
                data = await websocket.receive_text()
                try:
                    message = json.loads(data)
                except json.JSONDecodeError:
                    connection.send(error_event("Invalid JSON"))
                    continue
                relay.dispatch(connection, message)
        except WebSocketDisconnect:
            logger.debug("Connection %s disconnected", connection.connection_id)
        finally:
            connection.close()
            relay.disconnect(connection)
            sender.cancel()

    # =========================================================================
    # Health Check
    # =========================================================================

    @app.get(
        "/health",
        response_model=HealthResponse,
        tags=["System"],
        summary="Health check",
    )
    async def health_check() -> HealthResponse:
        return HealthResponse(status="healthy", service="retroboard", version=__version__)

    return app
