"""
Play session API endpoints.

This module handles starting and resuming play sessions, choice selection,
save export/import and learning objective summaries. Saves and engagement
logs are stored in SQLite via DatabaseManager.
"""

from typing import Dict, List, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from terminus.config import settings
from terminus.content import load_graphs, load_learning_objectives
from terminus.db.manager import DatabaseManager
from terminus.engine.persistence import GameStateManager
from terminus.engine.session import PlaySession, SessionView
from terminus.engine.tracker import TrackerRegistry
from terminus.errors import ChoiceUnavailableError, UnknownNodeError
from terminus.schemas.learning import ArcSummary
from terminus.utils.logger import get_logger

# Set up logging
logger = get_logger(__name__)

router = APIRouter()

# Database manager for persistent storage
db = DatabaseManager(settings.database_path)

# Static content, loaded once per process
graphs = load_graphs(settings.content_dir)
objectives = load_learning_objectives(settings.content_dir)

# Session-scoped registries, one entry per user id
trackers = TrackerRegistry(objectives, db)
sessions_db: Dict[str, PlaySession] = {}


class SessionStartRequest(BaseModel):
    """Request to start or resume a session"""

    user_id: str = Field(..., min_length=1)
    reset: bool = Field(default=False, description="Discard any existing save first")


class ChoiceRequest(BaseModel):
    """Request to select a choice on the current node"""

    choice_id: str


class ChoiceView(BaseModel):
    """A visible choice as the renderer shows it"""

    choice_id: str
    text: str
    enabled: bool
    reason: Optional[str] = None
    preview: Optional[str] = None
    pattern: Optional[str] = None


class NodeViewResponse(BaseModel):
    """Current node for rendering"""

    user_id: str
    character_id: str
    node_id: str
    speaker: str
    text: str
    emotion: Optional[str] = None
    choices: List[ChoiceView] = Field(default_factory=list)
    is_terminal: bool
    orbs: Dict[str, int] = Field(default_factory=dict)


class SessionStartResponse(BaseModel):
    user_id: str
    resumed: bool
    view: NodeViewResponse


class SaveImportRequest(BaseModel):
    payload: str


class ObjectivesResponse(BaseModel):
    user_id: str
    engaged_objectives: List[str]
    arcs: Dict[str, ArcSummary]


def _to_response(view: SessionView) -> NodeViewResponse:
    """Render-ready view: hidden choices are dropped, locked ones keep their reason"""
    return NodeViewResponse(
        user_id=view.user_id,
        character_id=view.character_id,
        node_id=view.node_id,
        speaker=view.speaker,
        text=view.content.text,
        emotion=view.content.emotion,
        choices=[
            ChoiceView(
                choice_id=evaluated.choice.choice_id,
                text=evaluated.text,
                enabled=evaluated.enabled,
                reason=evaluated.reason,
                preview=evaluated.choice.preview,
                pattern=evaluated.choice.pattern,
            )
            for evaluated in view.choices
            if evaluated.visible
        ],
        is_terminal=view.is_terminal,
        orbs=view.orbs,
    )


def _get_session(user_id: str) -> PlaySession:
    session = sessions_db.get(user_id)
    if session is None:
        logger.warning(f"No active session for {user_id}")
        raise HTTPException(status_code=404, detail="Session not found")
    return session


@router.post("/", response_model=SessionStartResponse)
async def start_session(request: SessionStartRequest):
    """
    Start or resume a play session.

    An existing save is resumed; a missing or invalid save starts a new game.

    Args:
        request: User id and optional reset flag

    Returns:
        SessionStartResponse with the current node view
    """
    logger.info(f"Session start requested for {request.user_id} (reset={request.reset})")

    session = PlaySession(request.user_id, graphs, db, trackers)
    try:
        if request.reset:
            session.reset()
        else:
            session.start()
        view = session.view()
    except UnknownNodeError as e:
        logger.error(f"✗ Cannot start session: {e}")
        raise HTTPException(status_code=404, detail=str(e))

    sessions_db[request.user_id] = session
    return SessionStartResponse(
        user_id=request.user_id, resumed=session.resumed, view=_to_response(view)
    )


@router.get("/{user_id}", response_model=NodeViewResponse)
async def get_view(user_id: str):
    """Get the current node view for an active session"""
    session = _get_session(user_id)
    try:
        return _to_response(session.view())
    except UnknownNodeError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/{user_id}/choices", response_model=NodeViewResponse)
async def make_choice(user_id: str, request: ChoiceRequest):
    """
    Select a choice on the current node.

    Raises:
        HTTPException 404: Session or destination node not found
        HTTPException 409: Choice hidden, locked or not on this node
    """
    session = _get_session(user_id)
    logger.info(f"{user_id} selected {request.choice_id}")

    try:
        view = session.choose(request.choice_id)
    except ChoiceUnavailableError as e:
        logger.warning(f"✗ {e}")
        raise HTTPException(status_code=409, detail=str(e))
    except UnknownNodeError as e:
        logger.error(f"✗ {e}")
        raise HTTPException(status_code=404, detail=str(e))

    return _to_response(view)


@router.get("/{user_id}/objectives", response_model=ObjectivesResponse)
async def get_objectives(user_id: str):
    """Learning objective engagement summaries for a user"""
    tracker = trackers.get_or_create(user_id)
    return ObjectivesResponse(
        user_id=user_id,
        engaged_objectives=sorted(tracker.get_engaged_objective_ids()),
        arcs=tracker.get_all_arc_summaries(),
    )


@router.get("/{user_id}/save")
async def export_save(user_id: str):
    """Export the user's save as JSON text"""
    payload = GameStateManager(db, user_id).export_save()
    if payload is None:
        raise HTTPException(status_code=404, detail="No valid save found")
    return {"user_id": user_id, "payload": payload}


@router.post("/{user_id}/save")
async def import_save(user_id: str, request: SaveImportRequest):
    """Replace the user's save with imported JSON text"""
    if not GameStateManager(db, user_id).import_save(request.payload):
        raise HTTPException(status_code=400, detail="Invalid save")
    # Drop the in-memory session so the next start resumes the import
    sessions_db.pop(user_id, None)
    return {"user_id": user_id, "status": "imported"}


@router.delete("/{user_id}")
async def reset_session(user_id: str):
    """Delete the user's save and backup and end the active session"""
    if not GameStateManager(db, user_id).reset():
        raise HTTPException(status_code=503, detail="Save storage unavailable")
    sessions_db.pop(user_id, None)
    logger.info(f"Session reset for {user_id}")
    return {"user_id": user_id, "status": "reset"}
