"""
POSTUREFIT Exercise Service Router

Endpoints for the exercise library, live exercise sessions and result
history. Pose frames arrive over the session WebSocket as landmark arrays
produced by the client-side pose estimator.
"""

import asyncio
import logging
import uuid
from fastapi import APIRouter, WebSocket, HTTPException
from pydantic import BaseModel
from typing import Optional, Dict, Any

from core.websocket import connection_manager, websocket_endpoint, WebSocketMessage, MessageType
from shared.storage import get_result_store
from .models import (
    CallbackVoice,
    Difficulty,
    ExerciseNotFound,
    ExerciseSessionController,
    ExerciseSessionHandler,
    InvalidExerciseDefinition,
    SensorUnavailable,
    SessionEvent,
    get_exercise,
    get_session_handler,
    list_exercises
)

logger = logging.getLogger(__name__)

router = APIRouter()


# Service instance (singleton pattern)
_session_handler: Optional[ExerciseSessionHandler] = None


def get_services() -> ExerciseSessionHandler:
    """Get or initialize service instances."""
    global _session_handler
    if _session_handler is None:
        _session_handler = get_session_handler()
    return _session_handler


def _parse_difficulty(value: str) -> Difficulty:
    try:
        return Difficulty(value)
    except ValueError:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid difficulty. Valid values: {[d.value for d in Difficulty]}"
        )


def _require_session(session_id: str) -> ExerciseSessionController:
    session = get_services().get_session(session_id)
    if not session:
        raise HTTPException(status_code=404, detail="Session not found")
    return session


# ============= Pydantic Models =============

class StartSessionRequest(BaseModel):
    exercise_id: str
    difficulty: str = "normal"
    user_id: Optional[str] = None
    target_sets: Optional[int] = None
    target_reps: Optional[int] = None
    rest_seconds: Optional[int] = None


# ============= REST Endpoints =============

@router.get("/exercises")
async def get_exercises(difficulty: str = "normal"):
    """Get the exercise library."""
    level = _parse_difficulty(difficulty)
    exercises = [e.with_difficulty(level).to_dict() for e in list_exercises()]
    return {
        "exercises": exercises,
        "total": len(exercises),
        "difficulties": [d.value for d in Difficulty]
    }


@router.get("/exercises/{exercise_id}")
async def get_exercise_detail(exercise_id: str, difficulty: str = "normal"):
    """Get one exercise definition."""
    level = _parse_difficulty(difficulty)
    try:
        return get_exercise(exercise_id, level).to_dict()
    except ExerciseNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/sessions")
async def create_exercise_session(request: StartSessionRequest):
    """
    Create a new exercise session.

    Returns a session ID for use with the WebSocket stream. The session
    starts when the client sends a ``start`` message over that socket.
    """
    session_handler = get_services()
    level = _parse_difficulty(request.difficulty)

    try:
        session = session_handler.create_session(
            exercise_id=request.exercise_id,
            difficulty=level,
            target_sets=request.target_sets,
            target_reps=request.target_reps,
            rest_seconds=request.rest_seconds,
            user_id=request.user_id
        )
    except ExerciseNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidExerciseDefinition as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "status": "created",
        "session_id": session.session_id,
        "exercise": session.definition.to_dict(),
        "websocket_url": f"/api/exercise/ws/session/{session.session_id}"
    }


@router.get("/sessions/{session_id}")
async def get_session_status(session_id: str):
    """Get current session status."""
    return _require_session(session_id).to_dict()


@router.post("/sessions/{session_id}/pause")
async def pause_session(session_id: str):
    session = _require_session(session_id)
    changed = session.pause()
    return {"session_id": session_id, "status": session.status.value, "paused": session.paused, "changed": changed}


@router.post("/sessions/{session_id}/resume")
async def resume_session(session_id: str):
    session = _require_session(session_id)
    changed = session.resume()
    return {"session_id": session_id, "status": session.status.value, "paused": session.paused, "changed": changed}


@router.post("/sessions/{session_id}/cancel")
async def cancel_session(session_id: str):
    session = _require_session(session_id)
    changed = session.cancel()
    return {"session_id": session_id, "status": session.status.value, "changed": changed}


@router.delete("/sessions/{session_id}")
async def delete_session(session_id: str):
    """Cancel a session if needed and forget it."""
    _require_session(session_id)
    get_services().cleanup_session(session_id)
    return {"session_id": session_id, "status": "removed"}


@router.get("/results")
async def get_results(limit: int = 20, exercise_id: Optional[str] = None):
    """Get stored exercise results, newest first."""
    if limit < 1:
        raise HTTPException(status_code=400, detail="limit must be >= 1")
    results = get_result_store().list(limit=limit, exercise_id=exercise_id)
    return {"results": results, "total": len(results)}


# ============= WebSocket Endpoints =============

class ClientFrameSource:
    """Pose frames pushed by the connected client."""

    def __init__(self, ready: bool = True, error: Optional[str] = None):
        self.ready = ready
        self.error = error
        self.active = False

    def start(self):
        if not self.ready:
            raise SensorUnavailable(self.error or "Pose estimation failed to initialize")
        self.active = True

    def stop(self):
        self.active = False


def _event_message(event: SessionEvent) -> WebSocketMessage:
    payload: Dict[str, Any] = dict(event.payload)
    payload["session_id"] = event.session_id
    payload["sequence"] = event.sequence
    return WebSocketMessage(type=event.type.value, payload=payload, timestamp=event.timestamp)


async def _handle_session_message(session: ExerciseSessionController, client_id: str, message: WebSocketMessage):
    payload = message.payload or {}

    if message.type == MessageType.POSE_FRAME.value:
        source = session.frame_source
        if source is None or not source.active:
            return
        session.submit_landmarks(payload.get("landmarks"))

    elif message.type == MessageType.START.value:
        if session.frame_source is None:
            session.frame_source = ClientFrameSource(
                ready=payload.get("sensor_ready", True),
                error=payload.get("error")
            )
        session.start()

    elif message.type == MessageType.PAUSE.value:
        session.pause()

    elif message.type == MessageType.RESUME.value:
        session.resume()

    elif message.type == MessageType.CANCEL.value:
        session.cancel()

    elif message.type == MessageType.MUTE.value:
        session.feedback.set_muted(bool(payload.get("muted", True)))

    else:
        await connection_manager.send_to_client(client_id, WebSocketMessage(
            type=MessageType.ERROR,
            payload={"error": f"Unknown message type '{message.type}'"}
        ))


@router.websocket("/ws/session/{session_id}")
async def exercise_session_stream(websocket: WebSocket, session_id: str):
    """
    Real-time exercise session stream.

    Client -> server: start, pose_frame, pause, resume, cancel, mute, ping
    Server -> client: session events (calibration, phase, reps, sets,
    rest, completion), voice_cue, error
    """
    session = get_services().get_session(session_id)
    if not session:
        await websocket.accept()
        await websocket.send_json({
            "type": MessageType.ERROR.value,
            "payload": {"error": f"Session {session_id} not found"}
        })
        await websocket.close()
        return

    client_id = f"{session_id}:{uuid.uuid4().hex[:6]}"
    outbound: asyncio.Queue = asyncio.Queue()

    def forward(event: SessionEvent):
        outbound.put_nowait(_event_message(event))

    def send_voice(action: str, text: Optional[str]):
        outbound.put_nowait(WebSocketMessage(
            type=MessageType.VOICE_CUE,
            payload={"action": action, "text": text}
        ))

    async def pump():
        while True:
            message = await outbound.get()
            await connection_manager.send_to_client(client_id, message)

    async def on_message(cid: str, message: WebSocketMessage):
        await _handle_session_message(session, cid, message)

    session.bus.subscribe(forward)
    session.feedback.set_voice(CallbackVoice(send_voice))
    sender = asyncio.create_task(pump())

    try:
        await websocket_endpoint(websocket, session.user_id or session_id, on_message, client_id=client_id)
    finally:
        sender.cancel()
        session.bus.unsubscribe(forward)
        if session.status.is_running or session.paused:
            logger.info(f"Session {session_id} client disconnected, cancelling")
            session.cancel()
        if session.status.is_terminal:
            get_services().cleanup_session(session_id)
