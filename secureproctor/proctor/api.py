"""
Proctoring API - FastAPI endpoints for the session integrity engine

Endpoints:
- POST /api/proctor/candidates - Register a candidate
- GET /api/proctor/candidates/{candidate_id} - Get a candidate
- POST /api/proctor/sessions - Create a pending session
- GET /api/proctor/sessions - List sessions
- POST /api/proctor/sessions/{session_id}/start - Start recording
- POST /api/proctor/sessions/{session_id}/detections - Push a detection result
- POST /api/proctor/sessions/{session_id}/stop - Complete or terminate
- GET /api/proctor/sessions/{session_id} - Session snapshot
- GET /api/proctor/sessions/{session_id}/summary - Session summary export
- GET /api/proctor/sessions/{session_id}/report - Text report
- GET /api/proctor/health - Module health
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, Field

from ..config import settings
from .exceptions import InvalidTransition, NotFound, ProctorError, SessionNotFinal, StoreUnavailable
from .manager import SessionManager
from .models import DetectionResult, SessionStatus, utcnow
from .report import report_filename
from .scoring import IntegrityScorer
from .store import build_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/proctor", tags=["Proctoring"])

_manager: Optional[SessionManager] = None


def get_manager() -> SessionManager:
    """Process-wide session manager built from settings"""
    global _manager
    if _manager is None:
        scorer = IntegrityScorer(settings.severity_weights)
        _manager = SessionManager(
            store=build_store(settings.SESSION_STORE, scorer=scorer),
            scorer=scorer,
            ingest_timeout=settings.INGEST_TIMEOUT_SECONDS,
        )
        logger.info(f"Session manager ready (store={settings.SESSION_STORE})")
    return _manager


def _http_error(exc: ProctorError) -> HTTPException:
    if isinstance(exc, NotFound):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, (InvalidTransition, SessionNotFinal)):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, StoreUnavailable):
        logger.error(f"Session store unavailable: {exc}")
        return HTTPException(status_code=503, detail="Session store unavailable")
    logger.error(f"Unhandled proctoring error: {exc}")
    return HTTPException(status_code=500, detail=str(exc))


# ============== Request/Response Models ==============

class CreateCandidateRequest(BaseModel):
    """Candidate details from the intake form"""
    name: str = Field(..., min_length=1, description="Full name")
    email: str = Field(..., min_length=3, description="Email address")
    position: str = Field(..., min_length=1, description="Position applied for")


class CreateSessionRequest(BaseModel):
    """Request to create a proctoring session"""
    candidate_id: str = Field(..., alias="candidateId", description="Registered candidate ID")

    class Config:
        populate_by_name = True


class DetectionRequest(BaseModel):
    """One detector sample; omitted or null fields count as 'no violation'"""
    face_detected: Optional[bool] = Field(None, alias="faceDetected")
    eye_gaze: Optional[str] = Field(None, alias="eyeGaze")
    objects_detected: Optional[List[str]] = Field(None, alias="objectsDetected")
    multiple_faces: Optional[bool] = Field(None, alias="multipleFaces")
    confidence: Optional[float] = Field(None)

    class Config:
        populate_by_name = True

    def to_result(self) -> DetectionResult:
        return DetectionResult.from_dict(self.model_dump())


class DetectionResponse(BaseModel):
    """Outcome of one detection event"""
    session_id: str
    accepted: bool
    status: str
    session_time: int
    integrity_score: int
    violations: List[Dict[str, Any]]


class StopSessionRequest(BaseModel):
    """Request to stop a session"""
    reason: SessionStatus = Field(
        SessionStatus.COMPLETED,
        description="completed for a normal stop, terminated for a forced one"
    )


# ============== API Endpoints ==============

@router.post("/candidates", status_code=201)
async def create_candidate(
    request: CreateCandidateRequest,
    manager: SessionManager = Depends(get_manager)
):
    """Register the candidate who will take the assessment."""
    try:
        candidate = manager.create_candidate(request.name, request.email, request.position)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except ProctorError as e:
        raise _http_error(e)
    return candidate.to_dict()


@router.get("/candidates/{candidate_id}")
async def get_candidate(candidate_id: str, manager: SessionManager = Depends(get_manager)):
    try:
        return manager.get_candidate(candidate_id).to_dict()
    except ProctorError as e:
        raise _http_error(e)


@router.post("/sessions", status_code=201)
async def create_session(
    request: CreateSessionRequest,
    manager: SessionManager = Depends(get_manager)
):
    """
    Create a pending session for a registered candidate.

    Each call creates a new session.
    """
    try:
        session = manager.create_session(request.candidate_id)
    except ProctorError as e:
        raise _http_error(e)
    return session.to_dict()


@router.get("/sessions")
async def list_sessions(
    candidate_id: Optional[str] = None,
    manager: SessionManager = Depends(get_manager)
):
    try:
        return [s.to_dict() for s in manager.list_sessions(candidate_id)]
    except ProctorError as e:
        raise _http_error(e)


@router.post("/sessions/{session_id}/start")
async def start_session(session_id: str, manager: SessionManager = Depends(get_manager)):
    """Start recording; only valid for a pending session."""
    try:
        session = manager.start(session_id)
    except ProctorError as e:
        raise _http_error(e)
    return session.to_dict()


@router.post("/sessions/{session_id}/detections", response_model=DetectionResponse)
async def push_detection(
    session_id: str,
    request: DetectionRequest,
    manager: SessionManager = Depends(get_manager)
):
    """
    Push one detection result.

    Results for sessions that are not active, or that arrive while the
    session is busy, are discarded and answered with ``accepted: false``.
    """
    try:
        proctor = manager.get(session_id)
        outcome = proctor.process(request.to_result())
    except ProctorError as e:
        raise _http_error(e)

    return DetectionResponse(
        session_id=session_id,
        accepted=outcome.accepted,
        status=proctor.status.value,
        session_time=proctor.session_time(),
        integrity_score=proctor.integrity_score,
        violations=[v.to_dict() for v in outcome.violations],
    )


@router.post("/sessions/{session_id}/stop")
async def stop_session(
    session_id: str,
    background_tasks: BackgroundTasks,
    request: Optional[StopSessionRequest] = None,
    manager: SessionManager = Depends(get_manager)
):
    """
    Stop a session and freeze its score.

    The in-process state machine is released afterwards; the stored
    record stays available for reads and reports.
    """
    reason = request.reason if request else SessionStatus.COMPLETED
    if not reason.is_terminal:
        raise HTTPException(status_code=422, detail="reason must be completed or terminated")

    try:
        session = manager.stop(session_id, reason)
    except ProctorError as e:
        raise _http_error(e)

    background_tasks.add_task(manager.release, session_id)
    return session.to_dict()


@router.get("/sessions/{session_id}")
async def get_session(session_id: str, manager: SessionManager = Depends(get_manager)):
    try:
        return manager.read(session_id).to_dict()
    except ProctorError as e:
        raise _http_error(e)


@router.get("/sessions/{session_id}/summary")
async def get_session_summary(session_id: str, manager: SessionManager = Depends(get_manager)):
    """Session summary export handed to report consumers."""
    try:
        return manager.read(session_id).to_summary()
    except ProctorError as e:
        raise _http_error(e)


@router.get("/sessions/{session_id}/report", response_class=PlainTextResponse)
async def get_session_report(session_id: str, manager: SessionManager = Depends(get_manager)):
    """
    Text report for a completed or terminated session.

    Returned as a downloadable attachment.
    """
    generated_at = utcnow()
    try:
        session = manager.read(session_id)
        candidate = manager.get_candidate(session.candidate_id)
        report = manager.report(session_id, generated_at=generated_at)
    except ProctorError as e:
        raise _http_error(e)

    filename = report_filename(candidate, generated_at)
    return PlainTextResponse(
        report,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'}
    )


# ============== Health Check ==============

@router.get("/health")
async def health_check(manager: SessionManager = Depends(get_manager)):
    """Health check for proctoring module"""
    return {
        "status": "healthy",
        "active_sessions": manager.active_count,
        "module": "proctoring"
    }
