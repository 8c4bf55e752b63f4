from datetime import date
import hmac
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from programme_engine.application.engine import ProgressionEngine
from programme_engine.application.exceptions import (
    ConflictError,
    DataAccessError,
    DayLockedError,
    DayOutOfRangeError,
    DuplicateEnrollmentError,
    EnrollmentInactiveError,
    EnrollmentNotFoundError,
    InvalidFastingConfigError,
    InvalidTransitionError,
    PartialFailureError,
    ProgrammeEngineError,
    ProgrammeNotFoundError,
)
from programme_engine.config import settings  # loads .env via BaseSettings
from programme_engine.domain.entities import Enrollment
from programme_engine.infrastructure import log_utils

app = FastAPI(title="Programme Progression Engine API")

STATUS_CODES = {
    EnrollmentNotFoundError: 404,
    ProgrammeNotFoundError: 404,
    DuplicateEnrollmentError: 409,
    ConflictError: 409,
    InvalidTransitionError: 409,
    DayLockedError: 423,
    DayOutOfRangeError: 422,
    InvalidFastingConfigError: 422,
    EnrollmentInactiveError: 422,
    DataAccessError: 503,
    PartialFailureError: 500,
}


def status_code_for(exc: ProgrammeEngineError) -> int:
    for error_type in type(exc).__mro__:
        if error_type in STATUS_CODES:
            return STATUS_CODES[error_type]
    return 400 if exc.reason != ProgrammeEngineError.reason else 500


@app.exception_handler(ProgrammeEngineError)
def handle_engine_error(request: Request, exc: ProgrammeEngineError) -> JSONResponse:
    status_code = status_code_for(exc)
    body: Dict[str, Any] = {"detail": str(exc), "reason": exc.reason, "retryable": exc.retryable}
    if isinstance(exc, DayLockedError):
        body["unlock_date"] = exc.unlock_date.isoformat()
        body["unlocked_day_count"] = exc.unlocked_day_count
    if isinstance(exc, PartialFailureError):
        body["succeeded"] = list(exc.succeeded)
        body["failed"] = exc.failed
    if status_code >= 500:
        log_utils.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(status_code=status_code, content=body)


# Helper to validate API key from header OR query string
def validate_api_key(request: Request, x_api_key: str | None) -> None:
    key = x_api_key or request.query_params.get("api_key")
    expected = settings.ENGINE_API_KEY
    if not expected or not key or not hmac.compare_digest(key, expected):
        raise HTTPException(status_code=401, detail="Invalid or missing API key")


def get_engine() -> ProgressionEngine:
    from programme_engine.infrastructure.di_container import get_container

    return get_container().resolve(ProgressionEngine)


class EnrollRequest(BaseModel):
    user_id: str
    programme_id: str
    start_date: Optional[date] = None
    fasting_type: Optional[str] = None
    fasting_window: Optional[str] = None


class CompleteDayRequest(BaseModel):
    reflection_response: Optional[Dict[str, Any]] = None
    action_completed: bool = True


class FastingChangeRequest(BaseModel):
    fasting_type: str
    fasting_window: Optional[str] = None


class FastingLogRequest(BaseModel):
    user_id: str
    log_date: date
    food_fast_compliant: Optional[bool] = None
    media_fast_compliant: Optional[bool] = None
    comfort_fast_compliant: Optional[bool] = None
    notes: Optional[str] = None


def _enrollment_body(enrollment: Enrollment) -> Dict[str, Any]:
    body = enrollment.to_record()
    body["version"] = enrollment.version
    return body


# Root endpoint - useful for connector validation
@app.get("/")
def root_get():
    return {"status": "ok", "message": "Programme Progression Engine API root"}


@app.get("/programmes")
def list_programmes(
    request: Request,
    x_api_key: str = Header(None),
    engine: ProgressionEngine = Depends(get_engine),
):
    validate_api_key(request, x_api_key)
    return {"programmes": [programme.to_record() for programme in engine.list_programmes()]}


@app.post("/enrollments", status_code=201)
def enroll(
    payload: EnrollRequest,
    request: Request,
    x_api_key: str = Header(None),
    engine: ProgressionEngine = Depends(get_engine),
):
    """Enroll a user, or start a new round of a paused/completed enrollment."""
    validate_api_key(request, x_api_key)
    enrollment = engine.enroll(
        payload.user_id,
        payload.programme_id,
        start_date=payload.start_date,
        fasting_type=payload.fasting_type,
        fasting_window=payload.fasting_window,
    )
    return _enrollment_body(enrollment)


@app.get("/users/{user_id}/enrollments")
def list_enrollments(
    user_id: str,
    request: Request,
    x_api_key: str = Header(None),
    status: Optional[str] = Query(None, description="active, paused or completed"),
    engine: ProgressionEngine = Depends(get_engine),
):
    validate_api_key(request, x_api_key)
    try:
        enrollments = engine.list_enrollments(user_id, status)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    return {"enrollments": [_enrollment_body(item) for item in enrollments]}


@app.get("/enrollments/{enrollment_id}")
def get_enrollment(
    enrollment_id: str,
    request: Request,
    x_api_key: str = Header(None),
    engine: ProgressionEngine = Depends(get_engine),
):
    validate_api_key(request, x_api_key)
    return _enrollment_body(engine.get_enrollment(enrollment_id))


@app.post("/enrollments/{enrollment_id}/pause")
def pause(
    enrollment_id: str,
    request: Request,
    x_api_key: str = Header(None),
    engine: ProgressionEngine = Depends(get_engine),
):
    validate_api_key(request, x_api_key)
    return _enrollment_body(engine.pause(enrollment_id))


@app.post("/enrollments/{enrollment_id}/resume")
def resume(
    enrollment_id: str,
    request: Request,
    x_api_key: str = Header(None),
    engine: ProgressionEngine = Depends(get_engine),
):
    validate_api_key(request, x_api_key)
    return _enrollment_body(engine.resume(enrollment_id))


@app.post("/enrollments/{enrollment_id}/days/{day_number}/complete")
def complete_day(
    enrollment_id: str,
    day_number: int,
    request: Request,
    payload: Optional[CompleteDayRequest] = None,
    x_api_key: str = Header(None),
    engine: ProgressionEngine = Depends(get_engine),
):
    """Mark a day complete; locked days return 423 with their unlock date."""
    validate_api_key(request, x_api_key)
    payload = payload or CompleteDayRequest()
    result = engine.mark_day_complete(
        enrollment_id,
        day_number,
        reflection_response=payload.reflection_response,
        action_completed=payload.action_completed,
    )
    return result.as_dict()


@app.get("/enrollments/{enrollment_id}/days/{day_number}")
def get_day_completion(
    enrollment_id: str,
    day_number: int,
    request: Request,
    x_api_key: str = Header(None),
    engine: ProgressionEngine = Depends(get_engine),
):
    validate_api_key(request, x_api_key)
    completion = engine.get_day_completion(enrollment_id, day_number)
    return {
        "enrollment_id": enrollment_id,
        "day_number": day_number,
        "completed": completion is not None,
        "completion": completion.to_record() if completion else None,
    }


@app.get("/enrollments/{enrollment_id}/progress")
def progress(
    enrollment_id: str,
    request: Request,
    x_api_key: str = Header(None),
    engine: ProgressionEngine = Depends(get_engine),
):
    validate_api_key(request, x_api_key)
    return engine.progress(enrollment_id).as_dict()


@app.get("/enrollments/{enrollment_id}/next-day")
def next_day(
    enrollment_id: str,
    request: Request,
    x_api_key: str = Header(None),
    engine: ProgressionEngine = Depends(get_engine),
):
    """Where a returning user should land, plus how far they may go."""
    validate_api_key(request, x_api_key)
    return {
        "enrollment_id": enrollment_id,
        "unlocked_day_count": engine.get_unlocked_day_count(enrollment_id),
        "next_day_to_show": engine.get_next_day_to_show(enrollment_id),
    }


@app.put("/enrollments/{enrollment_id}/fasting")
def change_fasting(
    enrollment_id: str,
    payload: FastingChangeRequest,
    request: Request,
    x_api_key: str = Header(None),
    engine: ProgressionEngine = Depends(get_engine),
):
    validate_api_key(request, x_api_key)
    change = engine.change_fasting_type(enrollment_id, payload.fasting_type, payload.fasting_window)
    return {"enrollment_id": enrollment_id, "changed": change.changed, **change.as_payload()}


@app.post("/enrollments/{enrollment_id}/fasting-logs")
def save_fasting_log(
    enrollment_id: str,
    payload: FastingLogRequest,
    request: Request,
    x_api_key: str = Header(None),
    engine: ProgressionEngine = Depends(get_engine),
):
    validate_api_key(request, x_api_key)
    flags = payload.model_dump(exclude={"user_id", "log_date"}, exclude_unset=True)
    return engine.save_fasting_log(payload.user_id, enrollment_id, payload.log_date, **flags)


@app.get("/enrollments/{enrollment_id}/fasting-stats")
def fasting_stats(
    enrollment_id: str,
    request: Request,
    user_id: str = Query(..., description="Owner of the enrollment."),
    x_api_key: str = Header(None),
    engine: ProgressionEngine = Depends(get_engine),
):
    validate_api_key(request, x_api_key)
    return engine.fasting_stats(user_id, enrollment_id).as_dict()
