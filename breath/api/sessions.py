"""Session API endpoints.

Start, stop and emergency-stop commands for the single shared state machine,
plus the eligibility check the UI runs before offering a session.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from loguru import logger

from breath.api.dependencies import SessionRuntime, get_runtime
from breath.api.schemas import DecisionResponse, ErrorDetail, ProfilePayload, StartSessionRequest
from breath.programs.catalog import get_program
from breath.programs.types import SessionConfig
from breath.safety.errors import EligibilityDeniedError, ParameterUnsafeError, SessionAlreadyActiveError
from breath.safety.gate import validate_eligibility
from breath.session.events import SessionOutcome, SessionState

router = APIRouter(tags=["sessions"])


@router.post("/safety/eligibility", response_model=DecisionResponse)
def check_eligibility(payload: ProfilePayload, runtime: SessionRuntime = Depends(get_runtime)):
    """Check whether the described user may train right now.

    Args:
        payload: User safety facts
        runtime: Shared session runtime

    Returns:
        DecisionResponse with the gate decision and derived experience level
    """
    profile = payload.to_profile(runtime.history.summary())
    decision = validate_eligibility(profile, runtime.clock.now())
    logger.info(f"[API] /safety/eligibility approved={decision.approved}")
    return DecisionResponse.from_decision(decision, profile.experience_level)


@router.post("/sessions/start", response_model=SessionState, status_code=status.HTTP_201_CREATED)
def start_session(request: StartSessionRequest, runtime: SessionRuntime = Depends(get_runtime)):
    """Start a session for a catalog program.

    Returns:
        SessionState snapshot right after the session started

    Raises:
        HTTPException: 404 unknown program, 403 eligibility denied,
            422 unsafe parameters, 409 session already active
    """
    logger.info(f"[API] /sessions/start program={request.program_name}")
    try:
        program = get_program(request.program_name)
    except KeyError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=ErrorDetail(code="unknown_program", message=str(e.args[0])).model_dump(),
        ) from e

    profile = request.profile.to_profile(runtime.history.summary())
    config = SessionConfig(program=program, hold_policy=request.hold_policy)

    try:
        runtime.machine.start_session(
            config,
            profile,
            last_session_end_time=runtime.history.last_session_end_time(),
        )
    except EligibilityDeniedError as e:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=ErrorDetail(code="eligibility_denied", reason=e.code, message=e.message).model_dump(),
        ) from e
    except ParameterUnsafeError as e:
        raise HTTPException(
            status_code=422,
            detail=ErrorDetail(code="parameter_unsafe", reason=e.decision.detail, message=e.message).model_dump(),
        ) from e
    except SessionAlreadyActiveError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=ErrorDetail(code=e.code, reason=e.phase, message=e.message).model_dump(),
        ) from e

    return runtime.machine.current_phase_snapshot()


@router.post("/sessions/stop", response_model=SessionState, status_code=status.HTTP_202_ACCEPTED)
def stop_session(runtime: SessionRuntime = Depends(get_runtime)):
    """Gracefully stop the active session (no-op when idle)."""
    logger.info("[API] /sessions/stop")
    runtime.machine.stop_session()
    return runtime.machine.current_phase_snapshot()


@router.post("/sessions/emergency-stop", response_model=SessionState, status_code=status.HTTP_202_ACCEPTED)
def emergency_stop(runtime: SessionRuntime = Depends(get_runtime)):
    """Immediately abort the active session. Always succeeds."""
    logger.warning("[API] /sessions/emergency-stop")
    runtime.machine.emergency_stop()
    return runtime.machine.current_phase_snapshot()


@router.get("/sessions/current", response_model=SessionState)
def current_session(runtime: SessionRuntime = Depends(get_runtime)):
    """Read-only snapshot of the current session."""
    return runtime.machine.current_phase_snapshot()


@router.get("/sessions/history", response_model=list[SessionOutcome])
def session_history(runtime: SessionRuntime = Depends(get_runtime)):
    """Outcomes of every session run by this process."""
    return runtime.history.outcomes()
