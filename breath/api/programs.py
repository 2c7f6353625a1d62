"""Program catalog API endpoints."""

from fastapi import APIRouter, HTTPException, status
from loguru import logger

from breath.api.schemas import ErrorDetail, ProgramResponse
from breath.programs.catalog import get_program, list_programs
from breath.safety.limits import ExperienceLevel

router = APIRouter(prefix="/programs", tags=["programs"])


@router.get("", response_model=list[ProgramResponse])
def get_programs(level: ExperienceLevel | None = None):
    """List catalog programs, optionally only those designed for one level."""
    logger.info(f"[API] /programs level={level.value if level else 'all'}")
    return [ProgramResponse.from_program(program) for program in list_programs(level)]


@router.get("/{name}", response_model=ProgramResponse)
def get_program_by_name(name: str):
    """Get one catalog program by name."""
    try:
        program = get_program(name)
    except KeyError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=ErrorDetail(code="unknown_program", message=str(e.args[0])).model_dump(),
        ) from e
    return ProgramResponse.from_program(program)
