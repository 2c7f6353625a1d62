"""Session phases, events and outcomes.

The state machine publishes exactly two kinds of one-way messages:
- PhaseEvent: every phase change, consumed by guidance (audio / visual cues)
- SessionOutcome: exactly one per session, consumed by the history store

Neither is ever read back by the machine.
"""

from collections.abc import Callable
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from breath.safety.limits import ExperienceLevel


class SessionPhase(str, Enum):
    """Phases of a training session.

    IDLE is both the initial state and the only re-entrant one.
    COMPLETED and ABORTED are terminal and only visible while the outcome is
    being emitted.
    """

    IDLE = "idle"
    PREPARATION = "preparation"
    BREATH_HOLD = "breath_hold"
    RECOVERY = "recovery"
    COMPLETED = "completed"
    ABORTED = "aborted"

    @property
    def is_active(self) -> bool:
        return self in ACTIVE_PHASES


ACTIVE_PHASES = frozenset({SessionPhase.PREPARATION, SessionPhase.BREATH_HOLD, SessionPhase.RECOVERY})


class OutcomeReason(str, Enum):
    """Why a session ended.

    - COMPLETED: program finished, or a continuation limit stopped it normally
    - USER_STOPPED: graceful stop requested by the user
    - EMERGENCY_STOP: emergency stop requested
    - LIMIT_REACHED: session duration ceiling hit while a phase was running
    - INTERNAL_ERROR: clock or callback failure mid-session
    """

    COMPLETED = "completed"
    USER_STOPPED = "user_stopped"
    EMERGENCY_STOP = "emergency_stop"
    LIMIT_REACHED = "limit_reached"
    INTERNAL_ERROR = "internal_error"


class PhaseEvent(BaseModel):
    """Phase change announcement for guidance rendering.

    Attributes:
        phase: Phase being entered
        planned_duration: Planned phase length in seconds (0 for terminal phases)
        round_index: Zero-based round the phase belongs to
        clamped_from_original: Requested hold in seconds when the hold was reduced
            to the level ceiling, otherwise None
        message: Human-readable cue or advisory
    """

    model_config = ConfigDict(frozen=True)

    phase: SessionPhase
    planned_duration: float = Field(ge=0)
    round_index: int = Field(ge=0)
    clamped_from_original: float | None = None
    message: str = ""

    @property
    def is_advisory(self) -> bool:
        return self.clamped_from_original is not None


class SessionOutcome(BaseModel):
    """Final result of one session.

    Attributes:
        reason: Why the session ended
        rounds_completed: Breath holds that ran to completion
        total_duration: Seconds from session start to termination
        hold_durations_by_round: Completed hold lengths in seconds, by round
        breath_hold_count: Breath holds started (including an interrupted one)
        program_name: Program the session ran
        experience_level: Level whose limits applied
        started_at: Session start time (UTC)
        ended_at: Session end time (UTC)
    """

    model_config = ConfigDict(frozen=True)

    reason: OutcomeReason
    rounds_completed: int = Field(ge=0)
    total_duration: float = Field(ge=0)
    hold_durations_by_round: tuple[float, ...] = ()
    breath_hold_count: int = Field(default=0, ge=0)
    program_name: str = ""
    experience_level: ExperienceLevel = ExperienceLevel.BEGINNER
    started_at: datetime
    ended_at: datetime

    @property
    def best_hold(self) -> float:
        return max(self.hold_durations_by_round, default=0.0)


class SessionState(BaseModel):
    """Read-only snapshot of the state machine.

    All durations are in seconds.
    """

    model_config = ConfigDict(frozen=True)

    phase: SessionPhase = SessionPhase.IDLE
    round_index: int = 0
    elapsed_in_phase: float = 0.0
    total_elapsed: float = 0.0
    last_hold_duration: float = 0.0
    planned_phase_duration: float = 0.0
    breath_hold_count: int = 0
    program_name: str | None = None


GuidanceSink = Callable[[PhaseEvent], None]
ResultSink = Callable[[SessionOutcome], None]
