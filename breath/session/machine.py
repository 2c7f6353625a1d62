"""Session state machine - drives one breath-hold training session.

Phases: IDLE -> PREPARATION -> BREATH_HOLD -> RECOVERY -> (BREATH_HOLD ... | COMPLETED)
Any active phase -> ABORTED on stop, emergency stop, session ceiling or internal error.
COMPLETED / ABORTED -> IDLE once the outcome has been emitted.

Concurrency model:
- Every transition happens under one re-entrant lock.
- Each phase schedules exactly one clock callback, tagged with a generation
  number. Any transition bumps the generation, so a late callback from an
  earlier phase is discarded on delivery.
- Stop requests are recorded before the lock is taken. A tick that sees a
  recorded stop does nothing, so a stop always wins over a concurrent tick.
"""

import threading
from datetime import datetime

from loguru import logger

from breath.programs.types import SessionConfig
from breath.safety.errors import SessionAlreadyActiveError, error_for_decision
from breath.safety.gate import validate_eligibility, validate_session_parameters
from breath.safety.limits import ExperienceLevel, SafetyLimits, limits_for_level
from breath.safety.types import SafetyProfile
from breath.session.clock import CancellationToken, SessionClock
from breath.session.events import (
    GuidanceSink,
    OutcomeReason,
    PhaseEvent,
    ResultSink,
    SessionOutcome,
    SessionPhase,
    SessionState,
)

# Tolerance for clock rounding when comparing elapsed and planned durations
PHASE_EPSILON_SECONDS = 1e-3

TERMINAL_MESSAGES: dict[OutcomeReason, str] = {
    OutcomeReason.COMPLETED: "Session complete. Well done.",
    OutcomeReason.USER_STOPPED: "Session stopped.",
    OutcomeReason.EMERGENCY_STOP: "Emergency stop activated. Please ensure you are safe before continuing.",
    OutcomeReason.LIMIT_REACHED: "Session stopped: maximum duration reached for safety.",
    OutcomeReason.INTERNAL_ERROR: "Session stopped due to an internal error.",
}


class SessionStateMachine:
    """Runs one training session at a time under the hard safety limits.

    Inputs (profile, config) are frozen snapshots taken at start_session;
    the limits computed from them stay fixed for the session's lifetime.
    The only outputs are PhaseEvents to the guidance sink and one
    SessionOutcome per session to the result sink.
    """

    def __init__(
        self,
        clock: SessionClock,
        guidance_sink: GuidanceSink | None = None,
        result_sink: ResultSink | None = None,
    ):
        self._clock = clock
        self._guidance_sink = guidance_sink
        self._result_sink = result_sink
        self._lock = threading.RLock()
        self._generation = 0
        self._pending_stop: OutcomeReason | None = None
        self._timer: CancellationToken | None = None
        self._last_now: datetime | None = None
        self._reset()

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def start_session(
        self,
        config: SessionConfig,
        profile: SafetyProfile,
        *,
        last_session_end_time: datetime | None = None,
    ) -> None:
        """Validate and start a session.

        Both gate checks run synchronously; nothing starts unless both approve.

        Args:
            config: Program and hold policy
            profile: Snapshot of the user's safety facts
            last_session_end_time: End of the previous session, from the history store

        Raises:
            SessionAlreadyActiveError: If a session is already running
            EligibilityDeniedError: If the user may not train right now
            ParameterUnsafeError: If the program exceeds a safety ceiling
        """
        with self._lock:
            if self._phase is not SessionPhase.IDLE:
                raise SessionAlreadyActiveError(self._phase.value)

            now = self._now()
            eligibility = validate_eligibility(profile, now)
            if eligibility.denied:
                raise error_for_decision(eligibility)

            parameters = validate_session_parameters(config, profile, last_session_end_time, now)
            if parameters.denied:
                raise error_for_decision(parameters)

            self._pending_stop = None
            self._config = config
            self._experience_level = profile.experience_level
            self._limits = limits_for_level(self._experience_level)
            self._session_started_at = now

            logger.info(
                "Session started",
                program=config.program.name,
                experience_level=self._experience_level.value,
                target_round_count=config.target_round_count,
                hold_policy=config.hold_policy.value,
            )
            self._run_guarded(self._enter_preparation, now)

    def stop_session(self) -> None:
        """Gracefully stop the active session. No-op when idle."""
        self._request_stop(OutcomeReason.USER_STOPPED)

    def emergency_stop(self) -> None:
        """Immediately abort the active session.

        Callable from any thread and any state (no-op when idle). Always
        succeeds; a second call produces no second outcome.
        """
        self._request_stop(OutcomeReason.EMERGENCY_STOP)

    def current_phase_snapshot(self) -> SessionState:
        """Read-only snapshot of the current session state."""
        with self._lock:
            if self._phase is SessionPhase.IDLE:
                return SessionState()
            now = self._safe_now()
            return SessionState(
                phase=self._phase,
                round_index=self._round_index,
                elapsed_in_phase=self._elapsed_in_phase(now),
                total_elapsed=self._total_elapsed(now),
                last_hold_duration=self._last_hold_duration,
                planned_phase_duration=self._planned_phase_duration,
                breath_hold_count=self._breath_hold_count,
                program_name=self._config.program.name if self._config else None,
            )

    @property
    def phase(self) -> SessionPhase:
        return self._phase

    @property
    def is_active(self) -> bool:
        return self._phase.is_active

    # ------------------------------------------------------------------
    # Stop handling
    # ------------------------------------------------------------------

    def _request_stop(self, reason: OutcomeReason) -> None:
        # Record first so an in-flight tick backs off before we hold the lock
        if reason is OutcomeReason.EMERGENCY_STOP or self._pending_stop is None:
            self._pending_stop = reason

        with self._lock:
            requested = self._pending_stop or reason
            self._pending_stop = None

            if not self._phase.is_active:
                logger.debug("Stop ignored, no active session", reason=requested.value, phase=self._phase.value)
                return

            if requested is OutcomeReason.EMERGENCY_STOP:
                logger.warning("Emergency stop requested", phase=self._phase.value, round_index=self._round_index)
            else:
                logger.info("Stop requested", phase=self._phase.value, round_index=self._round_index)

            try:
                self._terminate(requested)
            except Exception:
                logger.exception("Failed to finalize stopped session", reason=requested.value)

    # ------------------------------------------------------------------
    # Timer handling
    # ------------------------------------------------------------------

    def _on_timer(self, generation: int) -> None:
        if self._pending_stop is not None:
            logger.debug("Tick skipped, stop pending", generation=generation)
            return

        with self._lock:
            if generation != self._generation or not self._phase.is_active:
                logger.debug(
                    "Discarding stale timer callback",
                    generation=generation,
                    current_generation=self._generation,
                    phase=self._phase.value,
                )
                return
            if self._pending_stop is not None:
                logger.debug("Tick skipped, stop pending", generation=generation)
                return

            self._run_guarded(self._advance)

    def _schedule_timer(self, now: datetime, generation: int) -> None:
        self._cancel_timer()
        remaining_phase = max(0.0, self._planned_phase_duration - self._elapsed_in_phase(now))
        remaining_session = max(0.0, self._limits.max_session_seconds - self._total_elapsed(now))
        delay = min(remaining_phase, remaining_session)
        self._timer = self._clock.after(delay, lambda: self._on_timer(generation))

    def _cancel_timer(self) -> None:
        timer, self._timer = self._timer, None
        if timer is None:
            return
        try:
            timer.cancel()
        except Exception:
            # The generation check still discards the callback if it fires
            logger.exception("Failed to cancel phase timer")

    def _run_guarded(self, step, *args) -> None:
        try:
            step(*args)
        except Exception:
            logger.exception("Session failure, aborting", phase=self._phase.value, round_index=self._round_index)
            if self._phase.is_active:
                self._terminate(OutcomeReason.INTERNAL_ERROR)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _advance(self) -> None:
        now = self._now()
        phase_elapsed = self._elapsed_in_phase(now)
        total = self._total_elapsed(now)
        phase_done = phase_elapsed + PHASE_EPSILON_SECONDS >= self._planned_phase_duration

        # No new phase may start once the ceiling has passed, however late the tick
        if total + PHASE_EPSILON_SECONDS >= self._limits.max_session_seconds:
            self._stop_at_session_ceiling(now, phase_done, total)
            return

        if not phase_done:
            # Woke up early: wait out the rest of the phase
            self._schedule_timer(now, self._generation)
            return

        if self._phase is SessionPhase.PREPARATION:
            self._enter_breath_hold(now)
        elif self._phase is SessionPhase.BREATH_HOLD:
            self._complete_hold(now)
        elif self._phase is SessionPhase.RECOVERY:
            self._finish_round(now)

    def _stop_at_session_ceiling(self, now: datetime, phase_done: bool, total: float) -> None:
        if phase_done and self._phase is SessionPhase.RECOVERY:
            logger.info("Last recovery finished at the session ceiling", total_elapsed=round(total, 3))
            self._terminate(OutcomeReason.COMPLETED, now)
            return

        if phase_done and self._phase is SessionPhase.BREATH_HOLD:
            self._record_hold()

        logger.warning(
            "Session duration ceiling reached",
            phase=self._phase.value,
            phase_done=phase_done,
            total_elapsed=round(total, 3),
            max_session_seconds=self._limits.max_session_seconds,
        )
        self._terminate(OutcomeReason.LIMIT_REACHED, now)

    def _enter_preparation(self, now: datetime) -> None:
        self._enter_phase(
            SessionPhase.PREPARATION,
            self._config.preparation_duration,
            now,
            message="Relax and breathe slowly to prepare",
        )

    def _enter_breath_hold(self, now: datetime) -> None:
        if self._breath_hold_count >= self._limits.max_rounds:
            logger.warning("Breath hold ceiling reached", breath_hold_count=self._breath_hold_count)
            self._terminate(OutcomeReason.COMPLETED, now)
            return

        requested = self._config.hold_time_for_round(self._round_index)
        if not requested > 0:
            raise ValueError(f"Invalid hold time {requested} for round {self._round_index}")

        ceiling = self._limits.max_hold_seconds
        target = min(requested, ceiling)
        clamped_from = None
        message = f"Hold your breath for {target:g}s"
        if target < requested:
            clamped_from = requested
            message = f"Hold time limited to {target:g}s for your safety level"
            logger.warning(
                "Hold clamped to level ceiling",
                round_index=self._round_index,
                requested_seconds=requested,
                ceiling_seconds=ceiling,
            )

        self._breath_hold_count += 1
        self._enter_phase(SessionPhase.BREATH_HOLD, target, now, clamped_from=clamped_from, message=message)

    def _record_hold(self) -> float:
        hold = self._planned_phase_duration
        self._last_hold_duration = hold
        self._hold_durations.append(hold)
        return hold

    def _complete_hold(self, now: datetime) -> None:
        hold = self._record_hold()
        recovery = self._limits.recovery_seconds_for(hold)
        self._enter_phase(
            SessionPhase.RECOVERY,
            recovery,
            now,
            message=f"Recover with calm breathing for {recovery:g}s",
        )

    def _finish_round(self, now: datetime) -> None:
        next_round = self._round_index + 1
        if self._should_continue(next_round, now):
            self._round_index = next_round
            self._enter_breath_hold(now)
        else:
            self._terminate(OutcomeReason.COMPLETED, now)

    def _should_continue(self, next_round: int, now: datetime) -> bool:
        if next_round >= self._config.target_round_count:
            logger.debug("Program finished", rounds=next_round)
            return False

        if next_round >= self._limits.max_rounds or self._breath_hold_count >= self._limits.max_rounds:
            logger.info("Round ceiling reached, completing session", rounds=next_round)
            return False

        next_hold = min(self._config.hold_time_for_round(next_round), self._limits.max_hold_seconds)
        estimated_cost = self._limits.round_cost_seconds(next_hold)
        total = self._total_elapsed(now)
        if total + estimated_cost > self._limits.max_session_seconds:
            logger.info(
                "Next round would exceed session duration, completing session",
                total_elapsed=round(total, 3),
                estimated_next_round_cost=estimated_cost,
            )
            return False

        return True

    def _enter_phase(
        self,
        phase: SessionPhase,
        planned_duration: float,
        now: datetime,
        *,
        clamped_from: float | None = None,
        message: str = "",
    ) -> None:
        self._phase = phase
        self._phase_started_at = now
        self._planned_phase_duration = planned_duration
        self._generation += 1
        generation = self._generation

        logger.info(
            "Phase started",
            phase=phase.value,
            round_index=self._round_index,
            planned_duration=planned_duration,
        )
        self._emit_phase(
            PhaseEvent(
                phase=phase,
                planned_duration=planned_duration,
                round_index=self._round_index,
                clamped_from_original=clamped_from,
                message=message,
            )
        )

        # Guidance may have stopped the session, or a stop arrived meanwhile
        if generation != self._generation or self._pending_stop is not None:
            return

        self._schedule_timer(now, generation)

    def _terminate(self, reason: OutcomeReason, now: datetime | None = None) -> None:
        if not self._phase.is_active:
            return

        self._cancel_timer()
        self._generation += 1
        ended_at = now or self._safe_now()
        terminal = SessionPhase.COMPLETED if reason is OutcomeReason.COMPLETED else SessionPhase.ABORTED
        self._phase = terminal

        try:
            outcome = SessionOutcome(
                reason=reason,
                rounds_completed=len(self._hold_durations),
                total_duration=self._total_elapsed(ended_at),
                hold_durations_by_round=tuple(self._hold_durations),
                breath_hold_count=self._breath_hold_count,
                program_name=self._config.program.name if self._config else "",
                experience_level=self._experience_level,
                started_at=self._session_started_at or ended_at,
                ended_at=ended_at,
            )
            logger.info(
                "Session ended",
                reason=reason.value,
                rounds_completed=outcome.rounds_completed,
                total_duration=round(outcome.total_duration, 3),
            )
            self._announce_terminal(terminal, reason)
            self._emit_outcome(outcome)
        finally:
            self._reset()

    # ------------------------------------------------------------------
    # Emission
    # ------------------------------------------------------------------

    def _emit_phase(self, event: PhaseEvent) -> None:
        if self._guidance_sink is not None:
            self._guidance_sink(event)

    def _announce_terminal(self, phase: SessionPhase, reason: OutcomeReason) -> None:
        if self._guidance_sink is None:
            return
        try:
            self._guidance_sink(
                PhaseEvent(
                    phase=phase,
                    planned_duration=0.0,
                    round_index=self._round_index,
                    message=TERMINAL_MESSAGES[reason],
                )
            )
        except Exception:
            logger.exception("Guidance sink failed on terminal announcement", reason=reason.value)

    def _emit_outcome(self, outcome: SessionOutcome) -> None:
        if self._result_sink is None:
            return
        try:
            self._result_sink(outcome)
        except Exception:
            logger.exception("Result sink failed", reason=outcome.reason.value)

    # ------------------------------------------------------------------
    # Time helpers
    # ------------------------------------------------------------------

    def _now(self) -> datetime:
        now = self._clock.now()
        self._last_now = now
        return now

    def _safe_now(self) -> datetime:
        try:
            return self._now()
        except Exception:
            logger.exception("Clock failed, using last known time")
            return self._last_now or self._session_started_at

    def _elapsed_in_phase(self, now: datetime) -> float:
        if self._phase_started_at is None:
            return 0.0
        return max(0.0, (now - self._phase_started_at).total_seconds())

    def _total_elapsed(self, now: datetime) -> float:
        if self._session_started_at is None:
            return 0.0
        return max(0.0, (now - self._session_started_at).total_seconds())

    def _reset(self) -> None:
        self._phase = SessionPhase.IDLE
        self._config: SessionConfig | None = None
        self._limits: SafetyLimits = limits_for_level(ExperienceLevel.BEGINNER)
        self._experience_level = ExperienceLevel.BEGINNER
        self._round_index = 0
        self._breath_hold_count = 0
        self._session_started_at: datetime | None = None
        self._phase_started_at: datetime | None = None
        self._planned_phase_duration = 0.0
        self._last_hold_duration = 0.0
        self._hold_durations: list[float] = []
