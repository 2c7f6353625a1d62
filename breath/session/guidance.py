"""Guidance sinks for phase events.

Rendering cues as audio or visuals happens outside this package; this
sink only forwards events.
"""

from loguru import logger

from breath.session.events import PhaseEvent


def log_guidance(event: PhaseEvent) -> None:
    """Log a phase event as a guidance cue."""
    if event.is_advisory:
        logger.warning(
            f"[GUIDANCE] {event.message}",
            phase=event.phase.value,
            round_index=event.round_index,
            clamped_from_original=event.clamped_from_original,
        )
        return

    logger.info(
        f"[GUIDANCE] {event.message}",
        phase=event.phase.value,
        round_index=event.round_index,
        planned_duration=event.planned_duration,
    )

