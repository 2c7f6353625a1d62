"""Error types for starting sessions.

Distinct error types separate what the user can fix (eligibility), what the
program author must fix (unsafe parameters) and caller mistakes (a session is
already running). Mid-session failures never surface as exceptions; they end
the session with an INTERNAL_ERROR outcome instead.
"""

from breath.safety.types import Decision, DenialReason


class SessionDeniedError(Exception):
    """Raised when start_session is refused by the safety gate.

    Attributes:
        decision: The denying Decision
        code: Machine-readable denial reason
        message: User-facing explanation
    """

    def __init__(self, decision: Decision):
        self.decision = decision
        self.code = decision.reason.value if decision.reason else "denied"
        self.message = decision.message
        super().__init__(self.message)


class EligibilityDeniedError(SessionDeniedError):
    """The user does not currently meet a training requirement.

    Recoverable by the user completing the missing requirement.
    """


class ParameterUnsafeError(SessionDeniedError):
    """The requested program exceeds a safety ceiling.

    Recoverable by fixing the program, never by relaxing the limit.
    """


class SessionAlreadyActiveError(RuntimeError):
    """Raised when start_session is called while a session is running."""

    code = "session_already_active"

    def __init__(self, phase: str, message: str | None = None):
        self.phase = phase
        self.message = message or f"A session is already active (phase={phase}); stop it before starting another"
        super().__init__(self.message)


def error_for_decision(decision: Decision) -> SessionDeniedError:
    """Build the matching exception for a denying Decision."""
    if decision.reason is DenialReason.PARAMETER_UNSAFE:
        return ParameterUnsafeError(decision)
    return EligibilityDeniedError(decision)
