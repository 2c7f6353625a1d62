"""Error types for profile updates."""


class ProfileUpdateError(ValueError):
    """Raised when a profile mutation is rejected.

    Attributes:
        code: Machine-readable error code
        message: User-facing explanation
    """

    code = "profile_update_rejected"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class InvalidAgeError(ProfileUpdateError):
    """Age outside the plausible range."""

    code = "invalid_age"


class EducationNotPassedError(ProfileUpdateError):
    """Safety education attempt did not meet the pass requirements."""

    code = "education_not_passed"
