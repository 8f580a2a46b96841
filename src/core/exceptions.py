"""Custom exception classes for the Classroom Join service.

This module defines application-specific exceptions following Google Python
Style Guide. Every failure is scoped to a single join attempt; ``retryable``
tells callers whether running the whole attempt again can help.
"""


class ClassJoinError(Exception):
    """Base exception for all Classroom Join errors."""

    retryable = False


class InvalidCodeFormatError(ClassJoinError):
    """Raised when no plausible invitation code can be extracted from input."""

    def __init__(self, raw_input: str):
        """Initialize the exception.

        Args:
            raw_input: The text that could not be parsed.
        """
        self.raw_input = raw_input
        super().__init__("Invalid code format")


class CodeNotFoundError(ClassJoinError):
    """Raised when every matching strategy came up empty."""

    def __init__(self, code: str):
        self.code = code
        super().__init__("Invalid or expired invitation code")


class CodeExpiredError(ClassJoinError):
    """Raised when the code belongs to an invitation that has lapsed."""

    def __init__(self, code: str, invitation_id: int = None):
        self.code = code
        self.invitation_id = invitation_id
        super().__init__("This invitation has expired")


class ProfileProvisionError(ClassJoinError):
    """Raised when a student profile could not be created for the caller."""

    retryable = True

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__("Could not create student profile")


class EnrollmentConflictError(ClassJoinError):
    """Raised when a direct insert failed for a reason other than a duplicate.

    Handled inside the enrollment coordinator, which switches to the atomic
    procedure. Only seen by callers of the low-level insert.
    """


class EnrollmentAccessDeniedError(ClassJoinError):
    """Raised when the access policy forbids direct enrollment inserts."""


class EnrollmentError(ClassJoinError):
    """Raised when a student could not be enrolled."""

    def __init__(self, message: str = "Could not join classroom"):
        super().__init__(message)


class StoreUnavailableError(ClassJoinError):
    """Raised when the data store cannot be reached (network error)."""

    retryable = True


class InvalidInvitationTransitionError(ClassJoinError):
    """Raised when an invitation status change is not allowed."""

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Invitation cannot move from '{current}' to '{target}'")


class TokenAllocationError(ClassJoinError):
    """Raised when no collision-free invitation token could be generated."""

    retryable = True


class ClassNotFoundError(ClassJoinError):
    """Raised when a classroom cannot be found."""

    def __init__(self, classroom_id: str):
        self.classroom_id = classroom_id
        super().__init__(f"Classroom '{classroom_id}' not found")


class InvitationNotFoundError(ClassJoinError):
    """Raised when an invitation record cannot be found."""

    def __init__(self, invitation_id: int):
        self.invitation_id = invitation_id
        super().__init__(f"Invitation '{invitation_id}' not found")


class ConfigurationError(ClassJoinError):
    """Raised when there is a configuration error."""

    pass


class ValidationError(ClassJoinError):
    """Raised when data validation fails."""

    pass
