"""Row-level access policy for enrollment inserts.

Mirrors a store that may refuse callers writing ``classroom_students`` rows
themselves. Under the ``restricted`` policy every join must go through the
atomic ``enroll_student`` procedure instead.
"""

import logging

from config import ENROLLMENT_DIRECT_INSERT_POLICY
from core.exceptions import ConfigurationError, EnrollmentAccessDeniedError

logger = logging.getLogger(__name__)

OPEN = "open"
RESTRICTED = "restricted"
POLICIES = (OPEN, RESTRICTED)


class EnrollmentAccessPolicy:
    """Decides whether a student may insert their own enrollment row."""

    def __init__(self, mode: str = ENROLLMENT_DIRECT_INSERT_POLICY):
        if mode not in POLICIES:
            raise ConfigurationError(f"Unknown enrollment insert policy: {mode}")
        self.mode = mode

    def check_direct_insert(self, student_id: str, classroom_id: str) -> None:
        """Raise EnrollmentAccessDeniedError when direct inserts are refused."""
        if self.mode == RESTRICTED:
            logger.debug(
                "Direct enrollment insert refused for student %s in classroom %s",
                student_id,
                classroom_id,
            )
            raise EnrollmentAccessDeniedError(
                "Direct enrollment inserts are not permitted"
            )
