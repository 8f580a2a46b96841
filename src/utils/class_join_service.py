"""Single entry point for joining a classroom.

Manual entry, clipboard paste, URL-parameter auto-join and QR scans all call
``ClassJoinService.join``:

    raw input -> normalize -> resolve -> provision student -> enroll

Every step is idempotent or side-effect-free on failure, so a caller that
gets a retryable error can run the whole join again from the top.
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from core.access_policy import EnrollmentAccessPolicy
from core.exceptions import StoreUnavailableError
from schemas.class_join import InvitationMatch, JoinOutcome, JoinRequest, JoinSource
from schemas.user import User
from utils.code_normalizer import require_code
from utils.enrollment_coordinator import EnrollmentCoordinator
from utils.invitation_lifecycle import InvitationLifecycleManager, utc_now
from utils.invitation_matcher import InvitationMatcher
from utils.student_provisioner import StudentProvisioner

logger = logging.getLogger(__name__)


class ClassJoinService:
    """Resolves join input and enrolls the caller."""

    def __init__(
        self,
        db: AsyncSession,
        policy: Optional[EnrollmentAccessPolicy] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.db = db
        self.matcher = InvitationMatcher(db, clock=clock)
        self.provisioner = StudentProvisioner(db)
        self.lifecycle = InvitationLifecycleManager(db, clock=clock)
        self.coordinator = EnrollmentCoordinator(
            db, lifecycle=self.lifecycle, policy=policy, clock=clock
        )

    async def preview(self, raw_input: str) -> InvitationMatch:
        """Resolve input without enrolling anyone.

        Raises:
            InvalidCodeFormatError, CodeNotFoundError, CodeExpiredError
        """
        code = require_code(raw_input)
        try:
            return await self.matcher.resolve(code)
        except OperationalError as e:
            await self.db.rollback()
            raise StoreUnavailableError(str(e.orig)) from e

    async def join(self, user: User, request: JoinRequest) -> JoinOutcome:
        """Join the classroom named by ``request`` as ``user``.

        Args:
            user: Authenticated caller.
            request: Raw input and where it came from.

        Returns:
            JoinOutcome. ``already_member`` is informational, not a failure.

        Raises:
            InvalidCodeFormatError: Nothing code-like in the input.
            CodeNotFoundError: No invitation or classroom matched.
            CodeExpiredError: The matching invitation has lapsed.
            ProfileProvisionError: The student profile could not be created.
            EnrollmentError: The student could not be enrolled.
            StoreUnavailableError: The store could not be reached.
        """
        code = require_code(request.raw_input)
        logger.info("Join attempt by %s via %s with code %s", user.user_id, request.source.value, code)
        try:
            match = await self.matcher.resolve(code)
            student = await self.provisioner.ensure_student(user)
            enrollment = await self.coordinator.enroll(student.id, match.classroom_id, match)
        except OperationalError as e:
            await self.db.rollback()
            raise StoreUnavailableError(str(e.orig)) from e
        return JoinOutcome(code=code, match=match, enrollment=enrollment)

    async def join_with_code(
        self, user: User, raw_input: str, source: JoinSource = JoinSource.MANUAL
    ) -> JoinOutcome:
        return await self.join(user, JoinRequest(raw_input=raw_input, source=source))
