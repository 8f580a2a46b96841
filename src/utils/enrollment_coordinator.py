"""Idempotent classroom enrollment.

A student joins through the fast path (a direct insert of the enrollment row)
or, when that path cannot be used, through the atomic ``enroll_student``
procedure authorized by the invitation token. Either way the
``(classroom_id, student_id)`` unique constraint guarantees at most one row;
a lost race is reported as ``already_member`` rather than as an error.
"""

import logging
from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.access_policy import EnrollmentAccessPolicy
from core.exceptions import (
    CodeExpiredError,
    CodeNotFoundError,
    EnrollmentAccessDeniedError,
    EnrollmentConflictError,
    EnrollmentError,
    InvalidInvitationTransitionError,
    InvitationNotFoundError,
    StoreUnavailableError,
)
from core.procedures import enroll_student
from models.classroom_student import ClassroomStudentModel
from schemas.class_join import EnrollmentResult, InvitationMatch
from utils.invitation_lifecycle import InvitationLifecycleManager, utc_now

logger = logging.getLogger(__name__)

PATH_EXISTING = "existing"
PATH_DIRECT = "direct"
PATH_FALLBACK = "fallback"


class EnrollmentCoordinator:
    """Turns a resolved classroom into exactly one enrollment row."""

    def __init__(
        self,
        db: AsyncSession,
        lifecycle: Optional[InvitationLifecycleManager] = None,
        policy: Optional[EnrollmentAccessPolicy] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.db = db
        self.lifecycle = lifecycle or InvitationLifecycleManager(db, clock=clock)
        self.policy = policy or EnrollmentAccessPolicy()
        self.clock = clock

    async def find_enrollment(
        self, student_id: str, classroom_id: str
    ) -> Optional[ClassroomStudentModel]:
        result = await self.db.execute(
            select(ClassroomStudentModel).filter(
                ClassroomStudentModel.student_id == student_id,
                ClassroomStudentModel.classroom_id == classroom_id,
            )
        )
        return result.scalars().first()

    async def list_enrollments_for_student(self, student_id: str) -> List[ClassroomStudentModel]:
        result = await self.db.execute(
            select(ClassroomStudentModel)
            .filter(ClassroomStudentModel.student_id == student_id)
            .order_by(ClassroomStudentModel.joined_at.desc())
        )
        return list(result.scalars().all())

    async def insert_enrollment(self, student_id: str, classroom_id: str) -> ClassroomStudentModel:
        """Fast path: insert the enrollment row directly.

        Raises:
            EnrollmentAccessDeniedError: If the access policy refuses the insert.
            IntegrityError: If the row violates a constraint (usually a duplicate).
        """
        self.policy.check_direct_insert(student_id, classroom_id)
        row = ClassroomStudentModel(
            classroom_id=classroom_id,
            student_id=student_id,
            joined_at=self.clock().isoformat(),
        )
        self.db.add(row)
        await self.db.commit()
        return row

    async def enroll(
        self,
        student_id: str,
        classroom_id: str,
        match: Optional[InvitationMatch] = None,
    ) -> EnrollmentResult:
        """Enroll a student in a classroom, at most once.

        Args:
            student_id: StudentModel ID.
            classroom_id: Classroom to join.
            match: The resolution that authorized the join. Its token is the
                evidence used by the fallback procedure.

        Returns:
            EnrollmentResult; ``already_member`` is True when the row existed
            or a concurrent call created it first.

        Raises:
            EnrollmentError: If neither path could enroll the student.
            StoreUnavailableError: If the store could not be reached.
        """
        try:
            if await self.find_enrollment(student_id, classroom_id) is not None:
                logger.info("Student %s already enrolled in %s", student_id, classroom_id)
                return self._result(student_id, classroom_id, True, PATH_EXISTING)

            try:
                await self.insert_enrollment(student_id, classroom_id)
            except EnrollmentAccessDeniedError:
                logger.info("Direct insert refused, using enroll_student for %s", student_id)
                return await self._enroll_via_procedure(student_id, classroom_id, match)
            except IntegrityError as e:
                await self.db.rollback()
                if await self.find_enrollment(student_id, classroom_id) is not None:
                    logger.info(
                        "Concurrent join already enrolled student %s in %s",
                        student_id,
                        classroom_id,
                    )
                    return self._result(student_id, classroom_id, True, PATH_DIRECT)
                conflict = EnrollmentConflictError(str(e.orig))
                logger.warning("Direct enrollment insert failed (%s), using enroll_student", conflict)
                return await self._enroll_via_procedure(student_id, classroom_id, match)
        except OperationalError as e:
            await self.db.rollback()
            raise StoreUnavailableError(str(e.orig)) from e

        logger.info("Enrolled student %s in classroom %s", student_id, classroom_id)
        await self._accept(match)
        return self._result(student_id, classroom_id, False, PATH_DIRECT)

    async def _enroll_via_procedure(
        self,
        student_id: str,
        classroom_id: str,
        match: Optional[InvitationMatch],
    ) -> EnrollmentResult:
        if match is None or not match.token:
            raise EnrollmentError("Could not join classroom: no invitation to authorize the join")
        if match.classroom_id != classroom_id:
            raise EnrollmentError("Could not join classroom: invitation is for another classroom")
        try:
            outcome = await enroll_student(self.db, match.token, student_id, now=self.clock())
        except (CodeNotFoundError, CodeExpiredError) as e:
            raise EnrollmentError(f"Could not join classroom: {e}") from e

        if outcome["classroom_id"] != classroom_id:
            raise EnrollmentError("Could not join classroom: invitation is for another classroom")
        if not outcome["enrolled"]:
            return self._result(student_id, classroom_id, True, PATH_FALLBACK)
        await self._accept(match)
        return self._result(student_id, classroom_id, False, PATH_FALLBACK)

    async def _accept(self, match: Optional[InvitationMatch]) -> None:
        """Mark the authorizing single-recipient invitation accepted."""
        if match is None or match.invitation_id is None or match.is_general:
            return
        try:
            await self.lifecycle.accept(match.invitation_id)
        except (InvalidInvitationTransitionError, InvitationNotFoundError) as e:
            logger.warning("Could not accept invitation %s: %s", match.invitation_id, e)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Error accepting invitation %s: %s", match.invitation_id, e)

    @staticmethod
    def _result(student_id: str, classroom_id: str, already_member: bool, path: str) -> EnrollmentResult:
        return EnrollmentResult(
            classroom_id=classroom_id,
            student_id=student_id,
            already_member=already_member,
            path=path,
        )
