"""Store-side procedures.

``enroll_student`` is the atomic fallback used when a caller may not insert
enrollment rows directly. The invitation token is the authorization: it must
name a pending, live invitation. Lookup and insert run in one transaction and
the insert ignores an existing (classroom_id, student_id) row, so concurrent
calls produce at most one enrollment.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

import pytz
from sqlalchemy import func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import CodeExpiredError, CodeNotFoundError, EnrollmentError
from models.class_invitation import ClassInvitationModel
from models.classroom_student import ClassroomStudentModel
from models.student import StudentModel
from utils.invitation_lifecycle import InvitationStatus, is_expired

logger = logging.getLogger(__name__)


def _insert_ignoring_duplicates(db: AsyncSession, values: Dict[str, Any]):
    dialect = db.get_bind().dialect.name
    insert = postgresql.insert if dialect == "postgresql" else sqlite.insert
    return (
        insert(ClassroomStudentModel)
        .values(**values)
        .on_conflict_do_nothing(index_elements=["classroom_id", "student_id"])
    )


async def enroll_student(
    db: AsyncSession,
    invitation_token: str,
    student_id: str,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Enroll a student using an invitation token as authorization.

    Args:
        db: Database session.
        invitation_token: Token of the invitation that admits the student.
        student_id: StudentModel ID to enroll.
        now: Reference time for the expiry check.

    Returns:
        ``{"enrolled": bool, "classroom_id": str}``. ``enrolled`` is False when
        the student already belonged to the classroom.

    Raises:
        CodeNotFoundError: If no pending invitation carries the token.
        CodeExpiredError: If the invitation has lapsed.
        EnrollmentError: If the student profile does not exist.
    """
    now = now or datetime.now(pytz.utc)
    try:
        result = await db.execute(
            select(ClassInvitationModel)
            .filter(
                func.upper(ClassInvitationModel.invitation_token) == invitation_token.upper(),
                ClassInvitationModel.status == InvitationStatus.PENDING.value,
            )
            .order_by(ClassInvitationModel.created_at.desc(), ClassInvitationModel.id.desc())
        )
        invitations = result.scalars().all()
        if not invitations:
            raise CodeNotFoundError(invitation_token)
        live = [inv for inv in invitations if not is_expired(inv, now)]
        if not live:
            raise CodeExpiredError(invitation_token, invitations[0].id)
        invitation = live[0]

        if await db.get(StudentModel, student_id) is None:
            raise EnrollmentError("Student profile not found")

        outcome = await db.execute(
            _insert_ignoring_duplicates(
                db,
                {
                    "classroom_id": invitation.classroom_id,
                    "student_id": student_id,
                    "joined_at": now.isoformat(),
                },
            )
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    enrolled = outcome.rowcount == 1
    logger.info(
        "enroll_student(%s, %s) -> enrolled=%s classroom=%s",
        invitation_token,
        student_id,
        enrolled,
        invitation.classroom_id,
    )
    return {"enrolled": enrolled, "classroom_id": invitation.classroom_id}
