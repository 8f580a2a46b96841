"""Student profile provisioning.

Guarantees that the caller has a ``StudentModel`` before enrollment. Profiles
are created lazily on the first join attempt.
"""

import logging
import uuid
from datetime import datetime
from typing import Optional

import pytz
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import ProfileProvisionError
from models.student import StudentModel
from schemas.user import User

logger = logging.getLogger(__name__)


def default_student_name(user: User) -> str:
    if user.display_name and user.display_name.strip():
        return user.display_name.strip()
    if user.email and "@" in user.email:
        return user.email.split("@")[0]
    return user.username or "Student"


class StudentProvisioner:
    """Creates student profiles on demand."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_student_for_user(self, user_id: str) -> Optional[StudentModel]:
        result = await self.db.execute(
            select(StudentModel).filter(StudentModel.user_id == user_id)
        )
        return result.scalars().first()

    async def ensure_student(self, user: User) -> StudentModel:
        """Return the caller's student profile, creating it if absent.

        Args:
            user: Authenticated user.

        Returns:
            The existing or newly created StudentModel.

        Raises:
            ProfileProvisionError: If the profile could neither be found nor created.
        """
        student = await self.get_student_for_user(user.user_id)
        if student is not None:
            return student

        student = StudentModel(
            id=str(uuid.uuid4()),
            user_id=user.user_id,
            name=default_student_name(user),
            school="",
            points=0,
            created_at=datetime.now(pytz.utc).isoformat(),
        )
        # Two tabs can provision at once; the unique user_id keeps one row.
        try:
            self.db.add(student)
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            existing = await self.get_student_for_user(user.user_id)
            if existing is None:
                raise ProfileProvisionError(user.user_id)
            return existing
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Error creating student profile for %s: %s", user.user_id, e)
            raise ProfileProvisionError(user.user_id) from e

        logger.info("Created student profile %s for user %s", student.id, user.user_id)
        return student
