"""Class management utilities."""

import logging
import secrets
from datetime import datetime
from typing import List, Optional

import pytz
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import ClassNotFoundError, ValidationError
from models.class_invitation import ClassInvitationModel
from models.class_model import ClassroomModel
from models.classroom_student import ClassroomStudentModel
from models.student import StudentModel

logger = logging.getLogger(__name__)


class ClassManager:
    """Manages classrooms and their rosters."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_class(
        self, name: str, teacher_id: str, description: Optional[str] = None
    ) -> ClassroomModel:
        now = datetime.now(pytz.utc).isoformat()
        classroom = ClassroomModel(
            id=secrets.token_hex(6),
            name=name,
            description=description,
            teacher_id=teacher_id,
            created_at=now,
            updated_at=now,
        )
        self.db.add(classroom)
        await self.db.commit()
        await self.db.refresh(classroom)
        logger.info("Created classroom %s for teacher %s", classroom.id, teacher_id)
        return classroom

    async def get_class(self, classroom_id: str) -> ClassroomModel:
        classroom = await self.db.get(ClassroomModel, classroom_id)
        if classroom is None:
            raise ClassNotFoundError(classroom_id)
        return classroom

    async def list_classes_for_teacher(self, teacher_id: str) -> List[ClassroomModel]:
        result = await self.db.execute(
            select(ClassroomModel)
            .filter(ClassroomModel.teacher_id == teacher_id)
            .order_by(ClassroomModel.created_at.desc())
        )
        return list(result.scalars().all())

    async def list_classes_for_student(self, student_id: str) -> List[ClassroomModel]:
        result = await self.db.execute(
            select(ClassroomModel)
            .join(ClassroomStudentModel, ClassroomStudentModel.classroom_id == ClassroomModel.id)
            .filter(ClassroomStudentModel.student_id == student_id)
            .order_by(ClassroomStudentModel.joined_at.desc())
        )
        return list(result.scalars().all())

    async def list_members(self, classroom_id: str) -> List[dict]:
        result = await self.db.execute(
            select(ClassroomStudentModel, StudentModel)
            .join(StudentModel, StudentModel.id == ClassroomStudentModel.student_id)
            .filter(ClassroomStudentModel.classroom_id == classroom_id)
            .order_by(ClassroomStudentModel.joined_at)
        )
        return [
            {
                "student_id": student.id,
                "user_id": student.user_id,
                "name": student.name,
                "joined_at": enrollment.joined_at,
            }
            for enrollment, student in result.all()
        ]

    async def delete_class(self, classroom_id: str, teacher_id: str) -> None:
        """Delete a classroom with its invitations and enrollments.

        Only the owning teacher can delete the classroom.

        Raises:
            ClassNotFoundError: If the classroom does not exist.
            ValidationError: If ``teacher_id`` is not the owner.
        """
        classroom = await self.get_class(classroom_id)
        if classroom.teacher_id != teacher_id:
            raise ValidationError("Only the class owner can delete the class")

        # Children first; SQLite does not enforce ON DELETE CASCADE by default
        await self.db.execute(
            delete(ClassInvitationModel).where(ClassInvitationModel.classroom_id == classroom_id)
        )
        await self.db.execute(
            delete(ClassroomStudentModel).where(ClassroomStudentModel.classroom_id == classroom_id)
        )
        await self.db.execute(delete(ClassroomModel).where(ClassroomModel.id == classroom_id))
        await self.db.commit()
        logger.info("Deleted classroom: %s", classroom_id)

    async def leave_class(self, classroom_id: str, student_id: str) -> None:
        """Remove a student's enrollment.

        Raises:
            ClassNotFoundError: If the classroom does not exist.
            ValidationError: If the student is not enrolled.
        """
        await self.get_class(classroom_id)
        result = await self.db.execute(
            select(ClassroomStudentModel).filter(
                ClassroomStudentModel.classroom_id == classroom_id,
                ClassroomStudentModel.student_id == student_id,
            )
        )
        enrollment = result.scalars().first()
        if enrollment is None:
            raise ValidationError("Student is not a member of this class")
        await self.db.delete(enrollment)
        await self.db.commit()
        logger.info("Student %s left classroom %s", student_id, classroom_id)
