from sqlalchemy import Column, String
from sqlalchemy.orm import relationship
from .base import Base


class ClassroomModel(Base):
    __tablename__ = "classrooms"

    id = Column(String, primary_key=True, index=True)
    name = Column(String, nullable=False)
    description = Column(String, nullable=True)
    teacher_id = Column(String, index=True, nullable=False)
    created_at = Column(String, nullable=False)
    updated_at = Column(String, nullable=False)

    enrollments = relationship(
        "ClassroomStudentModel",
        back_populates="classroom",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    invitations = relationship(
        "ClassInvitationModel",
        back_populates="classroom",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
