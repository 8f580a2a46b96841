from sqlalchemy import Column, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship
from .base import Base


class ClassroomStudentModel(Base):
    __tablename__ = "classroom_students"
    __table_args__ = (
        UniqueConstraint("classroom_id", "student_id", name="uq_classroom_student"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    classroom_id = Column(
        String, ForeignKey("classrooms.id", ondelete="CASCADE"), index=True, nullable=False
    )
    student_id = Column(
        String, ForeignKey("students.id", ondelete="CASCADE"), index=True, nullable=False
    )
    joined_at = Column(String, nullable=False)

    classroom = relationship("ClassroomModel", back_populates="enrollments")
