"""Database models package."""

from .class_model import ClassroomModel
from .class_invitation import ClassInvitationModel
from .classroom_student import ClassroomStudentModel
from .student import StudentModel
from .user import UserModel

__all__ = [
    "ClassroomModel",
    "ClassInvitationModel",
    "ClassroomStudentModel",
    "StudentModel",
    "UserModel",
]
