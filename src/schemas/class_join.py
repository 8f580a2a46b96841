"""Join pipeline value objects.

Each stage of a join receives one of these and returns the next, so no join
state is shared or mutated between stages:

    JoinRequest -> InvitationMatch -> EnrollmentResult -> JoinOutcome
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class JoinSource(str, Enum):
    """Where the raw join input came from."""

    MANUAL = "manual"
    CLIPBOARD = "clipboard"
    URL = "url"
    QR = "qr"


class JoinRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    raw_input: str = Field(description="Typed text, pasted URL or decoded QR payload.")
    source: JoinSource = JoinSource.MANUAL


class ClassroomSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: Optional[str] = None
    teacher_id: Optional[str] = None


class InvitationMatch(BaseModel):
    """A code resolved to a classroom, and to an invitation when there is one."""
    model_config = ConfigDict(frozen=True)

    classroom_id: str
    classroom: ClassroomSummary
    strategy: str = Field(description="Name of the matching strategy that hit.")
    invitation_id: Optional[int] = None
    token: Optional[str] = None
    is_general: bool = Field(
        default=True,
        description="False for single-recipient email invitations.",
    )


class EnrollmentResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    classroom_id: str
    student_id: str
    already_member: bool
    path: str = Field(description="'existing', 'direct' or 'fallback'.")


class JoinOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    code: str
    match: InvitationMatch
    enrollment: EnrollmentResult

    @property
    def already_member(self) -> bool:
        return self.enrollment.already_member

    @property
    def message(self) -> str:
        name = self.match.classroom.name
        if self.enrollment.already_member:
            return f"You are already a member of {name}"
        return f"Successfully joined {name}"
