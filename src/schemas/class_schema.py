"""Class, invitation and join request/response schemas for the HTTP API."""

from typing import List, Optional

from pydantic import BaseModel, Field

from schemas.class_join import JoinSource


class ClassInfo(BaseModel):
    class_id: str
    name: str
    description: Optional[str] = None
    teacher_id: str
    created_at: str
    updated_at: str
    role_in_class: Optional[str] = None


class CreateClassRequest(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    description: Optional[str] = None


class ClassMemberInfo(BaseModel):
    student_id: str
    user_id: str
    name: str
    joined_at: str


class IssueInvitationRequest(BaseModel):
    email: Optional[str] = Field(
        default=None,
        description="Recipient for a single-use invitation. Omit for a shareable class code.",
    )


class ClassInvitationInfo(BaseModel):
    invitation_id: int
    invitation_code: str
    class_id: str
    email: str
    status: str
    created_by: Optional[str] = None
    created_at: str
    expires_at: str
    join_url: str


class ClassInvitationListResponse(BaseModel):
    invitations: List[ClassInvitationInfo]


class UpdateInvitationRequest(BaseModel):
    expires_in_days: int = Field(ge=1, le=365)


class JoinClassRequest(BaseModel):
    code: str = Field(description="Code, join URL or pasted text.")
    source: JoinSource = JoinSource.MANUAL


class QRJoinRequest(BaseModel):
    payload: str = Field(description="Text decoded from a scanned QR image.")


class JoinClassResponse(BaseModel):
    class_id: str
    class_name: str
    code: str
    already_member: bool
    message: str


class JoinPreviewResponse(BaseModel):
    class_id: str
    class_name: str
    strategy: str
