"""Class invitation database model.

Tokens are deliberately not unique at the storage layer: accepted and lapsed
invitations may share a token with a live one. Issuance avoids collisions
between live invitations instead.
"""

from sqlalchemy import Column, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from .base import Base


class ClassInvitationModel(Base):
    __tablename__ = "class_invitations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    classroom_id = Column(
        String, ForeignKey("classrooms.id", ondelete="CASCADE"), index=True, nullable=False
    )
    invitation_token = Column(String, index=True, nullable=False)
    email = Column(String, nullable=False)
    status = Column(String, nullable=False, default="pending")  # pending / accepted / expired
    created_by = Column(String, nullable=True)
    created_at = Column(String, nullable=False)  # ISO format string
    expires_at = Column(String, nullable=False)  # ISO format string

    classroom = relationship("ClassroomModel", back_populates="invitations")
