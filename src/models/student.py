"""Student profile database model.

This module defines the Student database model using SQLAlchemy.
"""

from sqlalchemy import Column, Integer, String
from .base import Base


class StudentModel(Base):
    """Student profile linked to an authenticated user."""

    __tablename__ = "students"

    id = Column(String, primary_key=True, index=True)
    user_id = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=False)
    school = Column(String, nullable=False, default="")
    points = Column(Integer, nullable=False, default=0)
    created_at = Column(String, nullable=False)  # ISO format string
