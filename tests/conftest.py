"""Pytest configuration and fixtures."""

import os
import tempfile
from datetime import datetime, timedelta

import pytest
import pytz

# Set environment variables before imports
os.environ.setdefault("DATA_DIR", tempfile.mkdtemp(prefix="classroom-join-test-"))
os.environ["JWT_SECRET_KEY"] = "test-secret"
os.environ["LOG_LEVEL"] = "DEBUG"

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402

from config import GENERAL_INVITATION_EMAIL  # noqa: E402
from core.database import init_db  # noqa: E402
from models.class_invitation import ClassInvitationModel  # noqa: E402
from models.class_model import ClassroomModel  # noqa: E402
from models.student import StudentModel  # noqa: E402
from schemas.user import User  # noqa: E402


def utc(days: float = 0) -> datetime:
    return datetime.now(pytz.utc) + timedelta(days=days)


@pytest.fixture
async def engine(tmp_path):
    """File-backed SQLite so separate sessions really are separate connections."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await init_db(bind=engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(
        bind=engine, class_=AsyncSession, autoflush=False, expire_on_commit=False
    )


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


async def add_classroom(db, classroom_id: str = "c1", name: str = "Biology 101") -> ClassroomModel:
    now = utc().isoformat()
    classroom = ClassroomModel(
        id=classroom_id,
        name=name,
        description="",
        teacher_id="teacher-1",
        created_at=now,
        updated_at=now,
    )
    db.add(classroom)
    await db.commit()
    return classroom


async def add_student(db, student_id: str = "s1", user_id: str = "user-s1") -> StudentModel:
    student = StudentModel(
        id=student_id,
        user_id=user_id,
        name="Ada",
        school="",
        points=0,
        created_at=utc().isoformat(),
    )
    db.add(student)
    await db.commit()
    return student


async def add_invitation(
    db,
    classroom_id: str,
    token: str,
    email: str = GENERAL_INVITATION_EMAIL,
    expires_in_days: float = 30,
    status: str = "pending",
    created_days_ago: float = 0,
) -> ClassInvitationModel:
    invitation = ClassInvitationModel(
        classroom_id=classroom_id,
        invitation_token=token,
        email=email,
        status=status,
        created_by="teacher-1",
        created_at=utc(-created_days_ago).isoformat(),
        expires_at=utc(expires_in_days).isoformat(),
    )
    db.add(invitation)
    await db.commit()
    await db.refresh(invitation)
    return invitation


@pytest.fixture
async def classroom(db):
    return await add_classroom(db)


@pytest.fixture
async def student(db):
    return await add_student(db)


@pytest.fixture
def student_user():
    return User(
        user_id="user-ada",
        username="ada",
        password_hash="not-a-real-hash",
        role="student",
        display_name="Ada Lovelace",
        email="ada@example.com",
    )
