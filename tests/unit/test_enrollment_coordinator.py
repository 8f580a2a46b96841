"""Tests for idempotent enrollment."""

import asyncio

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from core.access_policy import RESTRICTED, EnrollmentAccessPolicy
from core.exceptions import ConfigurationError, EnrollmentError
from models.class_invitation import ClassInvitationModel
from models.classroom_student import ClassroomStudentModel
from tests.conftest import add_classroom, add_invitation
from utils.enrollment_coordinator import (
    PATH_DIRECT,
    PATH_EXISTING,
    PATH_FALLBACK,
    EnrollmentCoordinator,
)
from utils.invitation_matcher import InvitationMatcher


async def count_enrollments(db, student_id, classroom_id):
    result = await db.execute(
        select(func.count())
        .select_from(ClassroomStudentModel)
        .filter(
            ClassroomStudentModel.student_id == student_id,
            ClassroomStudentModel.classroom_id == classroom_id,
        )
    )
    return result.scalar_one()


@pytest.mark.asyncio
async def test_enroll_new_member(db, classroom, student):
    result = await EnrollmentCoordinator(db).enroll(student.id, classroom.id)

    assert result.classroom_id == classroom.id
    assert result.student_id == student.id
    assert not result.already_member
    assert result.path == PATH_DIRECT
    assert await count_enrollments(db, student.id, classroom.id) == 1


@pytest.mark.asyncio
async def test_enroll_twice_is_idempotent(db, classroom, student):
    coordinator = EnrollmentCoordinator(db)
    await coordinator.enroll(student.id, classroom.id)
    second = await coordinator.enroll(student.id, classroom.id)

    assert second.already_member
    assert second.path == PATH_EXISTING
    assert await count_enrollments(db, student.id, classroom.id) == 1


@pytest.mark.asyncio
async def test_lost_race_reports_already_member(db, session_factory, classroom, student, monkeypatch):
    coordinator = EnrollmentCoordinator(db)
    real_find = coordinator.find_enrollment
    calls = []

    async def find_after_race(student_id, classroom_id):
        calls.append(student_id)
        if len(calls) == 1:
            # Another request inserts the row between the check and our insert
            async with session_factory() as other:
                await EnrollmentCoordinator(other).insert_enrollment(student_id, classroom_id)
            return None
        return await real_find(student_id, classroom_id)

    monkeypatch.setattr(coordinator, "find_enrollment", find_after_race)

    result = await coordinator.enroll(student.id, classroom.id)
    assert result.already_member
    assert result.path == PATH_DIRECT
    assert len(calls) == 2
    assert await count_enrollments(db, student.id, classroom.id) == 1


@pytest.mark.asyncio
async def test_concurrent_joins_create_one_row(db, session_factory, classroom, student):
    async def join_once():
        async with session_factory() as session:
            return await EnrollmentCoordinator(session).enroll(student.id, classroom.id)

    results = await asyncio.gather(join_once(), join_once())

    assert sorted(r.already_member for r in results) == [False, True]
    assert await count_enrollments(db, student.id, classroom.id) == 1


@pytest.mark.asyncio
async def test_enrollments_are_per_classroom(db, classroom, student):
    other = await add_classroom(db, "c2", "Chemistry")
    coordinator = EnrollmentCoordinator(db)
    await coordinator.enroll(student.id, classroom.id)
    result = await coordinator.enroll(student.id, other.id)

    assert not result.already_member
    enrollments = await coordinator.list_enrollments_for_student(student.id)
    assert {e.classroom_id for e in enrollments} == {classroom.id, other.id}


@pytest.mark.asyncio
async def test_restricted_policy_uses_procedure(db, classroom, student):
    await add_invitation(db, classroom.id, "UK5CRH")
    match = await InvitationMatcher(db).resolve("UK5CRH")
    coordinator = EnrollmentCoordinator(db, policy=EnrollmentAccessPolicy(RESTRICTED))

    result = await coordinator.enroll(student.id, classroom.id, match)
    assert not result.already_member
    assert result.path == PATH_FALLBACK
    assert await count_enrollments(db, student.id, classroom.id) == 1

    again = await coordinator.enroll(student.id, classroom.id, match)
    assert again.already_member
    assert again.path == PATH_EXISTING


@pytest.mark.asyncio
async def test_procedure_ignores_existing_row(db, classroom, student, monkeypatch):
    await add_invitation(db, classroom.id, "UK5CRH")
    match = await InvitationMatcher(db).resolve("UK5CRH")
    await EnrollmentCoordinator(db).insert_enrollment(student.id, classroom.id)

    coordinator = EnrollmentCoordinator(db, policy=EnrollmentAccessPolicy(RESTRICTED))

    async def not_found(student_id, classroom_id):
        return None

    monkeypatch.setattr(coordinator, "find_enrollment", not_found)

    result = await coordinator.enroll(student.id, classroom.id, match)
    assert result.already_member
    assert result.path == PATH_FALLBACK
    assert await count_enrollments(db, student.id, classroom.id) == 1


@pytest.mark.asyncio
async def test_restricted_policy_without_invitation_fails(db, classroom, student):
    coordinator = EnrollmentCoordinator(db, policy=EnrollmentAccessPolicy(RESTRICTED))

    with pytest.raises(EnrollmentError):
        await coordinator.enroll(student.id, classroom.id)
    assert await count_enrollments(db, student.id, classroom.id) == 0


@pytest.mark.asyncio
async def test_restricted_policy_with_lapsed_invitation_fails(db, classroom, student):
    invitation = await add_invitation(db, classroom.id, "UK5CRH")
    match = await InvitationMatcher(db).resolve("UK5CRH")
    invitation.expires_at = "2000-01-01T00:00:00+00:00"
    await db.commit()

    coordinator = EnrollmentCoordinator(db, policy=EnrollmentAccessPolicy(RESTRICTED))
    with pytest.raises(EnrollmentError):
        await coordinator.enroll(student.id, classroom.id, match)


@pytest.mark.asyncio
async def test_email_invitation_accepted_after_enrollment(db, classroom, student):
    invitation = await add_invitation(db, classroom.id, "GRC234", email="grace@example.com")
    match = await InvitationMatcher(db).resolve("GRC234")

    await EnrollmentCoordinator(db).enroll(student.id, classroom.id, match)

    refreshed = await db.get(ClassInvitationModel, invitation.id)
    await db.refresh(refreshed)
    assert refreshed.status == "accepted"


@pytest.mark.asyncio
async def test_email_invitation_accepted_on_fallback_path(db, classroom, student):
    invitation = await add_invitation(db, classroom.id, "GRC234", email="grace@example.com")
    match = await InvitationMatcher(db).resolve("GRC234")
    coordinator = EnrollmentCoordinator(db, policy=EnrollmentAccessPolicy(RESTRICTED))

    await coordinator.enroll(student.id, classroom.id, match)

    await db.refresh(invitation)
    assert invitation.status == "accepted"


@pytest.mark.asyncio
async def test_general_code_stays_pending_after_enrollment(db, classroom, student):
    invitation = await add_invitation(db, classroom.id, "UK5CRH")
    match = await InvitationMatcher(db).resolve("UK5CRH")

    await EnrollmentCoordinator(db).enroll(student.id, classroom.id, match)

    await db.refresh(invitation)
    assert invitation.status == "pending"


def test_unknown_policy_mode():
    with pytest.raises(ConfigurationError):
        EnrollmentAccessPolicy("sometimes")


@pytest.mark.asyncio
async def test_concurrent_restricted_joins_create_one_row(db, session_factory, classroom, student):
    await add_invitation(db, classroom.id, "UK5CRH")
    match = await InvitationMatcher(db).resolve("UK5CRH")

    async def join_once():
        async with session_factory() as session:
            coordinator = EnrollmentCoordinator(session, policy=EnrollmentAccessPolicy(RESTRICTED))
            return await coordinator.enroll(student.id, classroom.id, match)

    results = await asyncio.gather(join_once(), join_once())

    assert sorted(r.already_member for r in results) == [False, True]
    assert all(r.path in (PATH_FALLBACK, PATH_EXISTING) for r in results)
    assert await count_enrollments(db, student.id, classroom.id) == 1


@pytest.mark.asyncio
async def test_non_duplicate_integrity_error_uses_procedure(db, classroom, student, monkeypatch):
    await add_invitation(db, classroom.id, "UK5CRH")
    match = await InvitationMatcher(db).resolve("UK5CRH")
    coordinator = EnrollmentCoordinator(db)

    async def rejected_insert(student_id, classroom_id):
        raise IntegrityError("INSERT INTO classroom_students", {}, Exception("CHECK constraint failed"))

    monkeypatch.setattr(coordinator, "insert_enrollment", rejected_insert)

    result = await coordinator.enroll(student.id, classroom.id, match)
    assert not result.already_member
    assert result.path == PATH_FALLBACK
    assert await count_enrollments(db, student.id, classroom.id) == 1
