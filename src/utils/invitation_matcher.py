"""Invitation code resolution.

A canonical code is resolved to a classroom (and usually an invitation) by an
ordered chain of matching strategies. The order is fixed in MATCH_STRATEGIES:
an earlier strategy always wins over a later one.

Each strategy returns ``None`` when it has nothing to say, or a ``MatchHit``.
A hit whose invitation has lapsed is flagged ``expired``; the chain keeps
going and only reports ``CodeExpiredError`` if no later strategy finds a live
invitation.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from config import CLASS_CODE_PREFIX
from core.exceptions import CodeExpiredError, CodeNotFoundError
from models.class_invitation import ClassInvitationModel
from models.class_model import ClassroomModel
from schemas.class_join import ClassroomSummary, InvitationMatch
from utils.code_normalizer import canonicalize, is_family_code
from utils.invitation_lifecycle import (
    InvitationStatus,
    is_expired,
    is_general_invitation,
    utc_now,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MatchHit:
    classroom: ClassroomModel
    invitation: Optional[ClassInvitationModel] = None
    expired: bool = False


Strategy = Callable[[AsyncSession, str, datetime], Awaitable[Optional[MatchHit]]]


def _pending_invitations():
    return (
        select(ClassInvitationModel)
        .options(selectinload(ClassInvitationModel.classroom))
        .filter(ClassInvitationModel.status == InvitationStatus.PENDING.value)
        .order_by(ClassInvitationModel.created_at.desc(), ClassInvitationModel.id.desc())
    )


def _pick(invitations: Sequence[ClassInvitationModel], code: str, now: datetime) -> Optional[MatchHit]:
    """Choose among invitations sharing a token, newest live one first."""
    if not invitations:
        return None
    live = [inv for inv in invitations if not is_expired(inv, now)]
    if not live:
        return MatchHit(classroom=invitations[0].classroom, invitation=invitations[0], expired=True)
    if len({inv.classroom_id for inv in live}) > 1:
        logger.warning(
            "Token %s is shared by %d live invitations across classrooms, using newest (%s)",
            code,
            len(live),
            live[0].id,
        )
    return MatchHit(classroom=live[0].classroom, invitation=live[0])


async def match_exact_token(db: AsyncSession, code: str, now: datetime) -> Optional[MatchHit]:
    result = await db.execute(
        _pending_invitations().filter(ClassInvitationModel.invitation_token == code)
    )
    return _pick(result.scalars().all(), code, now)


async def match_classroom_id(db: AsyncSession, code: str, now: datetime) -> Optional[MatchHit]:
    """Legacy direct links carry the classroom id itself."""
    result = await db.execute(
        select(ClassroomModel).filter(func.lower(ClassroomModel.id) == code.lower())
    )
    classroom = result.scalars().first()
    if classroom is None:
        return None
    return MatchHit(classroom=classroom)


def _one_off(a: str, b: str) -> bool:
    return len(a) == len(b) and sum(x != y for x, y in zip(a, b)) == 1


def _closeness(token: str, code: str) -> Optional[int]:
    """Rank how well a stored token explains a typed family code (lower is better)."""
    token = token.upper()
    if token == code:
        return 0
    if code in token or token in code:
        return 1
    if _one_off(token, code):
        return 2
    return None


async def match_family_prefix(db: AsyncSession, code: str, now: datetime) -> Optional[MatchHit]:
    """Recover class-family codes that were mis-transcribed by one character."""
    if not is_family_code(code):
        return None
    result = await db.execute(
        _pending_invitations().filter(
            ClassInvitationModel.invitation_token.ilike(f"{CLASS_CODE_PREFIX}%")
        )
    )
    ranked: List[Tuple[int, ClassInvitationModel]] = []
    for invitation in result.scalars().all():
        rank = _closeness(invitation.invitation_token, code)
        if rank is not None:
            ranked.append((rank, invitation))
    if not ranked:
        return None
    live = [(rank, inv) for rank, inv in ranked if not is_expired(inv, now)]
    if not live:
        # Only lapsed candidates: enough to report expiry, no classroom is chosen
        return _pick([inv for _, inv in ranked], code, now)
    best = min(rank for rank, _ in live)
    candidates = [inv for rank, inv in live if rank == best]
    if len({inv.classroom_id for inv in candidates}) > 1:
        logger.info("Partial match for %s is ambiguous across classrooms, skipping", code)
        return None
    return _pick(candidates, code, now)


async def match_case_insensitive(db: AsyncSession, code: str, now: datetime) -> Optional[MatchHit]:
    result = await db.execute(
        _pending_invitations().filter(
            func.upper(ClassInvitationModel.invitation_token) == code.upper()
        )
    )
    return _pick(result.scalars().all(), code, now)


MATCH_STRATEGIES: Tuple[Tuple[str, Strategy], ...] = (
    ("exact_token", match_exact_token),
    ("classroom_id", match_classroom_id),
    ("family_prefix", match_family_prefix),
    ("case_insensitive", match_case_insensitive),
)


def _to_match(name: str, hit: MatchHit) -> InvitationMatch:
    classroom = hit.classroom
    invitation = hit.invitation
    return InvitationMatch(
        classroom_id=classroom.id,
        classroom=ClassroomSummary(
            id=classroom.id,
            name=classroom.name or "Classroom",
            description=classroom.description,
            teacher_id=classroom.teacher_id,
        ),
        strategy=name,
        invitation_id=invitation.id if invitation else None,
        token=invitation.invitation_token if invitation else None,
        is_general=is_general_invitation(invitation) if invitation else True,
    )


class InvitationMatcher:
    """Resolves canonical codes against the invitation store."""

    def __init__(
        self,
        db: AsyncSession,
        strategies: Sequence[Tuple[str, Strategy]] = MATCH_STRATEGIES,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.db = db
        self.strategies = strategies
        self.clock = clock

    async def resolve(self, code: str) -> InvitationMatch:
        """Resolve a code to its classroom and invitation.

        Args:
            code: Canonical code from the normalizer.

        Returns:
            InvitationMatch from the first strategy with a live hit.

        Raises:
            CodeExpiredError: If the only hits were lapsed invitations.
            CodeNotFoundError: If no strategy matched at all.
        """
        code = canonicalize(code)
        if not code:
            raise CodeNotFoundError(code)
        now = self.clock()
        expired_hit: Optional[MatchHit] = None
        for name, strategy in self.strategies:
            hit = await strategy(self.db, code, now)
            if hit is None:
                continue
            if hit.expired:
                logger.info("Strategy %s found expired invitation for %s", name, code)
                expired_hit = expired_hit or hit
                continue
            logger.info("Strategy %s resolved %s to classroom %s", name, code, hit.classroom.id)
            return _to_match(name, hit)

        if expired_hit is not None:
            raise CodeExpiredError(code, expired_hit.invitation.id)
        logger.info("No matching invitation or classroom found for %s", code)
        raise CodeNotFoundError(code)
