"""Invitation lifecycle management.

Owns invitation status transitions and the generation of new tokens. Expiry
is derived from ``expires_at`` at read time; no row is ever rewritten to
``expired`` by this module.
"""

import logging
import secrets
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Dict, FrozenSet, List, Optional

import pytz
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config import (
    CLASS_CODE_EXPIRY_DAYS,
    CLASS_CODE_PREFIX,
    EMAIL_INVITE_EXPIRY_DAYS,
    GENERAL_INVITATION_EMAIL,
    INVITE_TOKEN_ALPHABET,
    INVITE_TOKEN_LENGTH,
    JOIN_BASE_URL,
    TOKEN_ALLOCATION_ATTEMPTS,
)
from core.exceptions import (
    InvalidInvitationTransitionError,
    InvitationNotFoundError,
    TokenAllocationError,
    ValidationError,
)
from models.class_invitation import ClassInvitationModel

logger = logging.getLogger(__name__)


class InvitationStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    EXPIRED = "expired"


ALLOWED_TRANSITIONS: Dict[InvitationStatus, FrozenSet[InvitationStatus]] = {
    InvitationStatus.PENDING: frozenset({InvitationStatus.ACCEPTED, InvitationStatus.EXPIRED}),
    InvitationStatus.ACCEPTED: frozenset(),
    InvitationStatus.EXPIRED: frozenset(),
}


def validate_transition(current, target) -> InvitationStatus:
    """Check that an invitation may move from ``current`` to ``target``.

    Returns:
        The target status.

    Raises:
        InvalidInvitationTransitionError: For any transition not in the table.
    """
    try:
        current = InvitationStatus(current)
        target = InvitationStatus(target)
    except ValueError:
        raise InvalidInvitationTransitionError(str(current), str(target))
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidInvitationTransitionError(current.value, target.value)
    return target


def utc_now() -> datetime:
    return datetime.now(pytz.utc)


def parse_timestamp(value: str) -> datetime:
    """Parse a stored ISO timestamp; naive values are taken as UTC."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = pytz.utc.localize(parsed)
    return parsed


def is_expired(invitation: ClassInvitationModel, now: Optional[datetime] = None) -> bool:
    return parse_timestamp(invitation.expires_at) <= (now or utc_now())


def effective_status(
    invitation: ClassInvitationModel, now: Optional[datetime] = None
) -> InvitationStatus:
    """Stored status, with lapsed pending invitations reported as expired."""
    status = InvitationStatus(invitation.status)
    if status is InvitationStatus.PENDING and is_expired(invitation, now):
        return InvitationStatus.EXPIRED
    return status


def is_general_email(email: Optional[str]) -> bool:
    return not email or email.strip().lower() == GENERAL_INVITATION_EMAIL


def is_general_invitation(invitation: ClassInvitationModel) -> bool:
    return is_general_email(invitation.email)


def generate_token(
    length: int = INVITE_TOKEN_LENGTH,
    alphabet: str = INVITE_TOKEN_ALPHABET,
    prefix: str = "",
) -> str:
    """Random human-typeable token of ``length`` characters, prefix included."""
    if length <= len(prefix):
        raise ValueError("token length must exceed the prefix length")
    body = "".join(secrets.choice(alphabet) for _ in range(length - len(prefix)))
    return f"{prefix}{body}"


def build_join_url(token: str) -> str:
    return f"{JOIN_BASE_URL}/classes?code={token}"


def log_invitation_notice(invitation: ClassInvitationModel) -> None:
    """Default notifier. Delivery is handled outside this service."""
    logger.info(
        "Invitation %s for classroom %s ready to send to %s",
        invitation.invitation_token,
        invitation.classroom_id,
        invitation.email,
    )


class InvitationLifecycleManager:
    """Issues invitations and applies their status transitions."""

    def __init__(
        self,
        db: AsyncSession,
        notifier: Optional[Callable[[ClassInvitationModel], None]] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.db = db
        self.notifier = notifier or log_invitation_notice
        self.clock = clock

    async def _live_token_exists(self, token: str, now: datetime) -> bool:
        result = await self.db.execute(
            select(ClassInvitationModel).filter(
                ClassInvitationModel.invitation_token == token,
                ClassInvitationModel.status == InvitationStatus.PENDING.value,
            )
        )
        return any(not is_expired(inv, now) for inv in result.scalars().all())

    async def _allocate_token(self, general: bool, now: datetime) -> str:
        prefix = CLASS_CODE_PREFIX if general else ""
        for _ in range(TOKEN_ALLOCATION_ATTEMPTS):
            token = generate_token(prefix=prefix)
            if not await self._live_token_exists(token, now):
                return token
            logger.warning("Invitation token collision on %s, regenerating", token)
        raise TokenAllocationError("could_not_allocate_unique_invitation_token")

    async def issue(
        self,
        classroom_id: str,
        created_by: Optional[str] = None,
        email: Optional[str] = None,
    ) -> ClassInvitationModel:
        """Create a new pending invitation for a classroom.

        Without an email (or with the general-invitation marker) this produces
        a shareable class code that lasts CLASS_CODE_EXPIRY_DAYS. With a real
        email it produces a single-recipient invitation that lasts
        EMAIL_INVITE_EXPIRY_DAYS and hands it to the notifier.

        Args:
            classroom_id: Classroom the invitation admits to.
            created_by: User ID of the issuer.
            email: Optional recipient address.

        Returns:
            The stored ClassInvitationModel.
        """
        general = is_general_email(email)
        now = self.clock()
        days = CLASS_CODE_EXPIRY_DAYS if general else EMAIL_INVITE_EXPIRY_DAYS
        token = await self._allocate_token(general, now)
        invitation = ClassInvitationModel(
            classroom_id=classroom_id,
            invitation_token=token,
            email=GENERAL_INVITATION_EMAIL if general else email.strip().lower(),
            status=InvitationStatus.PENDING.value,
            created_by=created_by,
            created_at=now.isoformat(),
            expires_at=(now + timedelta(days=days)).isoformat(),
        )
        self.db.add(invitation)
        await self.db.commit()
        await self.db.refresh(invitation)
        logger.info(
            "Issued %s invitation %s for classroom %s",
            "general" if general else "email",
            token,
            classroom_id,
        )
        if not general:
            self.notifier(invitation)
        return invitation

    async def get_invitation(self, invitation_id: int) -> ClassInvitationModel:
        invitation = await self.db.get(ClassInvitationModel, invitation_id)
        if invitation is None:
            raise InvitationNotFoundError(invitation_id)
        return invitation

    async def accept(self, invitation_id: int) -> ClassInvitationModel:
        """Mark a single-recipient invitation as accepted.

        This is bookkeeping only; enrollment rows decide membership. General
        class codes stay pending so other students can keep using them.

        Raises:
            InvitationNotFoundError: If no invitation has this ID.
            InvalidInvitationTransitionError: If it is not pending and live.
        """
        invitation = await self.get_invitation(invitation_id)
        if is_general_invitation(invitation):
            logger.debug("Invitation %s is a general class code, left pending", invitation_id)
            return invitation
        current = effective_status(invitation, self.clock())
        invitation.status = validate_transition(current, InvitationStatus.ACCEPTED).value
        await self.db.commit()
        logger.info("Accepted invitation %s", invitation_id)
        return invitation

    async def list_invitations(self, classroom_id: str) -> List[ClassInvitationModel]:
        result = await self.db.execute(
            select(ClassInvitationModel)
            .filter(ClassInvitationModel.classroom_id == classroom_id)
            .order_by(ClassInvitationModel.created_at.desc())
        )
        return list(result.scalars().all())

    async def extend_invitation(
        self, invitation_id: int, expires_in_days: int
    ) -> ClassInvitationModel:
        """Push a pending invitation's expiry to ``expires_in_days`` from now.

        Raises:
            ValidationError: If expires_in_days is outside 1..365.
            InvitationNotFoundError: If the invitation does not exist.
            InvalidInvitationTransitionError: If it is no longer pending.
        """
        if expires_in_days < 1 or expires_in_days > 365:
            raise ValidationError("expires_in_days must be between 1 and 365")
        invitation = await self.get_invitation(invitation_id)
        current = effective_status(invitation, self.clock())
        if current is not InvitationStatus.PENDING:
            raise InvalidInvitationTransitionError(current.value, InvitationStatus.PENDING.value)
        invitation.expires_at = (self.clock() + timedelta(days=expires_in_days)).isoformat()
        await self.db.commit()
        await self.db.refresh(invitation)
        logger.info(
            "Updated expiration date for invitation %s, new expires_at: %s",
            invitation_id,
            invitation.expires_at,
        )
        return invitation

    async def delete_invitation(self, invitation_id: int) -> None:
        invitation = await self.get_invitation(invitation_id)
        await self.db.delete(invitation)
        await self.db.commit()
        logger.info("Deleted class invitation: %s", invitation_id)
