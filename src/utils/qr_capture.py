"""Bridge between a QR scanner and the join pipeline.

The scanner owns the camera; this side only receives decoded text. The first
payload that leads to a successful join ends the scan, later decodes of the
same frame stream are ignored.
"""

import logging
from typing import Awaitable, Callable, Optional

from core.exceptions import ClassJoinError
from schemas.class_join import JoinOutcome, JoinSource
from schemas.user import User
from utils.class_join_service import ClassJoinService

logger = logging.getLogger(__name__)

ResultCallback = Callable[[Optional[JoinOutcome], Optional[ClassJoinError]], Awaitable[None]]


class QRJoinScanner:
    def __init__(
        self,
        join_service: ClassJoinService,
        user: User,
        on_result: Optional[ResultCallback] = None,
    ):
        self.join_service = join_service
        self.user = user
        self.on_result = on_result
        self.outcome: Optional[JoinOutcome] = None
        self.last_error: Optional[ClassJoinError] = None

    @property
    def succeeded(self) -> bool:
        return self.outcome is not None

    async def on_decoded(self, payload: str) -> None:
        """Feed a decoded QR payload into the join pipeline."""
        if self.succeeded:
            logger.debug("Scan already succeeded, ignoring payload")
            return
        try:
            self.outcome = await self.join_service.join_with_code(
                self.user, payload, source=JoinSource.QR
            )
            self.last_error = None
        except ClassJoinError as e:
            logger.info("QR payload did not lead to a join: %s", e)
            self.last_error = e
        if self.on_result is not None:
            await self.on_result(self.outcome, self.last_error)
