"""Classroom join routes.

Manual entry, URL auto-join and QR scans are three doors into the same
``ClassJoinService.join`` call.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status

from api.routes.auth import get_current_user
from core.dependencies import ClassJoinServiceDep
from core.exceptions import (
    ClassJoinError,
    CodeExpiredError,
    CodeNotFoundError,
    EnrollmentError,
    InvalidCodeFormatError,
    ProfileProvisionError,
    StoreUnavailableError,
)
from schemas.class_join import JoinOutcome, JoinRequest, JoinSource
from schemas.class_schema import (
    JoinClassRequest,
    JoinClassResponse,
    JoinPreviewResponse,
    QRJoinRequest,
)
from schemas.user import User
from utils.qr_capture import QRJoinScanner

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/classes/join", tags=["Join"])

ERROR_STATUS = (
    (InvalidCodeFormatError, status.HTTP_400_BAD_REQUEST),
    (CodeNotFoundError, status.HTTP_404_NOT_FOUND),
    (CodeExpiredError, status.HTTP_410_GONE),
    (ProfileProvisionError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (StoreUnavailableError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (EnrollmentError, status.HTTP_409_CONFLICT),
)


def to_http_exception(exc: ClassJoinError) -> HTTPException:
    for error_type, status_code in ERROR_STATUS:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


def _build_response(outcome: JoinOutcome) -> JoinClassResponse:
    return JoinClassResponse(
        class_id=outcome.match.classroom_id,
        class_name=outcome.match.classroom.name,
        code=outcome.code,
        already_member=outcome.already_member,
        message=outcome.message,
    )


async def _join(join_service, user: User, request: JoinRequest) -> JoinClassResponse:
    try:
        outcome = await join_service.join(user, request)
    except ClassJoinError as e:
        logger.info("Join failed for %s: %s", user.user_id, e)
        raise to_http_exception(e)
    return _build_response(outcome)


@router.post("", response_model=JoinClassResponse, summary="Join class with a code")
async def join_class(
    req: JoinClassRequest,
    join_service: ClassJoinServiceDep,
    current_user: User = Depends(get_current_user),
) -> JoinClassResponse:
    """Join a class with a typed or pasted code, or a pasted join link."""
    return await _join(
        join_service, current_user, JoinRequest(raw_input=req.code, source=req.source)
    )


@router.get("", response_model=JoinClassResponse, summary="Join class from a link")
async def join_class_from_link(
    join_service: ClassJoinServiceDep,
    code: str = Query(..., description="The code query parameter of a join link."),
    current_user: User = Depends(get_current_user),
) -> JoinClassResponse:
    return await _join(
        join_service, current_user, JoinRequest(raw_input=code, source=JoinSource.URL)
    )


@router.post("/qr", response_model=JoinClassResponse, summary="Join class from a QR scan")
async def join_class_from_qr(
    req: QRJoinRequest,
    join_service: ClassJoinServiceDep,
    current_user: User = Depends(get_current_user),
) -> JoinClassResponse:
    scanner = QRJoinScanner(join_service, current_user)
    await scanner.on_decoded(req.payload)
    if not scanner.succeeded:
        raise to_http_exception(scanner.last_error)
    return _build_response(scanner.outcome)


@router.get("/preview", response_model=JoinPreviewResponse, summary="Check a code without joining")
async def preview_join_code(
    join_service: ClassJoinServiceDep,
    code: str = Query(..., description="Code, join URL or QR payload."),
    current_user: User = Depends(get_current_user),
) -> JoinPreviewResponse:
    try:
        match = await join_service.preview(code)
    except ClassJoinError as e:
        raise to_http_exception(e)
    return JoinPreviewResponse(
        class_id=match.classroom_id,
        class_name=match.classroom.name,
        strategy=match.strategy,
    )
