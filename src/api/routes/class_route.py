"""Class management routes."""

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response, status

from api.routes.auth import get_current_user
from core.dependencies import (
    ClassManagerDep,
    InvitationManagerDep,
    StudentProvisionerDep,
)
from core.exceptions import (
    ClassNotFoundError,
    InvalidInvitationTransitionError,
    InvitationNotFoundError,
    TokenAllocationError,
    ValidationError,
)
from models.class_invitation import ClassInvitationModel
from schemas.class_schema import (
    ClassInfo,
    ClassInvitationInfo,
    ClassInvitationListResponse,
    ClassMemberInfo,
    CreateClassRequest,
    IssueInvitationRequest,
    UpdateInvitationRequest,
)
from schemas.user import User
from utils.invitation_lifecycle import build_join_url, effective_status
from utils.qr_image import render_join_qr_png

router = APIRouter(prefix="/api/classes", tags=["Class"])


def _build_class_info(model, role_in_class=None) -> ClassInfo:
    return ClassInfo(
        class_id=model.id,
        name=model.name,
        description=model.description,
        teacher_id=model.teacher_id,
        created_at=model.created_at,
        updated_at=model.updated_at,
        role_in_class=role_in_class,
    )


def _build_invitation_info(model: ClassInvitationModel) -> ClassInvitationInfo:
    return ClassInvitationInfo(
        invitation_id=model.id,
        invitation_code=model.invitation_token,
        class_id=model.classroom_id,
        email=model.email,
        status=effective_status(model).value,
        created_by=model.created_by,
        created_at=model.created_at,
        expires_at=model.expires_at,
        join_url=build_join_url(model.invitation_token),
    )


async def _get_owned_class(class_manager, class_id: str, current_user: User):
    """Load a classroom the caller may manage (owner or admin)."""
    try:
        class_model = await class_manager.get_class(class_id)
    except ClassNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Class not found",
        )
    if current_user.role not in ["admin", "teacher"]:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only teachers can manage classes.",
        )
    if current_user.role == "teacher" and class_model.teacher_id != current_user.user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only class owners can manage this class.",
        )
    return class_model


async def _get_class_invitation(
    invitation_manager, class_id: str, invitation_id: int
) -> ClassInvitationModel:
    try:
        invitation = await invitation_manager.get_invitation(invitation_id)
    except InvitationNotFoundError:
        invitation = None
    if invitation is None or invitation.classroom_id != class_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Invitation not found for this class.",
        )
    return invitation


@router.post("", response_model=ClassInfo, summary="Create class")
async def create_class(
    req: CreateClassRequest,
    class_manager: ClassManagerDep,
    current_user: User = Depends(get_current_user),
) -> ClassInfo:
    if current_user.role not in ["admin", "teacher"]:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only teachers can create classes.",
        )
    name = req.name.strip()
    if not name:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Class name cannot be empty.",
        )
    class_model = await class_manager.create_class(name, current_user.user_id, req.description)
    return _build_class_info(class_model, role_in_class="teacher")


@router.get("", response_model=List[ClassInfo], summary="List classes")
async def list_classes(
    class_manager: ClassManagerDep,
    provisioner: StudentProvisionerDep,
    current_user: User = Depends(get_current_user),
) -> List[ClassInfo]:
    if current_user.role in ["admin", "teacher"]:
        models = await class_manager.list_classes_for_teacher(current_user.user_id)
        return [_build_class_info(model, role_in_class="teacher") for model in models]

    student = await provisioner.get_student_for_user(current_user.user_id)
    if student is None:
        return []
    models = await class_manager.list_classes_for_student(student.id)
    return [_build_class_info(model, role_in_class="student") for model in models]


@router.get("/{class_id}", response_model=ClassInfo, summary="Get class")
async def get_class(
    class_id: str,
    class_manager: ClassManagerDep,
    current_user: User = Depends(get_current_user),
) -> ClassInfo:
    try:
        class_model = await class_manager.get_class(class_id)
    except ClassNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Class not found",
        )
    return _build_class_info(class_model)


@router.post(
    "/{class_id}/invite",
    response_model=ClassInvitationInfo,
    summary="Issue class invitation",
)
async def issue_class_invitation(
    class_id: str,
    req: IssueInvitationRequest,
    class_manager: ClassManagerDep,
    invitation_manager: InvitationManagerDep,
    current_user: User = Depends(get_current_user),
) -> ClassInvitationInfo:
    """Issue a shareable class code, or a single-use invitation when an email is given."""
    await _get_owned_class(class_manager, class_id, current_user)
    try:
        model = await invitation_manager.issue(
            class_id, created_by=current_user.user_id, email=req.email
        )
    except TokenAllocationError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Could not generate an invitation code, please try again.",
        )
    return _build_invitation_info(model)


@router.get(
    "/{class_id}/invites",
    response_model=ClassInvitationListResponse,
    summary="List class invitations",
)
async def list_class_invitations(
    class_id: str,
    class_manager: ClassManagerDep,
    invitation_manager: InvitationManagerDep,
    current_user: User = Depends(get_current_user),
) -> ClassInvitationListResponse:
    await _get_owned_class(class_manager, class_id, current_user)
    models = await invitation_manager.list_invitations(class_id)
    return ClassInvitationListResponse(
        invitations=[_build_invitation_info(model) for model in models]
    )


@router.patch(
    "/{class_id}/invites/{invitation_id}",
    response_model=ClassInvitationInfo,
    summary="Update class invitation expiry",
)
async def update_class_invitation(
    class_id: str,
    invitation_id: int,
    req: UpdateInvitationRequest,
    class_manager: ClassManagerDep,
    invitation_manager: InvitationManagerDep,
    current_user: User = Depends(get_current_user),
) -> ClassInvitationInfo:
    await _get_owned_class(class_manager, class_id, current_user)
    await _get_class_invitation(invitation_manager, class_id, invitation_id)
    try:
        model = await invitation_manager.extend_invitation(invitation_id, req.expires_in_days)
    except (ValidationError, InvalidInvitationTransitionError) as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )
    return _build_invitation_info(model)


@router.delete("/{class_id}/invites/{invitation_id}", summary="Delete class invitation")
async def delete_class_invitation(
    class_id: str,
    invitation_id: int,
    class_manager: ClassManagerDep,
    invitation_manager: InvitationManagerDep,
    current_user: User = Depends(get_current_user),
) -> dict:
    await _get_owned_class(class_manager, class_id, current_user)
    await _get_class_invitation(invitation_manager, class_id, invitation_id)
    await invitation_manager.delete_invitation(invitation_id)
    return {"success": True, "message": "Invitation deleted successfully"}


@router.get("/{class_id}/invites/{invitation_id}/qr", summary="Join QR code for an invitation")
async def class_invitation_qr(
    class_id: str,
    invitation_id: int,
    class_manager: ClassManagerDep,
    invitation_manager: InvitationManagerDep,
    current_user: User = Depends(get_current_user),
) -> Response:
    await _get_owned_class(class_manager, class_id, current_user)
    invitation = await _get_class_invitation(invitation_manager, class_id, invitation_id)
    return Response(
        content=render_join_qr_png(invitation.invitation_token),
        media_type="image/png",
    )


@router.get(
    "/{class_id}/members",
    response_model=List[ClassMemberInfo],
    summary="List class members",
)
async def list_class_members(
    class_id: str,
    class_manager: ClassManagerDep,
    current_user: User = Depends(get_current_user),
) -> List[ClassMemberInfo]:
    await _get_owned_class(class_manager, class_id, current_user)
    members = await class_manager.list_members(class_id)
    return [ClassMemberInfo(**member) for member in members]


@router.delete("/{class_id}/leave", summary="Leave class")
async def leave_class(
    class_id: str,
    class_manager: ClassManagerDep,
    provisioner: StudentProvisionerDep,
    current_user: User = Depends(get_current_user),
) -> dict:
    student = await provisioner.get_student_for_user(current_user.user_id)
    if student is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Student is not a member of this class",
        )
    try:
        await class_manager.leave_class(class_id, student.id)
    except ClassNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Class not found",
        )
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=str(e),
        )
    return {"success": True, "message": "Left class successfully"}


@router.delete("/{class_id}", summary="Delete class")
async def delete_class(
    class_id: str,
    class_manager: ClassManagerDep,
    current_user: User = Depends(get_current_user),
) -> dict:
    class_model = await _get_owned_class(class_manager, class_id, current_user)
    try:
        await class_manager.delete_class(class_id, class_model.teacher_id)
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=str(e),
        )
    return {"success": True, "message": "Class deleted successfully"}
