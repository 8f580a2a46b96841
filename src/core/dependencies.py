"""Dependency injection module for FastAPI.

This module provides dependency injection functions for FastAPI routes.
Every manager gets the request-scoped async DB session.
"""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_db
from utils import class_join_service
from utils import class_manager
from utils import invitation_lifecycle
from utils import student_provisioner
from utils import user_manager


def get_user_manager(db: AsyncSession = Depends(get_db)) -> user_manager.UserManager:
    """Get UserManager instance with request-scoped DB session.

    Args:
        db: Database session.

    Returns:
        UserManager instance.
    """
    return user_manager.UserManager(db)


def get_class_manager(db: AsyncSession = Depends(get_db)) -> class_manager.ClassManager:
    """Get ClassManager instance with request-scoped DB session."""
    return class_manager.ClassManager(db)


def get_invitation_manager(
    db: AsyncSession = Depends(get_db),
) -> invitation_lifecycle.InvitationLifecycleManager:
    """Get InvitationLifecycleManager instance with request-scoped DB session."""
    return invitation_lifecycle.InvitationLifecycleManager(db)


def get_student_provisioner(
    db: AsyncSession = Depends(get_db),
) -> student_provisioner.StudentProvisioner:
    return student_provisioner.StudentProvisioner(db)


def get_class_join_service(
    db: AsyncSession = Depends(get_db),
) -> class_join_service.ClassJoinService:
    """Get ClassJoinService instance with request-scoped DB session."""
    return class_join_service.ClassJoinService(db)


# Type aliases for dependency injection
UserManagerDep = Annotated[
    user_manager.UserManager, Depends(get_user_manager)
]
ClassManagerDep = Annotated[
    class_manager.ClassManager, Depends(get_class_manager)
]
InvitationManagerDep = Annotated[
    invitation_lifecycle.InvitationLifecycleManager, Depends(get_invitation_manager)
]
StudentProvisionerDep = Annotated[
    student_provisioner.StudentProvisioner, Depends(get_student_provisioner)
]
ClassJoinServiceDep = Annotated[
    class_join_service.ClassJoinService, Depends(get_class_join_service)
]
