from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from uuid import UUID

from ledgerpos.database.database import get_db
from ledgerpos.modules.auth.dependencies import AuthDependencies, user_permission_slugs
from ledgerpos.modules.auth.models import User
from ledgerpos.dependencies.dbDependencies import db_dependency
from ledgerpos.dependencies.userDependencies import user_dependency
from ledgerpos.modules.auth.schemas import PermissionSync, UserPermissionsOut, CurrentUserOut
from ledgerpos.modules.auth.service import PermissionService

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/me", response_model=CurrentUserOut)
def get_me(current_user: user_dependency, db: db_dependency):
    return CurrentUserOut(
        id=current_user.id,
        name=current_user.name,
        email=current_user.email,
        permissions=user_permission_slugs(db, current_user),
    )


@router.get("/{user_id}/permissions", response_model=UserPermissionsOut)
def get_user_permissions(
    user_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(AuthDependencies.require_permission("users.view"))
):
    permissions = PermissionService(db).list_user_permissions(user_id)
    return UserPermissionsOut(user_id=user_id, permissions=permissions)


@router.post("/{user_id}/permissions", response_model=UserPermissionsOut)
def sync_user_permissions(
    user_id: UUID,
    payload: PermissionSync,
    db: Session = Depends(get_db),
    current_user: User = Depends(AuthDependencies.require_permission("users.manage-permissions"))
):
    """Replace the user's permission set. Unknown slugs are rejected."""
    permissions = PermissionService(db).sync_user_permissions(user_id, payload.permissions)
    return UserPermissionsOut(user_id=user_id, permissions=permissions)
