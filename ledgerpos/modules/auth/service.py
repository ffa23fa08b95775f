from sqlalchemy.orm import Session
from typing import List
from uuid import UUID
import logging

from ledgerpos.common.exceptions import NotFoundError, ValidationError
from ledgerpos.common.transaction import atomic
from ledgerpos.modules.auth.models import User, Permission
from ledgerpos.modules.auth.cache import permission_cache

logger = logging.getLogger(__name__)


class PermissionService:
    def __init__(self, db: Session):
        self.db = db

    def get_user(self, user_id: UUID) -> User:
        user = self.db.query(User).filter(User.id == user_id).first()
        if not user:
            raise NotFoundError("User not found")
        return user

    def list_user_permissions(self, user_id: UUID) -> List[Permission]:
        user = self.get_user(user_id)
        return sorted(user.permissions, key=lambda p: p.slug)

    def sync_user_permissions(self, user_id: UUID, slugs: List[str]) -> List[Permission]:
        """Replace the permission set of a user with exactly ``slugs``."""
        user = self.get_user(user_id)

        permissions = []
        if slugs:
            permissions = self.db.query(Permission).filter(Permission.slug.in_(slugs)).all()
        unknown = sorted(set(slugs) - {p.slug for p in permissions})
        if unknown:
            raise ValidationError(errors={"permissions": f"Unknown permission slugs: {', '.join(unknown)}"})

        with atomic(self.db, "syncing user permissions"):
            user.permissions = permissions

        permission_cache.invalidate(user.id)
        logger.info(f"Permissions of user {user.id} synced: {sorted(slugs)}")
        return self.list_user_permissions(user_id)
