"""
Authentication and permission dependencies for FastAPI.
"""
from typing import List, Optional
from uuid import UUID
import logging

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from ledgerpos.database.database import get_db
from ledgerpos.common.exceptions import UnauthorizedError, ForbiddenError
from ledgerpos.modules.auth.models import User, Permission, user_permissions
from ledgerpos.modules.auth.utils import verify_token
from ledgerpos.modules.auth.cache import permission_cache

logger = logging.getLogger(__name__)

# auto_error=False so a missing header is answered with 401 instead of 403
security = HTTPBearer(auto_error=False)


def load_permission_slugs(db: Session, user_id) -> List[str]:
    rows = (
        db.query(Permission.slug)
        .join(user_permissions, user_permissions.c.permission_id == Permission.id)
        .filter(user_permissions.c.user_id == user_id)
        .order_by(Permission.slug)
        .all()
    )
    return [slug for (slug,) in rows]


def user_permission_slugs(db: Session, user: User) -> List[str]:
    """Permission slugs of a user, served from the permission cache."""
    return permission_cache.remember(user.id, lambda: load_permission_slugs(db, user.id))


class AuthDependencies:
    """Reusable authentication dependencies."""

    @staticmethod
    def get_current_user(
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
        db: Session = Depends(get_db)
    ) -> User:
        """
        Resolve the acting user from the bearer token.
        """
        if credentials is None:
            raise UnauthorizedError("Not authenticated")

        payload = verify_token(credentials.credentials)
        try:
            user_id = UUID(str(payload["sub"]))
        except ValueError:
            raise UnauthorizedError("Could not validate credentials")

        user = db.query(User).filter(User.id == user_id).first()
        if user is None or not user.is_active:
            raise UnauthorizedError("Could not validate credentials")
        return user

    @staticmethod
    def require_permission(slug: str):
        """
        Dependency requiring the acting user to hold a permission slug.
        """
        def permission_checker(
            current_user: User = Depends(AuthDependencies.get_current_user),
            db: Session = Depends(get_db)
        ) -> User:
            if slug not in user_permission_slugs(db, current_user):
                logger.info(f"User {current_user.id} denied: missing permission '{slug}'")
                raise ForbiddenError()
            return current_user
        return permission_checker


get_current_user = AuthDependencies.get_current_user
require_permission = AuthDependencies.require_permission
