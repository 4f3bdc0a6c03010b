"""
FastAPI dependencies for authentication, authorization and service access.

The application state (set up in create_app) holds the session factory,
the AccountErasureService and the AuthService; dependencies read them from
``request.app.state`` so tests can build an app around any engine.
"""

import logging
from collections.abc import Callable

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from social_backend.api.auth import AuthService, AuthToken
from social_backend.config.settings import ApiSettings
from social_backend.infra.rbac import Permission, Role, check_permission
from social_backend.lib.erasure import AccountErasureService
from social_backend.lib.exceptions import PermissionDeniedError
from social_backend.lib.security import hash_uid
from social_backend.models import UserRole

logger = logging.getLogger(__name__)


def get_api_settings(request: Request) -> ApiSettings:
    return request.app.state.api_settings


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def get_session_factory(request: Request) -> sessionmaker[Session]:
    return request.app.state.session_factory


def get_erasure_service(request: Request) -> AccountErasureService:
    return request.app.state.erasure_service


async def get_current_user_token(
    request: Request,
    auth_service: AuthService = Depends(get_auth_service),
    settings: ApiSettings = Depends(get_api_settings),
) -> AuthToken:
    """
    Dependency to get the current user's authenticated token.

    Reads a Bearer token from the Authorization header, then the session
    cookie. Raises 401 if neither yields a valid, unexpired token.
    """
    authorization = request.headers.get("authorization")
    cookie = request.cookies.get(settings.session_cookie_name)
    if not authorization and not cookie:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    auth_token = auth_service.authenticate_request(authorization, cookie)
    if not auth_token or auth_token.is_expired():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return auth_token


async def get_current_user_id(
    token: AuthToken = Depends(get_current_user_token),
) -> int:
    return token.user_id


def load_role(session_factory: sessionmaker[Session], user_id: int) -> Role:
    """Look up the caller's stored role; users without a role row are USER."""
    with session_factory() as session:
        stored = session.scalar(select(UserRole.role).where(UserRole.user_id == user_id))
    return Role.parse(stored)


def require_permission(permission: Permission) -> Callable[..., int]:
    """
    Build a dependency that requires the caller's stored role to grant
    ``permission``. Returns the caller's user id.

    Usage:
        @router.delete("/admin/users/{user_id}")
        async def erase(caller_id: int = Depends(require_permission(Permission.MANAGE_USERS))):
            ...
    """

    def dependency(
        user_id: int = Depends(get_current_user_id),
        session_factory: sessionmaker[Session] = Depends(get_session_factory),
    ) -> int:
        role = load_role(session_factory, user_id)
        try:
            check_permission(role, permission, raise_on_failure=True)
        except PermissionDeniedError:
            logger.warning(
                "Permission %s denied for user_hash=%s (role=%s)",
                permission,
                hash_uid(user_id),
                role,
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You do not have permission to perform this action.",
            ) from None
        return user_id

    return dependency


__all__ = [
    "get_api_settings",
    "get_auth_service",
    "get_current_user_id",
    "get_current_user_token",
    "get_erasure_service",
    "get_session_factory",
    "load_role",
    "require_permission",
]
