"""
REST API routes for Social Backend.

All responses use the ResponseEnvelope pattern.

Endpoints (all under /api/v1 prefix):
- GET    /health                              - Health check
- DELETE /users/me                            - Erase the caller's account
- GET    /users/me/erasure-preview            - Count what erasure would remove
- DELETE /admin/users/{user_id}               - Erase another account (manage_users)
- POST   /admin/users/{user_id}/deactivate    - Anonymise without deleting (manage_users)

Erasure blocks for as long as the cascade takes (minutes on large
accounts), so it always runs in the threadpool.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from social_backend.api.dependencies import (
    get_api_settings,
    get_current_user_id,
    get_erasure_service,
    require_permission,
)
from social_backend.api.schemas import (
    FORBIDDEN,
    INTERNAL_ERROR,
    NOT_FOUND,
    ErasurePreviewData,
    ErasureResponseData,
    error_response,
    success_response,
)
from social_backend.config.settings import ApiSettings
from social_backend.infra.rbac import Permission
from social_backend.lib.erasure import AccountErasureService
from social_backend.lib.exceptions import ErasureError, ProtectedAccountError, UserNotFoundError
from social_backend.lib.security import hash_uid

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1")

ACCOUNT_DELETED_MESSAGE = "Account and all associated data permanently deleted"
ACCOUNT_DEACTIVATED_MESSAGE = "Account deactivated"
GENERIC_FAILURE_MESSAGE = "Failed to delete account. Please try again later."


def erasure_error_response(exc: ErasureError) -> JSONResponse:
    """Map an erasure failure to an HTTP response."""
    if isinstance(exc, UserNotFoundError):
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content=error_response(NOT_FOUND, "User not found"),
        )
    if isinstance(exc, ProtectedAccountError):
        return JSONResponse(
            status_code=status.HTTP_403_FORBIDDEN,
            content=error_response(FORBIDDEN, exc.message),
        )
    logger.error("Erasure request failed: %s", exc.to_dict())
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_response(INTERNAL_ERROR, GENERIC_FAILURE_MESSAGE),
    )


async def _erase(service: AccountErasureService, user_id: int) -> ErasureResponseData:
    result = await run_in_threadpool(service.erase_user, user_id)
    return ErasureResponseData(
        deleted_records=result.deleted_counts,
        duration_ms=result.duration_ms,
        already_deleted=result.already_deleted,
    )


# =============================================================================
# Health
# =============================================================================


@router.get("/health")
async def health_check() -> dict[str, Any]:
    """Health check endpoint (unauthenticated)."""
    return success_response({"status": "ok"})


# =============================================================================
# Self-service account erasure
# =============================================================================


@router.delete("/users/me", response_model=None)
async def delete_my_account(
    user_id: int = Depends(get_current_user_id),
    service: AccountErasureService = Depends(get_erasure_service),
    settings: ApiSettings = Depends(get_api_settings),
) -> JSONResponse:
    """
    Permanently delete the caller's account and everything that references it.

    On success the session cookie is cleared.
    """
    logger.info("Account deletion requested by user_hash=%s", hash_uid(user_id))
    try:
        data = await _erase(service, user_id)
    except ErasureError as e:
        return erasure_error_response(e)

    response = JSONResponse(
        status_code=status.HTTP_200_OK,
        content=success_response(data.model_dump(), message=ACCOUNT_DELETED_MESSAGE),
    )
    response.delete_cookie(settings.session_cookie_name)
    return response


@router.get("/users/me/erasure-preview", response_model=None)
async def preview_my_erasure(
    user_id: int = Depends(get_current_user_id),
    service: AccountErasureService = Depends(get_erasure_service),
) -> dict[str, Any]:
    counts = await run_in_threadpool(service.preview_erasure, user_id)
    return success_response(ErasurePreviewData(user_id=user_id, counts=counts).model_dump())


# =============================================================================
# Moderation
# =============================================================================


@router.delete("/admin/users/{user_id}", response_model=None)
async def admin_delete_user(
    user_id: int,
    caller_id: int = Depends(require_permission(Permission.MANAGE_USERS)),
    service: AccountErasureService = Depends(get_erasure_service),
) -> JSONResponse:
    """Erase another user's account. Protected accounts are refused with 403."""
    logger.info(
        "Admin erasure of user_hash=%s requested by user_hash=%s",
        hash_uid(user_id),
        hash_uid(caller_id),
    )
    try:
        data = await _erase(service, user_id)
    except ErasureError as e:
        return erasure_error_response(e)

    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content=success_response(data.model_dump(), message=ACCOUNT_DELETED_MESSAGE),
    )


@router.post("/admin/users/{user_id}/deactivate", response_model=None)
async def admin_deactivate_user(
    user_id: int,
    caller_id: int = Depends(require_permission(Permission.MANAGE_USERS)),
    service: AccountErasureService = Depends(get_erasure_service),
) -> JSONResponse:
    """Anonymise and deactivate an account without removing its rows."""
    logger.info(
        "Admin deactivation of user_hash=%s requested by user_hash=%s",
        hash_uid(user_id),
        hash_uid(caller_id),
    )
    try:
        await run_in_threadpool(service.soft_delete_only, user_id)
    except ErasureError as e:
        return erasure_error_response(e)

    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content=success_response({"user_id": user_id}, message=ACCOUNT_DEACTIVATED_MESSAGE),
    )


__all__ = ["erasure_error_response", "router"]
