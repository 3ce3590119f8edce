from typing import Any

import jwt
from fastapi import Depends, Request
from sqlalchemy.orm import Session

from subdoctor.core.config import settings
from subdoctor.core.database import get_db
from subdoctor.core.errors import AuthorizationError
from subdoctor.models.api_key import ApiKey
from subdoctor.models.shared import ensure_utc, utc_now
from subdoctor.repositories.api_key_repository import ApiKeyRepository, hash_api_key
from subdoctor.services.anti_forgery import AntiForgeryService
from subdoctor.services.issue_logger import IssueLogger

TOKEN_HEADER = "X-Troubleshooter-Token"

PERMISSION_DENIED = "You do not have permission to perform this action."


def _client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else ""


async def _reject(
    request: Request,
    db: Session,
    event_type: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> AuthorizationError:
    """Record a security event and build the error to raise."""
    issue_logger = IssueLogger(db)
    issue_logger.log_security_event(
        event_type,
        {
            "action": request.url.path,
            "ip_address": _client_ip(request),
            "user_agent": request.headers.get("User-Agent", ""),
            **(details or {}),
        },
    )
    await issue_logger.dispatch_alerts()
    return AuthorizationError(message)


async def get_current_operator(
    request: Request,
    db: Session = Depends(get_db),
) -> ApiKey:
    """Resolve the operator key from the Authorization header.

    The key must be active, unexpired and grant ``REQUIRED_CAPABILITY``.
    """
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer ") or not auth_header[7:]:
        raise await _reject(request, db, "missing_credentials", PERMISSION_DENIED)

    repo = ApiKeyRepository(db)
    api_key = repo.get_by_hash(hash_api_key(auth_header[7:]))
    if not api_key:
        raise await _reject(request, db, "unknown_api_key", PERMISSION_DENIED)

    if api_key.status == "revoked":
        raise await _reject(
            request, db, "revoked_api_key", PERMISSION_DENIED, {"key_prefix": api_key.key_prefix}
        )

    if api_key.expires_at and ensure_utc(api_key.expires_at) < utc_now():
        raise await _reject(
            request, db, "expired_api_key", PERMISSION_DENIED, {"key_prefix": api_key.key_prefix}
        )

    if settings.REQUIRED_CAPABILITY not in (api_key.capabilities or []):
        raise await _reject(
            request,
            db,
            "insufficient_permissions",
            PERMISSION_DENIED,
            {
                "key_prefix": api_key.key_prefix,
                "required_capability": settings.REQUIRED_CAPABILITY,
                "key_capabilities": list(api_key.capabilities or []),
            },
        )

    repo.update_last_used(api_key, utc_now())
    return api_key


async def require_anti_forgery_token(
    request: Request,
    operator: ApiKey = Depends(get_current_operator),
    db: Session = Depends(get_db),
) -> ApiKey:
    """Operator dependency that also checks the ``X-Troubleshooter-Token`` header."""
    token = request.headers.get(TOKEN_HEADER)
    if not token:
        raise await _reject(
            request,
            db,
            "missing_token",
            "Security token is missing.",
            {"key_prefix": operator.key_prefix},
        )
    try:
        AntiForgeryService.verify_token(token, operator.id)
    except jwt.InvalidTokenError:
        raise await _reject(
            request,
            db,
            "rejected_token",
            "Security token is invalid or expired.",
            {"key_prefix": operator.key_prefix},
        ) from None
    return operator
