from datetime import datetime, timedelta

import jwt

from subdoctor.core.config import settings
from subdoctor.models.shared import utc_now

TOKEN_TYPE = "anti_forgery"


class AntiForgeryService:
    """Per-session tokens bound to the operator key that requested them."""

    @staticmethod
    def generate_token(key_id: object, now: datetime | None = None) -> tuple[str, datetime]:
        """Return a signed token and its expiry."""
        expires_at = (now or utc_now()) + timedelta(hours=settings.ANTI_FORGERY_TOKEN_TTL_HOURS)
        payload = {
            "key_id": str(key_id),
            "type": TOKEN_TYPE,
            "exp": expires_at,
        }
        return jwt.encode(payload, settings.APP_SECRET_KEY, algorithm="HS256"), expires_at

    @staticmethod
    def verify_token(token: str, key_id: object) -> None:
        """Decode and validate a token for ``key_id``.

        Raises jwt.ExpiredSignatureError or jwt.InvalidTokenError on failure.
        """
        payload = jwt.decode(token, settings.APP_SECRET_KEY, algorithms=["HS256"])
        if payload.get("type") != TOKEN_TYPE:
            raise jwt.InvalidTokenError("Invalid token type")
        if payload.get("key_id") != str(key_id):
            raise jwt.InvalidTokenError("Token was issued to another key")
