"""
Authentication for the Social Backend REST API.

Implements:
- JWT token-based authentication (via PyJWT, HS256)
- Token lookup from the Authorization header or the session cookie
- Startup secrets validation (fail-fast if missing)
"""

from __future__ import annotations

import logging
import os
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt as pyjwt

from social_backend.lib.exceptions import ConfigurationError
from social_backend.lib.security import hash_uid

logger = logging.getLogger(__name__)

TOKEN_ISSUER = "social-backend"
TOKEN_AUDIENCE = "social-backend-api"


@dataclass
class AuthToken:
    """Decoded JWT authentication token."""

    user_id: int
    issued_at: datetime
    expires_at: datetime
    token_type: str = "Bearer"
    jti: str = field(default_factory=lambda: str(uuid.uuid4()))

    def is_expired(self) -> bool:
        """Check if token is expired."""
        return datetime.now(UTC) >= self.expires_at

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "issued_at": self.issued_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
            "token_type": self.token_type,
            "jti": self.jti,
        }


class AuthService:
    """
    Authentication service for REST API.

    Handles:
    - Token generation
    - Token encoding and validation
    - Request authentication
    """

    # Token expiry: 30 days
    TOKEN_EXPIRY_DAYS = 30

    def __init__(self, secret_key: str | None = None) -> None:
        """
        Initialize auth service.

        There is no hardcoded fallback secret. If SOCIAL_API_SECRET_KEY is
        not set and no explicit key is provided, raise ConfigurationError.

        Args:
            secret_key: Secret key for token signing (from env if not provided)
        """
        resolved_key = secret_key or os.getenv("SOCIAL_API_SECRET_KEY")
        if not resolved_key:
            raise ConfigurationError(
                "SOCIAL_API_SECRET_KEY environment variable is required. "
                "Set it to a cryptographically random string."
            )
        self.secret_key: str = resolved_key

    def generate_token(self, user_id: int) -> AuthToken:
        now = datetime.now(UTC)
        token = AuthToken(
            user_id=user_id,
            issued_at=now,
            expires_at=now + timedelta(days=self.TOKEN_EXPIRY_DAYS),
        )
        logger.info("Generated token for user_hash=%s", hash_uid(user_id))
        return token

    def encode_token(self, token: AuthToken) -> str:
        """Encode token to a signed JWT string."""
        payload: dict[str, Any] = {
            "sub": str(token.user_id),
            "iat": token.issued_at,
            "exp": token.expires_at,
            "type": token.token_type,
            "jti": token.jti,
            "iss": TOKEN_ISSUER,
            "aud": TOKEN_AUDIENCE,
        }
        return pyjwt.encode(payload, self.secret_key, algorithm="HS256")

    def issue(self, user_id: int) -> str:
        """Generate and encode a token in one step."""
        return self.encode_token(self.generate_token(user_id))

    def decode_token(self, jwt_token: str) -> AuthToken | None:
        """
        Decode and verify a JWT string.

        Returns:
            Auth token, or None if the signature, claims or expiry are invalid
        """
        try:
            payload = pyjwt.decode(
                jwt_token,
                self.secret_key,
                algorithms=["HS256"],
                audience=TOKEN_AUDIENCE,
                issuer=TOKEN_ISSUER,
            )
            return AuthToken(
                user_id=int(payload["sub"]),
                issued_at=datetime.fromtimestamp(payload["iat"], tz=UTC),
                expires_at=datetime.fromtimestamp(payload["exp"], tz=UTC),
                token_type=payload.get("type", "Bearer"),
                jti=payload.get("jti", ""),
            )
        except pyjwt.ExpiredSignatureError:
            logger.warning("Token expired")
            return None
        except (pyjwt.InvalidTokenError, KeyError, ValueError) as e:
            logger.warning("Token decode error: %s", e)
            return None

    def authenticate_request(
        self,
        authorization_header: str | None,
        session_cookie: str | None = None,
    ) -> AuthToken | None:
        """
        Authenticate a request using the Authorization header, falling back
        to the session cookie.

        Args:
            authorization_header: Authorization header value ("Bearer <token>")
            session_cookie: Raw JWT from the session cookie

        Returns:
            Auth token if valid, None otherwise
        """
        if authorization_header:
            parts = authorization_header.split()
            if len(parts) != 2 or parts[0].lower() != "bearer":
                logger.warning("Invalid Authorization header format")
                return None
            return self.decode_token(parts[1])
        if session_cookie:
            return self.decode_token(session_cookie)
        return None


def validate_secrets(secret_key: str | None = None) -> None:
    """
    Fail fast at startup if the signing secret is missing.

    Raises:
        ConfigurationError: If no secret key is configured
    """
    if not (secret_key or os.getenv("SOCIAL_API_SECRET_KEY")):
        raise ConfigurationError(
            "Missing required secret: SOCIAL_API_SECRET_KEY. "
            "The API cannot start without a token signing key."
        )


__all__ = ["AuthService", "AuthToken", "validate_secrets"]
