"""Bearer token verification for endpoints that require an identity."""

from dataclasses import dataclass, field
from typing import Any

import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from starlette.status import HTTP_401_UNAUTHORIZED

from app.core.config import Settings, settings
from app.core.logging import get_logger

logger = get_logger()

_bearer = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Identity:
    """Caller identity extracted from a verified token."""

    subject: str
    claims: dict[str, Any] = field(default_factory=dict)


class TokenVerificationError(Exception):
    """Raised when a bearer token is missing, malformed or rejected."""


class TokenVerifier:
    """Verify signed JWT bearer tokens."""

    def __init__(
        self,
        secret: str,
        algorithms: list[str] | None = None,
        audience: str | None = None,
        issuer: str | None = None,
    ) -> None:
        if not secret:
            raise ValueError("A signing secret is required for token verification")
        self.secret = secret
        self.algorithms = algorithms or ["HS256"]
        self.audience = audience
        self.issuer = issuer

    def verify(self, token: str) -> Identity:
        """Decode and validate ``token``.

        Args:
            token: Encoded JWT taken from the Authorization header

        Returns:
            The identity named by the token's ``sub`` claim

        Raises:
            TokenVerificationError: If the token is invalid or has no subject
        """
        try:
            claims = jwt.decode(
                token,
                self.secret,
                algorithms=self.algorithms,
                audience=self.audience,
                issuer=self.issuer,
                options={"require": ["exp", "sub"]},
            )
        except jwt.PyJWTError as e:
            raise TokenVerificationError(str(e)) from e
        return Identity(subject=str(claims["sub"]), claims=claims)

    @classmethod
    def from_settings(cls, config: Settings) -> "TokenVerifier":
        return cls(
            secret=config.AUTH_JWT_SECRET or "",
            algorithms=config.AUTH_JWT_ALGORITHMS,
            audience=config.AUTH_JWT_AUDIENCE,
            issuer=config.AUTH_JWT_ISSUER,
        )


_verifier: TokenVerifier | None = None


def get_token_verifier() -> TokenVerifier:
    """Return the token verifier built from application settings."""
    global _verifier
    if _verifier is None:
        _verifier = TokenVerifier.from_settings(settings)
    return _verifier


def require_identity(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
) -> Identity:
    """FastAPI dependency that rejects requests without a valid bearer token."""
    if not settings.AUTH_ENABLED:
        return Identity(subject="anonymous")

    if credentials is None or credentials.scheme.lower() != "bearer":
        raise HTTPException(
            status_code=HTTP_401_UNAUTHORIZED, detail="No token provided"
        )

    try:
        return get_token_verifier().verify(credentials.credentials)
    except TokenVerificationError as e:
        logger.info("token_rejected", reason=str(e))
        raise HTTPException(
            status_code=HTTP_401_UNAUTHORIZED, detail="Invalid token"
        ) from e


def reset_token_verifier() -> None:
    """Drop the cached verifier so it is rebuilt from settings. Used for testing."""
    global _verifier
    _verifier = None
