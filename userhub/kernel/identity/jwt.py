"""
Bearer token verification against the identity provider's shared secret.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from pydantic import BaseModel

from userhub.config import get_settings


class TokenVerificationError(Exception):
    """The credential is missing, malformed, expired or signed with another key."""


class VerifiedPrincipal(BaseModel):
    """Claims the identity provider vouches for."""

    sub: str  # User ID
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    exp: Optional[datetime] = None


class TokenVerifier:
    """
    Verifies HS256-style bearer tokens.

    Issuing is supported for local development and tests only; in production
    tokens come from the external identity provider.
    """

    def __init__(
        self,
        secret_key: Optional[str] = None,
        algorithm: Optional[str] = None,
    ):
        settings = get_settings()
        self.secret_key = secret_key if secret_key is not None else settings.identity_secret_key
        self.algorithm = algorithm or settings.identity_algorithm

    @property
    def configured(self) -> bool:
        return bool(self.secret_key)

    async def verify(self, token: str) -> VerifiedPrincipal:
        """
        Verify and decode a bearer token.

        Raises:
            TokenVerificationError: if the token cannot be trusted
        """
        if not self.configured:
            raise TokenVerificationError("Identity secret key not configured")
        if not token:
            raise TokenVerificationError("Empty token")

        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                options={"verify_aud": False},
            )
        except JWTError as exc:
            raise TokenVerificationError(str(exc)) from exc

        sub = payload.get("sub")
        if not sub:
            raise TokenVerificationError("Token has no subject")

        exp = payload.get("exp")
        return VerifiedPrincipal(
            sub=str(sub),
            email=payload.get("email"),
            first_name=payload.get("first_name"),
            last_name=payload.get("last_name"),
            exp=datetime.fromtimestamp(exp, tz=timezone.utc) if exp else None,
        )

    def issue(
        self,
        subject: str,
        email: Optional[str] = None,
        expires_delta: Optional[timedelta] = None,
        **claims: str,
    ) -> str:
        """Sign a token with the configured secret (development/tests)."""
        if not self.configured:
            raise TokenVerificationError("Identity secret key not configured")
        now = datetime.now(timezone.utc)
        payload = {
            "sub": subject,
            "iat": now,
            "exp": now + (expires_delta or timedelta(minutes=30)),
            "jti": str(uuid.uuid4()),
            **claims,
        }
        if email is not None:
            payload["email"] = email
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Return the token from an ``Authorization: Bearer <token>`` header value."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer":
        return None
    return token.strip() or None
