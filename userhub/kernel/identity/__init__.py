"""
Identity: bearer credential verification.
"""

from userhub.kernel.identity.jwt import (
    TokenVerificationError,
    TokenVerifier,
    VerifiedPrincipal,
    extract_bearer_token,
)

__all__ = [
    "TokenVerificationError",
    "TokenVerifier",
    "VerifiedPrincipal",
    "extract_bearer_token",
]
