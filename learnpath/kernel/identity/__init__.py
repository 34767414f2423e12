"""
Identity Core - bearer token verification and user lookup.
"""

from learnpath.kernel.identity.jwt import (
    AccessTokenPayload,
    TokenVerifier,
    verify_access_token,
)
from learnpath.kernel.identity.identity_service import IdentityService

__all__ = [
    "AccessTokenPayload",
    "TokenVerifier",
    "verify_access_token",
    "IdentityService",
]
