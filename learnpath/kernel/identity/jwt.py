"""
Bearer token verification.

Tokens are minted by the identity service that owns user accounts. This
service only checks the signature, expiry and token type, then hands the
claims to ``IdentityService`` to resolve ``sub`` to a local user row.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from jose import JWTError, jwt
from pydantic import BaseModel, ValidationError

from learnpath.config import get_settings


class AccessTokenPayload(BaseModel):
    """Claims carried by an access token."""

    sub: str  # User ID
    email: str = ""
    role: str = ""
    exp: datetime
    iat: datetime
    jti: str = ""


class TokenVerifier:
    """Checks access tokens signed with the shared secret."""

    TOKEN_TYPE = "access"

    def __init__(self, secret_key: Optional[str] = None, algorithm: Optional[str] = None):
        settings = get_settings()
        self.secret_key = secret_key or settings.secret_key
        self.algorithm = algorithm or settings.algorithm

    def decode(self, token: str) -> Optional[Dict[str, Any]]:
        """Raw claims of a correctly signed, unexpired token."""
        try:
            return jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError:
            return None

    def verify(self, token: str) -> Optional[AccessTokenPayload]:
        """
        Verify an access token.

        Returns None for a bad signature, an expired token, a token of
        another type, or claims missing ``sub``/``exp``/``iat``.
        """
        claims = self.decode(token)
        if claims is None or claims.get("type") != self.TOKEN_TYPE:
            return None
        try:
            return AccessTokenPayload.model_validate(claims)
        except ValidationError:
            return None


def verify_access_token(token: str) -> Optional[AccessTokenPayload]:
    """Verify a token against the configured secret."""
    return TokenVerifier().verify(token)
