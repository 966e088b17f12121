"""JWT verification utilities.

Tokens are minted by the identity provider in front of this service; the
verifier only checks signature, expiry and issuer and hands back the claims.
``issue_token`` exists for local tooling and tests.
"""

import time
from typing import Optional

import jwt
from pydantic import ValidationError as PydanticValidationError

from ivas.core.config import settings
from ivas.schemas.auth import TokenClaims
from ivas.schemas.enums import UserRole
from ivas.utils.logging import get_logger

LOGGER = get_logger(__name__)


class JWTVerifier:
    """HS256 bearer token verifier."""

    def __init__(self, secret: str, algorithm: str = "HS256", issuer: str = "ivas"):
        """Initialize JWT verifier.

        Args:
            secret: Shared signing secret
            algorithm: Signing algorithm
            issuer: Expected ``iss`` claim
        """
        self.secret = secret
        self.algorithm = algorithm
        self.issuer = issuer

        LOGGER.info(f"JWT verifier initialized for issuer: {self.issuer}")

    async def verify_token(self, token: str) -> TokenClaims:
        """Verify and decode a bearer token.

        Args:
            token: JWT access token from Authorization header or query string

        Returns:
            Decoded and validated claims

        Raises:
            jwt.InvalidTokenError: If token is invalid, expired or malformed
        """
        payload = jwt.decode(
            token,
            self.secret,
            algorithms=[self.algorithm],
            issuer=self.issuer,
            options={"require": ["sub", "exp", "iat", "iss"]},
        )
        try:
            return TokenClaims(**payload)
        except PydanticValidationError as e:
            raise jwt.InvalidTokenError(f"Token claims are malformed: {e}") from e

    def issue_token(
        self,
        user_id: int,
        role: UserRole | str,
        company_id: Optional[int] = None,
        ttl_minutes: Optional[int] = None,
    ) -> str:
        """Sign a token for the given identity."""
        now = int(time.time())
        ttl = ttl_minutes if ttl_minutes is not None else settings.auth.access_token_ttl_minutes
        claims = {
            "sub": str(user_id),
            "role": UserRole(role).value,
            "company_id": company_id,
            "iat": now,
            "exp": now + ttl * 60,
            "iss": self.issuer,
        }
        return jwt.encode(claims, self.secret, algorithm=self.algorithm)


jwt_verifier = JWTVerifier(
    secret=settings.auth.jwt_secret,
    algorithm=settings.auth.jwt_algorithm,
    issuer=settings.auth.jwt_issuer,
)
