"""Bearer token issuance and verification."""

import logging
from datetime import timedelta
from typing import Optional

import jwt

from log_ingest_api.models import utcnow

logger = logging.getLogger(__name__)

APPLICATION_CLAIM = "applicationName"
ALGORITHM = "HS256"


class TokenService:
    """Signs and decodes HS256 JWTs carrying an application claim."""

    def __init__(self, key: str, issuer: str, audience: str, expires_days: int = 3650):
        self._key = key
        self._issuer = issuer
        self._audience = audience
        self._lifetime = timedelta(days=expires_days)

    @classmethod
    def from_config(cls, jwt_config: dict) -> "TokenService":
        return cls(
            key=jwt_config["key"],
            issuer=jwt_config["issuer"],
            audience=jwt_config["audience"],
            expires_days=jwt_config["expires_days"],
        )

    def issue(self, application_name: str) -> str:
        now = utcnow()
        claims = {
            APPLICATION_CLAIM: application_name,
            "iss": self._issuer,
            "aud": self._audience,
            "iat": now,
            "exp": now + self._lifetime,
        }
        return jwt.encode(claims, self._key, algorithm=ALGORITHM)

    def decode(self, token: str) -> Optional[dict]:
        """Return the verified claim set, or None if the token is unusable."""
        try:
            return jwt.decode(
                token,
                self._key,
                algorithms=[ALGORITHM],
                issuer=self._issuer,
                audience=self._audience,
            )
        except jwt.InvalidTokenError as exc:
            logger.debug("Rejected bearer token: %s", exc)
            return None


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Extract the token from an ``Authorization: Bearer <token>`` header."""
    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


class CredentialVerifier:
    """Turns an Authorization header into the caller's application name."""

    def __init__(self, tokens: TokenService):
        self._tokens = tokens

    def verify(self, authorization: Optional[str]) -> Optional[str]:
        token = bearer_token(authorization)
        if token is None:
            return None
        claims = self._tokens.decode(token)
        if claims is None:
            return None
        application = claims.get(APPLICATION_CLAIM)
        if not isinstance(application, str) or not application.strip():
            return None
        return application
