"""Bearer tokens carrying the account id and the active role."""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import jwt

from ridehail.core.exceptions import AuthenticationError, ConfigurationError
from ridehail.settings import AuthSettings

from .models import Role


@dataclass(frozen=True)
class Principal:
    """Authenticated caller as seen by the services."""

    account_id: str
    role: Role


class TokenService:
    def __init__(self, settings: AuthSettings):
        if not settings.jwt_secret:
            raise ConfigurationError("AUTH_JWT_SECRET is not configured")
        self._secret = settings.jwt_secret
        self._algorithm = settings.jwt_algorithm
        self._ttl = timedelta(days=settings.token_ttl_days)

    def issue(self, account_id: str, role: Role) -> str:
        now = datetime.now(UTC)
        payload = {
            "sub": account_id,
            "role": role.value,
            "iat": now,
            "exp": now + self._ttl,
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def decode(self, token: str) -> Principal:
        try:
            payload = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except jwt.ExpiredSignatureError as e:
            raise AuthenticationError("Token expired") from e
        except jwt.InvalidTokenError as e:
            raise AuthenticationError("Invalid token") from e

        try:
            return Principal(account_id=payload["sub"], role=Role(payload["role"]))
        except (KeyError, ValueError) as e:
            raise AuthenticationError("Invalid token claims") from e
