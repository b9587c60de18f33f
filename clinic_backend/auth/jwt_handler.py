from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt


@dataclass(frozen=True)
class Identity:
    """Authenticated caller resolved from a verified access token."""
    user_id: int
    role: str
    email: str | None = None


class TokenVerifier:
    """Signs and verifies access tokens with an explicitly supplied key."""

    def __init__(self, secret_key: str, algorithm: str = "HS256", expires_minutes: int = 60):
        if not secret_key:
            raise ValueError("A signing key is required.")
        self._secret_key = secret_key
        self.algorithm = algorithm
        self.expires_minutes = expires_minutes

    def create_access_token(
        self,
        user_id: int,
        role: str,
        email: str | None = None,
        expires_minutes: int | None = None,
    ) -> str:
        expire_minutes = expires_minutes or self.expires_minutes
        now = datetime.now(timezone.utc)
        payload = {
            "sub": str(user_id),
            "role": role,
            "exp": now + timedelta(minutes=expire_minutes),
            "iat": now,
        }
        if email:
            payload["email"] = email
        return jwt.encode(payload, self._secret_key, algorithm=self.algorithm)

    def decode_access_token(self, token: str) -> dict:
        return jwt.decode(token, self._secret_key, algorithms=[self.algorithm])

    def verify(self, token: str) -> Identity:
        payload = self.decode_access_token(token)
        subject = payload.get("sub")
        role = payload.get("role")
        if not subject or not role:
            raise jwt.InvalidTokenError("Token is missing subject or role.")
        try:
            user_id = int(subject)
        except (TypeError, ValueError) as exc:
            raise jwt.InvalidTokenError("Token subject is not a user id.") from exc
        return Identity(user_id=user_id, role=role, email=payload.get("email"))
