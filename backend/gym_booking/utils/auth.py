from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Protocol, Sequence

import jwt
from jwt import InvalidTokenError

ROLE_CLIENT = "client"
ROLE_ADMIN = "admin"


@dataclass(frozen=True)
class VerifiedIdentity:
    subject: str
    role: str = ROLE_CLIENT


class IdentityVerifier(Protocol):
    def verify(self, token: str) -> VerifiedIdentity:
        """Return the identity behind `token` or raise ValueError."""
        ...


def create_access_token(
    *,
    subject: str,
    secret: str,
    role: str = ROLE_CLIENT,
    algorithm: str = "HS256",
    expires_delta: timedelta | None = None,
) -> str:
    now = datetime.now(timezone.utc)
    exp = now + (expires_delta or timedelta(minutes=30))
    payload = {"sub": subject, "role": role, "iat": now, "exp": exp}
    return jwt.encode(payload, secret, algorithm=algorithm)


def decode_access_token(
    token: str,
    *,
    secret: str,
    algorithms: Sequence[str],
) -> VerifiedIdentity:
    try:
        payload = jwt.decode(token, secret, algorithms=list(algorithms))
    except InvalidTokenError as exc:  # includes ExpiredSignatureError
        raise ValueError("invalid token") from exc

    sub = payload.get("sub")
    if not isinstance(sub, str) or not sub:
        raise ValueError("token missing sub")
    role = payload.get("role", ROLE_CLIENT)
    if role not in (ROLE_CLIENT, ROLE_ADMIN):
        raise ValueError("token has unknown role")
    return VerifiedIdentity(subject=sub, role=role)


class JwtIdentityVerifier:
    def __init__(self, secret: str, algorithm: str = "HS256") -> None:
        self.secret = secret
        self.algorithm = algorithm

    def verify(self, token: str) -> VerifiedIdentity:
        return decode_access_token(token, secret=self.secret, algorithms=[self.algorithm])
