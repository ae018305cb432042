"""
Credential hashing, identity tokens and the ownership check.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import jwt
from passlib.context import CryptContext

from config import Settings

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, password_hash: str) -> bool:
    """Constant-time check of a plain password against a stored hash.

    A malformed or unknown hash counts as a mismatch.
    """
    try:
        return pwd_context.verify(plain_password, password_hash)
    except (ValueError, TypeError):
        return False


class TokenError(Exception):
    pass


class TokenInvalid(TokenError):
    """Bad signature or malformed token."""


class TokenExpired(TokenError):
    """Well-formed, correctly signed, but past its expiry."""


class TokenService:
    """Issues and verifies signed, time-limited identity tokens (JWT).

    Tokens carry `sub` (user id), `iat` and `exp`. They are stateless:
    nothing is stored server-side and nothing can be revoked.
    """

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        expires_in: timedelta = timedelta(days=30),
    ):
        if not secret:
            raise ValueError("Token signing secret must not be empty")
        self.secret = secret
        self.algorithm = algorithm
        self.expires_in = expires_in

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenService":
        return cls(
            secret=settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
            expires_in=timedelta(days=settings.jwt_expire_days),
        )

    def issue(self, user_id: Any, issued_at: Optional[datetime] = None) -> str:
        issued_at = issued_at or datetime.now(timezone.utc)
        payload = {
            "sub": str(user_id),
            "iat": issued_at,
            "exp": issued_at + self.expires_in,
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def verify(self, token: str) -> str:
        """Return the user id encoded in `token`.

        Raises:
            TokenExpired: signature is valid but `exp` has passed
            TokenInvalid: anything else wrong with the token
        """
        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                options={"require": ["sub", "iat", "exp"]},
            )
        except jwt.ExpiredSignatureError as exc:
            raise TokenExpired("Token has expired") from exc
        except jwt.InvalidTokenError as exc:
            raise TokenInvalid(str(exc)) from exc
        return payload["sub"]


def is_owner(resource_owner_ref: Any, user_id: Any) -> bool:
    """True when the resource's owner reference names the given user."""
    if resource_owner_ref is None or user_id is None:
        return False
    return str(resource_owner_ref) == str(user_id)
