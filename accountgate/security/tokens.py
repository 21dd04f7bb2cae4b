"""Issuing and validating signed access tokens."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import time
from typing import Any, Iterable

import jwt

from ..config import Settings

_JWT_ALG = "HS256"


class Capability(str, Enum):
    """Tags embedded in the ``cap`` claim describing what a bearer may do."""

    user = "user"
    demo = "demo"
    admin = "admin"
    super_admin = "super_admin"


PRIVILEGED = Capability.admin


class InvalidToken(Exception):
    """Raised when a token is malformed, tampered with, or expired."""


class InsufficientPrivilege(Exception):
    """Raised when a valid token lacks the privilege a caller asked for."""


@dataclass(frozen=True, slots=True)
class IssuedToken:
    token: str
    expires_in: int


@dataclass(frozen=True, slots=True)
class VerifiedToken:
    subject_id: str
    capabilities: frozenset[Capability]

    @property
    def privileged(self) -> bool:
        return PRIVILEGED in self.capabilities

    def has(self, capability: Capability) -> bool:
        return capability in self.capabilities


class TokenService:
    """Signs and verifies JWT access tokens with a process-wide key.

    The signing key and lifetimes are captured once at construction; rotating
    ``JWT_SECRET`` therefore invalidates every outstanding token on restart.
    """

    def __init__(
        self,
        *,
        secret: str,
        issuer: str,
        user_ttl_seconds: int,
        admin_ttl_seconds: int,
    ) -> None:
        if not secret:
            raise ValueError("jwt_secret_blank")
        self._secret = secret
        self._issuer = issuer
        self._user_ttl = user_ttl_seconds
        self._admin_ttl = admin_ttl_seconds

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenService":
        return cls(
            secret=settings.jwt_secret,
            issuer=settings.jwt_issuer,
            user_ttl_seconds=settings.user_token_ttl_seconds,
            admin_ttl_seconds=settings.admin_token_ttl_seconds,
        )

    def issue(
        self,
        subject_id: str,
        capabilities: Iterable[Capability],
        ttl: int | None = None,
    ) -> IssuedToken:
        """Create a signed JWT for ``subject_id``.

        Parameters
        ----------
        subject_id:
            Account or admin identifier placed in the ``sub`` claim.
        capabilities:
            Capability tags; a set containing ``admin`` yields a privileged token.
        ttl:
            Lifetime in seconds. Defaults to the admin TTL for privileged tokens
            and the user TTL otherwise.
        """
        caps = sorted({Capability(cap) for cap in capabilities}, key=lambda c: c.value)
        if ttl is None:
            ttl = self._admin_ttl if PRIVILEGED in caps else self._user_ttl
        now = int(time.time())
        payload: dict[str, Any] = {
            "iss": self._issuer,
            "sub": str(subject_id),
            "cap": [cap.value for cap in caps],
            "iat": now,
            "exp": now + ttl,
        }
        return IssuedToken(token=jwt.encode(payload, self._secret, algorithm=_JWT_ALG), expires_in=ttl)

    def verify(self, token: str | None, *, privileged: bool = False) -> VerifiedToken:
        """Decode ``token`` and return its subject and capabilities.

        Raises
        ------
        InvalidToken
            Signature, issuer or expiry checks failed, or the token is blank.
        InsufficientPrivilege
            ``privileged`` was requested and the token does not carry ``admin``.
        """
        if not token:
            raise InvalidToken("token_blank")
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[_JWT_ALG],
                issuer=self._issuer,
                options={"require": ["exp", "sub"]},
            )
        except jwt.ExpiredSignatureError as exc:
            raise InvalidToken("token_expired") from exc
        except jwt.PyJWTError as exc:
            raise InvalidToken("token_invalid") from exc

        subject = payload.get("sub")
        if not subject:
            raise InvalidToken("token_missing_sub")
        try:
            caps = frozenset(Capability(value) for value in payload.get("cap") or [])
        except (TypeError, ValueError) as exc:
            raise InvalidToken("token_bad_capability") from exc

        verified = VerifiedToken(subject_id=str(subject), capabilities=caps)
        if privileged and not verified.privileged:
            raise InsufficientPrivilege("admin_required")
        return verified
