"""
Session claims - the compact, signed snapshot of {subject, role, status}.

SessionClaims is immutable. A refresh never patches claims in place; the
issuer derives a new SessionClaims from the account store and the codec
signs it into a new token.
"""

from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt

from src.utils.logging import get_logger
from src.utils.rbac.permission_enum import AccountStatus, Role

logger = get_logger(__name__)

DEFAULT_MAX_AGE_SECONDS = 5 * 60
DEFAULT_ALGORITHM = "HS256"
ISSUER = "marketgate"


class ClaimsConfigError(Exception):
    """Raised when the claims codec is not configured (no signing key)."""
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class SessionClaims:
    """Claims carried by a session token. Owned by the issuer, read by everyone else."""
    subject_id: str
    role: Role
    account_status: AccountStatus
    issued_at: datetime
    expires_at: datetime

    @classmethod
    def create(
        cls,
        subject_id: str,
        role: Role,
        account_status: AccountStatus,
        max_age_seconds: int = DEFAULT_MAX_AGE_SECONDS,
        now: Optional[datetime] = None,
    ) -> "SessionClaims":
        issued_at = (now or utcnow()).replace(microsecond=0)
        return cls(
            subject_id=str(subject_id),
            role=Role(role),
            account_status=AccountStatus(account_status),
            issued_at=issued_at,
            expires_at=issued_at + timedelta(seconds=max_age_seconds),
        )

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or utcnow()) >= self.expires_at

    def age_seconds(self, now: Optional[datetime] = None) -> float:
        return ((now or utcnow()) - self.issued_at).total_seconds()

    def with_account_state(
        self,
        role: Role,
        account_status: AccountStatus,
        max_age_seconds: int = DEFAULT_MAX_AGE_SECONDS,
        now: Optional[datetime] = None,
    ) -> "SessionClaims":
        """New claims for the same subject with re-read role/status and a fresh expiry."""
        issued_at = (now or utcnow()).replace(microsecond=0)
        return replace(
            self,
            role=Role(role),
            account_status=AccountStatus(account_status),
            issued_at=issued_at,
            expires_at=issued_at + timedelta(seconds=max_age_seconds),
        )

    def to_payload(self) -> Dict[str, Any]:
        return {
            "iss": ISSUER,
            "sub": self.subject_id,
            "role": self.role.value,
            "accountStatus": self.account_status.value,
            "iat": int(self.issued_at.timestamp()),
            "exp": int(self.expires_at.timestamp()),
        }

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "SessionClaims":
        """
        Build claims from a decoded token payload.

        Raises:
            ValueError: If a claim is missing or role/status are not known values
        """
        try:
            return cls(
                subject_id=str(payload["sub"]),
                role=Role(payload["role"]),
                account_status=AccountStatus(payload["accountStatus"]),
                issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
                expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
            )
        except KeyError as e:
            raise ValueError(f"Missing claim: {e.args[0]}")


class ClaimsCodec:
    """
    Signs and verifies session tokens (JWT, HMAC).

    Usage:
        codec = ClaimsCodec(secret_key=read_secret("CLAIMS_SIGNING_KEY"))
        token = codec.encode(claims)
        claims = codec.decode(token)  # None when invalid or expired
    """

    def __init__(self, secret_key: Optional[str], algorithm: str = DEFAULT_ALGORITHM, leeway_seconds: int = 0):
        if not secret_key:
            raise ClaimsConfigError("Claims signing key is not configured (CLAIMS_SIGNING_KEY)")
        self._secret_key = secret_key
        self._algorithm = algorithm
        self._leeway = leeway_seconds

    def encode(self, claims: SessionClaims) -> str:
        return jwt.encode(claims.to_payload(), self._secret_key, algorithm=self._algorithm)

    def decode(self, token: Optional[str]) -> Optional[SessionClaims]:
        """
        Verify a token and extract its claims.

        Returns:
            SessionClaims, or None if the token is absent, tampered with,
            expired or carries unknown role/status values
        """
        if not token:
            return None

        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self._algorithm],
                issuer=ISSUER,
                leeway=self._leeway,
                options={"require": ["sub", "iat", "exp"]},
            )
        except jwt.ExpiredSignatureError:
            logger.debug("Session token has expired")
            return None
        except jwt.InvalidTokenError as e:
            logger.warning(f"Invalid session token: {e}")
            return None

        try:
            return SessionClaims.from_payload(payload)
        except ValueError as e:
            logger.warning(f"Session token carries invalid claims: {e}")
            return None
