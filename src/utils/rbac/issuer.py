"""
Session issuer - sign-in, claims minting and the claims refresh protocol.

Session lifecycle:
    anonymous -> authenticating -> issued -> (refreshing <-> issued) -> expired / signed out

Claims are short-lived (minutes). On refresh the issuer re-reads role and
account status from the account store instead of trusting the old token, so
a suspension, ban or role change takes effect within one refresh interval.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Optional, Tuple

from src.utils.logging import get_logger
from src.utils.rbac.audit import log_authentication_event, log_claims_refresh
from src.utils.rbac.authorization import ErrorCode, status_error
from src.utils.rbac.claims import (
    DEFAULT_MAX_AGE_SECONDS,
    ClaimsCodec,
    SessionClaims,
    utcnow,
)
from src.utils.rbac.permission_enum import AccountStatus, Role

logger = get_logger(__name__)

DEFAULT_REFRESH_INTERVAL_SECONDS = 60


class RefreshTrigger(str, Enum):
    """Why claims are being refreshed. Only SIGN_IN skips the account re-read."""
    SIGN_IN = "signIn"
    UPDATE = "update"
    INTERVAL = "interval"


@dataclass(frozen=True)
class Principal:
    """An authenticated account, before any claims are minted."""
    id: str
    email: str
    role: Role
    account_status: AccountStatus
    display_name: Optional[str] = None


@dataclass(frozen=True)
class SignInResult:
    claims: Optional[SessionClaims] = None
    token: Optional[str] = None
    error: Optional[ErrorCode] = None

    @property
    def success(self) -> bool:
        return self.claims is not None


def _principal_from_account(account) -> Principal:
    return Principal(
        id=account.id,
        email=account.email,
        role=Role(account.role),
        account_status=AccountStatus(account.account_status),
        display_name=account.display_name,
    )


class SessionIssuer:
    """
    Issues and refreshes session claims.

    Args:
        account_store: Object with find_account_by_id / find_account_by_email
                       (and create_account for registration)
        codec: ClaimsCodec used to sign tokens
        verifier: Credential verifier with verify(plain, hash) / hash(plain)
        max_age_seconds: Absolute claims lifetime
        refresh_interval_seconds: Claims older than this are re-derived on the next request
        clock: Returns the current UTC time (overridable in tests)
    """

    def __init__(
        self,
        account_store,
        codec: ClaimsCodec,
        verifier,
        max_age_seconds: int = DEFAULT_MAX_AGE_SECONDS,
        refresh_interval_seconds: int = DEFAULT_REFRESH_INTERVAL_SECONDS,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.accounts = account_store
        self.codec = codec
        self.verifier = verifier
        self.max_age_seconds = max_age_seconds
        self.refresh_interval_seconds = refresh_interval_seconds
        self._clock = clock

    # ─── Authentication ─────────────────────────────────────────────────────

    def authenticate(self, identifier: str, secret: str) -> Optional[Principal]:
        """
        Verify an email/password pair.

        Returns:
            Principal on success; None if the account is unknown, has no local
            credential (identity-provider-only account) or the password is wrong
        """
        if not identifier or not secret:
            return None

        account = self.accounts.find_account_by_email(identifier)
        if account is None or not account.password_hash:
            return None

        if not self.verifier.verify(secret, account.password_hash):
            return None

        return _principal_from_account(account)

    def authenticate_external(self, email: str) -> Optional[Principal]:
        """Resolve an identity asserted by an external provider to a local account."""
        if not email:
            return None
        account = self.accounts.find_account_by_email(email)
        if account is None:
            return None
        return _principal_from_account(account)

    @staticmethod
    def sign_in_error(principal: Principal) -> Optional[ErrorCode]:
        """Suspended and banned accounts are refused before any claims exist."""
        return status_error(principal.account_status)

    def sign_in(self, identifier: str, secret: str) -> SignInResult:
        principal = self.authenticate(identifier, secret)
        return self._complete_sign_in(principal, identifier, method="credentials")

    def sign_in_external(self, email: str) -> SignInResult:
        principal = self.authenticate_external(email)
        return self._complete_sign_in(principal, email, method="external")

    def _complete_sign_in(self, principal: Optional[Principal], identifier: str, method: str) -> SignInResult:
        if principal is None:
            log_authentication_event(identifier or 'unknown', 'login', False, method, ErrorCode.INVALID_CREDENTIALS.value)
            return SignInResult(error=ErrorCode.INVALID_CREDENTIALS)

        error = self.sign_in_error(principal)
        if error is not None:
            log_authentication_event(principal.id, 'login', False, method, error.value)
            return SignInResult(error=error)

        claims = self.mint_claims(principal)
        log_authentication_event(principal.id, 'login', True, method)
        return SignInResult(claims=claims, token=self.codec.encode(claims))

    # ─── Claims ─────────────────────────────────────────────────────────────

    def mint_claims(self, principal: Principal) -> SessionClaims:
        return SessionClaims.create(
            subject_id=principal.id,
            role=principal.role,
            account_status=principal.account_status,
            max_age_seconds=self.max_age_seconds,
            now=self._clock(),
        )

    def encode(self, claims: SessionClaims) -> str:
        return self.codec.encode(claims)

    def decode(self, token: Optional[str]) -> Optional[SessionClaims]:
        claims = self.codec.decode(token)
        if claims is not None and claims.is_expired(self._clock()):
            return None
        return claims

    def needs_refresh(self, claims: SessionClaims) -> bool:
        """True once claims are older than the refresh interval."""
        return claims.age_seconds(self._clock()) >= self.refresh_interval_seconds

    def refresh_claims(self, claims: SessionClaims, trigger: RefreshTrigger) -> Optional[SessionClaims]:
        """
        Re-derive claims from the account store.

        Args:
            claims: The claims currently held by the client
            trigger: SIGN_IN (claims were just minted; returned as-is),
                     UPDATE (explicit) or INTERVAL (periodic)

        Returns:
            New SessionClaims with the authoritative role/status and a fresh
            expiry, or None if the claims have expired or the subject no
            longer exists
        """
        now = self._clock()
        if claims.is_expired(now):
            return None

        if trigger is RefreshTrigger.SIGN_IN:
            return claims

        account = self.accounts.find_account_by_id(claims.subject_id)
        previous = [claims.role.value, claims.account_status.value]
        if account is None:
            log_claims_refresh(claims.subject_id, trigger.value, previous, None)
            return None

        refreshed = claims.with_account_state(
            role=account.role,
            account_status=account.account_status,
            max_age_seconds=self.max_age_seconds,
            now=now,
        )
        log_claims_refresh(
            claims.subject_id, trigger.value, previous,
            [refreshed.role.value, refreshed.account_status.value],
        )
        return refreshed

    # ─── Registration ───────────────────────────────────────────────────────

    def register_account(self, email: str, display_name: Optional[str], password: str) -> Tuple[Optional[object], Optional[ErrorCode]]:
        """
        Create an ACTIVE USER account with a hashed password.

        Returns:
            (account, None) on success, (None, error code) otherwise
        """
        if not email or not password:
            return None, ErrorCode.INVALID_INPUT

        if self.accounts.find_account_by_email(email) is not None:
            return None, ErrorCode.EMAIL_ALREADY_REGISTERED

        try:
            password_hash = self.verifier.hash(password)
        except ValueError as e:
            logger.info(f"Registration rejected for {email}: {e}")
            return None, ErrorCode.INVALID_INPUT

        account = self.accounts.create_account(
            email=email,
            display_name=display_name,
            password_hash=password_hash,
            role=Role.USER,
            account_status=AccountStatus.ACTIVE,
        )
        return account, None
