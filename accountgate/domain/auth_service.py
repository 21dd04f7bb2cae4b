"""User-facing signup, login and status workflows."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
import logging
import secrets

from email_validator import EmailNotValidError, validate_email

from .account import Account, AccountStatus
from .contracts import LoginResult, RegisterAccountInput, UserSummary
from .credentials import CredentialStore
from .settings_resolver import SettingsResolver
from .state_machine import AccountStateMachine
from ..config import Settings
from ..errors import (
    Deactivated,
    InvalidCredentials,
    NotFound,
    PendingApproval,
    Rejected,
    ValidationError,
)
from ..security.passwords import hash_password
from ..security.tokens import Capability, TokenService

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


@dataclass(frozen=True, slots=True)
class DemoIdentity:
    """Configured guide account that logs in without a stored record."""

    phone: str
    email: str
    password: str
    subject_id: str = "demo-user-id"
    username: str = "Demo User"
    balance: Decimal = Decimal("1250.00")

    @classmethod
    def from_settings(cls, settings: Settings) -> "DemoIdentity | None":
        if not settings.demo_enabled or not settings.demo_password:
            return None
        return cls(
            phone=settings.demo_phone,
            email=settings.demo_email.lower(),
            password=settings.demo_password,
        )

    def matches(self, identifier: str, password: str) -> bool:
        if not identifier:
            return False
        candidate = identifier.lower() if "@" in identifier else identifier
        known = candidate in (self.phone, self.email)
        password_ok = secrets.compare_digest(password.encode("utf-8"), self.password.encode("utf-8"))
        return known and password_ok

    def summary(self) -> UserSummary:
        return UserSummary(
            id=self.subject_id,
            phone=self.phone,
            username=self.username,
            email=self.email,
            balance=self.balance,
            status="demo",
        )


class AuthGateway:
    """Orchestrates credential checks, approval gating and token issuance for users."""

    def __init__(
        self,
        *,
        state_machine: AccountStateMachine,
        credentials: CredentialStore,
        tokens: TokenService,
        web_view_url: SettingsResolver,
        demo: DemoIdentity | None = None,
    ) -> None:
        self._state_machine = state_machine
        self._credentials = credentials
        self._tokens = tokens
        self._web_view_url = web_view_url
        self._demo = demo

    def signup(
        self,
        *,
        phone: str | None,
        password: str | None,
        email: str | None = None,
        username: str | None = None,
    ) -> Account:
        """Validate and register a new account in ``pending`` state.

        Validation stops at the first offending field: phone, then password,
        then email.
        """
        phone = (phone or "").strip()
        if not phone:
            raise ValidationError("phone", "Phone number is required")
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                "password", f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
            )

        normalized_email: str | None = None
        if email and email.strip():
            try:
                validate_email(email.strip(), check_deliverability=False)
            except EmailNotValidError as exc:
                raise ValidationError("email", "Invalid email format") from exc
            normalized_email = email.strip().lower()

        return self._state_machine.register(
            RegisterAccountInput(
                phone=phone,
                password_hash=hash_password(password),
                email=normalized_email,
                username=(username or "").strip() or phone,
            )
        )

    def login(self, identifier: str | None, password: str | None) -> LoginResult:
        identifier = (identifier or "").strip()
        password = password or ""

        if self._demo is not None and self._demo.matches(identifier, password):
            issued = self._tokens.issue(self._demo.subject_id, [Capability.demo])
            logger.info("demo identity login")
            return LoginResult(
                access_token=issued.token,
                expires_in=issued.expires_in,
                user=self._demo.summary(),
                web_view_url=None,
                is_demo=True,
            )

        if not identifier:
            raise ValidationError("identifier", "Phone number or email is required")
        if not password:
            raise ValidationError("password", "Password is required")

        account = self._authenticate(identifier, password)
        self._enforce_gate(account)

        account = self._state_machine.record_login(account.account_id)
        issued = self._tokens.issue(account.account_id, [Capability.user])
        logger.info("account %s logged in", account.account_id)
        return LoginResult(
            access_token=issued.token,
            expires_in=issued.expires_in,
            user=UserSummary.from_account(account),
            web_view_url=self._web_view_url.resolve(),
        )

    def check_status(self, identifier: str) -> Account:
        account = self._credentials.find_by_identifier(identifier)
        if account is None:
            raise NotFound("User not found")
        return account

    def _authenticate(self, identifier: str, password: str) -> Account:
        account = self._credentials.find_by_identifier(identifier)
        if account is None:
            self._credentials.burn_verification()
        if account is None or not self._credentials.verify_password(account, password):
            raise InvalidCredentials()
        return account

    @staticmethod
    def _enforce_gate(account: Account) -> None:
        if account.status is AccountStatus.pending:
            logger.warning("login refused for %s: pending approval", account.account_id)
            raise PendingApproval()
        if account.status is AccountStatus.rejected:
            logger.warning("login refused for %s: rejected", account.account_id)
            raise Rejected()
        if not account.is_active:
            logger.warning("login refused for %s: deactivated", account.account_id)
            raise Deactivated()
