"""Identity lookup and password verification for users and admins."""

from __future__ import annotations

from typing import Protocol

from .account import Account, AdminPrincipal
from ..security import passwords


class IdentityReader(Protocol):
    def find_account_by_phone(self, phone: str) -> Account | None: ...

    def find_account_by_email(self, email: str) -> Account | None: ...

    def find_admin_by_username(self, username: str) -> AdminPrincipal | None: ...

    def find_admin_by_email(self, email: str) -> AdminPrincipal | None: ...


def is_email(identifier: str) -> bool:
    return "@" in identifier


class CredentialStore:
    """Read-only view over stored identities; never mutates or logs secrets."""

    def __init__(self, repository: IdentityReader) -> None:
        self._repository = repository

    def find_by_identifier(self, identifier: str) -> Account | None:
        """Resolve an email (case-insensitive) or an exact phone number to an account."""
        identifier = (identifier or "").strip()
        if not identifier:
            return None
        if is_email(identifier):
            return self._repository.find_account_by_email(identifier.lower())
        return self._repository.find_account_by_phone(identifier)

    def find_admin(self, identifier: str) -> AdminPrincipal | None:
        identifier = (identifier or "").strip().lower()
        if not identifier:
            return None
        if is_email(identifier):
            return self._repository.find_admin_by_email(identifier)
        return self._repository.find_admin_by_username(identifier)

    def verify_password(self, principal: Account | AdminPrincipal, plaintext: str) -> bool:
        return passwords.verify_password(plaintext, principal.password_hash)

    def burn_verification(self) -> None:
        passwords.dummy_verify()
