"""HTTP route definitions for user signup, login and status checks."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, status
from pydantic import AliasChoices, BaseModel, Field

from ..domain.account import Account
from ..domain.auth_service import AuthGateway
from ..domain.contracts import UserSummary
from .deps import get_auth_gateway

router = APIRouter(prefix="/api/auth", tags=["auth"])


class SignupRequest(BaseModel):
    """Payload accepted when registering; field rules are enforced by the gateway."""

    phone: str | None = None
    email: str | None = None
    password: str | None = None
    username: str | None = None


class PendingAccountResponse(BaseModel):
    """Non-sensitive summary of a freshly registered account."""

    user_id: str
    phone: str
    email: str | None
    username: str
    status: str

    @classmethod
    def from_domain(cls, account: Account) -> "PendingAccountResponse":
        return cls(
            user_id=account.account_id,
            phone=account.phone,
            email=account.email,
            username=account.username,
            status=account.status.value,
        )


class SignupResponse(BaseModel):
    message: str
    account: PendingAccountResponse


class LoginRequest(BaseModel):
    """Login body; ``identifier`` may also be sent as ``phone`` or ``email``."""

    identifier: str | None = Field(
        default=None, validation_alias=AliasChoices("identifier", "phone", "email")
    )
    password: str | None = None


class LoginUser(BaseModel):
    id: str
    phone: str
    username: str
    email: str | None
    balance: float
    status: str

    @classmethod
    def from_domain(cls, user: UserSummary) -> "LoginUser":
        return cls(
            id=user.id,
            phone=user.phone,
            username=user.username,
            email=user.email,
            balance=float(user.balance),
            status=user.status,
        )


class LoginResponse(BaseModel):
    """Token issuance response for end users and the demo guide account."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int
    is_demo: bool
    show_games: bool
    user: LoginUser
    web_view_url: str | None = None


class StatusResponse(BaseModel):
    phone: str
    email: str | None
    username: str
    status: str
    is_active: bool
    created_at: datetime


@router.post("/signup", response_model=SignupResponse, status_code=status.HTTP_201_CREATED)
def signup(
    payload: SignupRequest,
    gateway: AuthGateway = Depends(get_auth_gateway),
) -> SignupResponse:
    """Register an account that must be approved before it can log in."""
    account = gateway.signup(
        phone=payload.phone,
        password=payload.password,
        email=payload.email,
        username=payload.username,
    )
    return SignupResponse(
        message="Registration successful! Your account is pending approval.",
        account=PendingAccountResponse.from_domain(account),
    )


@router.post("/login", response_model=LoginResponse)
def login(
    payload: LoginRequest,
    gateway: AuthGateway = Depends(get_auth_gateway),
) -> LoginResponse:
    """Authenticate by phone or email and return a bearer token."""
    result = gateway.login(payload.identifier, payload.password)
    return LoginResponse(
        access_token=result.access_token,
        expires_in=result.expires_in,
        is_demo=result.is_demo,
        show_games=result.is_demo,
        user=LoginUser.from_domain(result.user),
        web_view_url=result.web_view_url,
    )


@router.get("/check-status/{identifier}", response_model=StatusResponse)
def check_status(
    identifier: str,
    gateway: AuthGateway = Depends(get_auth_gateway),
) -> StatusResponse:
    """Report the approval state of an account without authenticating."""
    account = gateway.check_status(identifier)
    return StatusResponse(
        phone=account.phone,
        email=account.email,
        username=account.username,
        status=account.status.value,
        is_active=account.is_active,
        created_at=account.created_at,
    )
