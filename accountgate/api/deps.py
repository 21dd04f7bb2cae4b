"""FastAPI dependencies resolving gateways and admin sessions."""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..domain.admin_service import AdminGateway, AdminSession
from ..domain.auth_service import AuthGateway

_bearer = HTTPBearer(auto_error=False)


def get_auth_gateway(request: Request) -> AuthGateway:
    """Resolve the `AuthGateway` stored on the FastAPI application state."""
    gateway: AuthGateway = request.app.state.auth_gateway
    return gateway


def get_admin_gateway(request: Request) -> AdminGateway:
    """Resolve the `AdminGateway` stored on the FastAPI application state."""
    gateway: AdminGateway = request.app.state.admin_gateway
    return gateway


def require_admin_session(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    gateway: AdminGateway = Depends(get_admin_gateway),
) -> AdminSession:
    """Authenticate the bearer token as an admin; 401 when absent or invalid, 403 when unprivileged."""
    token = credentials.credentials if credentials is not None else None
    return gateway.authenticate(token)
