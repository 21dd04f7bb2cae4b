"""FastAPI application wiring for the account approval service."""

from __future__ import annotations

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from psycopg_pool import ConnectionPool

from .api.admin_routes import router as admin_router
from .api.errors import register_exception_handlers
from .api.routes import router as auth_router
from .config import Settings, get_settings
from .domain.admin_service import AdminGateway
from .domain.auth_service import AuthGateway, DemoIdentity
from .domain.credentials import CredentialStore
from .domain.settings_resolver import web_view_url_resolver
from .domain.state_machine import AccountStateMachine
from .repository import AccountRepository
from .schema import apply_schema
from .security.tokens import TokenService

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def build_gateways(repository: AccountRepository, settings: Settings) -> tuple[AuthGateway, AdminGateway]:
    """Assemble both gateways around one repository and one token service."""
    tokens = TokenService.from_settings(settings)
    credentials = CredentialStore(repository)
    state_machine = AccountStateMachine(repository)
    auth_gateway = AuthGateway(
        state_machine=state_machine,
        credentials=credentials,
        tokens=tokens,
        web_view_url=web_view_url_resolver(
            repository, env_value=settings.web_view_url, port=settings.http_port
        ),
        demo=DemoIdentity.from_settings(settings),
    )
    admin_gateway = AdminGateway(
        store=repository,
        state_machine=state_machine,
        credentials=credentials,
        tokens=tokens,
    )
    return auth_gateway, admin_gateway


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialise shared resources (Postgres pool, gateways) for the app lifecycle."""
    pool = ConnectionPool(settings.database_url, open=False)
    pool.open()
    apply_schema(pool)
    app.state.pool = pool
    app.state.auth_gateway, app.state.admin_gateway = build_gateways(AccountRepository(pool), settings)
    if settings.demo_enabled:
        logger.warning("demo guide login is enabled")
    try:
        yield
    finally:
        pool.close()


app = FastAPI(title=settings.app_name, version=settings.version, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    max_age=600,
)

register_exception_handlers(app)


@app.get("/healthz", tags=["health"])
def healthz() -> dict[str, str]:
    """Return a minimal readiness indicator used by orchestration systems."""
    return {"status": "ok"}


@app.get("/metrics", tags=["health"])
def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


app.include_router(auth_router)
app.include_router(admin_router)
