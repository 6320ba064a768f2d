import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional

import sentry_sdk
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

from .config import settings
from .middleware import RequestLoggingMiddleware
from .middleware.logging import ACCESS_LOGGER_NAME
from .routers import auth, documents, health, notes, pages, profile
from .services.metrics import record_auth_event
from .services.session_store import Account, AuthEvent, session_store

logging.basicConfig(level=logging.INFO, handlers=[logging.StreamHandler(sys.stdout)])
logging.getLogger(ACCESS_LOGGER_NAME).setLevel(logging.INFO)

logger = logging.getLogger("docucollect")

if settings.sentry_dsn and str(settings.sentry_dsn).strip().lower().startswith(("http://", "https://")):
    sentry_sdk.init(
        dsn=str(settings.sentry_dsn).strip(),
        environment=settings.environment,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
            LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
        ],
        traces_sample_rate=settings.sentry_traces_sample_rate,
        profiles_sample_rate=settings.sentry_profiles_sample_rate,
    )


def record_session_event(event: AuthEvent, account: Optional[Account]) -> None:
    record_auth_event(event.value)
    logger.info("auth_event event=%s user_id=%s", event.value, account.id if account else None)


@asynccontextmanager
async def lifespan(app: FastAPI):
    unsubscribe = session_store.subscribe(record_session_event)
    logger.info("startup environment=%s supabase_url=%s", settings.environment, settings.supabase_url)
    try:
        yield
    finally:
        unsubscribe()
        session_store.clear()
        logger.info("shutdown")


app = FastAPI(title="DocuCollect API", version="0.1.0", lifespan=lifespan)

app.add_middleware(RequestLoggingMiddleware)

if settings.metrics_enabled:
    instrumentator = Instrumentator(should_group_status_codes=True, should_ignore_untemplated=True)
    instrumentator.instrument(app).expose(app, include_in_schema=False)

# CORS (allow the local web client)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router, tags=["health"])
app.include_router(pages.router)
app.include_router(auth.router)
app.include_router(documents.router, tags=["documents"])
app.include_router(notes.router, tags=["notes"])
app.include_router(profile.router, tags=["profile"])
