import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from meta_ledger.api.error import ClientError, client_error_handler
from meta_ledger.api.logging_config import setup_logging
from meta_ledger.api.middleware import RequestLoggingMiddleware
from meta_ledger.api.routes import ledger, webhooks

logger = logging.getLogger(__name__)


def init_sentry(config) -> None:
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration

    sentry_sdk.init(
        dsn=config.DSN_SENTRY,
        environment=config.SENTRY_ENVIRONMENT,
        traces_sample_rate=1.0,
        integrations=[FastApiIntegration()],
    )
    logger.info(f"Sentry enabled for environment {config.SENTRY_ENVIRONMENT}")


def create_app(config) -> FastAPI:
    setup_logging(config.LOG_LEVEL)

    if config.ENABLE_SENTRY and config.DSN_SENTRY:
        init_sentry(config)

    app = FastAPI(
        title="Meta Ledger",
        description="Credit lots, FIFO consumption and feature entitlements",
        version="1.0.0",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=config.CORS_ALLOW_CREDENTIALS,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    if config.ENABLE_LOGGING_MIDDLEWARE:
        app.add_middleware(RequestLoggingMiddleware)

    app.add_exception_handler(ClientError, client_error_handler)

    app.include_router(ledger.router, prefix=config.API_PREFIX)
    app.include_router(webhooks.router, prefix=config.API_PREFIX)

    @app.get("/health", tags=["Health"])
    async def health():
        return {"status": "ok"}

    return app
