import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from eventdesk.api.routes import contracts, health, webhooks
from eventdesk.core.config import get_settings
from eventdesk.core.logging import configure_logging, get_logger
from eventdesk.db.session import lifespan


configure_logging(get_settings().log_level)
logger = get_logger(__name__)


def create_application() -> FastAPI:
    settings = get_settings()
    application = FastAPI(title=settings.app_name, lifespan=lifespan)
    application.include_router(health.router)
    application.include_router(contracts.router)
    application.include_router(webhooks.router)

    if settings.allowed_origins:
        application.add_middleware(
            CORSMiddleware,
            allow_origins=[str(origin) for origin in settings.allowed_origins],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    logger.info(
        "application.configured",
        environment=settings.environment,
        signature_provider_configured=settings.signature_provider_configured,
        webhook_signature_check=bool(settings.assinafy_webhook_secret),
    )
    return application


app = create_application()


def run() -> None:
    uvicorn.run("eventdesk.main:app", host="0.0.0.0", port=8000, log_config=None)


if __name__ == "__main__":  # pragma: no cover - manual entry point
    run()
