import uvicorn
from fastapi import FastAPI

from invite_hub.api.routes.health import router as health_router
from invite_hub.api.routes.internal_referrals import router as internal_referrals_router
from invite_hub.api.routes.stripe_webhook import router as stripe_webhook_router
from invite_hub.core.config import get_settings
from invite_hub.core.logging import configure_logging


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings.log_level, app_env=settings.app_env)

    app = FastAPI(
        title="Invite Hub API",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.include_router(health_router)
    app.include_router(stripe_webhook_router)
    app.include_router(internal_referrals_router)
    return app


app = create_app()


def run() -> None:
    settings = get_settings()
    uvicorn.run(
        "invite_hub.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.app_env == "dev",
    )


if __name__ == "__main__":
    run()
