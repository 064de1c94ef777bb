"""Main FastAPI application for the subscription service"""

import structlog
import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..exceptions import StripeConfigError
from ..logging_config import configure_logging
from ..settings import Settings, get_settings
from ..version import __version__
from . import routes

logger = structlog.get_logger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the application; explicit settings replace the environment."""
    if settings is None:
        settings = get_settings()

    configure_logging(settings.LOG_LEVEL, json_logs=settings.LOG_JSON)

    app = FastAPI(
        title="fluxos-subscriptions",
        description="Stripe subscription activation and webhook reconciliation",
        version=__version__,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(routes.router, prefix="/api/billing", tags=["billing"])
    app.dependency_overrides[get_settings] = lambda: settings

    @app.exception_handler(StripeConfigError)
    async def stripe_config_error_handler(request: Request, exc: StripeConfigError):
        logger.error("billing_not_configured", path=request.url.path, error=exc.message)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": "Billing is not configured"},
        )

    logger.info("app_created", app_env=settings.APP_ENV, version=__version__)
    return app


def main() -> None:
    """Run the API with uvicorn."""
    uvicorn.run(
        "fluxos_subscriptions.api.app:create_app",
        factory=True,
        host="0.0.0.0",
        port=8000,
    )
