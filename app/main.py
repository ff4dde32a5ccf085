import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded

from app.config.settings import Settings, settings as default_settings
from app.core.dependencies import build_services
from app.core.errors import AppError
from app.core.results import GENERIC_FAILURE_MESSAGE
from app.database.backends import Backend, create_backend
from app.modules.auth import routes as auth_routes
from app.modules.profiles import routes as profiles_routes
from app.modules.organizations import routes as organizations_routes
from app.modules.analytics import routes as analytics_routes
from app.modules.bootstrap import routes as bootstrap_routes

logger = logging.getLogger(__name__)


class SecurityHeadersMiddleware:
    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        async def send_with_headers(message):
            if message["type"] == "http.response.start":
                message.setdefault("headers", [])
                message["headers"].extend([
                    (b"X-Content-Type-Options", b"nosniff"),
                    (b"X-Frame-Options", b"DENY"),
                    (b"X-XSS-Protection", b"1; mode=block"),
                ])
            await send(message)

        await self.app(scope, receive, send_with_headers)


def create_app(settings: Optional[Settings] = None, backend: Optional[Backend] = None) -> FastAPI:
    """Build the API around one explicitly constructed store backend."""
    settings = settings or default_settings
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%SZ",
    )

    limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit])
    app = FastAPI(
        title=settings.app_name,
        debug=settings.debug,
        redirect_slashes=False,
    )
    app.state.limiter = limiter
    app.state.services = build_services(backend or create_backend(settings), settings)
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        logger.info(f"{request.method} {request.url.path} failed: {exc.code}")
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "error": exc.public_message, "code": exc.code, "degraded": False},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception: %s", exc)
        if settings.is_production:
            return JSONResponse(status_code=500, content={"success": False, "error": GENERIC_FAILURE_MESSAGE})
        return JSONResponse(status_code=500, content={"success": False, "error": GENERIC_FAILURE_MESSAGE, "detail": str(exc)})

    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_cors_origins_list(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include module routes
    app.include_router(auth_routes.router, prefix="/api/v1")
    app.include_router(profiles_routes.router, prefix="/api/v1")
    app.include_router(organizations_routes.router, prefix="/api/v1")
    app.include_router(analytics_routes.router, prefix="/api/v1")
    app.include_router(bootstrap_routes.router, prefix="/api/v1")

    @app.on_event("startup")
    async def startup_event():
        logger.info(f"Application startup (store backend: {app.state.services.backend.name})")
        app.state.services.bootstrap.check_reserved_identity()
        if not settings.reconcile_on_startup:
            return
        outcome = app.state.services.bootstrap.reconcile_super_admin()
        if outcome.degraded:
            logger.warning(f"Super admin reconciliation degraded at startup: {outcome.error}")

    @app.on_event("shutdown")
    async def shutdown_event():
        logger.info("Application shutdown")

    @app.get("/")
    async def root():
        return {"message": f"Welcome to {settings.app_name}", "status": "healthy"}

    @app.get("/health")
    @limiter.exempt
    async def health():
        return {"status": "healthy"}

    @app.get("/ready")
    @limiter.exempt
    async def ready():
        """Readiness probe: the profile store must answer a trivial query."""
        try:
            app.state.services.backend.store.ping()
        except AppError as e:
            logger.warning(f"Readiness check failed: {e}")
            return JSONResponse(status_code=503, content={"status": "unavailable", "error": e.public_message})
        return {"status": "ready"}

    return app


app = create_app()
