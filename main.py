from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

# Core
from core.config import settings
from core.errors import PortalError
from core.lifecycle import init_engine
from core.logging_config import logger
from core.security_codes import init_codebook

# -------------------------------------------------
# Routers
# -------------------------------------------------
from routers.guests import router as guests_router
from routers.sleepovers import router as sleepovers_router
from routers.maintenance import router as maintenance_router
from routers.complaints import router as complaints_router

from routers.notifications import router as notifications_router
from routers.analytics import router as analytics_router
from routers.applications import router as applications_router
from routers.announcements import router as announcements_router

from routers.health import router as health_router


# -------------------------------------------------
# Create the Application
# -------------------------------------------------
def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.PROJECT_NAME,
        version="1.0.0",
        description="Residence Portal API - guest, sleepover, maintenance and complaint requests",
    )

    # -------------------------------------------------
    # CORS
    # -------------------------------------------------
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.BACKEND_CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -------------------------------------------------
    # Startup: gate codes + engine, then route log
    # -------------------------------------------------
    @app.on_event("startup")
    async def on_startup():
        logger.info(f"🚀 Starting {settings.PROJECT_NAME} ({settings.ENV}, store={settings.STORE_BACKEND})")
        init_codebook()
        init_engine()
        for route in app.routes:
            methods = ",".join(getattr(route, "methods", None) or [])
            logger.debug(f"➡️ {methods:10s} {getattr(route, 'path', '')}")

    # -------------------------------------------------
    # Error handling
    # -------------------------------------------------
    @app.exception_handler(PortalError)
    async def handle_portal_error(request: Request, exc: PortalError):
        if exc.status_code >= 500:
            logger.warning(f"{exc.code} at {request.url} - {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        fields = []
        for err in exc.errors():
            # drop the leading "body" / "query" segment
            loc = ".".join(str(p) for p in err["loc"][1:]) or str(err["loc"][0])
            if loc not in fields:
                fields.append(loc)
        return JSONResponse(
            status_code=422,
            content={
                "detail": "Invalid request: " + ", ".join(fields),
                "error": "validation_error",
                "fields": fields,
            },
        )

    @app.exception_handler(StarletteHTTPException)
    async def handle_http(request: Request, exc: StarletteHTTPException):
        if exc.status_code in (401, 403, 500):
            logger.warning(
                f"HTTP {exc.status_code} at {request.url} - {exc.detail}"
            )
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def handle_unhandled(request: Request, exc: Exception):
        logger.error("Unhandled error at %s", request.url, exc_info=exc)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )

    # -------------------------------------------------
    # Register Routers
    # -------------------------------------------------

    # Student requests
    app.include_router(guests_router)
    app.include_router(sleepovers_router)
    app.include_router(maintenance_router)
    app.include_router(complaints_router)

    # Notifications + dashboard
    app.include_router(notifications_router)
    app.include_router(analytics_router)

    # Onboarding + noticeboard
    app.include_router(applications_router)
    app.include_router(announcements_router)

    # Health
    app.include_router(health_router)

    @app.get("/", include_in_schema=False)
    async def root():
        return RedirectResponse("/docs")

    return app


# Create the global FastAPI instance
app = create_app()
