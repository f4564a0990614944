import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from app.config import settings
from app.core.logging import setup_logging
from app.core.exceptions import api_exception_handler, general_exception_handler, APIError
from app.core.middleware import session_validation_middleware, request_logging_middleware
from app.database import DatabasePool, ping

# Initialize logging
setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle - startup and shutdown"""
    # Startup: Start background cleanup task
    from app.tasks.cleanup import run_cleanup_loop
    cleanup_task = asyncio.create_task(run_cleanup_loop())

    yield

    # Shutdown: Cancel background task and close the pool
    cleanup_task.cancel()
    try:
        await cleanup_task
    except asyncio.CancelledError:
        pass
    await DatabasePool.close_pool()


app = FastAPI(
    title="GladiatorRX API",
    description="Waitlist, onboarding, team management and subscription billing for GladiatorRX",
    version="1.0.0",
    debug=settings.debug,
    docs_url="/docs",
    lifespan=lifespan
)

# Configure cookie authentication for Swagger UI
from fastapi.openapi.utils import get_openapi

def custom_openapi():
    if app.openapi_schema:
        return app.openapi_schema
    openapi_schema = get_openapi(
        title="GladiatorRX API",
        version="1.0.0",
        description="Waitlist, onboarding, team management and subscription billing for GladiatorRX",
        routes=app.routes,
    )
    openapi_schema.setdefault("components", {})["securitySchemes"] = {
        "cookieAuth": {
            "type": "apiKey",
            "in": "cookie",
            "name": "session-token"
        }
    }

    # Public endpoints (no auth required)
    public_endpoints = [
        "/auth/login",
        "/auth/logout",
        "/auth/forgot-password",
        "/auth/reset-password",
        "/auth/reset-password/verify",
        "/invitations/{token}",
        "/invitations/{token}/accept",
        "/billing/webhook",
        "/health",
        "/",
    ]

    # Public prefixes
    public_prefixes = ["/waitlist", "/onboarding"]

    for path in openapi_schema["paths"]:
        if path in public_endpoints:
            continue
        if any(path.startswith(prefix) for prefix in public_prefixes):
            continue

        for method in openapi_schema["paths"][path]:
            if method in ["get", "post", "put", "delete", "patch"]:
                openapi_schema["paths"][path][method]["security"] = [{"cookieAuth": []}]

    app.openapi_schema = openapi_schema
    return app.openapi_schema

app.openapi = custom_openapi

# Exception handlers
app.add_exception_handler(APIError, api_exception_handler)
app.add_exception_handler(Exception, general_exception_handler)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Custom middleware (order matters - first added runs last)
# Execution order: session_validation → logging
app.middleware("http")(request_logging_middleware)   # runs last
app.middleware("http")(session_validation_middleware) # runs first

# Import and include routers
from app.routers import auth, invitations, team, organization, waitlist, onboarding, admin, billing

# Authentication (login/logout/password reset are public)
app.include_router(auth.router, prefix="/auth", tags=["auth"])

# Waitlist and onboarding (public)
app.include_router(waitlist.router)
app.include_router(onboarding.router)

# Organization team (requires auth, invitation accept is public)
app.include_router(organization.router)
app.include_router(team.router)
app.include_router(invitations.router)

# Subscription billing (webhook is public)
app.include_router(billing.router)

# Platform admin
app.include_router(admin.router)

@app.get("/")
async def root():
    return {
        "service": "GladiatorRX API",
        "version": "1.0.0",
        "environment": settings.app_env
    }

@app.get("/health")
async def health():
    database_reachable = await ping()
    return {
        "status": "healthy" if database_reachable else "degraded",
        "database_reachable": database_reachable,
        "database": settings.db_name,
        "host": settings.db_host
    }

# Auto-start server if run directly
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )
