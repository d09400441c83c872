"""NestLedger Service API main application module."""

from datetime import datetime, timezone
from importlib.metadata import version as pkg_version

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.utils import get_openapi
from fastapi.responses import JSONResponse

from nestledger.config import env
from nestledger.logger import get_logger
from nestledger.routers import (
  dues_router,
  invoices_router,
  late_fees_router,
  payments_router,
  settings_router,
  webhooks_router,
)

logger = get_logger("nestledger.api")

API_TAGS = [
  {"name": "Billing", "description": "Invoices, late fees and platform dues"},
  {"name": "Payments", "description": "Tenant checkout through payment gateways"},
  {"name": "Webhooks", "description": "Signed callbacks from payment gateways"},
]


def create_app() -> FastAPI:
  """
  Create the FastAPI app and include the routers.

  Returns:
      FastAPI: The configured FastAPI application.
  """
  app = FastAPI(
    title="NestLedger API",
    version=pkg_version("nestledger-service"),
    description="Tenant rent billing, late fees and gateway payment reconciliation.",
    openapi_url="/openapi.json",
    openapi_tags=API_TAGS,
  )

  app.state.current_time = datetime.now(timezone.utc)

  @app.on_event("startup")
  async def startup_event():
    """Validate configuration on startup."""
    logger.info("Starting NestLedger API...")

    missing = env.validate()
    if missing:
      logger.error(f"Missing required configuration: {', '.join(missing)}")
      if env.is_production():
        raise RuntimeError(f"Missing required configuration: {', '.join(missing)}")
      logger.warning("Continuing with incomplete configuration")
    else:
      logger.info(f"Configuration validated for environment {env.ENVIRONMENT}")

    logger.info("NestLedger API startup complete")

  @app.get("/v1/status", include_in_schema=False)
  async def service_status():
    uptime = datetime.now(timezone.utc) - app.state.current_time
    return {"status": "healthy", "uptime_seconds": int(uptime.total_seconds())}

  app.add_middleware(
    CORSMiddleware,
    allow_origins=env.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["Accept", "Content-Type", "Authorization", "X-Requested-With"],
    max_age=3600,
  )

  @app.middleware("http")
  async def security_headers_middleware(request: Request, call_next):
    """Add security headers to all responses."""
    response = await call_next(request)

    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

    if env.is_production() or env.is_staging():
      response.headers["Strict-Transport-Security"] = (
        "max-age=31536000; includeSubDomains"
      )

    # Payment and invoice responses must not be cached by intermediaries
    if request.url.path.startswith("/v1/"):
      response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, private"

    return response

  @app.exception_handler(Exception)
  async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Global exception handler returning a generic error.

    Internal exception details are logged server-side only.
    """
    logger.error(
      f"Unhandled exception on {request.method} {request.url.path}", exc_info=True
    )
    return JSONResponse(
      status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
      content={"detail": "Internal server error"},
    )

  app.include_router(invoices_router)
  app.include_router(payments_router)
  app.include_router(late_fees_router)
  app.include_router(dues_router)
  app.include_router(settings_router)
  app.include_router(webhooks_router)

  def custom_openapi():
    """
    Custom OpenAPI schema generator.

    Returns:
        dict: The OpenAPI schema.
    """
    if app.openapi_schema:
      return app.openapi_schema

    openapi_schema = get_openapi(
      title=app.title,
      version=app.version,
      description=app.description,
      routes=app.routes,
      tags=app.openapi_tags,
    )

    openapi_schema.setdefault("components", {})
    openapi_schema["components"]["securitySchemes"] = {
      "BearerAuth": {
        "type": "http",
        "scheme": "bearer",
        "bearerFormat": "JWT",
        "description": "JWT bearer token with an admin or tenant role",
      },
    }

    # Webhooks authenticate with gateway signatures instead
    public_prefixes = ("/v1/webhooks",)

    for path, methods in openapi_schema.get("paths", {}).items():
      if path.startswith(public_prefixes):
        continue
      for operation in methods.values():
        operation["security"] = [{"BearerAuth": []}]

    app.openapi_schema = openapi_schema
    return app.openapi_schema

  app.openapi = custom_openapi

  return app


app = create_app()
