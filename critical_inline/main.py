"""FastAPI application entrypoint."""

from fastapi import Depends, FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from critical_inline.api import router as api_router
from critical_inline.api.dependencies import get_auth_dependency
from critical_inline.core.config import settings
from critical_inline.core.errors import ConfigurationError, CriticalCssError, ParseError
from critical_inline.core.logging import configure_logging, get_logger

configure_logging()
logger = get_logger(__name__)

app = FastAPI(
    title=settings.app_name,
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router.api_router, prefix=settings.api_v1_prefix)


@app.exception_handler(ParseError)
@app.exception_handler(ConfigurationError)
async def unprocessable_input(request: Request, exc: CriticalCssError) -> JSONResponse:
    """Report input the transform cannot process as a client error."""

    logger.warning("request_rejected", path=request.url.path, error=str(exc))
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": exc.message, "context": jsonable_encoder(exc.context)},
    )


@app.get("/healthz", tags=["health"])
def health_check() -> dict:
    """Simple health probe endpoint."""

    logger.debug("health_check_invoked")
    return {"status": "ok", "environment": settings.environment}


@app.get("/auth-check", tags=["health"], dependencies=[Depends(get_auth_dependency)])
def auth_check() -> dict:
    """Endpoint to verify API auth configuration."""

    return {"status": "authorized"}
