# product_discovery/main.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from product_discovery.config.settings import settings
from product_discovery.api.middleware import RequestLoggingMiddleware
from product_discovery.api.dependencies import startup_handler, shutdown_handler
from product_discovery.api.endpoints import search, health

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await startup_handler()
    yield
    await shutdown_handler()


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies get the same error envelope as a missing query"""
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        detail = f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
    else:
        detail = "invalid request"
    logger.info(
        f"{request.method} {request.url.path} rejected: {detail}",
        extra={"request_id": getattr(request.state, "request_id", None)}
    )
    return search.error_response(400, f"Invalid request: {detail}", source="validation")


def create_app() -> FastAPI:
    app = FastAPI(
        title="Product Discovery API",
        description="Finds expert-recommended products for free-text queries",
        version="2.0.0",
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    app.include_router(search.router, prefix="/api/v1", tags=["search"])
    app.include_router(health.router, tags=["health"])
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "product_discovery.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
