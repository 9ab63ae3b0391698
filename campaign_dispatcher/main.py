from contextlib import asynccontextmanager
import logging
import time

from fastapi import FastAPI
from starlette.requests import Request
import uvicorn

from campaign_dispatcher.api.router import api_router
from campaign_dispatcher.core.config import get_settings
from campaign_dispatcher.core.telemetry import configure_logging, setup_telemetry, shutdown_telemetry
from campaign_dispatcher.services.dispatcher import get_dispatcher

settings = get_settings()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    configure_logging(correlate=settings.otel_log_correlation)
    telemetry_runtime = setup_telemetry(settings)
    missing = settings.missing_mailchimp_settings()
    if missing:
        logger.warning("mailchimp not configured, events will be skipped: missing %s", ", ".join(missing))
    if not settings.webhook_secret:
        logger.warning("WEBHOOK_SECRET not set; /events and /entries accept unauthenticated requests")
    try:
        yield
    finally:
        shutdown_telemetry(telemetry_runtime)
        get_dispatcher.cache_clear()


app = FastAPI(title=settings.app_name, lifespan=lifespan)


@app.middleware("http")
async def request_logging_middleware(request: Request, call_next):
    started_at = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started_at) * 1000.0
    logger.info(
        "http request method=%s path=%s status=%s duration_ms=%.2f",
        request.method,
        request.url.path,
        response.status_code,
        elapsed_ms,
    )
    return response


app.include_router(api_router)


def run() -> None:
    uvicorn.run("campaign_dispatcher.main:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
