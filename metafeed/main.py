# metafeed/main.py
from __future__ import annotations

import uuid

from dotenv import load_dotenv
load_dotenv(dotenv_path=".env")

from fastapi import FastAPI
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response as StarletteResponse

from metafeed.api.routers.feed import router as feed_router
from metafeed.core.config import get_settings
from metafeed.core.logging import configure_logging, get_logger
from metafeed.core.request_id import clear_request_id, set_request_id

configure_logging(service_name="api", level=get_settings().LOG_LEVEL)
logger = get_logger()

app = FastAPI(
    title="metafeed",
    version="0.1.0",
    docs_url="/docs",
    redoc_url=None,
)


class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        req_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        set_request_id(req_id)
        logger.info("request_started", method=request.method, path=str(request.url.path))
        try:
            response: StarletteResponse = await call_next(request)
        except Exception as exc:
            logger.error("request_exception", error=str(exc.__class__.__name__))
            clear_request_id()
            raise
        logger.info("request_ended", status_code=response.status_code)
        response.headers["X-Request-Id"] = req_id
        clear_request_id()
        return response


app.add_middleware(RequestIdMiddleware)


@app.get("/health")
async def health():
    return {"status": "ok"}


app.include_router(feed_router)
