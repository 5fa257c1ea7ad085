import os
import platform
import resource
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from finance_tracker import config, database
from finance_tracker.errors import correlation_id, error_response, register_error_handlers
from finance_tracker.logger import get_logger
from finance_tracker.routes import auth, categories, transactions, users

logger = get_logger(__name__)

API_PREFIX = "/api/v1"
STARTED_AT = time.monotonic()


@asynccontextmanager
async def lifespan(app: FastAPI):
    config.validate_environment()
    if database.database_name() is None:
        database.init_db()
    logger.info(f"{config.SERVICE_NAME} {config.API_VERSION} started ({config.APP_ENV})")
    yield
    database.close_db()


class BodySizeLimitMiddleware:
    """Reject request bodies over MAX_BODY_BYTES while they stream in, with or without Content-Length."""

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        limit = config.MAX_BODY_BYTES
        received = 0

        async def limited_receive():
            nonlocal received
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > limit:
                    raise HTTPException(413, f"Request body exceeds {limit} bytes")
            return message

        await self.app(scope, limited_receive, send)


# ----------------------
# App & CORS
# ----------------------
app = FastAPI(title=config.APP_NAME, version=config.API_VERSION, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

app.add_middleware(BodySizeLimitMiddleware)

register_error_handlers(app)


@app.middleware("http")
async def api_headers(request: Request, call_next):
    length = request.headers.get("content-length")
    if length and length.isdigit() and int(length) > config.MAX_BODY_BYTES:
        return error_response(request, 413, "PAYLOAD_TOO_LARGE",
                              f"Request body exceeds {config.MAX_BODY_BYTES} bytes")
    response = await call_next(request)
    response.headers["X-Correlation-Id"] = correlation_id(request)
    if request.url.path.startswith(API_PREFIX):
        response.headers["X-API-Version"] = config.API_VERSION
        response.headers["X-Service"] = config.SERVICE_NAME
    return response


app.include_router(auth.router, prefix=API_PREFIX)
app.include_router(users.router, prefix=API_PREFIX)
app.include_router(categories.router, prefix=API_PREFIX)
app.include_router(transactions.router, prefix=API_PREFIX)


# ----------------------
# Health
# ----------------------
@app.get("/")
def read_root():
    return {
        "success": True,
        "message": f"{config.APP_NAME} API",
        "version": config.API_VERSION,
        "docs": "/docs",
        "health": "/health",
        "api": API_PREFIX,
    }


@app.get("/health")
def health():
    connected = database.is_connected()
    usage = resource.getrusage(resource.RUSAGE_SELF)
    body = {
        "status": "healthy" if connected else "degraded",
        "service": config.SERVICE_NAME,
        "version": config.API_VERSION,
        "environment": config.APP_ENV,
        "uptime": round(time.monotonic() - STARTED_AT, 2),
        "pid": os.getpid(),
        "python": platform.python_version(),
        "memory": {"maxRssKb": usage.ru_maxrss},
        "services": {"database": "connected" if connected else "disconnected"},
        "database": {"connected": connected, "name": database.database_name()},
    }
    return JSONResponse(status_code=200 if connected else 503, content=body)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
