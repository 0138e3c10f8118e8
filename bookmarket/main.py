# bookmarket/main.py
import os

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from .config import settings
from .db import engine
from .errors import Forbidden
from .logs import get_logger, setup_logging
from .models.base import Base
from .utils.cache import TTLCache

from .routers import (
    auth as auth_router,
    listings as listings_router,
    location as location_router,
    chat as chat_router,
    logs as logs_router,
)

setup_logging(settings.LOG_DIR, settings.LOG_LEVEL)
log = get_logger("main")

app = FastAPI(title=settings.APP_NAME)

# --- CORS ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Uploaded media ---
os.makedirs(settings.MEDIA_ROOT, exist_ok=True)
app.mount("/media", StaticFiles(directory=settings.MEDIA_ROOT), name="media")

# --- Shared in-process cache (nearby locations) ---
app.state.cache = TTLCache()

# --- Routers ---
app.include_router(auth_router.router)
app.include_router(location_router.router)
app.include_router(listings_router.router)
app.include_router(chat_router.router)
app.include_router(logs_router.router)


# --- Error mapping ---
def _error(status_code: int, detail: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"ok": False, "detail": detail})


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    log.info("400 %s %s: %s", request.method, request.url.path, exc)
    return _error(400, str(exc))


@app.exception_handler(Forbidden)
async def forbidden_handler(request: Request, exc: Forbidden):
    log.info("403 %s %s: %s", request.method, request.url.path, exc)
    return _error(403, str(exc))


@app.exception_handler(LookupError)
async def lookup_error_handler(request: Request, exc: LookupError):
    # KeyError/IndexError are programming errors, not missing rows
    if isinstance(exc, (KeyError, IndexError)):
        return await unhandled_error_handler(request, exc)
    return _error(404, str(exc))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    log.exception("unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return _error(500, "Something went wrong. Please try again later.")


# --- DB init ---
@app.on_event("startup")
def on_startup():
    Base.metadata.create_all(bind=engine)
    log.info("%s started", settings.APP_NAME)
