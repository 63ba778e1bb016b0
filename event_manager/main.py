"""FastAPI application entry point."""
import logging
from datetime import datetime, timezone

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from event_manager import __version__
from event_manager.config import settings
from event_manager.database import SessionLocal, close_db, init_db
from event_manager.errors import AuthenticationError, EventManagerError
from event_manager.notifications.dispatcher import build_dispatcher

# Import routers
from event_manager.routers import auth, events, users

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Event Manager",
    description="Create events, invite attendees and notify them by email",
    version=__version__,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in settings.CORS_ORIGINS.split(",") if origin.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
app.include_router(auth.router, prefix="/api/auth", tags=["Auth"])
app.include_router(events.router, prefix="/api/events", tags=["Events"])
app.include_router(users.router, prefix="/api/users", tags=["Users"])


@app.exception_handler(EventManagerError)
async def app_error_handler(request: Request, exc: EventManagerError):
    headers = None
    if isinstance(exc, AuthenticationError) and exc.status_code == status.HTTP_401_UNAUTHORIZED:
        headers = {"WWW-Authenticate": "Bearer"}
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message}, headers=headers)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"field": ".".join(str(part) for part in error["loc"][1:]), "message": error["msg"]}
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"message": "Invalid request", "errors": errors},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    """Per-request error boundary: log it, answer 500, keep serving."""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    content = {"message": "Server error"}
    if settings.DEBUG:
        content["error"] = str(exc)
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=content)


@app.on_event("startup")
def on_startup():
    """Create tables (SQLite dev mode) and the notification dispatcher."""
    init_db()
    app.state.dispatcher = build_dispatcher(settings, SessionLocal)
    logger.info("Event Manager %s started (mail transport: %s)", __version__, settings.MAIL_TRANSPORT)


@app.on_event("shutdown")
def on_shutdown():
    dispatcher = getattr(app.state, "dispatcher", None)
    if dispatcher is not None:
        dispatcher.close()
    close_db()


@app.get("/api/health")
def health_check():
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}
