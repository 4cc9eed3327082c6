import logging
import os

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from .background import drain
from .database import async_session_maker, init_db
from .routers import briefs, functions, respond, settings as settings_router, teams, templates
from .schemas import UserCreate, UserRead, UserUpdate
from .services.templates import seed_system_templates
from .settings.config import settings
from .users import auth_backend, cookie_backend, fastapi_users

logging.basicConfig(level=settings.LOG_LEVEL.upper())
logger = logging.getLogger(__name__)

app = FastAPI(title="SingleBrief")

# Avatar uploads are served straight from disk
os.makedirs(settings.AVATAR_DIR, exist_ok=True)
app.mount("/static/avatars", StaticFiles(directory=settings.AVATAR_DIR), name="avatars")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ----------------------
# Route Includes
# ----------------------
app.include_router(
    fastapi_users.get_auth_router(auth_backend),
    prefix="/auth/jwt",
    tags=["auth"]
)
app.include_router(
    fastapi_users.get_auth_router(cookie_backend),
    prefix="/auth/cookie",
    tags=["auth"]
)
app.include_router(
    fastapi_users.get_register_router(UserRead, UserCreate),
    prefix="/auth",
    tags=["auth"]
)
app.include_router(
    fastapi_users.get_users_router(UserRead, UserUpdate),
    prefix="/users",
    tags=["users"]
)
app.include_router(briefs.router)
app.include_router(templates.router)
app.include_router(teams.router)
app.include_router(settings_router.router)
app.include_router(respond.router)
app.include_router(functions.router)


@app.exception_handler(IntegrityError)
async def _integrity_error_handler(request: Request, exc: IntegrityError):
    logger.warning("Integrity error on %s: %s", request.url.path, exc.orig)
    return JSONResponse({"detail": "Conflicting record"}, status_code=409)


@app.get("/healthz")
async def healthz():
    return {"status": "ok"}


# ----------------------
# Startup / shutdown
# ----------------------
@app.on_event("startup")
async def on_startup():
    await init_db()
    try:
        async with async_session_maker() as db:
            stats = await seed_system_templates(db)
        logger.info("System templates seeded: %s", stats)
    except (OSError, ValueError, SQLAlchemyError):
        logger.warning("System template seed skipped", exc_info=True)

    if settings.SCHEDULER_ENABLED:
        from .services.scheduler import start_scheduler
        start_scheduler()


@app.on_event("shutdown")
async def on_shutdown():
    if settings.SCHEDULER_ENABLED:
        from .services.scheduler import stop_scheduler
        stop_scheduler()
    await drain(timeout=10)
