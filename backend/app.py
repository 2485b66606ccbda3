import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from fastapi.responses import FileResponse

from backend.database import engine, Base
from backend.models import User, Store, Cookie, Activity  # noqa: F401
from backend.config import settings
from backend.logging_setup import setup_logging
from backend.services import vault
from backend.worker.refresh_worker import scheduler

logger = logging.getLogger("cookie_manager")

# Path to built frontend
FRONTEND_DIR = Path(__file__).parent.parent / "frontend" / "dist"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown logic."""
    setup_logging()

    # Refuse to start without a usable vault key
    settings.validate()
    vault.validate_key()

    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created.")

    await scheduler.start()

    yield

    await scheduler.stop()
    logger.info("Shutting down.")


app = FastAPI(title="Cookie Manager", version="1.0.0", lifespan=lifespan)

# CORS - allow React dev server (for local development)
allowed_origins = ["http://localhost:5173", "http://localhost:3000"]
public_url = os.environ.get("PUBLIC_DOMAIN")
if public_url:
    allowed_origins.append(f"https://{public_url}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Import and register routers
from backend.routers import users, stores, cookies, activities, user_settings, refresh  # noqa: E402

app.include_router(users.router, prefix="/api/users", tags=["users"])
app.include_router(stores.router, prefix="/api/stores", tags=["stores"])
app.include_router(cookies.router, prefix="/api/cookies", tags=["cookies"])
app.include_router(activities.router, prefix="/api/activities", tags=["activities"])
app.include_router(user_settings.router, prefix="/api/settings", tags=["settings"])
app.include_router(refresh.router, prefix="/api/refresh", tags=["refresh"])


@app.get("/api/health")
async def health():
    return {"status": "ok"}


# Serve built React frontend (must be after API routes)
if FRONTEND_DIR.exists():
    app.mount("/assets", StaticFiles(directory=FRONTEND_DIR / "assets"), name="static")

    @app.get("/{full_path:path}")
    async def serve_frontend(request: Request, full_path: str):
        """Serve React app for all non-API routes (SPA fallback)."""
        file_path = FRONTEND_DIR / full_path
        if file_path.is_file():
            return FileResponse(file_path)
        return FileResponse(FRONTEND_DIR / "index.html")
