from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from lessonflow.config import settings
from lessonflow.db.database import init_db, close_db
from lessonflow.middleware.session import SessionMiddleware
from lessonflow.services.session_identity import SESSION_HEADER

# CORS: use CORS_ORIGINS (comma-separated) or local dev defaults.
if settings.allowed_origins:
    _allowed_origins = settings.allowed_origins
else:
    _allowed_origins = [
        "http://localhost:8000",
        "http://127.0.0.1:8000",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    yield
    await close_db()


app = FastAPI(title="Lessonflow", lifespan=lifespan)

app.add_middleware(SessionMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", SESSION_HEADER],
)

# Import and register routes
from lessonflow.routes.sessions import router as sessions_router
from lessonflow.routes.progress import router as progress_router
from lessonflow.routes.mistakes import router as mistakes_router
from lessonflow.routes.dashboard import router as dashboard_router

app.include_router(sessions_router)
app.include_router(progress_router)
app.include_router(mistakes_router)
app.include_router(dashboard_router)


@app.get("/health")
async def health_check():
    return {"status": "ok"}
