import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# ✅ Import All API Routes
from app.api.routes import companies, health, match_sessions, scrape_sessions, settings

from app.core.config import CORS_ORIGINS, LOG_LEVEL, RUN_MIGRATIONS
from app.core.logging_config import setup_logging
from app.services.session_runner import get_session_runner

logger = logging.getLogger(__name__)


# ============================================
# ✅ STARTUP / SHUTDOWN
# ============================================

@asynccontextmanager
async def lifespan(_app: FastAPI):
    setup_logging(LOG_LEVEL)

    if RUN_MIGRATIONS:
        from app.db.migrate import run_migrations
        run_migrations()
    else:
        from app.db.init_db import init_db
        init_db()

    runner = get_session_runner()
    interrupted = runner.recover()
    logger.info(f"JobRadar API started ({interrupted} interrupted sessions failed)")
    yield
    runner.shutdown(wait=False)


# ============================================
# ✅ FASTAPI APP INIT
# ============================================

app = FastAPI(title="JobRadar", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    allow_headers=["Content-Type"],
)


# ============================================
# ✅ REGISTER ALL ROUTERS
# ============================================

app.include_router(health.router)
app.include_router(companies.router)
app.include_router(scrape_sessions.router)
app.include_router(match_sessions.router)
app.include_router(settings.router)


@app.get("/")
def root():
    return {"status": "JobRadar API running"}
