import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.routes import router
from app.config import get_settings
from app.database import engine, Base

# Import models so SQLAlchemy knows about them when creating tables
from app.models.analysis_record import AnalysisRecord  # noqa: F401

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
# SDK and transport loggers repeat what the executor already logs
for noisy in ("httpx", "httpcore", "openai"):
    logging.getLogger(noisy).setLevel(logging.WARNING)


# =============================================================================
# LIFESPAN: Startup and Shutdown Logic
# =============================================================================
#
# - Before 'yield': create the claim_analyses table if it doesn't exist
# - After 'yield': close every pooled database connection
#
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""

    # === STARTUP ===
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield

    # === SHUTDOWN ===
    await engine.dispose()


app = FastAPI(
    title="Truth Tracer",
    description="Claim analysis: fact-check, trust-chain and socratic reasoning with aggregated confidence",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173"],  # Vite default
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}
