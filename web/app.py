"""
FastAPI application setup for the chorus web service.
"""

from dotenv import load_dotenv
from fastapi import FastAPI

from . import __version__ as WEB_VERSION
from .routes import router

# Load .env file (if present) so provider API keys are available via os.environ
load_dotenv()

# App
app = FastAPI(
    title="chorus",
    description="Parallel multi-provider conversations with context continuity and prompt refinement",
    version=WEB_VERSION,
)

# Include API routes
app.include_router(router)


@app.get("/health")
async def health():
    """Liveness probe."""
    return {"status": "ok", "version": WEB_VERSION}
