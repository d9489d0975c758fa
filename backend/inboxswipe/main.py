"""
FastAPI application entry point.
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from inboxswipe.config import get_settings
from inboxswipe.routes import analyze, emails, health, triage
from inboxswipe.utils.logger import setup_logging

# Setup logging
setup_logging()

# Create FastAPI app
app = FastAPI(
    title="InboxSwipe",
    description="Swipe-to-triage inbox with AI classification and summaries",
    version="1.0.0",
)

# Get settings
settings = get_settings()

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, prefix="/api", tags=["Health"])
app.include_router(emails.router, prefix="/api", tags=["Emails"])
app.include_router(analyze.router, prefix="/api", tags=["Analysis"])
app.include_router(triage.router, prefix="/api", tags=["Triage"])


@app.get("/")
async def root():
    """Root endpoint - points to docs."""
    return {
        "message": "InboxSwipe API",
        "docs": "/docs",
        "health": "/api/health",
    }
