"""
Content Opportunity Engine
Main FastAPI application
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.gzip import GZipMiddleware

from app import __version__
from app.api import health, seo
from app.config import get_settings
from app.middleware.user_context import UserContextMiddleware
from app.utils.logger import log

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    log.info(f"Starting {settings.app_name} v{__version__}")
    log.info(f"Environment: {settings.environment}")

    try:
        from app.models.base import init_db
        init_db()
        log.info("Database initialized")
    except Exception as e:
        log.error(f"Database initialization error: {str(e)}")

    yield

    log.info("Shutting down application")


app = FastAPI(
    title=settings.app_name,
    version=__version__,
    description="""
    Search opportunity engine for the blog dashboard

    - Connects each user's Google Search Console account (read-only OAuth)
    - Scores queries with high impressions and weak CTR as content opportunities
    - Generates AI content recommendations, cached for 7 days per user
    - Compares blog post search performance against the previous period
    """,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Resolves the signed-in user forwarded by the dashboard gateway
app.add_middleware(UserContextMiddleware)

app.add_middleware(GZipMiddleware, minimum_size=500)

app.include_router(health.router, tags=["health"])
app.include_router(seo.router)


@app.get("/")
async def root():
    """Root endpoint with API information"""
    return {
        "app": settings.app_name,
        "version": __version__,
        "docs": "/docs",
        "health": "/health",
        "status": "/status",
        "endpoints": {
            "connect": "GET /seo/connect",
            "oauth_callback": "GET /seo/callback",
            "connection_status": "GET /seo/status",
            "disconnect": "DELETE /seo/connection",
            "sites": "GET /seo/sites",
            "analytics": "GET /seo/analytics",
            "opportunities": "GET /seo/opportunities",
            "content_suggestions": "GET /seo/content-suggestions",
            "blog_performance": "GET /seo/blog-performance",
            "overview": "GET /seo/overview",
        }
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
    )
