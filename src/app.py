"""Main FastAPI application module.

This module initializes the FastAPI application and registers all route handlers.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.logging_config import setup_logging
from config import (
    CORS_ALLOWED_ORIGINS,
    API_HOST,
    API_PORT,
)
from core.database import init_db
from api.routes import auth, class_route, join_route

# Setup logging
setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables before the first request."""
    await init_db()
    yield


# Initialize FastAPI application
app = FastAPI(
    title="Classroom Join API",
    description="Invitation codes, class join and enrollment for classrooms.",
    version="1.0.0",
    lifespan=lifespan,
)

# Configure CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register route handlers. The join router goes before the class router so
# /api/classes/join is not captured by /api/classes/{class_id}.
app.include_router(auth.router)
app.include_router(join_route.router)
app.include_router(class_route.router)


@app.get("/", summary="API root", tags=["Info"])
def root() -> dict:
    """API root, returns API information and documentation links."""
    return {
        "name": "Classroom Join API",
        "version": "1.0.0",
        "description": "Invitation codes, class join and enrollment for classrooms.",
        "docs": {
            "swagger": "/docs",
            "redoc": "/redoc",
        },
        "health": "/api/health",
    }


@app.get("/api/health", summary="Health check", tags=["Health"])
def health() -> dict:
    """Health check endpoint.

    Returns:
        Dictionary with status "ok".
    """
    return {"status": "ok"}


# --- Startup code for direct execution ---
if __name__ == "__main__":
    import uvicorn

    print(f"Classroom Join API: http://{API_HOST}:{API_PORT}")
    print(f"API docs: http://{API_HOST}:{API_PORT}/docs")
    uvicorn.run("app:app", host=API_HOST, port=API_PORT, reload=True)
