"""Main entry point for the Workspace Tree Engine FastAPI application.

This module creates and configures the FastAPI app instance that serves the REST API
for browsing, mutating and synchronizing a virtual workspace file tree.

To run the development server:
    uvicorn main:app --reload

To run in production:
    uvicorn main:app --host 0.0.0.0 --port 8000
"""

import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI

from api.dependencies import WorkspaceDep, initialize_workspace, shutdown_workspace
from api.exceptions import register_exception_handlers
from api.routes import clipboard as clipboard_routes
from api.routes import conflicts as conflicts_routes
from api.routes import favorites as favorites_routes
from api.routes import history as history_routes
from api.routes import navigation as navigation_routes
from api.routes import sync as sync_routes
from api.routes import tree as tree_routes

load_dotenv()
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the shared workspace on startup and persist its cursor on shutdown.

    Settings come from WORKSPACE_* environment variables (see WorkspaceConfig).
    """
    print("🚀 Starting Workspace Tree Engine - Initializing Workspace...")
    initialize_workspace()
    print("✅ Workspace initialized")

    yield

    print("🛑 Shutting down Workspace Tree Engine - Cancelling pending syncs...")
    shutdown_workspace()
    print("✅ Shutdown complete")


# Create the FastAPI application instance
app = FastAPI(
    title="Workspace Tree Engine",
    description="API for browsing, mutating and synchronizing a virtual workspace tree",
    version="0.1.0",
    lifespan=lifespan,
)

# Register exception handlers
register_exception_handlers(app)

# Register route modules
app.include_router(tree_routes.router)
app.include_router(navigation_routes.router)
app.include_router(clipboard_routes.router)
app.include_router(history_routes.router)
app.include_router(sync_routes.router)
app.include_router(conflicts_routes.router)
app.include_router(favorites_routes.router)


@app.get("/")
async def root():
    """Root endpoint - returns a welcome message."""
    return {
        "message": "Welcome to the Workspace Tree Engine API",
        "version": "0.1.0",
        "docs_url": "/docs",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint for monitoring."""
    return {"status": "healthy"}


@app.get("/workspace")
async def get_workspace_summary(workspace: WorkspaceDep):
    """Summary of the session: cursor, clipboard, history and sync flags."""
    return workspace.to_dict()
