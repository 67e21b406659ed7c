"""
FastAPI application entry point.

Local control plane for the recurring task scheduler: inspect tasks, shut
them down, stop the scheduler. Optional API key authentication.
"""

from contextlib import asynccontextmanager
from fastapi import Depends, FastAPI

from src import __version__
from .routers import scheduler
from ._scheduler_state import init_scheduler_service, shutdown_scheduler_service
from .dependencies.auth import verify_api_key, API_AUTH_ENABLED


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Creates the scheduler service on startup and stops every task on
    shutdown.
    """
    init_scheduler_service()

    yield

    shutdown_scheduler_service()


tags_metadata = [
    {
        "name": "scheduler",
        "description": "Recurring task inspection and stop controls",
    },
]

app = FastAPI(
    title="Recurring Task Scheduler API",
    lifespan=lifespan,
    description="""
## Recurring Task Scheduler API

Local-only control plane for in-process recurring tasks.

### Authentication
When `API_AUTH_ENABLED=true`, all endpoints except `/health` require
an `X-API-Key` header matching the `API_KEY` environment variable.

### Usage
```bash
uvicorn src.api.main:app --host 127.0.0.1 --port 8000

curl http://localhost:8000/scheduler/status -H "X-API-Key: your-api-key"
```
    """,
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=tags_metadata,
)


# Health check - NO authentication (operational endpoint)
@app.get("/health")
async def health_check():
    """Health check endpoint. Not authenticated."""
    return {"status": "ok", "version": __version__}


auth_dependency = [Depends(verify_api_key)] if API_AUTH_ENABLED else []

app.include_router(
    scheduler.router, prefix="/scheduler", tags=["scheduler"], dependencies=auth_dependency
)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="127.0.0.1", port=8000)
