"""Main API router for v1."""

from fastapi import APIRouter

from bugger_engine.api.v1.endpoints import bugs, jobs

api_router = APIRouter()

# Include all endpoint routers
api_router.include_router(bugs.router, prefix="/bugs", tags=["Bugs"])
api_router.include_router(jobs.router, prefix="/jobs", tags=["Jobs"])
