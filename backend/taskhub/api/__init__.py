"""API router package."""

from fastapi import APIRouter

from taskhub.api.v1 import dependency_graph, health, recurring_tasks

router = APIRouter()

router.include_router(health.router, tags=["Health"])
router.include_router(
    recurring_tasks.router, prefix="/recurring-tasks", tags=["Recurring Tasks"]
)
router.include_router(
    dependency_graph.router, prefix="/dependency-graph", tags=["Dependency Graph"]
)
