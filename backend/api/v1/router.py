"""API v1 aggregated router, mounted under API_V1_PREFIX in main.py.

Everything except health requires the X-Actor-Id header.
"""

from fastapi import APIRouter

from api.routes import analytics, executions, health, workflows

api_v1_router = APIRouter()

api_v1_router.include_router(health.router, tags=["Health"])

for prefix, module, tag in (
    ("/workflows", workflows, "Workflows"),
    ("/executions", executions, "Executions"),
    ("/analytics", analytics, "Analytics"),
):
    api_v1_router.include_router(module.router, prefix=prefix, tags=[tag])
