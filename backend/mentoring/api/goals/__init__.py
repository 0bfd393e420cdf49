"""Goal API routes."""
from fastapi import APIRouter

from mentoring.api.goals import routes_goals

router = APIRouter()

router.include_router(routes_goals.router, prefix="/goals", tags=["goals"])
