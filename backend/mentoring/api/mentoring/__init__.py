"""Mentoring relationship API routes."""
from fastapi import APIRouter

from mentoring.api.mentoring import routes_professionals, routes_relationships

router = APIRouter()

router.include_router(routes_relationships.router, prefix="/relationships", tags=["relationships"])
router.include_router(routes_professionals.router, prefix="/professionals", tags=["professionals"])
