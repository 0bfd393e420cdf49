"""Professional dashboard routes."""
from fastapi import APIRouter, Depends

from mentoring.api.deps import get_relationship_service
from mentoring.domain.mentoring.models import ProfessionalStats
from mentoring.domain.mentoring.services import RelationshipService

router = APIRouter()


@router.get("/{professional_id}/stats", response_model=ProfessionalStats)
async def get_professional_stats(
    professional_id: str,
    service: RelationshipService = Depends(get_relationship_service),
):
    """Client counts and completed goals for a professional."""
    return await service.get_professional_stats(professional_id)
