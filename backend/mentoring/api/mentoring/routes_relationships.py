"""Mentoring relationship routes."""
import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from mentoring.api.deps import get_relationship_service
from mentoring.domain.mentoring.models import (
    MentoringRelationship,
    RelationshipPatch,
    RelationshipStatus,
)
from mentoring.domain.mentoring.services import RelationshipService

logger = logging.getLogger(__name__)

router = APIRouter()


class CreateRelationshipRequest(BaseModel):
    """Create relationship request model."""
    professional_id: str
    client_id: str
    notes: Optional[str] = None


class UpdateRelationshipRequest(BaseModel):
    """Partial update; expected_status pins the status the caller last saw."""
    status: Optional[RelationshipStatus] = None
    notes: Optional[str] = None
    ended_at: Optional[datetime] = None
    expected_status: Optional[RelationshipStatus] = None


@router.post("", response_model=MentoringRelationship, status_code=status.HTTP_201_CREATED)
async def create_relationship(
    request: CreateRelationshipRequest,
    service: RelationshipService = Depends(get_relationship_service),
):
    """Create a pending relationship between a professional and a client."""
    logger.info(
        f"🔵 [SERVER] Create relationship request: professional={request.professional_id}, client={request.client_id}"
    )
    return await service.create_relationship(request.professional_id, request.client_id, notes=request.notes)


@router.get("", response_model=list[MentoringRelationship])
async def list_relationships(
    identity: str,
    service: RelationshipService = Depends(get_relationship_service),
):
    """Relationships where identity is either party, newest first."""
    return await service.list_relationships(identity)


@router.get("/{relationship_id}", response_model=MentoringRelationship)
async def get_relationship(
    relationship_id: str,
    service: RelationshipService = Depends(get_relationship_service),
):
    return await service.get_relationship(relationship_id)


@router.patch("/{relationship_id}", response_model=MentoringRelationship)
async def update_relationship(
    relationship_id: str,
    request: UpdateRelationshipRequest,
    service: RelationshipService = Depends(get_relationship_service),
):
    """Change status and/or notes. Status changes follow the relationship lifecycle."""
    patch = RelationshipPatch(status=request.status, notes=request.notes, ended_at=request.ended_at)
    return await service.update_relationship(
        relationship_id, patch, expected_status=request.expected_status
    )


@router.post("/{relationship_id}/accept", response_model=MentoringRelationship)
async def accept_relationship(
    relationship_id: str,
    service: RelationshipService = Depends(get_relationship_service),
):
    return await service.accept(relationship_id)


@router.post("/{relationship_id}/pause", response_model=MentoringRelationship)
async def pause_relationship(
    relationship_id: str,
    service: RelationshipService = Depends(get_relationship_service),
):
    return await service.pause(relationship_id)


@router.post("/{relationship_id}/resume", response_model=MentoringRelationship)
async def resume_relationship(
    relationship_id: str,
    service: RelationshipService = Depends(get_relationship_service),
):
    return await service.resume(relationship_id)


@router.post("/{relationship_id}/end", response_model=MentoringRelationship)
async def end_relationship(
    relationship_id: str,
    service: RelationshipService = Depends(get_relationship_service),
):
    return await service.end(relationship_id)
