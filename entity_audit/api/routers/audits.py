"""Audit history API: GET /audits, GET /audits/{entity}, GET /audits/{entity}/{audit_id}."""

from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from entity_audit.api.dependencies import get_audit_reader
from entity_audit.config.settings import get_settings
from entity_audit.domain.schemas.audit import (
    AuditedEntityResponse,
    AuditEntryResponse,
    AuditPageResponse,
)
from entity_audit.infrastructure.database.reader import AuditReader

router = APIRouter()


@router.get("/", response_model=List[AuditedEntityResponse])
async def list_entities(
    reader: Annotated[AuditReader, Depends(get_audit_reader)],
):
    """Audited entity classes with their audit row counts."""
    entities = await reader.get_entities()
    return [AuditedEntityResponse.model_validate(e) for e in entities]


@router.get("/{entity}", response_model=AuditPageResponse)
async def list_audits(
    entity: str,
    reader: Annotated[AuditReader, Depends(get_audit_reader)],
    object_id: Optional[str] = None,
    action_type: Annotated[Optional[str], Query(alias="type", max_length=10)] = None,
    page: int = 1,
    page_size: Optional[int] = None,
):
    """Newest-first audit rows of one entity class, optionally for one object and one action type."""
    cls = reader.resolve_entity(entity)
    result = await reader.get_audits_page(
        cls,
        object_id=object_id,
        page=page,
        page_size=page_size if page_size is not None else get_settings().page_size,
        type_filter=action_type,
    )
    return AuditPageResponse(
        items=[AuditEntryResponse.model_validate(item) for item in result.items],
        total=result.total,
        page=result.page,
        page_size=result.page_size,
        pages=result.pages,
    )


@router.get("/{entity}/{audit_id}", response_model=AuditEntryResponse)
async def get_audit(
    entity: str,
    audit_id: int,
    reader: Annotated[AuditReader, Depends(get_audit_reader)],
):
    cls = reader.resolve_entity(entity)
    entry = await reader.get_audit(cls, audit_id)
    if entry is None:
        raise HTTPException(status_code=404, detail=f"Audit entry not found: {audit_id}")
    return AuditEntryResponse.model_validate(entry)
