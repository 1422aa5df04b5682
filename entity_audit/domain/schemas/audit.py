"""Pydantic schemas for the audit read API. No DB or infrastructure."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class AuditEntryResponse(BaseModel):
    """One persisted audit row, diff decoded."""

    id: int
    type: str = Field(..., max_length=10, description="Action code (INS, UPD, DEL, CASC, CDSC)")
    object_id: str
    diff: Optional[Dict[str, Any]] = None
    changer: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class AuditPageResponse(BaseModel):
    items: List[AuditEntryResponse]
    total: int
    page: int
    page_size: int
    pages: int

    model_config = {"from_attributes": True}


class AuditedEntityResponse(BaseModel):
    name: str
    table: str
    audits_count: int

    model_config = {"from_attributes": True}
