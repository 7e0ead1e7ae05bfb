"""
Alert schemas.
"""
from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class AlertResponse(BaseModel):
    id: UUID
    type: str
    severity: str
    title: str
    message: str
    entity_type: str
    entity_id: UUID
    data: Optional[Dict[str, Any]] = None
    status: str
    created_at: Optional[datetime] = None
    acknowledged_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
