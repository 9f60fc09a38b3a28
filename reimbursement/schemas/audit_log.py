"""
Audit Log Schemas
"""

from pydantic import BaseModel
from typing import Any, Dict, Optional
from datetime import datetime


class AuditLogResponse(BaseModel):
    """Schema for audit log response"""
    id: int
    company_id: int
    user_id: Optional[int] = None
    action: str
    entity_type: str
    entity_id: Optional[int] = None
    description: str
    changes: Optional[Dict[str, Any]] = None
    expense_id: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True
