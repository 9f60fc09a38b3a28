"""
Approval Schemas
Pydantic models for approval workflow
"""

from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from enum import Enum

from reimbursement.models.approval import ApprovalStatus


class DecisionEnum(str, Enum):
    """Decisions an approver can record"""
    APPROVED = "approved"
    REJECTED = "rejected"


class ApprovalDecision(BaseModel):
    """Schema for recording an approval or rejection"""
    decision: DecisionEnum
    comments: Optional[str] = Field(None, max_length=2000)


class ApprovalResponse(BaseModel):
    """Schema for approval step response"""
    id: int
    expense_id: int
    approver_id: int
    sequence_order: int
    status: ApprovalStatus
    comments: Optional[str] = None
    created_at: datetime
    decided_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class DecisionResponse(BaseModel):
    """Outcome of a decision: the updated step and the expense status after evaluation"""
    success: bool = True
    message: str
    approval: ApprovalResponse
    expense_status: str
