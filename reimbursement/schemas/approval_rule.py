"""
Approval Rule Schemas
Pydantic models for rule configuration
"""

from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime

from reimbursement.models.approval_rule import ApprovalType


class RuleApproverSpec(BaseModel):
    """One configured approver and its sort position"""
    user_id: int
    sequence_order: int


class ApprovalRuleCreate(BaseModel):
    """
    Schema for creating an approval rule

    Range and cross-field checks (percentage, specific approver, duplicate
    sequence orders) are enforced by the rule service so that every caller
    gets the same typed error.
    """
    name: str = Field(..., min_length=1, max_length=200)
    is_manager_approver: bool = True
    approval_type: ApprovalType
    percentage_required: Optional[int] = None
    specific_approver_id: Optional[int] = None
    approvers: List[RuleApproverSpec] = Field(default_factory=list)


class RuleApproverResponse(BaseModel):
    """Schema for a configured approver"""
    id: int
    user_id: int
    sequence_order: int

    class Config:
        from_attributes = True


class ApprovalRuleResponse(BaseModel):
    """Schema for approval rule response"""
    id: int
    company_id: int
    name: str
    is_manager_approver: bool
    approval_type: ApprovalType
    percentage_required: Optional[int] = None
    specific_approver_id: Optional[int] = None
    approvers: List[RuleApproverResponse] = []
    created_at: datetime

    class Config:
        from_attributes = True
