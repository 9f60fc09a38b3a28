"""
Expense Schemas
Pydantic models for expense submission and listing
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime, date

from reimbursement.models.expense import ExpenseCategory, ExpenseStatus
from reimbursement.schemas.approval import ApprovalResponse


class ExpenseCreate(BaseModel):
    """Schema for submitting a new expense"""
    amount: float = Field(..., gt=0, allow_inf_nan=False)
    original_currency: str = Field(..., min_length=3, max_length=3)
    category: ExpenseCategory
    description: str = Field(..., min_length=1, max_length=1000)
    expense_date: date

    @field_validator("original_currency")
    @classmethod
    def upper_currency(cls, value: str) -> str:
        return value.upper()


class ExpenseResponse(BaseModel):
    """Schema for expense response"""
    id: int
    employee_id: int
    company_id: int
    approval_rule_id: Optional[int] = None
    amount: float
    original_currency: str
    converted_amount: Optional[float] = None
    category: ExpenseCategory
    description: str
    expense_date: date
    status: ExpenseStatus
    created_at: datetime
    decided_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ExpenseDetailResponse(ExpenseResponse):
    """Expense together with its ordered approval chain"""
    approvals: List[ApprovalResponse] = []


class ExpenseListResponse(BaseModel):
    """Schema for list of expenses"""
    total: int
    expenses: List[ExpenseResponse]


class PendingApprovalResponse(ApprovalResponse):
    """A step waiting on the caller, with the expense it belongs to"""
    expense: ExpenseResponse


class ExpenseStats(BaseModel):
    """Status counts for a set of expenses"""
    pending: int = 0
    approved: int = 0
    rejected: int = 0
    total: int = 0


class CompanyExpenseStats(ExpenseStats):
    """Company-wide counts plus the approved amount in the company currency"""
    approved_amount: float = 0.0
    currency: str


class StatsResponse(BaseModel):
    """Dashboard statistics for the caller"""
    own: ExpenseStats
    pending_approvals: Optional[int] = None
    company: Optional[CompanyExpenseStats] = None
    generated_at: datetime
