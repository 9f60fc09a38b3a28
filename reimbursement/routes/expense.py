"""
Expense Routes
Submission and role-scoped viewing of expenses
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional

from reimbursement.config.database import get_db
from reimbursement.services.auth_service import auth_service
from reimbursement.services.expense_service import expense_service
from reimbursement.schemas.expense import (
    ExpenseCreate,
    ExpenseDetailResponse,
    ExpenseListResponse,
)
from reimbursement.schemas.approval import ApprovalResponse
from reimbursement.models.expense import ExpenseStatus
from reimbursement.models.user import User

router = APIRouter()


@router.post("", response_model=ExpenseDetailResponse, status_code=status.HTTP_201_CREATED)
async def submit_expense(
    expense_data: ExpenseCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.require_permission("submit_expense"))
):
    """
    Submit an expense

    The amount is converted into the company currency and the approval chain
    of the company's active rule is opened.
    """
    return await expense_service.submit_expense(
        db,
        employee_id=current_user.id,
        amount=expense_data.amount,
        currency=expense_data.original_currency,
        category=expense_data.category,
        description=expense_data.description,
        expense_date=expense_data.expense_date
    )


@router.get("", response_model=ExpenseListResponse)
async def list_expenses(
    status_filter: Optional[ExpenseStatus] = Query(None, alias="status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """
    Expenses visible to the caller, newest first

    - Employees see their own
    - Managers also see their direct reports' and those they approve
    - Directors, CFOs and finance see their own and those they approve
    - Admins see the whole company
    """
    return expense_service.list_expenses(db, current_user.id, status_filter, skip, limit)


@router.get("/{expense_id}", response_model=ExpenseDetailResponse)
async def get_expense(
    expense_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """Get one expense with its approval chain"""
    return expense_service.get_expense(db, current_user.id, expense_id)


@router.get("/{expense_id}/approvals", response_model=List[ApprovalResponse])
async def get_expense_approvals(
    expense_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """Ordered approval steps of one expense"""
    return expense_service.list_expense_approvals(db, current_user.id, expense_id)

