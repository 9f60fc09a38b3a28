"""
Reports Routes
Dashboard statistics and the audit trail
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from reimbursement.config.database import get_db
from reimbursement.services.auth_service import auth_service
from reimbursement.services.audit_service import audit_service
from reimbursement.services.expense_service import expense_service
from reimbursement.schemas.audit_log import AuditLogResponse
from reimbursement.schemas.expense import StatsResponse
from reimbursement.models.user import User

router = APIRouter()


@router.get("/stats", response_model=StatsResponse)
async def get_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """
    Dashboard statistics

    Own expense counts for everyone, pending step count for approvers, and
    company totals for admins.
    """
    return expense_service.get_stats(db, current_user.id)


@router.get("/audit-logs", response_model=List[AuditLogResponse])
async def get_audit_logs(
    expense_id: Optional[int] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.require_permission("view_audit_logs"))
):
    """
    Audit trail of the admin's company, newest first

    **Admin only**
    """
    return audit_service.list_for_company(
        db, current_user.company_id, skip=skip, limit=limit, expense_id=expense_id
    )
