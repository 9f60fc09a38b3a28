"""
Approval Rule Routes
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List

from reimbursement.config.database import get_db
from reimbursement.services.auth_service import auth_service
from reimbursement.services.rule_service import rule_service
from reimbursement.schemas.approval_rule import ApprovalRuleCreate, ApprovalRuleResponse
from reimbursement.models.user import User

router = APIRouter()


@router.get("", response_model=List[ApprovalRuleResponse])
async def list_rules(
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """
    Approval rules of the caller's company, oldest first

    The first rule is the one applied to new expenses.
    """
    return rule_service.list_rules(db, current_user.id)


@router.post("", response_model=ApprovalRuleResponse, status_code=status.HTTP_201_CREATED)
async def create_rule(
    rule_data: ApprovalRuleCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """
    Create an approval rule with its ordered approvers

    **Admin only**
    """
    return rule_service.create_rule(db, current_user.id, rule_data)
