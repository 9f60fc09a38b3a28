"""
Approval Routes
Pending approvals and approver decisions
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List

from reimbursement.config.database import get_db
from reimbursement.services.auth_service import auth_service
from reimbursement.services.expense_service import expense_service
from reimbursement.schemas.approval import ApprovalDecision, ApprovalResponse, DecisionResponse
from reimbursement.schemas.expense import PendingApprovalResponse
from reimbursement.models.user import User
from reimbursement.utils.logger import setup_logger

logger = setup_logger()
router = APIRouter()


@router.get("/pending", response_model=List[PendingApprovalResponse])
async def get_pending_approvals(
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """
    Steps waiting on the current user, newest first

    Steps of expenses that are already approved or rejected are not listed.
    """
    approvals = expense_service.list_pending_approvals(db, current_user.id)
    logger.info(f"User {current_user.id} viewing {len(approvals)} pending approvals")
    return approvals


# Plain def: the decision blocks on the per-expense lock, so it runs in the threadpool
@router.post("/{approval_id}/decision", response_model=DecisionResponse)
def decide_approval(
    approval_id: int,
    decision_data: ApprovalDecision,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.require_permission("decide_approval"))
):
    """
    Approve or reject one approval step

    Only the step's approver may decide it. The response carries the updated
    step and the expense status after the decision was evaluated.
    """
    step = expense_service.decide_approval(
        db,
        caller_id=current_user.id,
        approval_id=approval_id,
        decision=decision_data.decision.value,
        comments=decision_data.comments
    )
    expense_status = step.expense.status.value
    return DecisionResponse(
        message=f"Approval {decision_data.decision.value}; expense is {expense_status}",
        approval=ApprovalResponse.model_validate(step),
        expense_status=expense_status
    )
