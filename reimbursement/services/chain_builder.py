"""
Chain Builder
Materializes the ordered approver chain of one expense from the active rule
"""

from sqlalchemy.orm import Session
from typing import List, NamedTuple, Optional

from reimbursement.models.approval_rule import ApprovalRule
from reimbursement.models.user import User
from reimbursement.services.directory_service import directory_service
from reimbursement.utils.logger import setup_logger

logger = setup_logger()


class ChainStep(NamedTuple):
    """One required approver at a dense, 1-based position"""
    approver_id: int
    sequence_order: int


class ChainBuilder:
    """Builds approval chains"""

    def __init__(self):
        self.directory_service = directory_service

    def build_chain(self, db: Session, rule: Optional[ApprovalRule], employee: User) -> List[ChainStep]:
        """
        Compute the approval chain for an expense submitted by ``employee``

        The employee's manager comes first when the rule asks for manager
        approval and a manager exists. Configured approvers follow, sorted by
        their sequence_order. Stored rules cannot repeat a sequence_order; for
        unsaved rules the sort is stable, so ties keep insertion order.
        Positions are renumbered 1..N; the same person may appear more than once.

        Args:
            db: Database session
            rule: Active rule of the company, or None when it has none
            employee: Submitting employee

        Returns:
            List[ChainStep]: ordered chain, empty when there is no rule
        """
        if rule is None:
            logger.warning(
                f"Company {employee.company_id} has no approval rule; "
                f"expense from user {employee.id} will have no approval steps"
            )
            return []

        approver_ids: List[int] = []

        if rule.is_manager_approver:
            manager = self.directory_service.get_manager_of(db, employee)
            if manager is not None:
                approver_ids.append(manager.id)
            else:
                logger.debug(f"User {employee.id} has no manager; skipping manager approval step")

        ordered = sorted(rule.approvers, key=lambda approver: approver.sequence_order)
        approver_ids.extend(approver.user_id for approver in ordered)

        chain = [
            ChainStep(approver_id=approver_id, sequence_order=position)
            for position, approver_id in enumerate(approver_ids, start=1)
        ]

        inactive_ids = self._inactive_approver_ids(db, approver_ids)
        if inactive_ids:
            logger.warning(
                f"Inactive approvers {inactive_ids} are in the chain for user {employee.id}; "
                f"their steps cannot be decided until they are reactivated"
            )

        if rule.approval_type.uses_specific_approver and rule.specific_approver_id not in approver_ids:
            logger.warning(
                f"Specific approver {rule.specific_approver_id} of rule {rule.id} is not in the chain "
                f"for user {employee.id}; the specific-approver condition cannot be met"
            )

        return chain

    def _inactive_approver_ids(self, db: Session, approver_ids: List[int]) -> List[int]:
        if not approver_ids:
            return []
        inactive = db.query(User.id).filter(
            User.id.in_(set(approver_ids)),
            User.is_active.is_(False)
        ).all()
        return sorted(user_id for (user_id,) in inactive)


# Create singleton instance
chain_builder = ChainBuilder()
