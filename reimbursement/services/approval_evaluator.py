"""
Approval Evaluator
Applies one approver's decision to an expense and recomputes its status

Aggregation per rule type:

* sequential  - any rejection rejects; approved once every step is approved
* percentage  - approved once approved/total reaches the threshold; rejected
                once the threshold can no longer be reached
* specific    - the specific approver's decision settles the expense; other
                steps have no aggregate effect
* hybrid      - specific approver rejection rejects; approved when either the
                percentage or the specific condition holds; rejected when the
                threshold is unreachable and the specific approver has nothing
                left to decide

Every step counts as an independent vote, including repeated approvers.
"""

from datetime import datetime
from typing import Optional, Sequence

from reimbursement.models.approval import ExpenseApproval, ApprovalStatus
from reimbursement.models.approval_rule import ApprovalRule, ApprovalType
from reimbursement.models.expense import Expense, ExpenseStatus
from reimbursement.utils.exceptions import (
    AlreadyDecided,
    ExpenseAlreadyFinalized,
    OutOfOrderDecision,
    ValidationError,
)
from reimbursement.utils.logger import setup_logger

logger = setup_logger()


class ApprovalEvaluator:
    """Decision evaluator for the four approval types"""

    # ------------------------------------------------------------------
    # Aggregate status
    # ------------------------------------------------------------------

    def evaluate(self, rule: Optional[ApprovalRule], steps: Sequence[ExpenseApproval]) -> ExpenseStatus:
        """
        Derive the aggregate expense status from its steps

        Args:
            rule: Rule the chain was built from
            steps: Every step of the expense

        Returns:
            ExpenseStatus: pending, approved or rejected
        """
        if not steps:
            return ExpenseStatus.PENDING

        if rule is None:
            logger.warning("Evaluating an approval chain without a rule; falling back to sequential")
            return self._evaluate_sequential(steps)

        evaluators = {
            ApprovalType.SEQUENTIAL: self._evaluate_sequential,
            ApprovalType.PERCENTAGE: lambda s: self._evaluate_percentage(s, rule.percentage_required),
            ApprovalType.SPECIFIC: lambda s: self._evaluate_specific(s, rule.specific_approver_id),
            ApprovalType.HYBRID: lambda s: self._evaluate_hybrid(
                s, rule.percentage_required, rule.specific_approver_id
            ),
        }
        return evaluators[rule.approval_type](steps)

    def _evaluate_sequential(self, steps: Sequence[ExpenseApproval]) -> ExpenseStatus:
        if any(step.status == ApprovalStatus.REJECTED for step in steps):
            return ExpenseStatus.REJECTED
        if all(step.status == ApprovalStatus.APPROVED for step in steps):
            return ExpenseStatus.APPROVED
        return ExpenseStatus.PENDING

    def _evaluate_percentage(self, steps: Sequence[ExpenseApproval], percentage: Optional[int]) -> ExpenseStatus:
        if self.percentage_met(steps, percentage):
            return ExpenseStatus.APPROVED
        if not self.percentage_reachable(steps, percentage):
            return ExpenseStatus.REJECTED
        return ExpenseStatus.PENDING

    def _evaluate_specific(self, steps: Sequence[ExpenseApproval], specific_approver_id: Optional[int]) -> ExpenseStatus:
        specific = [step for step in steps if step.approver_id == specific_approver_id]
        if any(step.status == ApprovalStatus.REJECTED for step in specific):
            return ExpenseStatus.REJECTED
        if any(step.status == ApprovalStatus.APPROVED for step in specific):
            return ExpenseStatus.APPROVED
        return ExpenseStatus.PENDING

    def _evaluate_hybrid(
        self,
        steps: Sequence[ExpenseApproval],
        percentage: Optional[int],
        specific_approver_id: Optional[int]
    ) -> ExpenseStatus:
        specific_status = self._evaluate_specific(steps, specific_approver_id)
        if specific_status == ExpenseStatus.REJECTED:
            return ExpenseStatus.REJECTED
        if specific_status == ExpenseStatus.APPROVED or self.percentage_met(steps, percentage):
            return ExpenseStatus.APPROVED

        specific_pending = any(
            step.approver_id == specific_approver_id and step.status == ApprovalStatus.PENDING
            for step in steps
        )
        if not specific_pending and not self.percentage_reachable(steps, percentage):
            return ExpenseStatus.REJECTED
        return ExpenseStatus.PENDING

    @staticmethod
    def percentage_met(steps: Sequence[ExpenseApproval], percentage: Optional[int]) -> bool:
        """approved / total >= percentage / 100, in integer arithmetic"""
        if not steps or percentage is None:
            return False
        approved = sum(1 for step in steps if step.status == ApprovalStatus.APPROVED)
        return approved * 100 >= percentage * len(steps)

    @staticmethod
    def percentage_reachable(steps: Sequence[ExpenseApproval], percentage: Optional[int]) -> bool:
        """Whether approving every pending step would still reach the threshold"""
        if not steps or percentage is None:
            return False
        possible = sum(1 for step in steps if step.status != ApprovalStatus.REJECTED)
        return possible * 100 >= percentage * len(steps)

    # ------------------------------------------------------------------
    # Decision intake
    # ------------------------------------------------------------------

    def apply_decision(
        self,
        expense: Expense,
        step: ExpenseApproval,
        decision: ApprovalStatus,
        comments: Optional[str] = None,
        enforce_sequential_order: bool = False
    ) -> ExpenseStatus:
        """
        Record a decision on a step and move the expense to its new status

        The caller holds the expense lock and commits the transaction.

        Args:
            expense: Expense aggregate, with its steps loaded
            step: Step being decided (must belong to expense)
            decision: APPROVED or REJECTED
            comments: Optional approver comments
            enforce_sequential_order: refuse decisions ahead of the current step
                on sequential rules

        Returns:
            ExpenseStatus: status of the expense after the decision

        Raises:
            ValidationError: decision is not terminal
            AlreadyDecided: step is already approved or rejected
            ExpenseAlreadyFinalized: expense already approved or rejected
            OutOfOrderDecision: strict ordering is on and an earlier step is pending
        """
        if decision not in (ApprovalStatus.APPROVED, ApprovalStatus.REJECTED):
            raise ValidationError("Decision must be 'approved' or 'rejected'", {"decision": str(decision)})

        if step.status.is_terminal:
            raise AlreadyDecided(step.id, step.status.value)

        if expense.status.is_terminal:
            raise ExpenseAlreadyFinalized(step.id, expense.id, expense.status.value)

        rule = expense.approval_rule
        if (
            enforce_sequential_order
            and rule is not None
            and rule.approval_type == ApprovalType.SEQUENTIAL
        ):
            current = expense.current_step()
            if current is not None and current.id != step.id:
                raise OutOfOrderDecision(step.id, current.sequence_order)

        now = datetime.utcnow()
        step.status = decision
        step.comments = comments
        step.decided_at = now

        new_status = self.evaluate(rule, expense.approvals)
        if new_status != expense.status:
            logger.info(
                f"Expense {expense.id} moved from {expense.status.value} to {new_status.value} "
                f"after step {step.sequence_order} was {decision.value}"
            )
            expense.status = new_status
            expense.decided_at = now

        return new_status


# Create singleton instance
approval_evaluator = ApprovalEvaluator()
