"""
Approval Evaluator Tests
Aggregation of step decisions under the four rule types
"""

from itertools import permutations

import pytest

from reimbursement.models.approval import ExpenseApproval, ApprovalStatus
from reimbursement.models.approval_rule import ApprovalRule, ApprovalType
from reimbursement.models.expense import Expense, ExpenseStatus
from reimbursement.services.approval_evaluator import ApprovalEvaluator
from reimbursement.utils.exceptions import (
    AlreadyDecided,
    ExpenseAlreadyFinalized,
    OutOfOrderDecision,
    ValidationError,
)

APPROVED = ApprovalStatus.APPROVED
REJECTED = ApprovalStatus.REJECTED


def build_expense(approval_type, approver_ids, percentage_required=None, specific_approver_id=None):
    """In-memory expense with one pending step per approver id"""
    rule = ApprovalRule(
        id=1,
        company_id=1,
        name="Test rule",
        is_manager_approver=False,
        approval_type=approval_type,
        percentage_required=percentage_required,
        specific_approver_id=specific_approver_id
    )
    expense = Expense(id=1, company_id=1, employee_id=99, status=ExpenseStatus.PENDING)
    expense.approval_rule = rule
    for position, approver_id in enumerate(approver_ids, start=1):
        expense.approvals.append(
            ExpenseApproval(
                id=position,
                approver_id=approver_id,
                sequence_order=position,
                status=ApprovalStatus.PENDING
            )
        )
    return expense


@pytest.fixture
def evaluator():
    return ApprovalEvaluator()


def decide(evaluator, expense, sequence_order, decision, enforce=False):
    step = expense.approvals[sequence_order - 1]
    return evaluator.apply_decision(expense, step, decision, enforce_sequential_order=enforce)


class TestSequential:
    """Sequential rules"""

    def test_approved_only_after_every_step(self, evaluator):
        expense = build_expense(ApprovalType.SEQUENTIAL, [10, 11, 12])

        assert decide(evaluator, expense, 1, APPROVED) == ExpenseStatus.PENDING
        assert decide(evaluator, expense, 2, APPROVED) == ExpenseStatus.PENDING
        assert expense.decided_at is None

        assert decide(evaluator, expense, 3, APPROVED) == ExpenseStatus.APPROVED
        assert expense.status == ExpenseStatus.APPROVED
        assert expense.decided_at is not None

    def test_single_rejection_rejects_with_earlier_steps_pending(self, evaluator):
        expense = build_expense(ApprovalType.SEQUENTIAL, [10, 11, 12])

        assert decide(evaluator, expense, 3, REJECTED) == ExpenseStatus.REJECTED
        assert expense.status == ExpenseStatus.REJECTED
        assert expense.approvals[0].status == ApprovalStatus.PENDING

    def test_strict_ordering_refuses_later_step(self, evaluator):
        expense = build_expense(ApprovalType.SEQUENTIAL, [10, 11])

        with pytest.raises(OutOfOrderDecision) as exc_info:
            decide(evaluator, expense, 2, APPROVED, enforce=True)

        assert exc_info.value.details["blocking_sequence"] == 1
        assert expense.approvals[1].status == ApprovalStatus.PENDING

        decide(evaluator, expense, 1, APPROVED, enforce=True)
        assert decide(evaluator, expense, 2, APPROVED, enforce=True) == ExpenseStatus.APPROVED

    def test_out_of_order_is_accepted_without_strict_ordering(self, evaluator):
        expense = build_expense(ApprovalType.SEQUENTIAL, [10, 11])

        assert decide(evaluator, expense, 2, APPROVED) == ExpenseStatus.PENDING
        assert expense.approvals[1].status == APPROVED


class TestPercentage:
    """Percentage rules"""

    @pytest.mark.parametrize("order", list(permutations([1, 2, 3, 4], 2)))
    def test_half_of_four_approves_on_second_approval(self, evaluator, order):
        expense = build_expense(ApprovalType.PERCENTAGE, [10, 11, 12, 13], percentage_required=50)

        first, second = order
        assert decide(evaluator, expense, first, APPROVED) == ExpenseStatus.PENDING
        assert decide(evaluator, expense, second, APPROVED) == ExpenseStatus.APPROVED

    def test_rejects_once_threshold_is_unreachable(self, evaluator):
        expense = build_expense(ApprovalType.PERCENTAGE, [10, 11, 12, 13], percentage_required=50)

        assert decide(evaluator, expense, 1, REJECTED) == ExpenseStatus.PENDING
        assert decide(evaluator, expense, 2, REJECTED) == ExpenseStatus.PENDING
        assert decide(evaluator, expense, 3, REJECTED) == ExpenseStatus.REJECTED

    def test_full_threshold_rejects_on_first_rejection(self, evaluator):
        expense = build_expense(ApprovalType.PERCENTAGE, [10, 11, 12], percentage_required=100)

        assert decide(evaluator, expense, 2, REJECTED) == ExpenseStatus.REJECTED

    def test_duplicate_approver_counts_as_two_votes(self, evaluator):
        expense = build_expense(ApprovalType.PERCENTAGE, [10, 10, 11, 12], percentage_required=50)

        decide(evaluator, expense, 1, APPROVED)
        assert decide(evaluator, expense, 2, APPROVED) == ExpenseStatus.APPROVED


class TestSpecific:
    """Specific-approver rules"""

    def test_designated_approval_approves_alone(self, evaluator):
        expense = build_expense(ApprovalType.SPECIFIC, [10, 11, 12], specific_approver_id=12)

        assert decide(evaluator, expense, 3, APPROVED) == ExpenseStatus.APPROVED
        assert all(step.status == ApprovalStatus.PENDING for step in expense.approvals[:2])

    def test_designated_rejection_rejects(self, evaluator):
        expense = build_expense(ApprovalType.SPECIFIC, [10, 11, 12], specific_approver_id=12)

        decide(evaluator, expense, 1, APPROVED)
        assert decide(evaluator, expense, 3, REJECTED) == ExpenseStatus.REJECTED

    def test_other_decisions_have_no_aggregate_effect(self, evaluator):
        expense = build_expense(ApprovalType.SPECIFIC, [10, 11, 12], specific_approver_id=12)

        assert decide(evaluator, expense, 1, REJECTED) == ExpenseStatus.PENDING
        assert decide(evaluator, expense, 2, APPROVED) == ExpenseStatus.PENDING


class TestHybrid:
    """Hybrid rules: percentage OR specific approver"""

    def test_specific_approver_alone_approves(self, evaluator):
        expense = build_expense(
            ApprovalType.HYBRID, [10, 11, 12, 13], percentage_required=50, specific_approver_id=12
        )

        assert decide(evaluator, expense, 3, APPROVED) == ExpenseStatus.APPROVED

    def test_percentage_approves_without_specific_approver(self, evaluator):
        expense = build_expense(
            ApprovalType.HYBRID, [10, 11, 12, 13], percentage_required=50, specific_approver_id=12
        )

        assert decide(evaluator, expense, 1, APPROVED) == ExpenseStatus.PENDING
        assert decide(evaluator, expense, 4, APPROVED) == ExpenseStatus.APPROVED

    def test_specific_rejection_rejects(self, evaluator):
        expense = build_expense(
            ApprovalType.HYBRID, [10, 11, 12, 13], percentage_required=50, specific_approver_id=12
        )

        decide(evaluator, expense, 1, APPROVED)
        assert decide(evaluator, expense, 3, REJECTED) == ExpenseStatus.REJECTED

    def test_unreachable_percentage_waits_for_specific_approver(self, evaluator):
        expense = build_expense(
            ApprovalType.HYBRID, [10, 11, 12, 13], percentage_required=50, specific_approver_id=12
        )

        decide(evaluator, expense, 1, REJECTED)
        decide(evaluator, expense, 2, REJECTED)
        assert decide(evaluator, expense, 4, REJECTED) == ExpenseStatus.PENDING

        assert decide(evaluator, expense, 3, APPROVED) == ExpenseStatus.APPROVED

    def test_unreachable_percentage_without_specific_step_rejects(self, evaluator):
        expense = build_expense(
            ApprovalType.HYBRID, [10, 11, 12], percentage_required=50, specific_approver_id=99
        )

        decide(evaluator, expense, 1, REJECTED)
        assert decide(evaluator, expense, 2, REJECTED) == ExpenseStatus.REJECTED


class TestDecisionIntake:
    """Decision preconditions"""

    def test_second_decision_on_step_fails_and_changes_nothing(self, evaluator):
        expense = build_expense(ApprovalType.SEQUENTIAL, [10, 11])
        decide(evaluator, expense, 1, APPROVED)
        decided_at = expense.approvals[0].decided_at

        with pytest.raises(AlreadyDecided):
            decide(evaluator, expense, 1, REJECTED)

        assert expense.approvals[0].status == APPROVED
        assert expense.approvals[0].decided_at == decided_at
        assert expense.status == ExpenseStatus.PENDING

    def test_pending_step_of_finalized_expense_is_refused(self, evaluator):
        expense = build_expense(ApprovalType.SPECIFIC, [10, 11], specific_approver_id=10)
        decide(evaluator, expense, 1, APPROVED)

        with pytest.raises(ExpenseAlreadyFinalized) as exc_info:
            decide(evaluator, expense, 2, REJECTED)

        assert isinstance(exc_info.value, AlreadyDecided)
        assert exc_info.value.code == "EXPENSE_FINALIZED"
        assert expense.approvals[1].status == ApprovalStatus.PENDING
        assert expense.status == ExpenseStatus.APPROVED

    def test_pending_is_not_a_decision(self, evaluator):
        expense = build_expense(ApprovalType.SEQUENTIAL, [10])

        with pytest.raises(ValidationError):
            decide(evaluator, expense, 1, ApprovalStatus.PENDING)

    def test_comments_and_timestamp_are_recorded(self, evaluator):
        expense = build_expense(ApprovalType.SEQUENTIAL, [10, 11])
        step = expense.approvals[0]

        evaluator.apply_decision(expense, step, APPROVED, comments="Receipt checked")

        assert step.comments == "Receipt checked"
        assert step.decided_at is not None


class TestEvaluate:
    """Aggregate status without a decision"""

    def test_empty_chain_is_pending(self, evaluator):
        expense = build_expense(ApprovalType.SEQUENTIAL, [])
        assert evaluator.evaluate(expense.approval_rule, expense.approvals) == ExpenseStatus.PENDING

    def test_missing_rule_falls_back_to_sequential(self, evaluator):
        expense = build_expense(ApprovalType.PERCENTAGE, [10, 11], percentage_required=50)
        expense.approvals[0].status = APPROVED

        assert evaluator.evaluate(None, expense.approvals) == ExpenseStatus.PENDING

        expense.approvals[1].status = APPROVED
        assert evaluator.evaluate(None, expense.approvals) == ExpenseStatus.APPROVED


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
