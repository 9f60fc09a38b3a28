"""
Expense Service
Expense lifecycle: submission, scoped listing, approval decisions and stats
"""

import math

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, Query
from sqlalchemy.exc import SQLAlchemyError
from starlette.concurrency import run_in_threadpool
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Union

from reimbursement.config.settings import settings
from reimbursement.models.approval import ExpenseApproval, ApprovalStatus
from reimbursement.models.expense import Expense, ExpenseCategory, ExpenseStatus
from reimbursement.models.user import User, UserRole
from reimbursement.services.approval_evaluator import approval_evaluator
from reimbursement.services.audit_service import audit_service
from reimbursement.services.chain_builder import chain_builder
from reimbursement.services.currency_service import currency_service
from reimbursement.services.directory_service import directory_service
from reimbursement.services.rule_service import rule_service
from reimbursement.utils.exceptions import (
    WorkflowError,
    ValidationError,
    Forbidden,
    NotFound,
    ConversionUnavailable,
    PersistenceFailure,
)
from reimbursement.utils.helpers import format_currency, normalize_currency_code, round_money
from reimbursement.utils.locks import KeyedLock
from reimbursement.utils.logger import setup_logger

logger = setup_logger()


class ExpenseService:
    """Service for expense-related business logic"""

    def __init__(self):
        """Initialize with dependent services"""
        self.directory_service = directory_service
        self.rule_service = rule_service
        self.chain_builder = chain_builder
        self.evaluator = approval_evaluator
        self.currency_service = currency_service
        self.audit_service = audit_service
        self._expense_locks = KeyedLock()

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    async def submit_expense(
        self,
        db: Session,
        employee_id: int,
        amount: float,
        currency: str,
        category: Union[ExpenseCategory, str],
        description: str,
        expense_date: date
    ) -> Expense:
        """
        Submit an expense and open its approval chain

        The amount is converted into the company currency before the
        transaction starts. When no rate is available the entered amount is
        stored as the converted amount and submission continues.

        Args:
            db: Database session
            employee_id: Submitting user
            amount: Amount in ``currency``
            currency: ISO-4217 code of the entered amount
            category: Expense category
            description: Free-text description
            expense_date: Date the expense was incurred

        Returns:
            Expense: persisted expense with its pending approval steps

        Raises:
            ValidationError: malformed input
            NotFound: employee or company missing
            Forbidden: employee is inactive
            PersistenceFailure: the write failed and was rolled back
        """
        currency_code, expense_category = self._validate_submission(
            amount, currency, category, description, expense_date
        )

        employee = self.directory_service.get_user(db, employee_id)
        if not employee.has_permission("submit_expense"):
            raise Forbidden("Inactive users cannot submit expenses", {"user_id": employee_id})
        company = self.directory_service.get_company(db, employee.company_id)

        try:
            converted_amount = await run_in_threadpool(
                self.currency_service.convert, amount, currency_code, company.default_currency
            )
        except ConversionUnavailable as e:
            logger.warning(f"{e.message}; storing the entered amount for user {employee.id}")
            converted_amount = round_money(amount)

        try:
            expense = Expense(
                employee_id=employee.id,
                company_id=company.id,
                amount=amount,
                original_currency=currency_code,
                converted_amount=converted_amount,
                category=expense_category,
                description=description.strip(),
                expense_date=expense_date,
                status=ExpenseStatus.PENDING
            )
            db.add(expense)
            db.flush()

            rule = self.rule_service.select_active_rule(db, company.id)
            expense.approval_rule_id = rule.id if rule else None

            chain = self.chain_builder.build_chain(db, rule, employee)
            for step in chain:
                expense.approvals.append(
                    ExpenseApproval(
                        approver_id=step.approver_id,
                        sequence_order=step.sequence_order,
                        status=ApprovalStatus.PENDING
                    )
                )

            self.audit_service.record(
                db,
                company_id=company.id,
                user_id=employee.id,
                action="submit_expense",
                entity_type="expense",
                entity_id=expense.id,
                description=(
                    f"Submitted {expense_category.value} expense of "
                    f"{format_currency(amount, currency_code)} with {len(chain)} approval step(s)"
                ),
                changes={
                    "amount": amount,
                    "original_currency": currency_code,
                    "converted_amount": converted_amount,
                    "approval_rule_id": expense.approval_rule_id,
                    "approvers": [step.approver_id for step in chain],
                },
                expense_id=expense.id
            )
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to submit expense for user {employee_id}: {e}")
            raise PersistenceFailure("Failed to submit expense") from e

        db.refresh(expense)
        logger.info(
            f"Expense {expense.id} submitted by user {employee.id}: "
            f"{format_currency(amount, currency_code)} -> "
            f"{format_currency(converted_amount, company.default_currency)}"
        )
        return expense

    def _validate_submission(self, amount, currency, category, description, expense_date):
        if (
            isinstance(amount, bool)
            or not isinstance(amount, (int, float))
            or not math.isfinite(amount)
            or amount <= 0
        ):
            raise ValidationError("Amount must be a positive number", {"amount": amount})

        currency_code = normalize_currency_code(currency)
        if currency_code is None:
            raise ValidationError("Currency must be a three-letter ISO code", {"currency": currency})

        try:
            expense_category = ExpenseCategory(category)
        except ValueError:
            raise ValidationError(
                "Unknown expense category",
                {"category": category, "allowed": [c.value for c in ExpenseCategory]}
            )

        if not isinstance(description, str) or not description.strip():
            raise ValidationError("Description is required")

        if not isinstance(expense_date, date):
            raise ValidationError("Expense date is required", {"expense_date": expense_date})

        return currency_code, expense_category

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    def _scoped_query(self, db: Session, caller: User) -> Query:
        """
        Expenses visible to the caller, always within the caller's company

        employee                  own
        manager                   own, direct reports, chains they sit in
        director / cfo / finance  own, chains they sit in
        admin                     whole company
        """
        company_expenses = db.query(Expense).filter(Expense.company_id == caller.company_id)
        own = Expense.employee_id == caller.id
        in_chain = Expense.id.in_(
            db.query(ExpenseApproval.expense_id).filter(ExpenseApproval.approver_id == caller.id)
        )
        reports = Expense.employee_id.in_(
            db.query(User.id).filter(User.manager_id == caller.id)
        )

        scopes = {
            UserRole.EMPLOYEE: own,
            UserRole.MANAGER: or_(own, reports, in_chain),
            UserRole.DIRECTOR: or_(own, in_chain),
            UserRole.CFO: or_(own, in_chain),
            UserRole.FINANCE: or_(own, in_chain),
            UserRole.ADMIN: None,
        }
        if caller.role not in scopes:
            raise Forbidden(f"Role {caller.role} has no expense scope", {"user_id": caller.id})

        condition = scopes[caller.role]
        if condition is None:
            return company_expenses
        return company_expenses.filter(condition)

    def list_expenses(
        self,
        db: Session,
        caller_id: int,
        status: Optional[ExpenseStatus] = None,
        skip: int = 0,
        limit: int = 100
    ) -> Dict[str, Any]:
        """
        List expenses in the caller's scope, newest first

        Returns:
            dict: ``total`` matching rows and the requested page of ``expenses``
        """
        caller = self.directory_service.get_user(db, caller_id)
        query = self._scoped_query(db, caller)
        if status is not None:
            query = query.filter(Expense.status == status)

        total = query.count()
        expenses = query.order_by(
            Expense.created_at.desc(), Expense.id.desc()
        ).offset(skip).limit(limit).all()
        return {"total": total, "expenses": expenses}

    def get_expense(self, db: Session, caller_id: int, expense_id: int) -> Expense:
        """
        Load one expense the caller is allowed to see

        Raises:
            NotFound: no such expense in the caller's company
            Forbidden: expense exists but is outside the caller's scope
        """
        caller = self.directory_service.get_user(db, caller_id)
        expense = db.query(Expense).filter(
            Expense.id == expense_id,
            Expense.company_id == caller.company_id
        ).first()
        if not expense:
            raise NotFound("Expense", expense_id)

        visible = self._scoped_query(db, caller).filter(Expense.id == expense_id).first()
        if visible is None:
            raise Forbidden("Not authorized to view this expense", {"expense_id": expense_id})
        return expense

    def list_expense_approvals(self, db: Session, caller_id: int, expense_id: int) -> List[ExpenseApproval]:
        """The ordered approval steps of one visible expense"""
        return list(self.get_expense(db, caller_id, expense_id).approvals)

    def list_pending_approvals(self, db: Session, caller_id: int) -> List[ExpenseApproval]:
        """
        Steps waiting on the caller, newest first

        Steps of expenses that already reached a terminal status are left out;
        they can no longer be decided.
        """
        caller = self.directory_service.get_user(db, caller_id)
        return db.query(ExpenseApproval).join(
            Expense, ExpenseApproval.expense_id == Expense.id
        ).filter(
            ExpenseApproval.approver_id == caller.id,
            ExpenseApproval.status == ApprovalStatus.PENDING,
            Expense.status == ExpenseStatus.PENDING
        ).order_by(ExpenseApproval.created_at.desc(), ExpenseApproval.id.desc()).all()

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    def decide_approval(
        self,
        db: Session,
        caller_id: int,
        approval_id: int,
        decision: Union[ApprovalStatus, str],
        comments: Optional[str] = None
    ) -> ExpenseApproval:
        """
        Record the caller's decision on one approval step

        Decisions on the same expense are serialized: an in-process lock per
        expense plus a row lock on the expense for the whole read-evaluate-write.

        Args:
            db: Database session
            caller_id: Deciding user
            approval_id: Step to decide
            decision: "approved" or "rejected"
            comments: Optional comments

        Returns:
            ExpenseApproval: the decided step; ``step.expense.status`` holds the
            aggregate status after evaluation

        Raises:
            NotFound: no such step
            Forbidden: caller is not the step's approver, or is inactive
            ValidationError: unknown decision
            AlreadyDecided: step already decided
            ExpenseAlreadyFinalized: expense already approved or rejected
            OutOfOrderDecision: strict sequential ordering refused the decision
            PersistenceFailure: the write failed and was rolled back
        """
        step = db.query(ExpenseApproval).filter(ExpenseApproval.id == approval_id).first()
        if not step:
            raise NotFound("Approval", approval_id)

        caller = self.directory_service.get_user(db, caller_id)
        if step.approver_id != caller.id:
            raise Forbidden("Not authorized to decide this approval", {"approval_id": approval_id})
        if not caller.has_permission("decide_approval"):
            raise Forbidden("Inactive users cannot decide approvals", {"user_id": caller_id})

        try:
            decision_status = ApprovalStatus(decision)
        except ValueError:
            raise ValidationError("Decision must be 'approved' or 'rejected'", {"decision": decision})

        expense_id = step.expense_id
        with self._expense_locks.hold(expense_id):
            try:
                # Drop cached state so the aggregate is read under the lock
                db.expire_all()
                expense = db.query(Expense).filter(
                    Expense.id == expense_id
                ).populate_existing().with_for_update().one()
                step = expense.get_step(approval_id)

                previous_status = expense.status
                new_status = self.evaluator.apply_decision(
                    expense,
                    step,
                    decision_status,
                    comments,
                    enforce_sequential_order=settings.ENFORCE_SEQUENTIAL_ORDER
                )

                self.audit_service.record(
                    db,
                    company_id=expense.company_id,
                    user_id=caller.id,
                    action=f"{decision_status.value}_approval",
                    entity_type="expense_approval",
                    entity_id=step.id,
                    description=(
                        f"Step {step.sequence_order} of expense {expense.id} {decision_status.value}; "
                        f"expense {previous_status.value} -> {new_status.value}"
                    ),
                    changes={
                        "decision": decision_status.value,
                        "comments": comments,
                        "expense_status": new_status.value,
                    },
                    expense_id=expense.id
                )
                db.commit()
            except WorkflowError:
                db.rollback()
                raise
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"Failed to record decision on approval {approval_id}: {e}")
                raise PersistenceFailure("Failed to record approval decision") from e

        db.refresh(step)
        logger.info(
            f"User {caller.id} {decision_status.value} step {step.sequence_order} "
            f"of expense {expense_id}; expense is {new_status.value}"
        )
        return step

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def _status_counts(self, query: Query) -> Dict[str, int]:
        counts = {status.value: 0 for status in ExpenseStatus}
        for status, count in query.with_entities(Expense.status, func.count(Expense.id)).group_by(Expense.status):
            counts[status.value] = count
        counts["total"] = sum(counts.values())
        return counts

    def get_stats(self, db: Session, caller_id: int) -> Dict[str, Any]:
        """
        Dashboard statistics for the caller

        Everyone gets their own totals by status; approvers get their pending
        step count; admins also get company totals and the approved amount in
        the company currency.
        """
        caller = self.directory_service.get_user(db, caller_id)

        stats: Dict[str, Any] = {
            "own": self._status_counts(
                db.query(Expense).filter(Expense.employee_id == caller.id)
            )
        }

        if caller.is_approval_eligible:
            stats["pending_approvals"] = len(self.list_pending_approvals(db, caller.id))

        if caller.role == UserRole.ADMIN:
            company = self.directory_service.get_company(db, caller.company_id)
            company_expenses = db.query(Expense).filter(Expense.company_id == company.id)
            approved_amount = company_expenses.filter(
                Expense.status == ExpenseStatus.APPROVED
            ).with_entities(
                func.sum(func.coalesce(Expense.converted_amount, Expense.amount))
            ).scalar()
            stats["company"] = self._status_counts(company_expenses)
            stats["company"]["approved_amount"] = round_money(approved_amount or 0.0)
            stats["company"]["currency"] = company.default_currency

        stats["generated_at"] = datetime.utcnow()
        return stats


# Create singleton instance
expense_service = ExpenseService()
