"""
Expense Model
Expense claims submitted by employees; each expense owns its approval chain
"""

from sqlalchemy import Column, Integer, String, Float, Date, DateTime, Enum, ForeignKey, Text
from sqlalchemy.orm import relationship
from datetime import datetime
from typing import List, Optional
import enum

from reimbursement.config.database import Base
from reimbursement.models.approval import ExpenseApproval, ApprovalStatus


class ExpenseCategory(str, enum.Enum):
    """Expense categories"""
    TRAVEL = "travel"
    FOOD = "food"
    EQUIPMENT = "equipment"
    OFFICE_SUPPLIES = "office_supplies"
    SOFTWARE = "software"
    TRAINING = "training"
    OTHER = "other"


class ExpenseStatus(str, enum.Enum):
    """Aggregate expense status"""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self is not ExpenseStatus.PENDING


class Expense(Base):
    """Expense model"""
    __tablename__ = "expenses"

    id = Column(Integer, primary_key=True, index=True)

    # Ownership
    employee_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)

    # Rule the approval chain was built from; null when the company had none
    approval_rule_id = Column(Integer, ForeignKey("approval_rules.id"), nullable=True)

    # Expense details
    amount = Column(Float, nullable=False)
    original_currency = Column(String(3), nullable=False)
    converted_amount = Column(Float, nullable=True)  # in the company default currency
    category = Column(Enum(ExpenseCategory), nullable=False)
    description = Column(Text, nullable=False)
    expense_date = Column(Date, nullable=False)

    # Status and workflow
    status = Column(Enum(ExpenseStatus), default=ExpenseStatus.PENDING, nullable=False)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    decided_at = Column(DateTime, nullable=True)

    # Relationships
    employee = relationship("User", back_populates="expenses", foreign_keys=[employee_id])
    company = relationship("Company", back_populates="expenses")
    approval_rule = relationship("ApprovalRule")
    approvals = relationship(
        "ExpenseApproval",
        back_populates="expense",
        cascade="all, delete-orphan",
        order_by=ExpenseApproval.sequence_order
    )
    audit_logs = relationship("AuditLog", back_populates="expense")

    def __repr__(self):
        return f"<Expense {self.id} - {self.category.value} - {self.status.value}>"

    def get_step(self, approval_id: int) -> Optional[ExpenseApproval]:
        """Return the approval step with the given id, if it belongs to this expense"""
        for step in self.approvals:
            if step.id == approval_id:
                return step
        return None

    def pending_steps(self) -> List[ExpenseApproval]:
        return [step for step in self.approvals if step.status == ApprovalStatus.PENDING]

    def steps_of(self, approver_id: int) -> List[ExpenseApproval]:
        """All steps held by one approver (the same person may appear more than once)"""
        return [step for step in self.approvals if step.approver_id == approver_id]

    def current_step(self) -> Optional[ExpenseApproval]:
        """Lowest-numbered pending step, the one a sequential flow waits on"""
        pending = self.pending_steps()
        return pending[0] if pending else None
