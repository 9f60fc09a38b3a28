"""
Approval Model
One required approval step of an expense
"""

from sqlalchemy import Column, Integer, DateTime, Enum, ForeignKey, Text
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from reimbursement.config.database import Base


class ApprovalStatus(str, enum.Enum):
    """Approval status"""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self is not ApprovalStatus.PENDING


class ExpenseApproval(Base):
    """Approval step model"""
    __tablename__ = "expense_approvals"

    id = Column(Integer, primary_key=True, index=True)

    # Expense and Approver
    expense_id = Column(Integer, ForeignKey("expenses.id"), nullable=False, index=True)
    approver_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # Position in the chain, dense and 1-based
    sequence_order = Column(Integer, nullable=False)
    status = Column(Enum(ApprovalStatus), default=ApprovalStatus.PENDING, nullable=False)

    # Comments
    comments = Column(Text, nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    decided_at = Column(DateTime, nullable=True)

    # Relationships
    expense = relationship("Expense", back_populates="approvals")
    approver = relationship("User", back_populates="approvals", foreign_keys=[approver_id])

    def __repr__(self):
        return f"<ExpenseApproval expense={self.expense_id} step={self.sequence_order} - {self.status.value}>"
