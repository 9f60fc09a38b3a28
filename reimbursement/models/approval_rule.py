"""
Approval Rule Models
Company-level configuration of how an expense's approvals are structured
"""

from sqlalchemy import Column, Integer, String, DateTime, Enum, ForeignKey, Boolean, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from reimbursement.config.database import Base


class ApprovalType(str, enum.Enum):
    """How step decisions aggregate into the expense status"""
    SEQUENTIAL = "sequential"
    PERCENTAGE = "percentage"
    SPECIFIC = "specific"
    HYBRID = "hybrid"

    @property
    def uses_percentage(self) -> bool:
        return self in (ApprovalType.PERCENTAGE, ApprovalType.HYBRID)

    @property
    def uses_specific_approver(self) -> bool:
        return self in (ApprovalType.SPECIFIC, ApprovalType.HYBRID)


class ApprovalRule(Base):
    """Approval rule model"""
    __tablename__ = "approval_rules"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    name = Column(String, nullable=False)

    # Configuration
    is_manager_approver = Column(Boolean, default=True, nullable=False)
    approval_type = Column(Enum(ApprovalType), nullable=False)
    percentage_required = Column(Integer, nullable=True)  # 1..100, percentage/hybrid only
    specific_approver_id = Column(Integer, ForeignKey("users.id"), nullable=True)  # specific/hybrid only

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    company = relationship("Company", back_populates="approval_rules")
    specific_approver = relationship("User", foreign_keys=[specific_approver_id])
    approvers = relationship(
        "RuleApprover",
        back_populates="rule",
        cascade="all, delete-orphan",
        order_by="RuleApprover.id"
    )

    def __repr__(self):
        return f"<ApprovalRule {self.name} ({self.approval_type.value})>"


class RuleApprover(Base):
    """One configured approver of a rule; sequence_order is only a sort key"""
    __tablename__ = "approval_rule_approvers"
    __table_args__ = (
        UniqueConstraint("approval_rule_id", "sequence_order", name="uq_rule_approver_sequence"),
    )

    id = Column(Integer, primary_key=True, index=True)
    approval_rule_id = Column(Integer, ForeignKey("approval_rules.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    sequence_order = Column(Integer, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    rule = relationship("ApprovalRule", back_populates="approvers")
    user = relationship("User")

    def __repr__(self):
        return f"<RuleApprover rule={self.approval_rule_id} user={self.user_id} seq={self.sequence_order}>"
