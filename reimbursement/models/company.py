"""
Company Model
A tenant owning users, approval rules and expenses
"""

from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.orm import relationship
from datetime import datetime

from reimbursement.config.database import Base


class Company(Base):
    """Company model"""
    __tablename__ = "companies"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    default_currency = Column(String(3), nullable=False, default="USD")

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    users = relationship("User", back_populates="company")
    approval_rules = relationship(
        "ApprovalRule",
        back_populates="company",
        order_by="ApprovalRule.id"
    )
    expenses = relationship("Expense", back_populates="company")

    def __repr__(self):
        return f"<Company {self.name} ({self.default_currency})>"
