"""
User Model
Represents company users with role-based access control
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from reimbursement.config.database import Base


class UserRole(str, enum.Enum):
    """User roles"""
    ADMIN = "admin"
    EMPLOYEE = "employee"
    MANAGER = "manager"
    DIRECTOR = "director"
    CFO = "cfo"
    FINANCE = "finance"


# Roles that may sit in an approval chain as a configured approver
APPROVER_ROLES = frozenset({
    UserRole.ADMIN,
    UserRole.MANAGER,
    UserRole.DIRECTOR,
    UserRole.CFO,
    UserRole.FINANCE,
})


class User(Base):
    """User model"""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=False)
    hashed_password = Column(String, nullable=False)

    # Role and reporting line
    role = Column(Enum(UserRole), default=UserRole.EMPLOYEE, nullable=False)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    manager_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)

    is_active = Column(Boolean, default=True, nullable=False)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    last_login = Column(DateTime, nullable=True)

    # Relationships
    company = relationship("Company", back_populates="users")
    manager = relationship("User", remote_side=[id], back_populates="direct_reports")
    direct_reports = relationship("User", back_populates="manager")
    expenses = relationship("Expense", back_populates="employee", foreign_keys="Expense.employee_id")
    approvals = relationship("ExpenseApproval", back_populates="approver", foreign_keys="ExpenseApproval.approver_id")
    audit_logs = relationship("AuditLog", back_populates="user")

    def __repr__(self):
        return f"<User {self.email} ({self.role.value})>"

    def has_permission(self, permission: str) -> bool:
        """Check if user has specific permission"""
        permission_map = {
            "submit_expense": self.is_active,
            "decide_approval": self.is_active,
            "manage_users": self.role == UserRole.ADMIN,
            "manage_rules": self.role == UserRole.ADMIN,
            "view_audit_logs": self.role == UserRole.ADMIN,
        }
        return permission_map.get(permission, False)

    @property
    def is_approval_eligible(self) -> bool:
        return self.is_active and self.role in APPROVER_ROLES
