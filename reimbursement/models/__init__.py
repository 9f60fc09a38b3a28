"""
Database Models
Importing this package registers every table on Base.metadata
"""

from reimbursement.models.company import Company
from reimbursement.models.user import User, UserRole
from reimbursement.models.approval_rule import ApprovalRule, RuleApprover, ApprovalType
from reimbursement.models.approval import ExpenseApproval, ApprovalStatus
from reimbursement.models.expense import Expense, ExpenseStatus, ExpenseCategory
from reimbursement.models.audit_log import AuditLog

__all__ = [
    "Company",
    "User",
    "UserRole",
    "ApprovalRule",
    "RuleApprover",
    "ApprovalType",
    "ExpenseApproval",
    "ApprovalStatus",
    "Expense",
    "ExpenseStatus",
    "ExpenseCategory",
    "AuditLog",
]
