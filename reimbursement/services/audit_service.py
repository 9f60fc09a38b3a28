"""
Audit Service
Records workflow actions in the audit_logs table and the audit log sink
"""

from sqlalchemy.orm import Session
from typing import Any, Dict, List, Optional

from reimbursement.models.audit_log import AuditLog
from reimbursement.utils.logger import setup_logger, log_audit

logger = setup_logger()


class AuditService:
    """Service for the audit trail"""

    def record(
        self,
        db: Session,
        company_id: int,
        user_id: Optional[int],
        action: str,
        entity_type: str,
        entity_id: Optional[int],
        description: str,
        changes: Optional[Dict[str, Any]] = None,
        expense_id: Optional[int] = None
    ) -> AuditLog:
        """
        Add an audit row to the caller's transaction

        The row is not committed here; it lands together with the change it
        describes or not at all.
        """
        entry = AuditLog(
            company_id=company_id,
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            description=description,
            changes=changes,
            expense_id=expense_id
        )
        db.add(entry)
        log_audit(user_id, action, description)
        return entry

    def list_for_company(
        self,
        db: Session,
        company_id: int,
        skip: int = 0,
        limit: int = 100,
        expense_id: Optional[int] = None
    ) -> List[AuditLog]:
        """Most recent audit rows of one company"""
        query = db.query(AuditLog).filter(AuditLog.company_id == company_id)
        if expense_id is not None:
            query = query.filter(AuditLog.expense_id == expense_id)
        return query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).offset(skip).limit(limit).all()


# Create singleton instance
audit_service = AuditService()
