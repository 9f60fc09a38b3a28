"""
Rule Service
Stores approval rules per company and selects the one that applies
"""

from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from typing import List, Optional

from reimbursement.models.approval_rule import ApprovalRule, RuleApprover
from reimbursement.models.user import User
from reimbursement.schemas.approval_rule import ApprovalRuleCreate
from reimbursement.services.audit_service import audit_service
from reimbursement.services.directory_service import directory_service
from reimbursement.utils.exceptions import ValidationError, PersistenceFailure
from reimbursement.utils.logger import setup_logger

logger = setup_logger()


def select_active_rule(db: Session, company_id: int) -> Optional[ApprovalRule]:
    """
    Active-rule policy: the company's first-created rule wins

    Returns:
        ApprovalRule or None when the company has no rules
    """
    return db.query(ApprovalRule).filter(
        ApprovalRule.company_id == company_id
    ).order_by(ApprovalRule.created_at.asc(), ApprovalRule.id.asc()).first()


class RuleService:
    """Service for approval rule configuration"""

    def __init__(self):
        self.directory_service = directory_service
        self.audit_service = audit_service

    def select_active_rule(self, db: Session, company_id: int) -> Optional[ApprovalRule]:
        return select_active_rule(db, company_id)

    def list_rules(self, db: Session, caller_id: int) -> List[ApprovalRule]:
        """Rules of the caller's company in creation order"""
        caller = self.directory_service.get_user(db, caller_id)
        return db.query(ApprovalRule).filter(
            ApprovalRule.company_id == caller.company_id
        ).order_by(ApprovalRule.created_at.asc(), ApprovalRule.id.asc()).all()

    def create_rule(self, db: Session, admin_id: int, spec: ApprovalRuleCreate) -> ApprovalRule:
        """
        Create an approval rule with its ordered approvers

        Args:
            db: Database session
            admin_id: Calling admin
            spec: Rule configuration

        Returns:
            ApprovalRule: persisted rule

        Raises:
            Forbidden: caller is not an admin
            ValidationError: configuration breaks a rule invariant
            PersistenceFailure: the write failed and was rolled back
        """
        admin = self.directory_service.require_admin(db, admin_id)
        self.validate_rule(db, admin.company_id, spec)

        approval_type = spec.approval_type
        percentage = spec.percentage_required if approval_type.uses_percentage else None
        specific_approver_id = spec.specific_approver_id if approval_type.uses_specific_approver else None

        try:
            rule = ApprovalRule(
                company_id=admin.company_id,
                name=spec.name.strip(),
                is_manager_approver=spec.is_manager_approver,
                approval_type=approval_type,
                percentage_required=percentage,
                specific_approver_id=specific_approver_id
            )
            for approver in spec.approvers:
                rule.approvers.append(
                    RuleApprover(user_id=approver.user_id, sequence_order=approver.sequence_order)
                )
            db.add(rule)
            db.flush()

            self.audit_service.record(
                db,
                company_id=admin.company_id,
                user_id=admin.id,
                action="create_approval_rule",
                entity_type="approval_rule",
                entity_id=rule.id,
                description=f"Created {approval_type.value} approval rule '{rule.name}'",
                changes={
                    "approval_type": approval_type.value,
                    "is_manager_approver": spec.is_manager_approver,
                    "percentage_required": percentage,
                    "specific_approver_id": specific_approver_id,
                    "approvers": [a.model_dump() for a in spec.approvers],
                }
            )
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to create approval rule '{spec.name}': {e}")
            raise PersistenceFailure("Failed to create approval rule") from e

        db.refresh(rule)
        logger.info(
            f"Approval rule {rule.id} ({approval_type.value}) created for company {admin.company_id} "
            f"with {len(rule.approvers)} approver(s)"
        )
        return rule

    def validate_rule(self, db: Session, company_id: int, spec: ApprovalRuleCreate):
        """
        Check a rule configuration against the rule invariants

        Raises:
            ValidationError: on the first violated invariant
        """
        if not spec.name or not spec.name.strip():
            raise ValidationError("Rule name is required")

        approval_type = spec.approval_type

        if approval_type.uses_percentage:
            if spec.percentage_required is None:
                raise ValidationError(
                    f"percentage_required is required for {approval_type.value} rules"
                )
            if not 1 <= spec.percentage_required <= 100:
                raise ValidationError(
                    "percentage_required must be between 1 and 100",
                    {"percentage_required": spec.percentage_required}
                )

        if approval_type.uses_specific_approver:
            if spec.specific_approver_id is None:
                raise ValidationError(
                    f"specific_approver_id is required for {approval_type.value} rules"
                )
            self._require_company_user(db, company_id, spec.specific_approver_id, "specific_approver_id")

        seen_orders = set()
        for approver in spec.approvers:
            if approver.sequence_order < 1:
                raise ValidationError(
                    "sequence_order must be 1 or greater",
                    {"user_id": approver.user_id, "sequence_order": approver.sequence_order}
                )
            if approver.sequence_order in seen_orders:
                raise ValidationError(
                    "sequence_order values must be unique within a rule",
                    {"sequence_order": approver.sequence_order}
                )
            seen_orders.add(approver.sequence_order)
            self._require_company_user(db, company_id, approver.user_id, "approvers")

    def _require_company_user(self, db: Session, company_id: int, user_id: int, field: str) -> User:
        user = db.query(User).filter(User.id == user_id).first()
        if not user or user.company_id != company_id:
            raise ValidationError(
                f"{field} must reference a user of the same company",
                {field: user_id}
            )
        if not user.is_active:
            raise ValidationError(f"{field} references an inactive user", {field: user_id})
        return user


# Create singleton instance
rule_service = RuleService()
