"""
Approval Rule Tests
Rule validation, persistence and active-rule selection
"""

import pytest

from reimbursement.models.approval_rule import ApprovalType
from reimbursement.models.audit_log import AuditLog
from reimbursement.schemas.approval_rule import ApprovalRuleCreate, RuleApproverSpec
from reimbursement.services.rule_service import rule_service, select_active_rule
from reimbursement.utils.exceptions import ValidationError, Forbidden


def rule_spec(approval_type=ApprovalType.SEQUENTIAL, approvers=(), **kwargs):
    return ApprovalRuleCreate(
        name=kwargs.pop("name", "Travel approvals"),
        approval_type=approval_type,
        approvers=[
            RuleApproverSpec(user_id=user.id, sequence_order=order) for user, order in approvers
        ],
        **kwargs
    )


class TestCreateRule:
    """Rule creation"""

    def test_creates_rule_with_ordered_approvers(self, db, org):
        rule = rule_service.create_rule(
            db, org.admin.id, rule_spec(approvers=[(org.finance, 2), (org.cfo, 1)])
        )

        assert rule.id is not None
        assert rule.company_id == org.company.id
        assert [(a.user_id, a.sequence_order) for a in rule.approvers] == [
            (org.finance.id, 2),
            (org.cfo.id, 1),
        ]
        assert db.query(AuditLog).filter(AuditLog.action == "create_approval_rule").count() == 1

    def test_hybrid_rule_keeps_percentage_and_specific_approver(self, db, org):
        rule = rule_service.create_rule(
            db,
            org.admin.id,
            rule_spec(
                ApprovalType.HYBRID,
                approvers=[(org.finance, 1), (org.cfo, 2)],
                percentage_required=60,
                specific_approver_id=org.cfo.id
            )
        )

        assert rule.percentage_required == 60
        assert rule.specific_approver_id == org.cfo.id

    def test_unused_fields_are_dropped(self, db, org):
        rule = rule_service.create_rule(
            db,
            org.admin.id,
            rule_spec(
                ApprovalType.SEQUENTIAL,
                approvers=[(org.finance, 1)],
                percentage_required=50,
                specific_approver_id=org.cfo.id
            )
        )

        assert rule.percentage_required is None
        assert rule.specific_approver_id is None

    def test_non_admin_forbidden(self, db, org):
        with pytest.raises(Forbidden):
            rule_service.create_rule(db, org.manager.id, rule_spec(approvers=[(org.finance, 1)]))

    @pytest.mark.parametrize("percentage", [None, 0, 101])
    def test_percentage_required_and_in_range(self, db, org, percentage):
        with pytest.raises(ValidationError):
            rule_service.create_rule(
                db,
                org.admin.id,
                rule_spec(ApprovalType.PERCENTAGE, approvers=[(org.finance, 1)], percentage_required=percentage)
            )

    @pytest.mark.parametrize("approval_type", [ApprovalType.SPECIFIC, ApprovalType.HYBRID])
    def test_specific_approver_required(self, db, org, approval_type):
        with pytest.raises(ValidationError):
            rule_service.create_rule(
                db,
                org.admin.id,
                rule_spec(approval_type, approvers=[(org.finance, 1)], percentage_required=50)
            )

    def test_duplicate_sequence_order(self, db, org):
        with pytest.raises(ValidationError):
            rule_service.create_rule(
                db, org.admin.id, rule_spec(approvers=[(org.finance, 1), (org.cfo, 1)])
            )

    def test_sequence_order_must_be_positive(self, db, org):
        with pytest.raises(ValidationError):
            rule_service.create_rule(db, org.admin.id, rule_spec(approvers=[(org.finance, 0)]))

    def test_approver_from_other_company(self, db, org, other_org):
        with pytest.raises(ValidationError):
            rule_service.create_rule(
                db, org.admin.id, rule_spec(approvers=[(other_org.admin, 1)])
            )

    def test_specific_approver_from_other_company(self, db, org, other_org):
        with pytest.raises(ValidationError):
            rule_service.create_rule(
                db,
                org.admin.id,
                rule_spec(ApprovalType.SPECIFIC, approvers=[(org.finance, 1)], specific_approver_id=other_org.admin.id)
            )

    def test_inactive_approver(self, db, org):
        org.finance.is_active = False
        db.commit()

        with pytest.raises(ValidationError):
            rule_service.create_rule(db, org.admin.id, rule_spec(approvers=[(org.finance, 1)]))

    def test_blank_name(self, db, org):
        with pytest.raises(ValidationError):
            rule_service.create_rule(db, org.admin.id, rule_spec(name="   "))

    def test_nothing_persisted_on_failure(self, db, org):
        with pytest.raises(ValidationError):
            rule_service.create_rule(
                db, org.admin.id, rule_spec(approvers=[(org.finance, 1), (org.cfo, 1)])
            )

        assert rule_service.list_rules(db, org.admin.id) == []


class TestActiveRule:
    """Active-rule selection"""

    def test_no_rules(self, db, org):
        assert select_active_rule(db, org.company.id) is None

    def test_first_created_wins(self, db, org, other_org, make_rule):
        first = make_rule(org.company, name="First")
        make_rule(org.company, name="Second")
        make_rule(other_org.company, name="Other company")

        assert select_active_rule(db, org.company.id).id == first.id
        assert rule_service.select_active_rule(db, org.company.id).id == first.id

    def test_list_rules_in_creation_order(self, db, org, make_rule):
        make_rule(org.company, name="First")
        make_rule(org.company, name="Second")

        assert [r.name for r in rule_service.list_rules(db, org.employee.id)] == ["First", "Second"]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
