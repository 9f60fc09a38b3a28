"""
Directory Service
Users, roles and reporting lines within a company
"""

from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from typing import List, Optional

from reimbursement.models.company import Company
from reimbursement.models.user import User, UserRole
from reimbursement.models.expense import Expense
from reimbursement.models.approval import ExpenseApproval
from reimbursement.models.approval_rule import ApprovalRule, RuleApprover
from reimbursement.schemas.company import CompanyRegistration
from reimbursement.schemas.user import UserCreate, UserUpdate
from reimbursement.services.audit_service import audit_service
from reimbursement.utils.exceptions import ValidationError, Forbidden, NotFound, PersistenceFailure
from reimbursement.utils.helpers import normalize_currency_code
from reimbursement.utils.security import get_password_hash
from reimbursement.utils.logger import setup_logger

logger = setup_logger()


class DirectoryService:
    """Service for user and reporting-line management"""

    def __init__(self):
        self.audit_service = audit_service

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_user(self, db: Session, user_id: int) -> User:
        """
        Load a user by id

        Raises:
            NotFound: no such user
        """
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            raise NotFound("User", user_id)
        return user

    def get_manager_of(self, db: Session, user: User) -> Optional[User]:
        """Return the user's manager, or None when no manager is assigned"""
        if user.manager_id is None:
            return None
        return db.query(User).filter(User.id == user.manager_id).first()

    def list_approval_eligible_users(self, db: Session, company_id: int) -> List[User]:
        """Active users of the company whose role can hold an approval step"""
        users = db.query(User).filter(
            User.company_id == company_id,
            User.is_active.is_(True)
        ).order_by(User.name, User.id).all()
        return [user for user in users if user.is_approval_eligible]

    def list_company_users(self, db: Session, caller_id: int) -> List[User]:
        """All users of the caller's company"""
        caller = self.get_user(db, caller_id)
        return db.query(User).filter(
            User.company_id == caller.company_id
        ).order_by(User.name, User.id).all()

    def get_company_user(self, db: Session, company_id: int, user_id: int) -> User:
        """
        Load a user that must belong to the given company

        Users of other companies are reported as missing.
        """
        user = db.query(User).filter(User.id == user_id, User.company_id == company_id).first()
        if not user:
            raise NotFound("User", user_id)
        return user

    def get_company(self, db: Session, company_id: int) -> Company:
        company = db.query(Company).filter(Company.id == company_id).first()
        if not company:
            raise NotFound("Company", company_id)
        return company

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    def require_admin(self, db: Session, admin_id: int) -> User:
        """
        Load the caller and check they are an active admin

        Raises:
            NotFound: caller does not exist
            Forbidden: caller is not an admin
        """
        admin = self.get_user(db, admin_id)
        if not admin.is_active or not admin.has_permission("manage_users"):
            raise Forbidden("Only an admin can perform this action", {"user_id": admin_id})
        return admin

    def register_company(self, db: Session, registration: CompanyRegistration) -> User:
        """
        Create a company together with its first admin

        Returns:
            User: the new admin

        Raises:
            ValidationError: bad currency code or email already registered
        """
        currency = normalize_currency_code(registration.currency)
        if currency is None:
            raise ValidationError("Currency must be a three-letter ISO code", {"currency": registration.currency})

        email = registration.email.lower()
        self._ensure_email_free(db, email)

        try:
            company = Company(name=registration.company_name.strip(), default_currency=currency)
            db.add(company)
            db.flush()

            admin = User(
                email=email,
                name=registration.admin_name.strip(),
                hashed_password=get_password_hash(registration.password),
                role=UserRole.ADMIN,
                company_id=company.id,
                is_active=True
            )
            db.add(admin)
            db.flush()

            self.audit_service.record(
                db,
                company_id=company.id,
                user_id=admin.id,
                action="register_company",
                entity_type="company",
                entity_id=company.id,
                description=f"Registered company {company.name} ({currency}) with admin {email}"
            )
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to register company {registration.company_name}: {e}")
            raise PersistenceFailure("Failed to register company") from e

        db.refresh(admin)
        logger.info(f"Company {company.id} registered with admin {admin.email}")
        return admin

    def create_user(self, db: Session, admin_id: int, spec: UserCreate) -> User:
        """
        Create a user in the admin's company

        Raises:
            Forbidden: caller is not an admin
            ValidationError: email taken, or manager invalid
        """
        admin = self.require_admin(db, admin_id)
        email = spec.email.lower()
        self._ensure_email_free(db, email)

        if spec.manager_id is not None:
            self._validate_manager(db, None, spec.manager_id, admin.company_id)

        try:
            user = User(
                email=email,
                name=spec.name.strip(),
                hashed_password=get_password_hash(spec.password),
                role=spec.role,
                company_id=admin.company_id,
                manager_id=spec.manager_id,
                is_active=True
            )
            db.add(user)
            db.flush()

            self.audit_service.record(
                db,
                company_id=admin.company_id,
                user_id=admin.id,
                action="create_user",
                entity_type="user",
                entity_id=user.id,
                description=f"Created user {email} with role {spec.role.value}",
                changes={"role": spec.role.value, "manager_id": spec.manager_id}
            )
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to create user {email}: {e}")
            raise PersistenceFailure("Failed to create user") from e

        db.refresh(user)
        logger.info(f"Admin {admin.id} created user {user.id} ({user.role.value})")
        return user

    def update_user(self, db: Session, admin_id: int, user_id: int, spec: UserUpdate) -> User:
        """
        Update a user of the admin's company

        Only fields present in the request are changed; an explicit null
        manager_id clears the reporting line.

        Raises:
            Forbidden: caller is not an admin
            NotFound: user not in the admin's company
            ValidationError: email taken, or manager assignment invalid
        """
        admin = self.require_admin(db, admin_id)
        user = self.get_company_user(db, admin.company_id, user_id)
        changes = spec.model_dump(exclude_unset=True)

        if "email" in changes and changes["email"] is not None:
            email = changes["email"].lower()
            if email != user.email:
                self._ensure_email_free(db, email)
            changes["email"] = email

        if "manager_id" in changes and changes["manager_id"] is not None:
            self._validate_manager(db, user, changes["manager_id"], admin.company_id)

        if user.id == admin.id and (
            changes.get("role") not in (None, UserRole.ADMIN) or changes.get("is_active") is False
        ):
            raise ValidationError("Admins cannot demote or deactivate themselves")

        try:
            for field in ("email", "name", "role", "manager_id", "is_active"):
                if field not in changes:
                    continue
                value = changes[field]
                if value is None and field != "manager_id":
                    continue
                setattr(user, field, value)

            self.audit_service.record(
                db,
                company_id=admin.company_id,
                user_id=admin.id,
                action="update_user",
                entity_type="user",
                entity_id=user.id,
                description=f"Updated user {user.email}",
                changes={
                    key: (value.value if isinstance(value, UserRole) else value)
                    for key, value in changes.items()
                }
            )
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to update user {user_id}: {e}")
            raise PersistenceFailure("Failed to update user") from e

        db.refresh(user)
        logger.info(f"Admin {admin.id} updated user {user.id}")
        return user

    def delete_user(self, db: Session, admin_id: int, user_id: int) -> None:
        """
        Delete a user of the admin's company

        Direct reports of the deleted user lose their manager.

        Raises:
            Forbidden: caller is not an admin
            NotFound: user not in the admin's company
            ValidationError: the user is the caller, or is still referenced by
                expenses, approval steps or approval rules
        """
        admin = self.require_admin(db, admin_id)
        user = self.get_company_user(db, admin.company_id, user_id)

        if user.id == admin.id:
            raise ValidationError("Admins cannot delete their own account")

        references = {
            "expenses": db.query(Expense).filter(Expense.employee_id == user.id).count(),
            "approval_steps": db.query(ExpenseApproval).filter(ExpenseApproval.approver_id == user.id).count(),
            "rule_approvers": db.query(RuleApprover).filter(RuleApprover.user_id == user.id).count(),
            "specific_approver_rules": db.query(ApprovalRule).filter(
                ApprovalRule.specific_approver_id == user.id
            ).count(),
        }
        in_use = {key: count for key, count in references.items() if count}
        if in_use:
            raise ValidationError(
                f"User {user.id} is still referenced and cannot be deleted",
                {"references": in_use}
            )

        try:
            for report in list(user.direct_reports):
                report.manager_id = None

            self.audit_service.record(
                db,
                company_id=admin.company_id,
                user_id=admin.id,
                action="delete_user",
                entity_type="user",
                entity_id=user.id,
                description=f"Deleted user {user.email}"
            )
            db.delete(user)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to delete user {user_id}: {e}")
            raise PersistenceFailure("Failed to delete user") from e

        logger.info(f"Admin {admin.id} deleted user {user_id}")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _ensure_email_free(self, db: Session, email: str):
        if db.query(User).filter(User.email == email).first():
            raise ValidationError("A user with this email already exists", {"email": email})

    def _validate_manager(self, db: Session, user: Optional[User], manager_id: int, company_id: int):
        """
        Check a manager assignment

        The manager must be a user of the same company and the assignment must
        not close a loop in the reporting tree.
        """
        manager = db.query(User).filter(User.id == manager_id).first()
        if not manager or manager.company_id != company_id:
            raise ValidationError("Manager must be a user of the same company", {"manager_id": manager_id})

        if user is None:
            return

        if manager.id == user.id:
            raise ValidationError("A user cannot be their own manager", {"manager_id": manager_id})

        # Walk up from the proposed manager; reaching the user means a cycle
        visited = set()
        current = manager
        while current is not None and current.manager_id is not None:
            if current.manager_id == user.id:
                raise ValidationError(
                    "Manager assignment would create a reporting cycle",
                    {"user_id": user.id, "manager_id": manager_id}
                )
            if current.id in visited:
                break
            visited.add(current.id)
            current = db.query(User).filter(User.id == current.manager_id).first()


# Create singleton instance
directory_service = DirectoryService()
