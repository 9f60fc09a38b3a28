"""
Database Setup Script
Creates all tables and seeds a demo company with a sequential approval rule

Run with ``python -m reimbursement.database.setup_database``.
"""

import sys
from typing import Dict, Optional

from sqlalchemy.orm import Session

from reimbursement.config.database import Base, SessionLocal, engine
from reimbursement.models.user import User, UserRole
from reimbursement.models.approval_rule import ApprovalType
from reimbursement.schemas.approval_rule import ApprovalRuleCreate, RuleApproverSpec
from reimbursement.schemas.company import CompanyRegistration
from reimbursement.schemas.user import UserCreate
from reimbursement.services.directory_service import directory_service
from reimbursement.services.rule_service import rule_service
import reimbursement.models  # noqa: F401

DEMO_ADMIN_EMAIL = "admin@demo-company.com"
DEMO_PASSWORD = "password123"


def create_tables(bind=None):
    """Create all database tables"""
    print("Creating database tables...")
    Base.metadata.create_all(bind=bind or engine)
    print("✓ Database tables created successfully")


def seed_demo_company(db: Session) -> Optional[Dict[str, User]]:
    """
    Create a demo company: admin, manager, finance approver and an employee
    reporting to the manager, plus a sequential rule (manager, then finance)

    Returns:
        dict: The created users by role name, or None when the demo company
        already exists
    """
    print("\nCreating demo company...")
    if db.query(User).filter(User.email == DEMO_ADMIN_EMAIL).first():
        print("✓ Demo company already exists, skipping...")
        return None

    admin = directory_service.register_company(
        db,
        CompanyRegistration(
            company_name="Demo Company",
            currency="USD",
            admin_name="Demo Admin",
            email=DEMO_ADMIN_EMAIL,
            password=DEMO_PASSWORD
        )
    )

    manager = directory_service.create_user(
        db,
        admin.id,
        UserCreate(
            email="manager@demo-company.com",
            name="Demo Manager",
            password=DEMO_PASSWORD,
            role=UserRole.MANAGER
        )
    )
    finance = directory_service.create_user(
        db,
        admin.id,
        UserCreate(
            email="finance@demo-company.com",
            name="Demo Finance",
            password=DEMO_PASSWORD,
            role=UserRole.FINANCE
        )
    )
    employee = directory_service.create_user(
        db,
        admin.id,
        UserCreate(
            email="employee@demo-company.com",
            name="Demo Employee",
            password=DEMO_PASSWORD,
            role=UserRole.EMPLOYEE,
            manager_id=manager.id
        )
    )

    rule_service.create_rule(
        db,
        admin.id,
        ApprovalRuleCreate(
            name="Manager then finance",
            is_manager_approver=True,
            approval_type=ApprovalType.SEQUENTIAL,
            approvers=[RuleApproverSpec(user_id=finance.id, sequence_order=1)]
        )
    )

    print("✓ Demo company created successfully (4 users, 1 approval rule)")
    return {"admin": admin, "manager": manager, "finance": finance, "employee": employee}


def print_setup_summary():
    """Print the demo login credentials"""
    print("\n" + "=" * 70)
    print("DEMO LOGINS (password: " + DEMO_PASSWORD + ")")
    print("=" * 70)
    print(f"  • Admin:    {DEMO_ADMIN_EMAIL}")
    print("  • Manager:  manager@demo-company.com")
    print("  • Finance:  finance@demo-company.com")
    print("  • Employee: employee@demo-company.com (reports to the manager)")
    print("\nApproval rule: sequential, manager first, then finance")
    print("=" * 70 + "\n")


def main():
    """Main setup function"""
    print("=" * 70)
    print("EXPENSE APPROVAL WORKFLOW - DATABASE SETUP")
    print("=" * 70)

    create_tables()
    db = SessionLocal()
    try:
        seed_demo_company(db)
        print_setup_summary()
    except Exception as e:
        print(f"\n✗ Database setup failed: {str(e)}")
        sys.exit(1)
    finally:
        db.close()


if __name__ == "__main__":
    main()
