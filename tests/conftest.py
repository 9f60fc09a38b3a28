"""
Shared test fixtures
SQLite test database, API client and factories for companies, users and rules
"""

import asyncio
from datetime import date
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from reimbursement.main import app
from reimbursement.config.database import Base, get_db
from reimbursement.models.company import Company
from reimbursement.models.user import User, UserRole
from reimbursement.models.approval_rule import ApprovalRule, RuleApprover, ApprovalType
from reimbursement.services.expense_service import expense_service
from reimbursement.utils.security import get_password_hash, create_access_token

# Test database
SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

TEST_PASSWORD = "testpass123"
TEST_PASSWORD_HASH = get_password_hash(TEST_PASSWORD)


def override_get_db():
    """Override database dependency for testing"""
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def db():
    """Fresh test database and a session on it"""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    yield session
    session.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    """API client bound to the test database"""
    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.pop(get_db, None)


@pytest.fixture
def make_company(db):
    def _make_company(name="Acme", currency="USD"):
        company = Company(name=name, default_currency=currency)
        db.add(company)
        db.commit()
        db.refresh(company)
        return company
    return _make_company


@pytest.fixture
def make_user(db):
    def _make_user(company, email, role=UserRole.EMPLOYEE, manager=None, name=None, is_active=True):
        user = User(
            email=email,
            name=name or email.split("@")[0].title(),
            hashed_password=TEST_PASSWORD_HASH,
            role=role,
            company_id=company.id,
            manager_id=manager.id if manager else None,
            is_active=is_active
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make_user


@pytest.fixture
def make_rule(db):
    """
    Create a rule directly in the database

    ``approvers`` is a list of users (sequence 1..N in list order) or of
    (user, sequence_order) pairs.
    """
    def _make_rule(
        company,
        approval_type=ApprovalType.SEQUENTIAL,
        approvers=(),
        is_manager_approver=True,
        percentage_required=None,
        specific_approver=None,
        name="Default rule"
    ):
        rule = ApprovalRule(
            company_id=company.id,
            name=name,
            is_manager_approver=is_manager_approver,
            approval_type=approval_type,
            percentage_required=percentage_required,
            specific_approver_id=specific_approver.id if specific_approver else None
        )
        for position, entry in enumerate(approvers, start=1):
            user, sequence_order = entry if isinstance(entry, tuple) else (entry, position)
            rule.approvers.append(RuleApprover(user_id=user.id, sequence_order=sequence_order))
        db.add(rule)
        db.commit()
        db.refresh(rule)
        return rule
    return _make_rule


@pytest.fixture
def org(make_company, make_user):
    """A company with one user per role; the employee reports to the manager"""
    company = make_company("Acme", "USD")
    admin = make_user(company, "admin@acme.com", UserRole.ADMIN)
    manager = make_user(company, "manager@acme.com", UserRole.MANAGER)
    employee = make_user(company, "employee@acme.com", UserRole.EMPLOYEE, manager=manager)
    director = make_user(company, "director@acme.com", UserRole.DIRECTOR)
    cfo = make_user(company, "cfo@acme.com", UserRole.CFO)
    finance = make_user(company, "finance@acme.com", UserRole.FINANCE)
    return SimpleNamespace(
        company=company,
        admin=admin,
        manager=manager,
        employee=employee,
        director=director,
        cfo=cfo,
        finance=finance
    )


@pytest.fixture
def other_org(make_company, make_user):
    """A second, unrelated company"""
    company = make_company("Globex", "EUR")
    admin = make_user(company, "admin@globex.com", UserRole.ADMIN)
    employee = make_user(company, "employee@globex.com", UserRole.EMPLOYEE)
    return SimpleNamespace(company=company, admin=admin, employee=employee)


@pytest.fixture
def submit(db):
    """Submit an expense through the lifecycle service from a sync test"""
    def _submit(employee, amount=120.0, currency="USD", category="travel",
                description="Taxi to client site", expense_date=date(2026, 1, 15)):
        return asyncio.run(
            expense_service.submit_expense(
                db,
                employee_id=employee.id,
                amount=amount,
                currency=currency,
                category=category,
                description=description,
                expense_date=expense_date
            )
        )
    return _submit


@pytest.fixture
def auth_headers():
    def _auth_headers(user):
        token = create_access_token(
            data={"sub": str(user.id), "role": user.role.value, "company_id": user.company_id}
        )
        return {"Authorization": f"Bearer {token}"}
    return _auth_headers
