"""
Authentication Tests
Tests for registration, login, and token management
"""

import pytest

from reimbursement.services.auth_service import auth_service
from reimbursement.models.user import UserRole
from reimbursement.utils.security import create_refresh_token


class TestAuthentication:
    """Test authentication endpoints"""

    def test_register_company(self, client):
        response = client.post(
            "/api/auth/register-company",
            json={
                "company_name": "Initech",
                "currency": "EUR",
                "admin_name": "Bill Lumbergh",
                "email": "bill@initech.com",
                "password": "password123"
            }
        )
        assert response.status_code == 201
        token = response.json()["access_token"]

        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        assert me.json()["role"] == "admin"

        company = client.get("/api/companies/me", headers={"Authorization": f"Bearer {token}"})
        assert company.json()["default_currency"] == "EUR"

    def test_register_duplicate_email(self, client, org):
        response = client.post(
            "/api/auth/register-company",
            json={
                "company_name": "Copycat",
                "currency": "USD",
                "admin_name": "Someone",
                "email": "admin@acme.com",
                "password": "password123"
            }
        )
        assert response.status_code == 400
        assert response.json()["error"] == "VALIDATION_ERROR"

    def test_login_wrong_password(self, client, org):
        """Test login with wrong password"""
        response = client.post(
            "/api/auth/login",
            data={"username": "employee@acme.com", "password": "wrongpassword"}
        )
        assert response.status_code == 401

    def test_login_nonexistent_user(self, client, db):
        """Test login with non-existent user"""
        response = client.post(
            "/api/auth/login",
            data={"username": "nobody@acme.com", "password": "password123"}
        )
        assert response.status_code == 401

    def test_login_inactive_user(self, client, org, make_user):
        make_user(org.company, "former@acme.com", is_active=False)
        response = client.post(
            "/api/auth/login",
            data={"username": "former@acme.com", "password": "testpass123"}
        )
        assert response.status_code == 401

    def test_unauthorized_access(self, client, db):
        """Test accessing protected endpoint without token"""
        response = client.get("/api/auth/me")
        assert response.status_code == 401

    def test_login_success(self, client, org):
        """Test successful login, email is case-insensitive"""
        response = client.post(
            "/api/auth/login",
            data={"username": "Employee@Acme.com", "password": "testpass123"}
        )

        assert response.status_code == 200
        data = response.json()
        assert "access_token" in data
        assert "refresh_token" in data
        assert data["token_type"] == "bearer"

        identity = auth_service.identify(data["access_token"])
        assert identity.user_id == org.employee.id
        assert identity.role == UserRole.EMPLOYEE
        assert identity.company_id == org.company.id

    def test_refresh(self, client, org):
        refresh_token = create_refresh_token({"sub": str(org.manager.id)})

        response = client.post("/api/auth/refresh", json={"refresh_token": refresh_token})

        assert response.status_code == 200
        assert auth_service.identify(response.json()["access_token"]).user_id == org.manager.id

    def test_access_token_cannot_refresh(self, client, org, auth_headers):
        access_token = auth_headers(org.manager)["Authorization"].split()[1]

        response = client.post("/api/auth/refresh", json={"refresh_token": access_token})

        assert response.status_code == 401

    def test_refresh_token_cannot_authenticate(self, client, org):
        refresh_token = create_refresh_token({"sub": str(org.manager.id)})

        response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {refresh_token}"})

        assert response.status_code == 401

    def test_get_current_user(self, client, org, auth_headers):
        """Test getting current user info"""
        response = client.get("/api/auth/me", headers=auth_headers(org.employee))
        assert response.status_code == 200
        data = response.json()
        assert data["email"] == "employee@acme.com"
        assert data["manager_id"] == org.manager.id


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
