"""
Authentication Schemas
Pydantic models for authentication requests and responses
"""

from pydantic import BaseModel

from reimbursement.models.user import UserRole


class Token(BaseModel):
    """JWT token response"""
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class Identity(BaseModel):
    """Who the caller is, as resolved from a bearer token"""
    user_id: int
    role: UserRole
    company_id: int


class RefreshRequest(BaseModel):
    """Refresh token exchange request"""
    refresh_token: str
