"""
User Schemas
Pydantic models for user-related requests and responses
"""

from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from datetime import datetime

from reimbursement.models.user import UserRole


class UserBase(BaseModel):
    """Base user schema with common fields"""
    email: EmailStr
    name: str = Field(..., min_length=1, max_length=200)


class UserCreate(UserBase):
    """Schema for an admin creating a user in their company"""
    password: str = Field(..., min_length=8, max_length=100)
    role: UserRole = UserRole.EMPLOYEE
    manager_id: Optional[int] = None


class UserUpdate(BaseModel):
    """Schema for updating user information; omitted fields are left unchanged"""
    email: Optional[EmailStr] = None
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    role: Optional[UserRole] = None
    manager_id: Optional[int] = None
    is_active: Optional[bool] = None


class UserResponse(UserBase):
    """Schema for user response"""
    id: int
    role: UserRole
    company_id: int
    manager_id: Optional[int] = None
    is_active: bool
    created_at: datetime
    last_login: Optional[datetime] = None

    class Config:
        from_attributes = True
