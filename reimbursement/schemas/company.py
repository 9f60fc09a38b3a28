"""
Company Schemas
Pydantic models for company registration and lookups
"""

from pydantic import BaseModel, EmailStr, Field
from datetime import datetime


class CompanyRegistration(BaseModel):
    """Bootstrap a company together with its first admin"""
    company_name: str = Field(..., min_length=1, max_length=200)
    currency: str = Field("USD", min_length=3, max_length=3)
    admin_name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=100)


class CompanyResponse(BaseModel):
    """Schema for company response"""
    id: int
    name: str
    default_currency: str
    created_at: datetime

    class Config:
        from_attributes = True
