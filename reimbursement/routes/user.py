"""
User Routes
Company directory and admin user management
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List

from reimbursement.config.database import get_db
from reimbursement.services.auth_service import auth_service
from reimbursement.services.directory_service import directory_service
from reimbursement.schemas.user import UserCreate, UserUpdate, UserResponse
from reimbursement.models.user import User, UserRole

router = APIRouter()


@router.get("", response_model=List[UserResponse])
async def list_users(
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.require_role(UserRole.ADMIN))
):
    """All users of the admin's company"""
    return directory_service.list_company_users(db, current_user.id)


@router.get("/approvers", response_model=List[UserResponse])
async def list_approvers(
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """Active users of the caller's company that can hold an approval step"""
    return directory_service.list_approval_eligible_users(db, current_user.company_id)


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    user_data: UserCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """
    Create a user in the admin's company

    **Admin only**
    """
    return directory_service.create_user(db, current_user.id, user_data)


@router.patch("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: int,
    user_data: UserUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """
    Update role, manager, contact details or active flag of a user

    **Admin only**
    """
    return directory_service.update_user(db, current_user.id, user_id, user_data)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """
    Delete a user that no expense, step or rule refers to

    **Admin only**
    """
    directory_service.delete_user(db, current_user.id, user_id)
