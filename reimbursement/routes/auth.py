"""
Authentication Routes
Company registration, login and token management
"""

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from reimbursement.config.database import get_db
from reimbursement.services.auth_service import auth_service
from reimbursement.services.directory_service import directory_service
from reimbursement.schemas.auth import Token, RefreshRequest
from reimbursement.schemas.company import CompanyRegistration
from reimbursement.schemas.user import UserResponse
from reimbursement.models.user import User
from reimbursement.utils.logger import setup_logger

logger = setup_logger()
router = APIRouter()


@router.post("/register-company", response_model=Token, status_code=status.HTTP_201_CREATED)
async def register_company(
    registration: CompanyRegistration,
    db: Session = Depends(get_db)
):
    """
    Register a company together with its first admin

    Returns tokens for the new admin so setup can continue right away.
    """
    admin = directory_service.register_company(db, registration)
    return auth_service.create_tokens(admin)


@router.post("/login", response_model=Token)
async def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db)
):
    """
    Login endpoint

    OAuth2 compatible token login; the username field carries the email
    """
    user = auth_service.authenticate_user(db, form_data.username, form_data.password)

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    logger.info(f"User logged in: {user.email}")
    return auth_service.create_tokens(user)


@router.post("/refresh", response_model=Token)
async def refresh_tokens(
    request: RefreshRequest,
    db: Session = Depends(get_db)
):
    """Exchange a refresh token for a new token pair"""
    tokens = auth_service.refresh(db, request.refresh_token)
    if tokens is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid refresh token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return tokens


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(
    current_user: User = Depends(auth_service.get_current_user)
):
    """Get current user information"""
    return current_user
