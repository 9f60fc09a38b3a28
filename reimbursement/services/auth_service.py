"""
Authentication Service
Handles user authentication and authorization
"""

from datetime import datetime
from typing import Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from reimbursement.config.database import get_db
from reimbursement.models.user import User, UserRole
from reimbursement.schemas.auth import Identity
from reimbursement.utils.security import verify_password, create_access_token, create_refresh_token, decode_token
from reimbursement.utils.logger import setup_logger

logger = setup_logger()

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


class AuthService:
    """Authentication service"""

    def authenticate_user(self, db: Session, email: str, password: str) -> Optional[User]:
        """
        Authenticate user with email and password

        Args:
            db: Database session
            email: Login email (case-insensitive)
            password: Password

        Returns:
            User: Authenticated user or None
        """
        user = db.query(User).filter(User.email == email.strip().lower()).first()

        if not user:
            return None

        if not verify_password(password, user.hashed_password):
            return None

        if not user.is_active:
            return None

        # Update last login
        user.last_login = datetime.utcnow()
        db.commit()

        logger.info(f"User authenticated: {user.email}")
        return user

    def create_tokens(self, user: User) -> dict:
        """
        Create access and refresh tokens for user

        Args:
            user: User object

        Returns:
            dict: Access and refresh tokens
        """
        access_token = create_access_token(
            data={
                "sub": str(user.id),
                "email": user.email,
                "role": user.role.value,
                "company_id": user.company_id
            }
        )

        refresh_token = create_refresh_token(
            data={"sub": str(user.id)}
        )

        return {
            "access_token": access_token,
            "refresh_token": refresh_token,
            "token_type": "bearer"
        }

    def identify(self, token: str) -> Optional[Identity]:
        """
        Resolve an access token to the caller's identity without a database hit

        Returns:
            Identity: user id, role and company, or None for an invalid,
            expired or non-access token
        """
        payload = decode_token(token)
        if payload is None or payload.get("type") != "access":
            return None
        try:
            return Identity(
                user_id=int(payload["sub"]),
                role=UserRole(payload["role"]),
                company_id=int(payload["company_id"])
            )
        except (KeyError, TypeError, ValueError):
            return None

    def refresh(self, db: Session, refresh_token: str) -> Optional[dict]:
        """
        Exchange a refresh token for a new token pair

        Returns:
            dict: New tokens, or None when the token or its user is no longer valid
        """
        payload = decode_token(refresh_token)
        if payload is None or payload.get("type") != "refresh" or payload.get("sub") is None:
            return None

        user = db.query(User).filter(User.id == int(payload["sub"])).first()
        if user is None or not user.is_active:
            return None

        return self.create_tokens(user)

    async def get_current_user(
        self,
        token: str = Depends(oauth2_scheme),
        db: Session = Depends(get_db)
    ) -> User:
        """
        Get current authenticated user from token

        Args:
            token: JWT token
            db: Database session

        Returns:
            User: Current user

        Raises:
            HTTPException: If authentication fails
        """
        credentials_exception = HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

        identity = self.identify(token)
        if identity is None:
            raise credentials_exception

        user = db.query(User).filter(User.id == identity.user_id).first()
        if user is None:
            raise credentials_exception

        if not user.is_active:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="User account is inactive"
            )

        return user

    def require_permission(self, permission: str):
        """
        Dependency factory requiring a specific permission

        Args:
            permission: Required permission
        """
        async def permission_checker(current_user: User = Depends(self.get_current_user)):
            if not current_user.has_permission(permission):
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail=f"Permission denied: {permission} required"
                )
            return current_user

        return permission_checker

    def require_role(self, *roles: UserRole):
        """
        Dependency factory requiring one of the given roles

        Args:
            roles: Accepted roles
        """
        async def role_checker(current_user: User = Depends(self.get_current_user)):
            if current_user.role not in roles:
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail=f"Access denied. Required role(s): {', '.join(role.value for role in roles)}"
                )
            return current_user

        return role_checker


# Create singleton instance
auth_service = AuthService()
