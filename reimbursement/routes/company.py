"""
Company Routes
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from reimbursement.config.database import get_db
from reimbursement.services.auth_service import auth_service
from reimbursement.services.directory_service import directory_service
from reimbursement.schemas.company import CompanyResponse
from reimbursement.models.user import User

router = APIRouter()


@router.get("/me", response_model=CompanyResponse)
async def get_my_company(
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """The caller's company and its default currency"""
    return directory_service.get_company(db, current_user.company_id)
