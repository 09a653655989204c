"""
Organization API Routes - Tenant bootstrap
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ledgerpost.core.config import Settings
from ledgerpost.core.database import get_db
from ledgerpost.core.security import get_settings
from ledgerpost.schemas import OrganizationCreate, OrganizationResponse
from ledgerpost.services.organization_service import OrganizationService

router = APIRouter(prefix="/organizations", tags=["Organizations"])


@router.post("", response_model=OrganizationResponse, status_code=status.HTTP_201_CREATED)
async def create_organization(
    organization_data: OrganizationCreate,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Create an organization and seed its default chart of accounts"""
    organization_service = OrganizationService(db)
    organization = organization_service.create(organization_data, settings)
    db.commit()
    db.refresh(organization)
    return organization
