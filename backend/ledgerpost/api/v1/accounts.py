"""
Accounts API Routes - Chart of Accounts, account tree, account ledger
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import date

from ledgerpost.core.database import get_db
from ledgerpost.core.security import get_current_actor
from ledgerpost.schemas import (
    ActorContext, AccountCreate, AccountUpdate, AccountResponse,
    AccountTreeNode, AccountLedgerResponse, AccountTypeEnum
)
from ledgerpost.services.accounting_service import AccountService

router = APIRouter(prefix="/accounts", tags=["Accounts"])


@router.get("", response_model=List[AccountResponse])
async def list_accounts(
    include_inactive: bool = False,
    type: Optional[AccountTypeEnum] = None,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor)
):
    """List all accounts"""
    account_service = AccountService(db, actor.organization_id)
    return account_service.list(include_inactive=include_inactive, account_type=type)


@router.post("", response_model=AccountResponse, status_code=status.HTTP_201_CREATED)
async def create_account(
    account_data: AccountCreate,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor)
):
    """Create a new account"""
    account_service = AccountService(db, actor.organization_id)
    account = account_service.create(account_data)
    db.commit()
    db.refresh(account)
    return account


@router.get("/tree", response_model=List[AccountTreeNode])
async def get_account_tree(
    include_inactive: bool = False,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor)
):
    """Accounts nested under their parent accounts"""
    account_service = AccountService(db, actor.organization_id)
    return account_service.get_tree(include_inactive=include_inactive)


@router.get("/{account_id}", response_model=AccountResponse)
async def get_account(
    account_id: int,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor)
):
    """Get account by ID"""
    account_service = AccountService(db, actor.organization_id)
    return account_service.get_by_id(account_id)


@router.put("/{account_id}", response_model=AccountResponse)
async def update_account(
    account_id: int,
    account_data: AccountUpdate,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor)
):
    """Update account"""
    account_service = AccountService(db, actor.organization_id)
    account = account_service.update(account_id, account_data)
    db.commit()
    db.refresh(account)
    return account


@router.delete("/{account_id}")
async def delete_account(
    account_id: int,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor)
):
    """Delete an account, or deactivate it when it already has history"""
    account_service = AccountService(db, actor.organization_id)
    deleted = account_service.delete(account_id)
    db.commit()
    if deleted:
        return {"message": "Account deleted"}
    return {"message": "Account has history and was deactivated"}


@router.get("/{account_id}/ledger", response_model=AccountLedgerResponse)
async def get_account_ledger(
    account_id: int,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor)
):
    """Get ledger lines for an account with a running balance"""
    account_service = AccountService(db, actor.organization_id)
    return account_service.get_ledger(account_id, start_date, end_date)
