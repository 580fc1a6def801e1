"""
Account API Endpoints

Responsibilities:
1. First-time account provisioning
2. Reading the caller's account
"""
from fastapi import APIRouter, Depends, HTTPException
import logging

from schemas import AccountInit, AccountResponse
from core.account_store import AccountStore
from core.exceptions import UnavailableError
from api.dependencies import current_account_id, get_accounts

router = APIRouter(tags=["accounts"])
logger = logging.getLogger(__name__)


@router.post("/me/init", response_model=AccountResponse)
def init_account(
    data: AccountInit,
    account_id: str = Depends(current_account_id),
    accounts: AccountStore = Depends(get_accounts)
):
    """
    Create the caller's account with the starting balance, or return the
    existing one unchanged.
    """
    try:
        account = accounts.provision(account_id, name=data.name)
        return AccountResponse.model_validate(account)

    except UnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to init account: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/me", response_model=AccountResponse)
def get_me(
    account_id: str = Depends(current_account_id),
    accounts: AccountStore = Depends(get_accounts)
):
    try:
        account = accounts.get(account_id)
    except UnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e))

    if account is None:
        raise HTTPException(status_code=404, detail="Account not found")
    return AccountResponse.model_validate(account)
