"""
Bet API Endpoints

The caller's account comes from the X-Account-Id header set upstream.
"""
from fastapi import APIRouter, Depends, HTTPException
import logging

from schemas import BetSubmit, BetResponse
from core.betting_ledger import BettingLedger
from core.exceptions import (
    ConflictError,
    NotFoundError,
    UnavailableError,
    ValidationError
)
from api.dependencies import current_account_id, get_ledger

router = APIRouter(tags=["bets"])
logger = logging.getLogger(__name__)


@router.post("/bet", response_model=BetResponse)
def place_bet(
    data: BetSubmit,
    account_id: str = Depends(current_account_id),
    ledger: BettingLedger = Depends(get_ledger)
):
    """
    Place a bet (player endpoint)

    The balance is debited and the bet recorded in one transaction; a later
    bet on the same round replaces the earlier one.

    Errors:
        400: empty bet, unknown door, malformed stakes
        404: round or account not found
        409: round locked, insufficient balance
    """
    try:
        bet = ledger.place_bet(data.round_id, account_id, data.stakes)
        return BetResponse.model_validate(bet)

    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except UnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to place bet: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
