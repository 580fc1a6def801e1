"""
Round API Endpoints

Operator endpoints (open, spin) require the admin key; reads are public.
All business logic lives in RoundManager and SettlementEngine.
"""
from fastapi import APIRouter, Depends, HTTPException, Query

import logging

from models import Round
from schemas import (
    RoundOpen,
    RoundResponse,
    SpinRequest,
    SpinResponse,
    HistoryResponse,
    HistoryEntryResponse,
    JackpotResponse
)
from core.round_manager import RoundManager
from core.settlement_engine import SettlementEngine
from core.exceptions import (
    ConflictError,
    NotFoundError,
    UnavailableError,
    ValidationError
)
from database import Store
from services.draw_service import make_odds
from services.history_service import HistoryLog, get_jackpot
from api.dependencies import (
    get_history,
    get_rounds,
    get_settlement,
    get_store,
    require_operator
)

router = APIRouter(tags=["rounds"])
logger = logging.getLogger(__name__)


def _round_response(round_obj: Round) -> RoundResponse:
    return RoundResponse(
        id=round_obj.id,
        status=round_obj.status.value,
        result=round_obj.result,
        jackpot_seed=round_obj.jackpot_seed,
        started_at=round_obj.started_at,
        ended_at=round_obj.ended_at
    )


@router.post("/round/open", response_model=RoundResponse, dependencies=[Depends(require_operator)])
def open_round(data: RoundOpen, rounds: RoundManager = Depends(get_rounds)):
    """
    Open a new round (operator endpoint)

    Re-opening an existing round id resets it to betting and discards its
    result and jackpot seed.
    """
    try:
        round_obj = rounds.open(data.round_id, data.jackpot_seed)
        return _round_response(round_obj)

    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except UnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to open round: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/round/{round_id}", response_model=RoundResponse)
def get_round(round_id: str, rounds: RoundManager = Depends(get_rounds)):
    try:
        return _round_response(rounds.get_round(round_id))

    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except UnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e))


@router.post("/spin", response_model=SpinResponse, dependencies=[Depends(require_operator)])
def spin(
    data: SpinRequest,
    settlement: SettlementEngine = Depends(get_settlement),
    store: Store = Depends(get_store)
):
    """
    Lock the round, draw the result, pay out, grow the jackpot, log history
    (operator endpoint)

    Idempotent: spinning a settled round returns the stored result.
    """
    try:
        odds = None
        if data.odds is not None:
            odds = make_odds(
                data.odds.salad_probability,
                data.odds.pizza_probability,
                default_salad=store.settings.default_salad_probability,
                default_pizza=store.settings.default_pizza_probability
            )

        result = settlement.settle(data.round_id, odds)
        return SpinResponse(round_id=data.round_id, result=result)

    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except UnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to settle round {data.round_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/jackpot", response_model=JackpotResponse)
def jackpot(store: Store = Depends(get_store)):
    try:
        return JackpotResponse(value=get_jackpot(store))
    except UnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e))


@router.get("/history", response_model=HistoryResponse)
def history(
    limit: int = Query(20, ge=1, le=200),
    history_log: HistoryLog = Depends(get_history)
):
    try:
        entries = history_log.list_recent(limit)
        return HistoryResponse(
            items=[HistoryEntryResponse.model_validate(entry) for entry in entries]
        )
    except UnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e))
