"""
FastAPI dependencies

Components are built once in main.create_app() and hung on app.state; these
helpers hand them to the routes. Identity and operator checks are thin: the
account id is set by the upstream identity gateway, and the operator key is
compared against settings.operator_api_key.
"""
import secrets

from fastapi import Header, HTTPException, Request

from core.account_store import AccountStore
from core.betting_ledger import BettingLedger
from core.round_manager import RoundManager
from core.settlement_engine import SettlementEngine
from database import Store
from services.history_service import HistoryLog


def get_store(request: Request) -> Store:
    return request.app.state.store


def get_accounts(request: Request) -> AccountStore:
    return request.app.state.accounts


def get_rounds(request: Request) -> RoundManager:
    return request.app.state.rounds


def get_ledger(request: Request) -> BettingLedger:
    return request.app.state.ledger


def get_settlement(request: Request) -> SettlementEngine:
    return request.app.state.settlement


def get_history(request: Request) -> HistoryLog:
    return request.app.state.history


def current_account_id(x_account_id: str = Header(None)) -> str:
    if not x_account_id:
        raise HTTPException(status_code=401, detail="Missing account identity")
    return x_account_id


def require_operator(request: Request, x_admin_key: str = Header(None)) -> None:
    expected = request.app.state.store.settings.operator_api_key
    if not expected or not x_admin_key or not secrets.compare_digest(x_admin_key.encode(), expected.encode()):
        raise HTTPException(status_code=403, detail="Admin key required")
