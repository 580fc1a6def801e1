from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from typing import Optional
import logging
import random

from database import Settings, Store, get_settings
from core.account_store import AccountStore
from core.betting_ledger import BettingLedger
from core.round_manager import RoundManager
from core.settlement_engine import SettlementEngine
from services.history_service import HistoryLog
from api import accounts, bets, rounds


def create_app(settings: Optional[Settings] = None, rng: Optional[random.Random] = None) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(level=settings.log_level)

    store = Store(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup: create tables
        store.create_all()
        yield
        # Shutdown: release pooled connections
        store.dispose()

    app = FastAPI(
        title="Greedy Doors API",
        description="Round-based door betting game backend",
        version="1.0.0",
        lifespan=lifespan
    )

    # One instance of every component, shared by all requests
    round_manager = RoundManager(store)
    app.state.store = store
    app.state.accounts = AccountStore(store)
    app.state.rounds = round_manager
    app.state.ledger = BettingLedger(store)
    app.state.settlement = SettlementEngine(store, round_manager, rng=rng)
    app.state.history = HistoryLog(store)

    # CORS configuration
    origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins or ["*"],
        allow_credentials=bool(origins),
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(accounts.router)
    app.include_router(bets.router)
    app.include_router(rounds.router)

    @app.get("/")
    def root():
        return {"message": "Greedy Server OK", "status": "ok"}

    @app.get("/health")
    def health():
        return {"status": "healthy"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
