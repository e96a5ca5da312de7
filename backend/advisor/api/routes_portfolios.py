from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from loguru import logger
from pydantic import BaseModel, Field

from advisor.api.deps import (
    get_history_service,
    get_portfolio_service,
    get_repository,
    get_run_client,
)
from advisor.core.settings import settings
from advisor.models.records import (
    Portfolio,
    PortfolioSnapshot,
    Position,
    Recommendation,
)
from advisor.services.history import HistoryService
from advisor.services.portfolio import PortfolioNotFound, PortfolioService
from advisor.services.repository import Repository
from advisor.services.stock_picker import (
    StockPickerClient,
    StockPickerError,
    build_payload,
    to_engine_result,
)

router = APIRouter()

class PortfolioCreate(BaseModel):
    cash_amount: float = Field(ge=0)
    monthly_contribution: float = Field(default=0, ge=0)
    risk_tolerance: float = Field(ge=0, le=100)
    positions: List[Position] = Field(default_factory=list)

class PortfolioUpdate(BaseModel):
    cash_amount: Optional[float] = Field(default=None, ge=0)
    monthly_contribution: Optional[float] = Field(default=None, ge=0)
    risk_tolerance: Optional[float] = Field(default=None, ge=0, le=100)
    positions: Optional[List[Position]] = None

class RunInput(BaseModel):
    currency: Optional[str] = None

def _bearer(authorization: Optional[str]) -> str:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=401, detail="Missing bearer token")
    return authorization[7:].strip()

@router.post("/portfolios", response_model=Portfolio)
def create_portfolio(payload: PortfolioCreate, svc: PortfolioService = Depends(get_portfolio_service)):
    return svc.create_portfolio(
        payload.cash_amount,
        payload.monthly_contribution,
        payload.risk_tolerance,
        payload.positions,
    )

@router.get("/portfolios/{portfolio_id}", response_model=Portfolio)
def get_portfolio(portfolio_id: str, svc: PortfolioService = Depends(get_portfolio_service)):
    portfolio = svc.get_portfolio(portfolio_id)
    if portfolio is None:
        raise HTTPException(status_code=404, detail="Portfolio not found")
    return portfolio

@router.patch("/portfolios/{portfolio_id}", response_model=Portfolio)
def update_portfolio(
    portfolio_id: str,
    payload: PortfolioUpdate,
    svc: PortfolioService = Depends(get_portfolio_service),
):
    try:
        return svc.update_portfolio(
            portfolio_id,
            cash_amount=payload.cash_amount,
            monthly_contribution=payload.monthly_contribution,
            risk_tolerance=payload.risk_tolerance,
            positions=payload.positions,
        )
    except PortfolioNotFound:
        raise HTTPException(status_code=404, detail="Portfolio not found")

@router.get("/portfolios/{portfolio_id}/snapshot", response_model=PortfolioSnapshot)
def get_snapshot(portfolio_id: str, svc: PortfolioService = Depends(get_portfolio_service)):
    try:
        return svc.get_snapshot(portfolio_id)
    except PortfolioNotFound:
        raise HTTPException(status_code=404, detail="Portfolio not found")

@router.post("/portfolios/{portfolio_id}/run", response_model=Recommendation)
def run_portfolio(
    portfolio_id: str,
    payload: Optional[RunInput] = None,
    authorization: Optional[str] = Header(default=None),
    svc: PortfolioService = Depends(get_portfolio_service),
    history: HistoryService = Depends(get_history_service),
    repo: Repository = Depends(get_repository),
    client: StockPickerClient = Depends(get_run_client),
):
    token = _bearer(authorization)
    try:
        snapshot = svc.get_snapshot(portfolio_id)
    except PortfolioNotFound:
        raise HTTPException(status_code=404, detail="Portfolio not found")

    currency = (payload.currency if payload and payload.currency else settings.cost_currency)
    body = build_payload(snapshot.risk_tolerance, snapshot.cash_amount, snapshot.positions, currency)
    try:
        response = client.run(body, token)
        result = to_engine_result(response)
    except StockPickerError as e:
        logger.warning(f"Run for portfolio {portfolio_id} failed: {e}")
        raise HTTPException(status_code=502, detail=str(e))

    repo.set_last_run(response)
    return history.save_recommendation(portfolio_id, result)

@router.get("/portfolios/{portfolio_id}/recommendations", response_model=List[Recommendation])
def list_recommendations(portfolio_id: str, history: HistoryService = Depends(get_history_service)):
    return history.get_recommendations(portfolio_id)

@router.get("/recommendations/{rec_id}", response_model=Recommendation)
def get_recommendation(rec_id: str, history: HistoryService = Depends(get_history_service)):
    rec = history.get_recommendation(rec_id)
    if rec is None:
        raise HTTPException(status_code=404, detail="Recommendation not found")
    return rec

@router.get("/runs/last")
def last_run(repo: Repository = Depends(get_repository)) -> Dict[str, Any]:
    run = repo.get_last_run()
    if run is None:
        raise HTTPException(status_code=404, detail="No run recorded")
    return run
