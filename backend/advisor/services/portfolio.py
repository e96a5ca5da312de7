from __future__ import annotations

import datetime
import uuid
from typing import List, Optional

from loguru import logger

from advisor.models.records import Portfolio, PortfolioSnapshot, Position
from advisor.services.repository import Repository

class PortfolioNotFound(LookupError):
    pass

def now_iso() -> str:
    return datetime.datetime.now(datetime.timezone.utc).isoformat()

class PortfolioService:
    def __init__(self, repo: Repository):
        self.repo = repo

    def create_portfolio(
        self,
        cash_amount: float,
        monthly_contribution: float,
        risk_tolerance: float,
        positions: List[Position],
    ) -> Portfolio:
        now = now_iso()
        portfolio = Portfolio(
            id=str(uuid.uuid4()),
            cash_amount=cash_amount,
            monthly_contribution=monthly_contribution,
            risk_tolerance=risk_tolerance,
            created_at=now,
            updated_at=now,
        )
        self.repo.set_portfolio(portfolio)
        self.repo.set_positions(portfolio.id, positions)
        logger.info(f"Created portfolio {portfolio.id} with {len(positions)} positions")
        return portfolio

    def get_portfolio(self, portfolio_id: str) -> Optional[Portfolio]:
        return self.repo.get_portfolio(portfolio_id)

    def get_positions(self, portfolio_id: str) -> List[Position]:
        return self.repo.get_positions(portfolio_id)

    def update_portfolio(
        self,
        portfolio_id: str,
        cash_amount: Optional[float] = None,
        monthly_contribution: Optional[float] = None,
        risk_tolerance: Optional[float] = None,
        positions: Optional[List[Position]] = None,
    ) -> Portfolio:
        current = self.repo.get_portfolio(portfolio_id)
        if current is None:
            raise PortfolioNotFound(portfolio_id)

        updated = current.model_copy(update={
            "cash_amount": current.cash_amount if cash_amount is None else cash_amount,
            "monthly_contribution": (
                current.monthly_contribution if monthly_contribution is None else monthly_contribution
            ),
            "risk_tolerance": current.risk_tolerance if risk_tolerance is None else risk_tolerance,
            "updated_at": now_iso(),
        })
        self.repo.set_portfolio(updated)
        # an explicit empty list clears holdings; None leaves them alone
        if positions is not None:
            self.repo.set_positions(portfolio_id, positions)
        return updated

    def get_snapshot(self, portfolio_id: str) -> PortfolioSnapshot:
        portfolio = self.repo.get_portfolio(portfolio_id)
        if portfolio is None:
            raise PortfolioNotFound(portfolio_id)
        return PortfolioSnapshot(
            cash_amount=portfolio.cash_amount,
            monthly_contribution=portfolio.monthly_contribution,
            risk_tolerance=portfolio.risk_tolerance,
            positions=self.repo.get_positions(portfolio_id),
        )
