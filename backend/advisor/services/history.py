from __future__ import annotations

import uuid
from typing import List, Optional

from advisor.models.records import EngineResult, Recommendation
from advisor.services.portfolio import now_iso
from advisor.services.repository import Repository

class HistoryService:
    def __init__(self, repo: Repository):
        self.repo = repo

    def save_recommendation(self, portfolio_id: str, result: EngineResult) -> Recommendation:
        rec = Recommendation(
            id=str(uuid.uuid4()),
            portfolio_id=portfolio_id,
            created_at=now_iso(),
            **result.model_dump(),
        )
        self.repo.add_recommendation(rec)
        return rec

    def get_recommendations(self, portfolio_id: str) -> List[Recommendation]:
        """Newest first."""
        recs = [
            (i, r) for i, r in enumerate(self.repo.list_recommendations())
            if r.portfolio_id == portfolio_id
        ]
        # same-timestamp ties fall back to insertion order
        recs.sort(key=lambda t: (t[1].created_at, t[0]), reverse=True)
        return [r for _, r in recs]

    def get_recommendation(self, rec_id: str) -> Optional[Recommendation]:
        for r in self.repo.list_recommendations():
            if r.id == rec_id:
                return r
        return None
