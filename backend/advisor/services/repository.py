from __future__ import annotations

import copy
import json
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

from loguru import logger

from advisor.models.records import Portfolio, Position, Recommendation

def _empty_doc() -> Dict[str, Any]:
    return {"portfolios": {}, "positions": {}, "recommendations": [], "last_run": None}

class Repository(Protocol):
    def get_portfolio(self, portfolio_id: str) -> Optional[Portfolio]: ...
    def set_portfolio(self, portfolio: Portfolio) -> None: ...
    def list_portfolios(self) -> List[Portfolio]: ...
    def get_positions(self, portfolio_id: str) -> List[Position]: ...
    def set_positions(self, portfolio_id: str, positions: List[Position]) -> None: ...
    def get_last_run(self) -> Optional[Dict[str, Any]]: ...
    def set_last_run(self, response: Dict[str, Any]) -> None: ...
    def list_recommendations(self) -> List[Recommendation]: ...
    def add_recommendation(self, rec: Recommendation) -> None: ...

class _DocumentRepository(ABC):
    """
    All Repository operations over one JSON-shaped dict.
    Subclasses decide where the dict lives (_read/_write).
    """
    def __init__(self):
        self.lock = threading.Lock()

    @abstractmethod
    def _read(self) -> Dict[str, Any]: ...

    @abstractmethod
    def _write(self, data: Dict[str, Any]) -> None: ...

    def _update(self, fn) -> None:
        with self.lock:
            data = self._read()
            fn(data)
            self._write(data)

    # portfolios
    def get_portfolio(self, portfolio_id: str) -> Optional[Portfolio]:
        raw = self._read()["portfolios"].get(portfolio_id)
        return Portfolio.model_validate(raw) if raw else None

    def set_portfolio(self, portfolio: Portfolio) -> None:
        self._update(lambda d: d["portfolios"].__setitem__(portfolio.id, portfolio.model_dump()))

    def list_portfolios(self) -> List[Portfolio]:
        return [Portfolio.model_validate(p) for p in self._read()["portfolios"].values()]

    # positions
    def get_positions(self, portfolio_id: str) -> List[Position]:
        return [Position.model_validate(p) for p in self._read()["positions"].get(portfolio_id, [])]

    def set_positions(self, portfolio_id: str, positions: List[Position]) -> None:
        dumped = [p.model_dump() for p in positions]
        self._update(lambda d: d["positions"].__setitem__(portfolio_id, dumped))

    # last upstream run (raw response)
    def get_last_run(self) -> Optional[Dict[str, Any]]:
        return self._read().get("last_run")

    def set_last_run(self, response: Dict[str, Any]) -> None:
        self._update(lambda d: d.__setitem__("last_run", response))

    # recommendations
    def list_recommendations(self) -> List[Recommendation]:
        return [Recommendation.model_validate(r) for r in self._read()["recommendations"]]

    def add_recommendation(self, rec: Recommendation) -> None:
        self._update(lambda d: d["recommendations"].append(rec.model_dump()))

class MemoryRepository(_DocumentRepository):
    def __init__(self):
        super().__init__()
        self._data = _empty_doc()

    def _read(self) -> Dict[str, Any]:
        return copy.deepcopy(self._data)

    def _write(self, data: Dict[str, Any]) -> None:
        self._data = copy.deepcopy(data)

class JsonFileRepository(_DocumentRepository):
    def __init__(self, path: str):
        super().__init__()
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if not self.path.exists():
            self._write(_empty_doc())

    def _read(self) -> Dict[str, Any]:
        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Unreadable data file {self.path}: {e}; starting empty")
            return _empty_doc()
        out = _empty_doc()
        if isinstance(data, dict):
            out.update(data)
        return out

    def _write(self, data: Dict[str, Any]) -> None:
        tmp = self.path.with_suffix(".tmp")
        with tmp.open("w", encoding="utf-8") as f:
            json.dump(data, f)
        tmp.replace(self.path)
