from __future__ import annotations

import uuid
from typing import Any, Dict, List, Optional

import httpx
from loguru import logger

from advisor.core.settings import settings
from advisor.models.records import (
    AllocationBreakdown,
    EngineResult,
    Position,
    TriggeredRule,
)

RUN_PATH = "/stock-picker/run"

class StockPickerError(RuntimeError):
    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body

def resolve_run_url(base_or_url: str) -> str:
    if base_or_url.endswith(RUN_PATH):
        return base_or_url
    return base_or_url.rstrip("/") + RUN_PATH

# ---------- payload ----------
def strategy_from_risk_tolerance(risk_tolerance: float) -> str:
    if risk_tolerance >= 67:
        return "growth"
    if risk_tolerance >= 34:
        return "diversify"
    return "hold"

def build_payload(risk_tolerance: float, cash: float, positions: List[Position], currency: str) -> Dict[str, Any]:
    return {
        "run_id": str(uuid.uuid4()),
        "strategy": strategy_from_risk_tolerance(risk_tolerance),
        "cash": cash,
        "positions": [
            {
                "ticker": p.ticker,
                "quantity": p.quantity,
                "avg_cost": p.avg_cost if p.avg_cost is not None else 0,
                "cost_currency": currency,
            }
            for p in positions
        ],
    }

# ---------- response mapping ----------
def _map_strategy(value: Optional[str]) -> str:
    v = (value or "").lower()
    if v == "growth":
        return "GROWTH"
    if v == "diversify":
        return "DIVERSIFY"
    return "HOLD"

def _map_action(value: Optional[str]) -> str:
    v = (value or "").lower()
    if v == "invest_now":
        return "INVEST_NOW"
    if v == "partial_deploy":
        return "PARTIAL_DEPLOY"
    if v == "rebalance":
        return "REBALANCE"
    return "WAIT"

def _num(x: Any) -> float:
    try:
        return float(x or 0)
    except (TypeError, ValueError):
        return 0.0

def _map_allocation(allocation: Optional[Dict[str, Any]]) -> AllocationBreakdown:
    if not allocation:
        return AllocationBreakdown()
    return AllocationBreakdown(
        equities=_num(allocation.get("equities")),
        defensive=_num(allocation.get("defensive")),
        cash=_num(allocation.get("cash")),
    )

def _map_rule_trace(rule_trace: Optional[List[Dict[str, Any]]]) -> List[TriggeredRule]:
    out: List[TriggeredRule] = []
    for i, item in enumerate(rule_trace or []):
        out.append(TriggeredRule(
            rule_id=str(item.get("rule_id") or f"rule_{i + 1}"),
            name=str(item.get("name") or item.get("rationale_key") or "Rule"),
            weight=_num(item.get("weight")),
            direction=str(item.get("direction") or "neutral"),
            inputs_used=item.get("inputs_used") or {},
            rationale_key=str(item.get("rationale_key") or "external_engine"),
        ))
    return out

def first_result(response: Dict[str, Any]) -> Dict[str, Any]:
    results = (response or {}).get("results") or {}
    if not results:
        raise StockPickerError("Stock picker response did not include any strategy result")
    return next(iter(results.values()))

def to_engine_result(response: Dict[str, Any]) -> EngineResult:
    r = first_result(response)
    shortlist = r.get("shortlist") or []
    return EngineResult(
        strategy=_map_strategy(r.get("strategy")),
        action=_map_action(r.get("decision")),
        amount=0,
        allocation=_map_allocation(r.get("allocation")),
        confidence=_num(r.get("confidence")),
        invalidated_if=[],
        explanation_summary=(
            f"Strategy request {r.get('request_id')} completed with "
            f"{len(shortlist)} shortlisted assets."
        ),
        triggered_rules=_map_rule_trace(r.get("rule_trace")),
    )

# ---------- client ----------
class StockPickerClient:
    def __init__(self, url: str, timeout_s: float, transport: Optional[httpx.BaseTransport] = None):
        self.url = resolve_run_url(url)
        self.client = httpx.Client(timeout=timeout_s, transport=transport)

    def close(self) -> None:
        self.client.close()

    def run(self, payload: Dict[str, Any], token: str) -> Dict[str, Any]:
        """Single POST, no retries. Non-2xx and transport errors raise StockPickerError."""
        headers = {
            "accept": "application/json",
            "Content-Type": "application/json",
            "Authorization": f"Bearer {token}",
        }
        try:
            resp = self.client.post(self.url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"Stock picker request failed: {e}")
            raise StockPickerError(f"Failed to reach stock picker: {e}") from e

        if resp.status_code < 200 or resp.status_code >= 300:
            logger.error(f"Stock picker HTTP {resp.status_code} for run {payload.get('run_id')}")
            raise StockPickerError(
                f"Failed to run stock picker ({resp.status_code}): {resp.text}",
                status_code=resp.status_code,
                body=resp.text,
            )
        logger.info(f"Stock picker run {payload.get('run_id')} ok ({payload.get('strategy')})")
        try:
            return resp.json()
        except ValueError as e:
            raise StockPickerError(f"Stock picker returned invalid JSON: {e}", resp.status_code, resp.text) from e

# Singleton accessor
_client: Optional[StockPickerClient] = None

def get_stock_picker() -> StockPickerClient:
    global _client
    if _client is None:
        _client = StockPickerClient(url=settings.stock_picker_url, timeout_s=settings.http_timeout_s)
    return _client

def close_stock_picker() -> None:
    global _client
    if _client is not None:
        _client.close()
        _client = None
