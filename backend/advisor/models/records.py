from typing import Dict, List, Optional, Union
from pydantic import BaseModel, ConfigDict, Field

# rows x cells, exactly as split from text or read from a sheet
RawTable = List[List[str]]

class HeaderMap(BaseModel):
    header_row_index: int = 0
    headers: List[str] = Field(default_factory=list)
    ticker_idx: int = -1
    quantity_idx: int = -1
    cost_idx: int = -1

    @property
    def resolved(self) -> bool:
        return self.ticker_idx != -1 and self.quantity_idx != -1

class Position(BaseModel):
    ticker: str
    quantity: float
    avg_cost: Optional[float] = None

    model_config = ConfigDict(extra="ignore")

class PreviewRow(Position):
    raw_row: Optional[List[str]] = None
    error: Optional[str] = None

class InvalidRow(BaseModel):
    row_number: int
    error: str

class ValidationResult(BaseModel):
    valid_rows: List[PreviewRow] = Field(default_factory=list)
    invalid_rows: List[InvalidRow] = Field(default_factory=list)
    total_imported: int = 0
    total_skipped: int = 0

class Portfolio(BaseModel):
    id: str
    user_id: Optional[str] = None
    cash_amount: float
    monthly_contribution: float = 0.0
    risk_tolerance: float
    created_at: str
    updated_at: str

class PortfolioSnapshot(BaseModel):
    cash_amount: float
    monthly_contribution: Optional[float] = None
    risk_tolerance: float
    positions: List[Position] = Field(default_factory=list)

class AllocationBreakdown(BaseModel):
    equities: float = 0.0
    defensive: float = 0.0
    cash: float = 0.0

class InvalidationCondition(BaseModel):
    metric: str
    op: str
    threshold: float

class TriggeredRule(BaseModel):
    rule_id: str
    name: str
    weight: float = 0.0
    direction: str = "neutral"
    inputs_used: Dict[str, Union[float, str]] = Field(default_factory=dict)
    rationale_key: str = "external_engine"

class EngineResult(BaseModel):
    strategy: str  # GROWTH | HOLD | DIVERSIFY
    action: str    # INVEST_NOW | PARTIAL_DEPLOY | WAIT | REBALANCE
    amount: float = 0.0
    allocation: AllocationBreakdown = Field(default_factory=AllocationBreakdown)
    confidence: float = 0.0
    invalidated_if: List[InvalidationCondition] = Field(default_factory=list)
    explanation_summary: str = ""
    triggered_rules: List[TriggeredRule] = Field(default_factory=list)
    recession_probability: Optional[float] = None

class Recommendation(EngineResult):
    id: str
    portfolio_id: str
    created_at: str
