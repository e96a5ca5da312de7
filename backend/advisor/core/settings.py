# backend/advisor/core/settings.py
import os
from pathlib import Path
from typing import List
from pydantic import BaseModel, Field
from dotenv import load_dotenv

# Resolve backend directory and load .env explicitly
BACKEND_DIR = Path(__file__).resolve().parents[2]  # .../backend
load_dotenv(BACKEND_DIR / ".env")  # do NOT set override=True; shell exports still win

_DEFAULT_ORIGINS = "http://localhost:5173,http://127.0.0.1:5173"

class Settings(BaseModel):
    env: str = os.getenv("APP_ENV", "dev")
    port: int = int(os.getenv("PORT", "8000"))
    stock_picker_url: str = os.getenv(
        "STOCK_PICKER_URL", "http://localhost:9000/api/stock-picker/run"
    )
    http_timeout_s: float = float(os.getenv("HTTP_TIMEOUT_S", "30"))
    data_path: str = os.getenv("DATA_PATH", str(BACKEND_DIR / ".data" / "advisor.json"))
    cost_currency: str = os.getenv("COST_CURRENCY", "USD")
    cors_origins: List[str] = Field(
        default_factory=lambda: [
            o.strip() for o in os.getenv("CORS_ORIGINS", _DEFAULT_ORIGINS).split(",") if o.strip()
        ]
    )

settings = Settings()
