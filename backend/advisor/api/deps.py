from functools import lru_cache

import httpx
from fastapi import Depends

from advisor.core.settings import settings
from advisor.services.history import HistoryService
from advisor.services.portfolio import PortfolioService
from advisor.services.repository import JsonFileRepository, Repository
from advisor.services.stock_picker import StockPickerClient, close_stock_picker, get_stock_picker

@lru_cache(maxsize=1)
def get_repository() -> Repository:
    return JsonFileRepository(settings.data_path)

def get_portfolio_service(repo: Repository = Depends(get_repository)) -> PortfolioService:
    return PortfolioService(repo)

def get_history_service(repo: Repository = Depends(get_repository)) -> HistoryService:
    return HistoryService(repo)

def get_run_client() -> StockPickerClient:
    return get_stock_picker()

@lru_cache(maxsize=1)
def get_proxy_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=settings.http_timeout_s)

async def close_clients() -> None:
    """Close cached HTTP clients; called on app shutdown."""
    if get_proxy_client.cache_info().currsize:
        await get_proxy_client().aclose()
        get_proxy_client.cache_clear()
    close_stock_picker()
