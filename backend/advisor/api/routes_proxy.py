from __future__ import annotations

from typing import Dict

import httpx
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, Response
from loguru import logger

from advisor.api.deps import get_proxy_client
from advisor.core.settings import settings
from advisor.services.stock_picker import resolve_run_url

router = APIRouter()

HOP_BY_HOP_HEADERS = {
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailer",
    "transfer-encoding",
    "upgrade",
    "host",
    "content-length",
}

def filter_headers(headers) -> Dict[str, str]:
    """Drop hop-by-hop headers; repeated headers are joined with ', '."""
    out: Dict[str, str] = {}
    for key, value in headers.items():
        k = key.lower()
        if not value or k in HOP_BY_HOP_HEADERS:
            continue
        out[k] = f"{out[k]}, {value}" if k in out else value
    return out

@router.api_route("/stock-picker/run", methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"])
async def proxy_run(request: Request, client: httpx.AsyncClient = Depends(get_proxy_client)):
    if request.method != "POST":
        return JSONResponse(
            status_code=405,
            content={"error": "Method Not Allowed"},
            headers={"Allow": "POST"},
        )

    upstream_url = resolve_run_url(settings.stock_picker_url)
    body = await request.body()
    try:
        upstream = await client.post(
            upstream_url,
            content=body,
            headers=filter_headers(request.headers),
        )
    except httpx.HTTPError as e:
        logger.exception(f"Stock picker proxy request failed: {e}")
        return JSONResponse(status_code=502, content={"error": "Bad Gateway"})

    headers = filter_headers(upstream.headers)
    # httpx already decoded the body
    headers.pop("content-encoding", None)
    return Response(content=upstream.content, status_code=upstream.status_code, headers=headers)
