# riskmap/main.py
from __future__ import annotations

import logging
import os
from typing import Any, Dict

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.responses import RedirectResponse

log = logging.getLogger("uvicorn.error")

# data file paths and worker count are read from the env at import time below
load_dotenv()


def _api_prefix() -> str:
    """API_PREFIX="api" or "/api/" -> "/api"; unset -> ""."""
    raw = os.getenv("API_PREFIX", "").strip().rstrip("/")
    if raw and not raw.startswith("/"):
        raw = "/" + raw
    return raw


def _cors_settings() -> Dict[str, Any]:
    # CORS_ORIGINS="https://map.example.org,https://ops.example.org"; otherwise localhost only
    settings: Dict[str, Any] = {"allow_methods": ["GET", "POST"], "allow_headers": ["*"]}
    origins = [o.strip() for o in os.getenv("CORS_ORIGINS", "").split(",") if o.strip()]
    if origins:
        settings["allow_origins"] = origins
    else:
        settings["allow_origin_regex"] = r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$"
    return settings


API_PREFIX = _api_prefix()

app = FastAPI(
    title="Riskmap API",
    version="1.0.0",
    description="Per-woreda security risk assessment from crime and conflict incident reports.",
)

_cors = _cors_settings()
app.add_middleware(CORSMiddleware, **_cors)
log.info("Riskmap API prefix=%r cors=%s", API_PREFIX, _cors)

from riskmap.routes.areas import router as areas_router  # noqa: E402
from riskmap.routes.report import router as report_router  # noqa: E402

for _router in (areas_router, report_router):
    app.include_router(_router, prefix=API_PREFIX)


@app.get("/", include_in_schema=False)
def root() -> RedirectResponse:
    return RedirectResponse(url="/docs")


@app.get(f"{API_PREFIX}/health", tags=["meta"])
def health():
    return {"status": "ok", "prefix": API_PREFIX}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "riskmap.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        reload=os.getenv("RELOAD", "1") == "1",
    )
