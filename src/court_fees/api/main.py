from __future__ import annotations

import os
import logging
from typing import Any, Dict

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from .routes import router as v1_router
from ..db import SessionLocal, init_db
from ..rules.errors import MissingScheduleField, ScheduleConfigurationError
from ..rules.fee_schedule import CourtType
from ..rules.schedule_loader import load_fee_schedule
from ..settings import settings

# ---------------- Logging ----------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger("court-fees-api")

API_VERSION = "1.0.0"

app = FastAPI(
    title="Court Fee Calculator",
    version=API_VERSION,
    description="State court fee (госпошлина) calculator for general jurisdiction and arbitration courts",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
)

app.include_router(v1_router)

# ----- CORS -----
allow_origins = settings.cors_origins
allow_all = (len(allow_origins) == 1 and allow_origins[0] == "*")
app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    # Browsers disallow credentials with "*"; use regex echo when fully open.
    allow_credentials=not allow_all,
    allow_methods=["*"],
    allow_headers=["*"],
    allow_origin_regex=".*" if allow_all else None,
)


# ----- Startup -----
@app.on_event("startup")
def _startup():
    """Create the history table; the calculator keeps working if the DB is down."""
    try:
        init_db()
        logger.info("Startup complete, DB initialized.")
    except Exception:
        logger.exception("DB init failed during startup; history endpoints will fail.")


# ----- System -----
@app.get("/health", tags=["System"])
def health() -> Dict[str, Any]:
    versions: Dict[str, Any] = {}
    for court in CourtType:
        try:
            versions[court.value] = load_fee_schedule(court, registry_path=settings.schedule_path).version
        except (MissingScheduleField, ScheduleConfigurationError, KeyError, ValueError, OSError) as exc:
            logger.warning("No usable %s fee schedule: %s", court.value, exc)
            versions[court.value] = None

    db_ok = True
    try:
        with SessionLocal() as db:
            db.execute(text("SELECT 1")).scalar()
    except Exception:
        db_ok = False
    return {
        "ok": True,
        "version": API_VERSION,
        "schedule_versions": versions,
        "schedule_source": "registry" if settings.schedule_path else "builtin",
        "db_ok": db_ok,
    }


# ----- Dev entrypoint -----
if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
