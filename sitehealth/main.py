from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI

from sitehealth.db import init_db
from sitehealth.web.routers import gate, orchestrator, reports, settings

logging.basicConfig(
    level=os.getenv("SITEHEALTH_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
log = logging.getLogger(__name__)

APP_NAME = "site-health-orchestrator"


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    yield


app = FastAPI(title=f"{APP_NAME} API", lifespan=lifespan)

for module in (orchestrator, reports, gate, settings):
    app.include_router(module.router)

log.info(f"Mounted routers: {[m.__name__ for m in (orchestrator, reports, gate, settings)]}")

@app.get("/")
async def index():
    return {"app": APP_NAME, "status": "ok"}
