from fastapi import FastAPI
from sqlalchemy import text

from reportgen.core.config import settings
from reportgen.core.logging import configure_logging
from reportgen.db.session import engine
from reportgen.features.reports.router import router as reports_router
from reportgen.version import API_VERSION

configure_logging(settings.log_level, settings.log_json)

app = FastAPI(
    title=settings.project_name,
    version=API_VERSION
)

app.include_router(reports_router)


@app.get("/version")
async def version() -> dict:
    return {"version": API_VERSION}


@app.get("/healthz")
async def healthz() -> dict:
    return {"status": "ok"}


@app.get("/readyz")
async def readyz() -> dict:
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    return {"status": "ready"}
