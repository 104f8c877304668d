from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv

from .core.settings import get_settings
from .routes.model import router as model_router

load_dotenv()

logging.basicConfig(level=get_settings().log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(title="plotaccess API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(model_router)


@app.on_event("startup")
async def ensure_storage() -> None:
    settings = get_settings()
    if settings.persist_artifacts:
        settings.storage_root.mkdir(parents=True, exist_ok=True)
        logger.info("persisting model runs under %s", settings.storage_root)


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}
