from fastapi import FastAPI
import logging

from scenie.api.deps import close_redis
from scenie.api.routes import router
from scenie.assets.startup import init_document_for_app
from scenie.session_store import store

app = FastAPI(title="scenie", version="0.1.0")
app.include_router(router)
# Configure logging
logging.basicConfig(level=logging.DEBUG)
logger = logging.getLogger(__name__)


@app.on_event("startup")
async def _startup() -> None:
    init_document_for_app()


@app.on_event("shutdown")
async def _shutdown() -> None:
    store.clear()
    close_redis()


@app.get("/info")
async def info() -> dict[str, str]:
    return {"name": "scenie", "version": "0.1.0"}
