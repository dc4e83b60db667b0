from contextlib import asynccontextmanager

from fastapi import FastAPI  # Core FastAPI imports

from app.api.routes_events import router_events
from app.core.config import get_settings
from app.core.logging_setup import configure_logging
from app.storage.cosmos_store import get_cosmos_provider

configure_logging(get_settings().LOG_LEVEL)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # Shared Cosmos client is created lazily by the first run; close it on shutdown.
    await get_cosmos_provider().close()


app = FastAPI(title="Form Processor", version="0.1.0", lifespan=lifespan)  # Main ASGI app


@app.get("/health")
async def health():
    return {"status": "ok"}  # Basic liveness


app.include_router(router_events)
