import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from typing import Optional
from api.routes import router as api_router
from api.websocket import router as ws_router
from models.database import HistoryPersistence, JsonFileHistoryPersistence
from services.history_store import DailyHistoryStore
from utils.debug import debug_log
import os
import config as cfg


def create_app(persistence: Optional[HistoryPersistence] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup: one history store shared by every connection
        app.state.history_store = DailyHistoryStore(persistence or JsonFileHistoryPersistence())
        debug_log(f"History loaded: {len(app.state.history_store.records)} days", tag="APP")
        yield

    app = FastAPI(
        title="Posture Monitor",
        description="Head-motion posture monitoring: alerts on sustained bad posture and tracks daily scores.",
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs" if cfg.ENVIRONMENT == "development" else None,
        redoc_url=None,
        openapi_url="/openapi.json" if cfg.ENVIRONMENT == "development" else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "DELETE"],
        allow_headers=["Content-Type"],
        max_age=600,
    )

    @app.get("/health")
    async def health_check():
        return {"status": "healthy", "environment": cfg.ENVIRONMENT}

    app.include_router(api_router)
    app.include_router(ws_router)
    return app


app = create_app()

if __name__ == "__main__":
    port = int(os.getenv("PORT", 8000))
    reload = cfg.ENVIRONMENT == "development"
    uvicorn.run("main:app", host="0.0.0.0", port=port, reload=reload)
