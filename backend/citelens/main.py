from __future__ import annotations

import asyncio

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from citelens.api.documents import router as documents_router
from citelens.api.viewer import router as viewer_router
from citelens.core.settings import get_settings
from citelens.services.cleanup import cleanup_loop
from citelens.services.debounce import HoverDebouncer
from citelens.services.document_store import DocumentStore
from citelens.services.extraction import init_text_sources
from citelens.services.overlay import PageRenderer

settings = get_settings()

app = FastAPI(title=settings.app_name)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(documents_router, prefix=settings.api_prefix)
app.include_router(viewer_router, prefix=settings.api_prefix)


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.on_event("startup")
async def on_startup() -> None:
    app.state.sources = init_text_sources(settings)
    app.state.store = DocumentStore(settings)
    app.state.renderer = PageRenderer()
    app.state.debouncer = HoverDebouncer(settings.hover_debounce_sec)
    app.state.cleanup_stop_event = asyncio.Event()
    app.state.cleanup_task = asyncio.create_task(
        cleanup_loop(app.state.cleanup_stop_event, app.state.store, settings.cleanup_interval_sec)
    )


@app.on_event("shutdown")
async def on_shutdown() -> None:
    app.state.cleanup_stop_event.set()
    app.state.renderer.cancel_all()
    await app.state.cleanup_task
