from __future__ import annotations

import asyncio
import logging

from citelens.services.document_store import DocumentStore

logger = logging.getLogger(__name__)


async def cleanup_loop(stop_event: asyncio.Event, store: DocumentStore, interval: float = 30.0) -> None:
    while not stop_event.is_set():
        expired = store.cleanup_expired()
        if expired:
            logger.info("closed expired documents: %s", ", ".join(expired))

        try:
            await asyncio.wait_for(stop_event.wait(), timeout=interval)
        except TimeoutError:
            continue
