import asyncio
import os
import sys
from pathlib import Path

from citelens.core.settings import get_settings
from citelens.services.extraction import DocumentReadError, detect_format, extract_document, init_text_sources
from citelens.services.snippets import select_citations


def _preview(text: str, limit: int = 72) -> str:
    flat = " ".join(text.split())
    return flat if len(flat) <= limit else flat[: limit - 3] + "..."


async def _run(path: Path, mode: str, count: int) -> int:
    settings = get_settings()
    fmt = detect_format(path.name)
    if fmt is None:
        print(f"[segment] unsupported file type: {path.name}", flush=True)
        return 1

    sources = init_text_sources(settings)
    try:
        extracted = await extract_document(path.read_bytes(), fmt, sources, settings)
    except DocumentReadError as exc:
        print(f"[segment] {exc}", flush=True)
        return 1

    print(f"[segment] {path.name}: {fmt}, {extracted.page_count} page(s), {len(extracted.lines)} lines", flush=True)
    for block in extracted.blocks:
        print(f"  p{block.page} {block.block_type:<9} {len(block.lines):>2}L  {_preview(block.text)}")
    for warning in extracted.warnings:
        print(f"[segment] warning: {warning}", flush=True)

    for citation in select_citations(extracted, mode, count, settings=settings):
        print(f"[segment] {citation.id}: {_preview(citation.text)}")
    return 0


def main() -> int:
    if len(sys.argv) < 2:
        print("usage: segment_document.py <file.pdf|file.docx>", flush=True)
        return 2
    mode = os.getenv("EXTRACTION_MODE", "multi-line")
    count = int(os.getenv("CITATION_COUNT", "3"))
    return asyncio.run(_run(Path(sys.argv[1]), mode, count))


if __name__ == "__main__":
    sys.exit(main())
