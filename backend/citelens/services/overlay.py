from __future__ import annotations

import asyncio
import io
import logging
from collections.abc import Hashable
from dataclasses import dataclass

import fitz
from PIL import Image, ImageDraw

from citelens.services.text_model import Box, SurfaceBox

logger = logging.getLogger(__name__)

RGB = tuple[int, int, int]


@dataclass(frozen=True)
class HighlightStyle:
    fill: RGB = (255, 255, 0)
    fill_opacity: float = 0.4
    stroke: RGB = (255, 200, 0)
    stroke_opacity: float = 0.9
    stroke_width: int = 3


def to_surface_box(box: Box, *, scale: float, surface_height: float, offset: float) -> SurfaceBox:
    """Map a bottom-up document box onto a top-down drawing surface.

    ``offset`` corrects for the baseline sitting below the glyph box and is
    scaled with the page.
    """
    return SurfaceBox(
        x=box.x * scale,
        y=surface_height - (box.y * scale) - (offset * scale),
        width=box.width * scale,
        height=box.height * scale,
    )


class HighlightSurface:
    def __init__(self, image: Image.Image) -> None:
        self.image = image.convert("RGBA")

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height

    def clear(self) -> None:
        self.image = Image.new("RGBA", self.image.size, (255, 255, 255, 255))

    def fill_rect(self, box: SurfaceBox, color: RGB, opacity: float) -> None:
        self._composite(box, fill=(*color, _alpha(opacity)))

    def stroke_rect(self, box: SurfaceBox, color: RGB, opacity: float, width: int = 1) -> None:
        self._composite(box, outline=(*color, _alpha(opacity)), width=width)

    def draw_highlight(self, box: SurfaceBox, style: HighlightStyle | None = None) -> bool:
        style = style or HighlightStyle()
        if box.width <= 0 or box.height <= 0:
            return False
        self.fill_rect(box, style.fill, style.fill_opacity)
        self.stroke_rect(box, style.stroke, style.stroke_opacity, style.stroke_width)
        return True

    def to_png(self) -> bytes:
        buf = io.BytesIO()
        self.image.convert("RGB").save(buf, format="PNG")
        return buf.getvalue()

    def _composite(self, box: SurfaceBox, **kwargs) -> None:
        layer = Image.new("RGBA", self.image.size, (0, 0, 0, 0))
        ImageDraw.Draw(layer).rectangle(
            [box.x, box.y, box.x + box.width, box.y + box.height],
            **kwargs,
        )
        self.image = Image.alpha_composite(self.image, layer)


def _alpha(opacity: float) -> int:
    return max(0, min(255, round(opacity * 255)))


def rasterize_page(content: bytes, page_no: int, scale: float) -> Image.Image:
    with fitz.open(stream=content, filetype="pdf") as doc:
        page = doc[page_no - 1]
        pix = page.get_pixmap(matrix=fitz.Matrix(scale, scale), alpha=False)
        return Image.frombytes("RGB", [pix.width, pix.height], pix.samples)


class PageRenderer:
    """Paints pages onto surfaces, one pending render per surface key.

    A new request for a key cancels the render still pending for it. The
    superseded caller gets ``None`` back instead of an exception.
    """

    def __init__(self) -> None:
        self._pending: dict[Hashable, asyncio.Task] = {}

    async def render(self, surface_key: Hashable, content: bytes, page_no: int, scale: float) -> HighlightSurface | None:
        previous = self._pending.pop(surface_key, None)
        if previous is not None and not previous.done():
            logger.debug("cancelling pending render for %s", surface_key)
            previous.cancel()

        task = asyncio.create_task(asyncio.to_thread(rasterize_page, content, page_no, scale))
        self._pending[surface_key] = task
        try:
            image = await task
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if task.cancelled() and (current is None or current.cancelling() == 0):
                logger.debug("render for %s page %s superseded", surface_key, page_no)
                return None
            raise
        finally:
            if self._pending.get(surface_key) is task:
                del self._pending[surface_key]
        return HighlightSurface(image)

    def cancel_all(self) -> None:
        for task in self._pending.values():
            task.cancel()
        self._pending.clear()
