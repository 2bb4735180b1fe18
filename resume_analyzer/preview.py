"""
Preview image generation for uploaded resumes.

Main class:
    PdfPreviewConverter: Renders the first page of a PDF to PNG.
"""

import asyncio
import io
import logging
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Optional, Protocol

import pdfplumber

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConversionResult:
    """Outcome of a preview conversion; ``file`` is None on failure."""

    file: Optional[bytes] = None
    filename: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.file is not None


class PreviewConverter(Protocol):
    async def convert(self, content: bytes, filename: str) -> ConversionResult:
        ...


def preview_filename(filename: str) -> str:
    """``resume.pdf`` -> ``resume.png``."""
    stem = PurePosixPath(filename).stem or "preview"
    return f"{stem}.png"


class PdfPreviewConverter:
    """
    Render page one of a PDF into a PNG image.

    Args:
        resolution: Render resolution in dpi. 150 keeps text legible in a
            thumbnail without producing multi-megabyte images.
    """

    def __init__(self, resolution: int = 150):
        self.resolution = resolution

    async def convert(self, content: bytes, filename: str) -> ConversionResult:
        try:
            image = await asyncio.to_thread(self._render_first_page, content)
        except Exception as e:
            logger.error(f"Preview rendering failed for {filename}: {e}")
            return ConversionResult(error=str(e))

        if image is None:
            return ConversionResult(error="Document has no pages")

        return ConversionResult(file=image, filename=preview_filename(filename))

    def _render_first_page(self, content: bytes) -> Optional[bytes]:
        with pdfplumber.open(io.BytesIO(content)) as pdf:
            if not pdf.pages:
                return None
            page_image = pdf.pages[0].to_image(resolution=self.resolution)
            buffer = io.BytesIO()
            page_image.original.save(buffer, format="PNG")
            return buffer.getvalue()
