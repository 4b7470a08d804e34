from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

import pymupdf as fitz
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4

from schooldesk.errors import FONT_LOAD_FAILED_MESSAGE, AssetFetchError, ImageEmbedError, SourceDocumentError
from schooldesk.pdf.codec import encode_data_uri, matches_image_kind


logger = logging.getLogger(__name__)

BLACK = colors.Color(0, 0, 0)


def _rgb(color: colors.Color | None) -> tuple[float, float, float] | None:
    if color is None:
        return None
    red, green, blue = color.rgb()
    return (float(red), float(green), float(blue))


@dataclass(frozen=True)
class FontHandle:
    """A font program registered on one page; doubles as its glyph metrics."""

    name: str
    face: fitz.Font

    def width_of(self, text: str, size: float) -> float:
        if not text:
            return 0.0
        return float(self.face.text_length(text, fontsize=float(size)))


@dataclass(frozen=True)
class EmbeddedImage:
    data: bytes
    width: int
    height: int
    kind: str | None = None

    def scale_to_fit(self, max_width: float, max_height: float) -> tuple[float, float]:
        scale = min(max_width / self.width, max_height / self.height)
        return (self.width * scale, self.height * scale)


class PageCanvas:
    """Bottom-left-origin drawing surface over a PyMuPDF page.

    PyMuPDF measures y downward from the top edge; every public method here
    takes y measured upward from the bottom edge and converts on the way in.
    Drawing happens immediately on the underlying page.
    """

    def __init__(self, page: fitz.Page):
        self.page = page

    @property
    def width(self) -> float:
        return float(self.page.rect.width)

    @property
    def height(self) -> float:
        return float(self.page.rect.height)

    def _flip(self, y: float) -> float:
        return self.height - float(y)

    def _rect(self, x: float, y: float, width: float, height: float) -> fitz.Rect:
        top = self._flip(y + height)
        return fitz.Rect(float(x), top, float(x) + float(width), top + float(height))

    def embed_font(self, data: bytes, *, name: str) -> FontHandle:
        try:
            face = fitz.Font(fontbuffer=data)
            self.page.insert_font(fontname=name, fontbuffer=data)
        except Exception as exc:
            logger.error('Failed to embed font %s: %s', name, exc)
            raise AssetFetchError(FONT_LOAD_FAILED_MESSAGE, source=name) from exc
        return FontHandle(name=name, face=face)

    def measure_width(self, text: str, size: float, font: FontHandle) -> float:
        return font.width_of(text, size)

    def draw_text(
        self,
        text: str,
        x: float,
        y: float,
        *,
        size: float,
        font: FontHandle,
        color: colors.Color | None = None,
    ) -> None:
        if not text:
            return
        self.page.insert_text(
            fitz.Point(float(x), self._flip(y)),
            text,
            fontsize=float(size),
            fontname=font.name,
            color=_rgb(color or BLACK),
            overlay=True,
        )

    def draw_centered(
        self,
        text: str,
        center_x: float,
        y: float,
        *,
        size: float,
        font: FontHandle,
        color: colors.Color | None = None,
    ) -> None:
        width = font.width_of(text, size)
        self.draw_text(text, center_x - width / 2, y, size=size, font=font, color=color)

    def draw_runs(
        self,
        runs: Iterable[tuple[str, FontHandle]],
        x: float,
        y: float,
        *,
        size: float,
        color: colors.Color | None = None,
    ) -> float:
        """Draw consecutive runs on one baseline; returns the x after the last run."""
        cursor_x = float(x)
        for text, font in runs:
            self.draw_text(text, cursor_x, y, size=size, font=font, color=color)
            cursor_x += font.width_of(text, size)
        return cursor_x

    def draw_rect(
        self,
        x: float,
        y: float,
        width: float,
        height: float,
        *,
        fill: colors.Color | None = None,
        border: colors.Color | None = None,
        border_width: float = 1.0,
    ) -> None:
        self.page.draw_rect(
            self._rect(x, y, width, height),
            color=_rgb(border),
            fill=_rgb(fill),
            width=float(border_width) if border is not None else 0,
            overlay=True,
        )

    def embed_image(self, data: bytes, *, kind: str | None = None) -> EmbeddedImage:
        if not data:
            raise ImageEmbedError('empty image payload')
        if kind is not None and not matches_image_kind(data, kind):
            raise ImageEmbedError(f'payload is not a {kind} image')
        try:
            pixmap = fitz.Pixmap(data)
        except Exception as exc:
            raise ImageEmbedError(f'cannot decode image: {exc}') from exc
        if pixmap.width <= 0 or pixmap.height <= 0:
            raise ImageEmbedError('image has no pixels')
        return EmbeddedImage(data=data, width=pixmap.width, height=pixmap.height, kind=kind)

    def try_embed_image(
        self,
        data: bytes,
        *,
        kind: str | None = None,
        label: str = 'image',
    ) -> EmbeddedImage | None:
        if not data:
            return None
        try:
            return self.embed_image(data, kind=kind)
        except ImageEmbedError as exc:
            logger.warning('Could not embed %s: %s', label, exc)
            return None

    def draw_image(self, image: EmbeddedImage, x: float, y: float, width: float, height: float) -> None:
        try:
            self.page.insert_image(
                self._rect(x, y, width, height),
                stream=image.data,
                keep_proportion=False,
                overlay=True,
            )
        except Exception as exc:
            raise ImageEmbedError(f'cannot place image: {exc}') from exc


def new_document() -> fitz.Document:
    return fitz.open()


def new_page(doc: fitz.Document, size: tuple[float, float] = A4) -> fitz.Page:
    width, height = size
    return doc.new_page(width=float(width), height=float(height))


def open_pdf(data: bytes) -> fitz.Document:
    if not data:
        raise SourceDocumentError('empty PDF payload')
    try:
        doc = fitz.open(stream=data, filetype='pdf')
    except Exception as exc:
        raise SourceDocumentError(f'cannot open PDF: {exc}') from exc
    if doc.is_encrypted:
        authenticated = False
        try:
            authenticated = bool(doc.authenticate(''))
        except Exception:
            authenticated = False
        if not authenticated:
            doc.close()
            raise SourceDocumentError('PDF is encrypted')
    if doc.page_count == 0:
        doc.close()
        raise SourceDocumentError('PDF has no pages')
    return doc


def clamp_page_index(target_page: int | None, page_count: int) -> int:
    index = int(target_page or 1) - 1
    return max(0, min(index, page_count - 1))


def to_data_uri(doc: fitz.Document) -> str:
    return encode_data_uri(doc.tobytes(garbage=3, deflate=True), 'application/pdf')
