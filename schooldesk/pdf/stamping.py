from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from schooldesk.adapters.assets import FontBundle
from schooldesk.errors import ImageEmbedError
from schooldesk.pdf.canvas import EmbeddedImage, FontHandle, PageCanvas
from schooldesk.pdf.codec import decode_data_uri, image_kind
from schooldesk.types import StampStage


logger = logging.getLogger(__name__)

FONT_REGULAR_NAME = 'thsarabun'
FONT_BOLD_NAME = 'thsarabunb'
SCHOOL_PLACEHOLDER = 'โรงเรียน...................'


@dataclass(frozen=True)
class ThaiFonts:
    regular: FontHandle
    bold: FontHandle


@dataclass(frozen=True)
class StampBox:
    x: float
    y: float
    width: float
    height: float

    @property
    def top(self) -> float:
        return self.y + self.height

    @property
    def center_x(self) -> float:
        return self.x + self.width / 2


class StampObserver(Protocol):
    def on_stage(self, stage: StampStage) -> None:
        ...


def embed_thai_fonts(canvas: PageCanvas, fonts: FontBundle) -> ThaiFonts:
    regular = canvas.embed_font(fonts.regular, name=FONT_REGULAR_NAME)
    bold = canvas.embed_font(fonts.bold, name=FONT_BOLD_NAME)
    return ThaiFonts(regular=regular, bold=bold)


def load_optional_image(canvas: PageCanvas, data_uri: str | None, *, label: str) -> EmbeddedImage | None:
    if not data_uri:
        return None
    data = decode_data_uri(data_uri)
    if not data:
        logger.warning('Skipping %s: payload could not be decoded', label)
        return None
    return canvas.try_embed_image(data, kind=image_kind(data_uri, data), label=label)


def place_image(
    canvas: PageCanvas,
    image: EmbeddedImage,
    x: float,
    y: float,
    width: float,
    height: float,
    *,
    label: str,
) -> bool:
    try:
        canvas.draw_image(image, x, y, width, height)
    except ImageEmbedError as exc:
        logger.warning('Could not draw %s: %s', label, exc)
        return False
    return True


def notify_stage(observer: StampObserver | None, stage: StampStage) -> None:
    if observer is None:
        return
    try:
        observer.on_stage(stage)
    except Exception as exc:
        logger.warning('Stamp observer failed on %s: %s', stage.value, exc)
