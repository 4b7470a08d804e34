from __future__ import annotations

import logging

from reportlab.lib import colors

from schooldesk.adapters.assets import AssetLoader
from schooldesk.pdf.canvas import PageCanvas, open_pdf, to_data_uri
from schooldesk.pdf.codec import decode_data_uri
from schooldesk.pdf.stamping import (
    SCHOOL_PLACEHOLDER,
    StampBox,
    ThaiFonts,
    embed_thai_fonts,
    load_optional_image,
    place_image,
)
from schooldesk.types import ReceiveStampRequest


logger = logging.getLogger(__name__)

STAMP_COLOR = colors.Color(0.8, 0.2, 0.2)
FONT_SIZE = 14
LINE_HEIGHT = 18
BOX_WIDTH = 160
BOX_HEIGHT = 85
MARGIN = 20
PADDING_TOP = 12
TEXT_INSET = 6
LOGO_SIZE = 20
LOGO_GAP = 24


def receive_stamp_box(page_width: float, page_height: float) -> StampBox:
    # The box does not grow with its content; long school names overflow it.
    return StampBox(
        x=page_width - BOX_WIDTH - MARGIN,
        y=page_height - BOX_HEIGHT - MARGIN,
        width=BOX_WIDTH,
        height=BOX_HEIGHT,
    )


def draw_receive_stamp(canvas: PageCanvas, request: ReceiveStampRequest, fonts: ThaiFonts) -> StampBox:
    box = receive_stamp_box(canvas.width, canvas.height)
    canvas.draw_rect(
        box.x,
        box.y,
        box.width,
        box.height,
        fill=colors.white,
        border=STAMP_COLOR,
        border_width=1.5,
    )

    text_x = box.x + TEXT_INSET
    cursor_y = box.top - PADDING_TOP

    header_x = text_x
    logo = load_optional_image(canvas, request.school_logo_base64, label='school logo')
    if logo is not None:
        logo_width, logo_height = logo.scale_to_fit(LOGO_SIZE, LOGO_SIZE)
        if place_image(canvas, logo, text_x, cursor_y - 2, logo_width, logo_height, label='school logo'):
            header_x = text_x + LOGO_GAP

    canvas.draw_text(
        request.school_name or SCHOOL_PLACEHOLDER,
        header_x,
        cursor_y,
        size=FONT_SIZE,
        font=fonts.bold,
        color=STAMP_COLOR,
    )

    rows = (
        ('เลขรับที่: ', request.book_number),
        ('วันที่: ', request.date),
        ('เวลา: ', request.time),
    )
    for label, value in rows:
        cursor_y -= LINE_HEIGHT
        canvas.draw_runs(
            [(label, fonts.bold), (value, fonts.regular)],
            text_x,
            cursor_y,
            size=FONT_SIZE,
            color=STAMP_COLOR,
        )
    return box


async def stamp_receive_number(
    request: ReceiveStampRequest,
    *,
    assets: AssetLoader | None = None,
) -> str:
    """Stamp the receive number box on the top-right corner of page 1."""
    loader = assets or AssetLoader.from_settings()
    source = decode_data_uri(request.file_base64)
    doc = open_pdf(source)
    try:
        font_bundle = await loader.fonts()
        canvas = PageCanvas(doc.load_page(0))
        fonts = embed_thai_fonts(canvas, font_bundle)
        box = draw_receive_stamp(canvas, request, fonts)
        logger.info('Receive stamp %s placed at (%.1f, %.1f)', request.book_number, box.x, box.y)
        return to_data_uri(doc)
    finally:
        doc.close()
