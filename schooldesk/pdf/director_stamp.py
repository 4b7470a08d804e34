from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date

import pymupdf as fitz
from reportlab.lib import colors
from reportlab.lib.units import cm

from schooldesk.adapters.assets import AssetLoader
from schooldesk.pdf.canvas import PageCanvas, clamp_page_index, new_document, new_page, open_pdf, to_data_uri
from schooldesk.pdf.codec import decode_data_uri, format_thai_date, image_kind
from schooldesk.pdf.stamping import (
    SCHOOL_PLACEHOLDER,
    StampBox,
    StampObserver,
    ThaiFonts,
    embed_thai_fonts,
    load_optional_image,
    notify_stage,
    place_image,
)
from schooldesk.pdf.text_layout import wrap_multiline
from schooldesk.types import DirectorStampRequest, StampStage


logger = logging.getLogger(__name__)

BOX_WIDTH = 260
BOX_MARGIN = 0.5 * cm
MIN_BOX_HEIGHT = 3 * cm
FONT_SIZE = 14
LINE_HEIGHT = FONT_SIZE * 1.05
TEXT_PADDING = 10
TEXT_INSET = 8
FIRST_LINE_DROP = 20
SIGNATURE_BLOCK_HEIGHT = 85
BOX_PADDING = 15
FOOTER_BASELINE = 10
SIGNATURE_MAX_WIDTH = 80
SIGNATURE_MAX_HEIGHT = 40
LOGO_SIZE = 16
LOGO_GAP = 4

BOX_FILL = colors.Color(0.97, 0.97, 0.97)
BOX_BORDER = colors.Color(0, 0, 0.5)


@dataclass(frozen=True)
class CommandStampLayout:
    box: StampBox
    command_lines: list[str]
    signature_placed: bool


def command_box_height(line_count: int, *, extra_footer_lines: int = 0) -> float:
    text_block_height = line_count * LINE_HEIGHT
    footer_height = SIGNATURE_BLOCK_HEIGHT + extra_footer_lines * LINE_HEIGHT
    return max(MIN_BOX_HEIGHT, text_block_height + footer_height + BOX_PADDING)


def _open_source(request: DirectorStampRequest) -> fitz.Document:
    if request.is_blank_sheet:
        doc = new_document()
        new_page(doc)
        return doc

    data = decode_data_uri(request.file_url)
    if request.is_pdf_source:
        return open_pdf(data)

    doc = new_document()
    canvas = PageCanvas(new_page(doc))
    image = canvas.try_embed_image(data, kind=image_kind(request.file_url, data), label='source image')
    if image is None:
        logger.warning('Source image unusable; stamping a blank sheet instead')
        return doc
    width, height = image.scale_to_fit(canvas.width, canvas.height)
    place_image(
        canvas,
        image,
        (canvas.width - width) / 2,
        canvas.height - height,
        width,
        height,
        label='source image',
    )
    return doc


def draw_director_stamp(
    canvas: PageCanvas,
    request: DirectorStampRequest,
    fonts: ThaiFonts,
    *,
    today: date | None = None,
    observer: StampObserver | None = None,
) -> CommandStampLayout:
    font = fonts.regular
    box_x = canvas.width - BOX_WIDTH - BOX_MARGIN

    notify_stage(observer, StampStage.writing_command)
    lines = wrap_multiline(request.command_text, BOX_WIDTH - TEXT_PADDING, FONT_SIZE, font)
    position = (request.director_position or '').strip()
    box = StampBox(
        x=box_x,
        y=BOX_MARGIN,
        width=BOX_WIDTH,
        height=command_box_height(len(lines), extra_footer_lines=1 if position else 0),
    )
    canvas.draw_rect(box.x, box.y, box.width, box.height, fill=BOX_FILL, border=BOX_BORDER, border_width=1)

    cursor_y = box.top - FIRST_LINE_DROP
    for line in lines:
        canvas.draw_text(line, box.x + TEXT_INSET, cursor_y, size=FONT_SIZE, font=font)
        cursor_y -= LINE_HEIGHT

    center_x = box.center_x
    footer_y = box.y + FOOTER_BASELINE
    canvas.draw_centered(format_thai_date(today or date.today()), center_x, footer_y, size=FONT_SIZE, font=font)
    footer_y += LINE_HEIGHT

    school_text = request.school_name or SCHOOL_PLACEHOLDER
    canvas.draw_centered(school_text, center_x, footer_y, size=FONT_SIZE, font=font)
    logo = load_optional_image(canvas, request.school_logo_base64, label='school logo')
    if logo is not None:
        logo_width, logo_height = logo.scale_to_fit(LOGO_SIZE, LOGO_SIZE)
        school_left = center_x - font.width_of(school_text, FONT_SIZE) / 2
        place_image(
            canvas,
            logo,
            school_left - LOGO_GAP - logo_width,
            footer_y - 3,
            logo_width,
            logo_height,
            label='school logo',
        )
    footer_y += LINE_HEIGHT

    # The stack grows upward, so the position line sits directly under the name.
    if position:
        canvas.draw_centered(position, center_x, footer_y, size=FONT_SIZE, font=font)
        footer_y += LINE_HEIGHT

    canvas.draw_centered(f'( {request.director_name} )', center_x, footer_y, size=FONT_SIZE, font=font)
    footer_y += LINE_HEIGHT + 5

    notify_stage(observer, StampStage.stamping_signature)
    signature_placed = False
    signature = load_optional_image(canvas, request.signature_image_base64, label='director signature')
    if signature is not None:
        scale = request.signature_scale or 1.0
        sig_width, sig_height = signature.scale_to_fit(SIGNATURE_MAX_WIDTH * scale, SIGNATURE_MAX_HEIGHT * scale)
        signature_placed = place_image(
            canvas,
            signature,
            center_x - sig_width / 2,
            footer_y + (request.signature_y_offset or 0.0),
            sig_width,
            sig_height,
            label='director signature',
        )

    return CommandStampLayout(box=box, command_lines=lines, signature_placed=signature_placed)


async def stamp_director_command(
    request: DirectorStampRequest,
    *,
    assets: AssetLoader | None = None,
    observer: StampObserver | None = None,
    today: date | None = None,
) -> str:
    """Stamp the director command box on the bottom-right of the target page."""
    loader = assets or AssetLoader.from_settings()
    notify_stage(observer, StampStage.loading_fonts)
    font_bundle = await loader.fonts()

    doc = _open_source(request)
    try:
        page_index = clamp_page_index(request.target_page, doc.page_count)
        canvas = PageCanvas(doc.load_page(page_index))
        fonts = embed_thai_fonts(canvas, font_bundle)
        layout = draw_director_stamp(canvas, request, fonts, today=today, observer=observer)
        logger.info(
            'Director command stamped on page %s (%s lines, signature=%s)',
            page_index + 1,
            len(layout.command_lines),
            layout.signature_placed,
        )
        return to_data_uri(doc)
    finally:
        doc.close()
