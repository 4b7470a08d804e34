from __future__ import annotations

from pathlib import Path

import pymupdf as fitz
import pytest
import reportlab

from schooldesk.adapters.assets import AssetConfig, AssetLoader, FontBundle, clear_asset_cache
from schooldesk.config import get_settings
from schooldesk.pdf.canvas import PageCanvas, new_document, new_page
from schooldesk.pdf.codec import encode_data_uri
from schooldesk.pdf.stamping import ThaiFonts, embed_thai_fonts


FONT_DIR = Path(reportlab.__file__).parent / 'fonts'
REGULAR_FONT = FONT_DIR / 'Vera.ttf'
BOLD_FONT = FONT_DIR / 'VeraBd.ttf'


class FixedWidthMetrics:
    """Every character is ``advance`` points wide, whatever the size."""

    def __init__(self, advance: float = 10.0):
        self.advance = advance

    def width_of(self, text: str, size: float) -> float:
        return len(text) * self.advance


class RecordingSurface:
    def __init__(self):
        self.calls: list[tuple[str, float, float]] = []

    def draw_text(self, text, x, y, *, size, font, color=None) -> None:
        self.calls.append((text, x, y))


def make_png(width: int = 40, height: int = 20) -> bytes:
    pixmap = fitz.Pixmap(fitz.csRGB, fitz.IRect(0, 0, width, height), False)
    pixmap.clear_with(200)
    return pixmap.tobytes('png')


def make_pdf(page_count: int = 1) -> bytes:
    doc = fitz.open()
    try:
        for _ in range(page_count):
            doc.new_page(width=595, height=842)
        return doc.tobytes()
    finally:
        doc.close()


@pytest.fixture(autouse=True)
def _isolated_assets():
    clear_asset_cache()
    yield
    clear_asset_cache()


@pytest.fixture
def settings_env(tmp_path, monkeypatch):
    """Point the settings at local fonts and a throwaway data dir."""
    monkeypatch.setenv('DATA_DIR', str(tmp_path / 'data'))
    monkeypatch.setenv('FONT_REGULAR_PATH', str(REGULAR_FONT))
    monkeypatch.setenv('FONT_BOLD_PATH', str(BOLD_FONT))
    monkeypatch.setenv('EMBLEM_URL', '')
    monkeypatch.delenv('TELEGRAM_BOT_TOKEN', raising=False)
    monkeypatch.delenv('BOT_TOKEN', raising=False)
    get_settings.cache_clear()
    yield get_settings()
    get_settings.cache_clear()


@pytest.fixture
def asset_loader() -> AssetLoader:
    return AssetLoader(
        AssetConfig(
            font_regular_url=None,
            font_bold_url=None,
            font_regular_path=REGULAR_FONT,
            font_bold_path=BOLD_FONT,
            emblem_url=None,
        )
    )


@pytest.fixture
def blank_canvas():
    doc = new_document()
    canvas = PageCanvas(new_page(doc))
    yield canvas
    doc.close()


@pytest.fixture
def fonts(blank_canvas) -> ThaiFonts:
    bundle = FontBundle(regular=REGULAR_FONT.read_bytes(), bold=BOLD_FONT.read_bytes())
    return embed_thai_fonts(blank_canvas, bundle)


@pytest.fixture
def png_data_uri() -> str:
    return encode_data_uri(make_png(), 'image/png')


@pytest.fixture
def broken_png_data_uri() -> str:
    return encode_data_uri(b'definitely not a png', 'image/png')
