from __future__ import annotations


FONT_LOAD_FAILED_MESSAGE = 'ไม่สามารถโหลดฟอนต์ภาษาไทยได้'


class SchoolDeskError(Exception):
    """Base class for errors raised by the document composers."""


class DecodeError(SchoolDeskError):
    """Malformed base64 or binary payload."""


class ImageEmbedError(DecodeError):
    """Image bytes that cannot be embedded into a page."""


class AssetFetchError(SchoolDeskError):
    """A remote or local asset (font, emblem) could not be retrieved."""

    def __init__(self, message: str, *, source: str | None = None):
        super().__init__(message)
        self.source = source


class SourceDocumentError(SchoolDeskError):
    """The base document or image to be stamped cannot be opened."""
