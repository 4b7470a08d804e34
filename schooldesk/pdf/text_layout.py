from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterator, Protocol


class GlyphMetricsProvider(Protocol):
    def width_of(self, text: str, size: float) -> float:
        ...


class TextSurface(Protocol):
    def draw_text(
        self,
        text: str,
        x: float,
        y: float,
        *,
        size: float,
        font: Any,
        color: Any = None,
    ) -> None:
        ...


def iter_wrapped_lines(
    text: str,
    max_width: float,
    font_size: float,
    metrics: GlyphMetricsProvider,
    *,
    first_line_width: float | None = None,
) -> Iterator[str]:
    """Greedy character-wise line breaking.

    Thai has no spaces between words, so a break may fall between any two
    characters. A character is appended while the measured width of the
    candidate line stays strictly below the budget. The first character of a
    line is always kept, so a glyph wider than the budget still makes progress
    as a line of its own.

    ``first_line_width`` gives the first line its own budget (first-line indent);
    every later line uses ``max_width``.
    """
    if not text:
        return
    budget = max_width if first_line_width is None else first_line_width
    current = text[0]
    for char in text[1:]:
        candidate = current + char
        if metrics.width_of(candidate, font_size) < budget:
            current = candidate
            continue
        yield current
        budget = max_width
        current = char
    yield current


def wrap_lines(
    text: str,
    max_width: float,
    font_size: float,
    metrics: GlyphMetricsProvider,
    *,
    first_line_width: float | None = None,
) -> list[str]:
    return list(
        iter_wrapped_lines(
            text,
            max_width,
            font_size,
            metrics,
            first_line_width=first_line_width,
        )
    )


def wrap_multiline(
    text: str,
    max_width: float,
    font_size: float,
    metrics: GlyphMetricsProvider,
) -> list[str]:
    """Wrap each newline-separated segment and concatenate the results."""
    lines: list[str] = []
    for segment in str(text or '').split('\n'):
        lines.extend(iter_wrapped_lines(segment, max_width, font_size, metrics))
    return lines


@dataclass
class ParagraphFlow:
    """Lays out paragraphs in one column, threading the vertical cursor.

    Coordinates use a bottom-left origin: every emitted line lowers the cursor
    by ``line_height`` and ``flow`` returns the cursor below the last line.
    """

    surface: TextSurface
    font: GlyphMetricsProvider
    font_size: float
    margin: float
    column_width: float
    indent: float
    line_height: float
    color: Any = None

    def layout(self, text: str, *, has_indent: bool = True) -> list[tuple[float, str]]:
        first_line_width = self.column_width - (self.indent if has_indent else 0.0)
        placed: list[tuple[float, str]] = []
        lines = iter_wrapped_lines(
            text,
            self.column_width,
            self.font_size,
            self.font,
            first_line_width=first_line_width,
        )
        for index, line in enumerate(lines):
            x = self.margin + self.indent if index == 0 and has_indent else self.margin
            placed.append((x, line))
        return placed

    def flow(self, text: str, start_y: float, has_indent: bool = True) -> float:
        cursor_y = start_y
        for x, line in self.layout(text, has_indent=has_indent):
            self.surface.draw_text(
                line,
                x,
                cursor_y,
                size=self.font_size,
                font=self.font,
                color=self.color,
            )
            cursor_y -= self.line_height
        return cursor_y
