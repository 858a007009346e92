"""Draw page descriptions into an A4 PDF with fpdf2.

Each PageDescription starts on a new page. A long line table continues on a
new physical page with its header repeated; the footer area (stamp duty,
payment details and recap box) is anchored to the bottom of the last page of
the installment. Text columns wrap inside their cell and a row grows to its
tallest cell; amounts stay on one line.
"""

from __future__ import annotations

import io
import logging
from collections.abc import Iterable
from pathlib import Path
from typing import BinaryIO

from fpdf import FPDF

from .renderer import Column, DetailsBlock, PageDescription, PartyBlock, TableBlock, TextBlock
from .theme import Theme, hex_to_rgb

logger = logging.getLogger(__name__)

MARGIN = 10.5
BOTTOM_MARGIN = 10.5
BAND_HEIGHT = 5.0
LINE_HEIGHT = 4.5
ROW_HEIGHT = 7.0
RECAP_ROW_HEIGHT = 7.0
FOOTER_HEIGHT = 6.0
WHITE = (255, 255, 255)


class InvoicePDF(FPDF):
    """FPDF document drawing one installment per logical page."""

    def __init__(self, font_path: Path | None = None):
        super().__init__(orientation="P", unit="mm", format="A4")
        self.set_margins(MARGIN, MARGIN, MARGIN)
        self.set_auto_page_break(auto=True, margin=BOTTOM_MARGIN)
        self.logical_pages: dict[str, int] = {}
        self._register_fonts(font_path)

    def _register_fonts(self, font_path: Path | None) -> None:
        if font_path is not None:
            self.add_font("Body", "", str(font_path))
            self.add_font("Body", "B", str(font_path))
            self._body_font = self._bold_font = self._mono_font = "Body"
            self._uses_core_fonts = False
        else:
            # Windows-1252 covers the euro and pound signs
            self.core_fonts_encoding = "windows-1252"
            self._body_font = self._bold_font = "helvetica"
            self._mono_font = "courier"
            self._uses_core_fonts = True

    # ---------- helpers ----------
    def _safe(self, text: str) -> str:
        if self._uses_core_fonts:
            return text.encode("windows-1252", "replace").decode("windows-1252")
        return text

    def _wrap(self, text: str, width: float) -> list[str]:
        """Split text into the lines a multi_cell of ``width`` would draw."""
        lines = self.multi_cell(width, LINE_HEIGHT, self._safe(text), dry_run=True, output="LINES")
        return list(lines) if lines else [""]

    def _fit(self, text: str, width: float) -> str:
        """Truncate single-line text (amounts, labels) with an ellipsis to fit ``width``."""
        text = self._safe(text)
        available = width - 2 * self.c_margin
        if self.get_string_width(text) <= available:
            return text
        while text and self.get_string_width(text + "...") > available:
            text = text[:-1]
        return text + "..."

    def _font(self, size: float, bold: bool = False, mono: bool = False) -> None:
        family = self._mono_font if mono else (self._bold_font if bold else self._body_font)
        style = "B" if bold and not mono else ""
        self.set_font(family, style, size)

    def _color(self, color: str) -> None:
        self.set_text_color(*hex_to_rgb(color))

    def _hr(self, theme: Theme) -> None:
        self.ln(4)
        self.set_draw_color(*hex_to_rgb(theme.table_header))
        self.line(self.l_margin, self.get_y(), self.w - self.r_margin, self.get_y())
        self.ln(4)

    def _title(self, text: str, theme: Theme) -> None:
        self._color(theme.text)
        self._font(13, bold=True)
        self.cell(0, 7, self._safe(text), new_x="LMARGIN", new_y="NEXT")

    # ---------- blocks ----------
    def _draw_header(self, page: PageDescription) -> None:
        theme = page.theme
        self.set_fill_color(*hex_to_rgb(theme.primary))
        self.rect(0, 0, self.w, BAND_HEIGHT, style="F")

        self.set_y(BAND_HEIGHT + 7)
        self._color(theme.lighter_text)
        self._font(10)
        header = page.header
        self.cell(0, 5, self._safe(f"{header.number_label}: {header.number}"), align="R", new_x="LMARGIN", new_y="NEXT")
        self.cell(0, 5, self._safe(f"{header.date_label}: {header.date}"), align="R", new_x="LMARGIN", new_y="NEXT")

    def _draw_party(self, block: PartyBlock, x: float, y: float, width: float, theme: Theme) -> float:
        self.set_xy(x, y)
        self._color(theme.text)
        self._font(10, bold=True)
        self.cell(width, 5, self._fit(block.role, width), new_x="LEFT", new_y="NEXT")
        self._color(theme.primary)
        self._font(12)
        self.multi_cell(width, 6, self._safe(block.name), new_x="LEFT", new_y="NEXT")
        self._color(theme.text)
        self._font(10)
        for line in block.lines:
            self.multi_cell(width, LINE_HEIGHT, self._safe(line), new_x="LEFT", new_y="NEXT")
        return self.get_y()

    def _draw_parties(self, page: PageDescription) -> None:
        width = self.epw / 2
        for row in page.party_rows:
            top = self.get_y() + 4
            bottom = top
            for index, block in enumerate(row):
                bottom = max(bottom, self._draw_party(block, self.l_margin + index * width, top, width, page.theme))
            self.set_xy(self.l_margin, bottom)

    def _draw_table_header(self, columns: tuple[Column, ...], theme: Theme) -> None:
        self.set_fill_color(*hex_to_rgb(theme.table_header))
        self._color(theme.text)
        self._font(9, bold=True)
        for column in columns:
            width = self.epw * column.width
            self.cell(width, ROW_HEIGHT + 2, self._fit(column.label, width), align=column.align, fill=True)
        self.ln()

    def _row_cells(self, columns: tuple[Column, ...], row: tuple[str, ...]) -> list[tuple[Column, float, bool, list[str]]]:
        """Lay out one table row: left aligned text wraps, right aligned amounts stay on one line."""
        cells = []
        for index, (column, value) in enumerate(zip(columns, row)):
            width = self.epw * column.width
            mono = column.align == "R" and index > 0
            self._font(9, mono=mono)
            lines = self._wrap(value, width) if column.align == "L" else [self._fit(value, width)]
            cells.append((column, width, mono, lines))
        return cells

    def _draw_table(self, table: TableBlock, theme: Theme) -> None:
        self._draw_table_header(table.columns, theme)
        for row in table.rows:
            cells = self._row_cells(table.columns, row)
            tallest = max(len(lines) for *_, lines in cells)
            row_height = ROW_HEIGHT + LINE_HEIGHT * (tallest - 1)
            if self.get_y() + row_height > self.page_break_trigger:
                self.add_page()
                self._draw_table_header(table.columns, theme)

            top = self.get_y()
            x = self.l_margin
            self._color(theme.text)
            for column, width, mono, lines in cells:
                self._font(9, mono=mono)
                self.set_xy(x, top + (row_height - LINE_HEIGHT * len(lines)) / 2)
                self.multi_cell(width, LINE_HEIGHT, "\n".join(lines), align=column.align, new_x="RIGHT", new_y="TOP")
                x += width
            self.set_draw_color(*hex_to_rgb(theme.lighter_gray))
            self.line(self.l_margin, top + row_height, self.l_margin + self.epw, top + row_height)
            self.set_xy(self.l_margin, top + row_height)

    def _draw_text_block(self, block: TextBlock, theme: Theme) -> None:
        self._title(block.title, theme)
        self._color(theme.text)
        self._font(10)
        self.multi_cell(0, 5, self._safe(block.text), new_x="LMARGIN", new_y="NEXT")

    def _left_footer_height(self, page: PageDescription) -> float:
        height = 0.0
        if page.stamp_duty is not None:
            height += 9 + LINE_HEIGHT * 1.4 + 1
        if page.payment is not None:
            height += 9 + LINE_HEIGHT * 1.4 * len(page.payment.lines)
        return height

    def _draw_details(self, block: DetailsBlock, x: float, width: float, theme: Theme) -> None:
        self.set_x(x)
        self._color(theme.text)
        self._font(12, bold=True)
        self.cell(width, 9, self._fit(block.title, width), new_x="LEFT", new_y="NEXT")
        self._color(theme.lighter_text)
        self._font(10)
        for line in block.lines:
            self.cell(width, LINE_HEIGHT * 1.4, self._fit(line, width), new_x="LEFT", new_y="NEXT")

    def _draw_recap(self, page: PageDescription, x: float, y: float, width: float) -> None:
        theme = page.theme
        height = self._recap_height(page)
        self.set_fill_color(*hex_to_rgb(theme.primary))
        self.rect(x, y, width, height, style="F")
        self.set_text_color(*WHITE)

        label_width = width * 0.4
        value_width = width - label_width - 4
        self.set_xy(x + 2, y + 3)
        for row in page.recap:
            row_height = RECAP_ROW_HEIGHT * (1.6 if row.emphasis else 1)
            self._font(12 if row.emphasis else 9, bold=row.emphasis)
            self.cell(label_width, row_height, self._fit(row.label, label_width))
            self._font(18 if row.emphasis else 10, mono=True)
            self.cell(value_width, row_height, self._fit(row.value, value_width), align="R", new_x="LEFT")
            self.set_xy(x + 2, self.get_y() + row_height)

    def _recap_height(self, page: PageDescription) -> float:
        return 6 + sum(RECAP_ROW_HEIGHT * (1.6 if row.emphasis else 1) for row in page.recap)

    def _draw_footer_area(self, page: PageDescription) -> None:
        footer_height = FOOTER_HEIGHT if page.footer else 0.0
        area_height = max(self._left_footer_height(page), self._recap_height(page))
        top = self.h - BOTTOM_MARGIN - footer_height - area_height

        if self.get_y() + 4 > top:
            self.add_page()

        self.set_auto_page_break(auto=False)
        half = self.epw / 2

        self.set_y(top + area_height - self._left_footer_height(page))
        if page.stamp_duty is not None:
            self._draw_details(
                DetailsBlock(page.stamp_duty.title, (page.stamp_duty.text,)), self.l_margin, half, page.theme
            )
            self.ln(1)
        if page.payment is not None:
            self._draw_details(page.payment, self.l_margin, half, page.theme)

        self._draw_recap(page, self.l_margin + half, top + area_height - self._recap_height(page), half)

        if page.footer:
            self.set_xy(self.l_margin, self.h - BOTTOM_MARGIN - footer_height)
            self._color(page.theme.footer_text)
            self._font(8)
            self.cell(0, footer_height, self._safe(page.footer), align="C")

        self.set_auto_page_break(auto=True, margin=BOTTOM_MARGIN)

    # ---------- page ----------
    def draw_page(self, page: PageDescription) -> None:
        """Draw the whole page (or pages) of one installment."""
        self.add_page()
        self.logical_pages[page.key] = self.page_no()

        self._draw_header(page)
        self._draw_parties(page)

        if page.cause is not None:
            self._hr(page.theme)
            self._draw_text_block(page.cause, page.theme)

        self._hr(page.theme)
        self._title(page.lines.title, page.theme)
        self._draw_table(page.lines, page.theme)

        if page.attachments is not None:
            self.ln(5)
            self._title(page.attachments.title, page.theme)
            self._draw_table(page.attachments, page.theme)

        self._draw_footer_area(page)


def build_pdf(pages: Iterable[PageDescription], font_path: Path | None = None) -> InvoicePDF:
    pdf = InvoicePDF(font_path=font_path)
    for page in pages:
        pdf.draw_page(page)
    logger.debug(f"Laid out {len(pdf.logical_pages)} installment(s) on {pdf.page_no()} page(s)")
    return pdf


def write_pdf(pages: Iterable[PageDescription], stream: BinaryIO, font_path: Path | None = None) -> None:
    """Lay out the pages and write the PDF bytes to ``stream``."""
    stream.write(bytes(build_pdf(pages, font_path).output()))


def render_pdf(pages: Iterable[PageDescription], font_path: Path | None = None) -> io.BytesIO:
    """Lay out the pages into an in-memory stream positioned at its start."""
    stream = io.BytesIO()
    write_pdf(pages, stream, font_path)
    stream.seek(0)
    return stream
