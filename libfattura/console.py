"""Render page descriptions on a terminal using Rich.

Mirrors the PDF layout: header, party panels side by side, cause, line table,
attachments, then payment details and the recap panel aligned to the right.
"""

from __future__ import annotations

from collections.abc import Iterable

from rich import box
from rich.align import Align
from rich.columns import Columns
from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .renderer import PageDescription, PartyBlock, TableBlock

DEFAULT_CONSOLE = Console()

_JUSTIFY = {"L": "left", "R": "right", "C": "center"}


class ConsoleRenderer:
    """Print PageDescriptions as Rich panels and tables."""

    def __init__(self, console: Console) -> None:
        self.console = console

    # ---------- high level ----------
    def render(self, page: PageDescription) -> None:
        self.console.print(self._build_title(page))
        self.console.print(self._build_parties(page))
        if page.cause is not None:
            self.console.print(Panel(Text(page.cause.text), title=page.cause.title, title_align="left"))
        self.console.print(self._build_table(page.lines, page.theme.primary))
        if page.attachments is not None:
            self.console.print(self._build_table(page.attachments, page.theme.primary))

        details = []
        if page.stamp_duty is not None:
            details.append(Panel(Text(page.stamp_duty.text), title=page.stamp_duty.title, padding=(0, 1)))
        if page.payment is not None:
            details.append(Panel(Text("\n".join(page.payment.lines)), title=page.payment.title, padding=(0, 1)))
        if details:
            self.console.print(Group(*details))

        self.console.print(Align.right(self._build_recap(page)))
        if page.footer:
            self.console.print(Align.center(Text(page.footer, style=page.theme.footer_text)))

    # ---------- builders ----------
    def _build_title(self, page: PageDescription) -> Panel:
        header = page.header
        text = Text(f"{header.number_label}: {header.number}   {header.date_label}: {header.date}", style="bold")
        return Panel(Align.right(text), style=page.theme.primary, padding=(0, 1))

    def _party_panel(self, block: PartyBlock, primary: str) -> Panel:
        text = Text(block.name + "\n", style=f"bold {primary}")
        text.append("\n".join(block.lines), style="default")
        return Panel(text, title=block.role, title_align="left", padding=(0, 1))

    def _build_parties(self, page: PageDescription) -> Group:
        rows = [
            Columns([self._party_panel(block, page.theme.primary) for block in row], expand=True, equal=True)
            for row in page.party_rows
        ]
        return Group(*rows)

    def _build_table(self, block: TableBlock, header_color: str) -> Table:
        table = Table(
            title=block.title,
            title_justify="left",
            box=box.HEAVY_HEAD,
            show_header=True,
            header_style=f"bold white on {header_color}",
            expand=True,
        )
        for column in block.columns:
            table.add_column(column.label, justify=_JUSTIFY.get(column.align, "left"), ratio=int(column.width * 100))
        for row in block.rows:
            table.add_row(*row)
        return table

    def _build_recap(self, page: PageDescription) -> Panel:
        t = Table(box=box.SIMPLE_HEAVY, show_header=False, expand=False)
        t.add_column("", justify="left")
        t.add_column("", justify="right")
        for row in page.recap:
            if row.emphasis:
                t.add_row(Text(row.label, style="bold"), Text(row.value, style="bold"))
            else:
                t.add_row(row.label, row.value)
        return Panel(t, style=f"white on {page.theme.primary}", padding=(0, 1))


def print_pages(pages: Iterable[PageDescription], console: Console | None = None) -> None:
    """Print every page, separated by a rule."""
    target_console = console or DEFAULT_CONSOLE
    renderer = ConsoleRenderer(target_console)
    for index, page in enumerate(pages):
        if index:
            target_console.rule()
        renderer.render(page)
