"""
Report file writers: CSV (stdlib csv), Excel (openpyxl) and PDF (reportlab).

Each writer takes a ``ReportTable`` and a target path and writes exactly one
file.  The PDF writer lays the table out by hand: proportional column widths
with per-column minimums (``compute_column_widths``), truncated cell text,
and a header row repeated on every page.
"""

from __future__ import annotations

import csv
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen import canvas


@dataclass
class ReportTable:
    title: str
    fields: list[str]
    headers: list[str]
    rows: list[dict]
    metadata: dict[str, str] = field(default_factory=dict)
    pdf_headers: list[str] | None = None

    def cell(self, row: dict, name: str) -> str:
        value = row.get(name)
        return "" if value is None else str(value)


# ── CSV ─────────────────────────────────────────────────────────────
def write_csv(table: ReportTable, path: Path) -> None:
    with path.open("w", newline="", encoding="utf-8") as fh:
        writer = csv.writer(fh)
        writer.writerow(table.headers)
        for row in table.rows:
            writer.writerow([table.cell(row, f) for f in table.fields])


# ── Excel ───────────────────────────────────────────────────────────
HEADER_FILL = PatternFill(fill_type="solid", fgColor="D3D3D3")
ZEBRA_FILL = PatternFill(fill_type="solid", fgColor="F5F8FA")
TITLE_FONT = Font(bold=True, size=16)
HEADER_FONT = Font(bold=True)
MUTED_FONT = Font(italic=True, color="555555")
THIN_SIDE = Side(style="thin", color="B0B7BF")
THIN_BORDER = Border(left=THIN_SIDE, right=THIN_SIDE, top=THIN_SIDE, bottom=THIN_SIDE)
MAX_EXCEL_WIDTH = 50


def _auto_width(ws: Worksheet, header_row: int) -> None:
    for column_cells in ws.iter_cols(min_row=header_row, max_row=ws.max_row):
        col_letter = get_column_letter(column_cells[0].column)
        longest = max((len(str(c.value)) for c in column_cells if c.value is not None), default=0)
        ws.column_dimensions[col_letter].width = min(max(12, longest + 2), MAX_EXCEL_WIDTH)


def write_excel(table: ReportTable, path: Path) -> None:
    wb = Workbook()
    ws = wb.active
    ws.title = table.title[:31]

    ws.append([table.title])
    ws.cell(row=1, column=1).font = TITLE_FONT
    for key, value in table.metadata.items():
        ws.append([f"{key}: {value}"])
        ws.cell(row=ws.max_row, column=1).font = MUTED_FONT
    ws.append([])

    ws.append(table.headers)
    header_row = ws.max_row
    for cell in ws[header_row]:
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.border = THIN_BORDER
        cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)

    for row in table.rows:
        ws.append([row.get(f, "") for f in table.fields])
        row_idx = ws.max_row
        for col_idx in range(1, len(table.fields) + 1):
            cell = ws.cell(row=row_idx, column=col_idx)
            cell.border = THIN_BORDER
            if (row_idx - header_row) % 2 == 0:
                cell.fill = ZEBRA_FILL

    ws.freeze_panes = f"A{header_row + 1}"
    _auto_width(ws, header_row)
    wb.save(path)


# ── PDF column widths ───────────────────────────────────────────────
MIN_COLUMN_WIDTHS: dict[str, float] = {
    "email": 165,
    "leaveType": 100,
    "status": 70,
    "reason": 130,
    "appliedDate": 80,
    "startDate": 80,
    "endDate": 80,
    "checkIn": 90,
    "checkOut": 90,
    "date": 100,
    "duration": 60,
    "employeeName": 150,
    "employeeCode": 70,
    "department": 100,
    "workHours": 60,
}
DEFAULT_MIN_WIDTH = 50.0
# Columns that keep a readable width even when everything else is squeezed
CRITICAL_MIN_WIDTHS: dict[str, float] = {
    "employeeName": 140,
    "email": 150,
    "date": 80,
    "checkIn": 80,
    "checkOut": 80,
}
SHRINK_FLOOR = 40.0
SQUEEZE_FLOOR = 35.0


def compute_column_widths(
    fields: Sequence[str],
    headers: Sequence[str],
    rows: Sequence[dict],
    page_width: float,
    padding: float = 8.0,
) -> list[float]:
    """Allocate *page_width* across columns.

    1. Weight each column by its average content length (at least the header
       length) and share the page proportionally.
    2. Raise every column to its minimum width.
    3. If the table plus per-column padding overflows, shrink non-critical
       columns proportionally down to ``SHRINK_FLOOR``.
    4. If that is still not enough, pin critical columns to their critical
       minimums and squeeze the rest into what is left (``SQUEEZE_FLOOR``).
    """
    if not fields:
        return []

    weights: list[float] = []
    for name, header in zip(fields, headers):
        lengths = [len("" if r.get(name) is None else str(r.get(name))) for r in rows]
        average = sum(lengths) / len(lengths) if lengths else 0.0
        weights.append(max(average, float(len(header)), 1.0))
    total_weight = sum(weights)

    widths = [
        max(page_width * w / total_weight, MIN_COLUMN_WIDTHS.get(name, DEFAULT_MIN_WIDTH))
        for name, w in zip(fields, weights)
    ]

    available = page_width - padding * len(fields)
    excess = sum(widths) - available
    if excess <= 0:
        return widths

    critical = [name in CRITICAL_MIN_WIDTHS for name in fields]
    adjustable = sum(
        w - SHRINK_FLOOR for w, is_critical in zip(widths, critical)
        if not is_critical and w > SHRINK_FLOOR
    )
    if adjustable >= excess:
        ratio = excess / adjustable
        return [
            w if is_critical or w <= SHRINK_FLOOR else w - (w - SHRINK_FLOOR) * ratio
            for w, is_critical in zip(widths, critical)
        ]

    pinned = sum(CRITICAL_MIN_WIDTHS[name] for name, c in zip(fields, critical) if c)
    remaining = available - pinned
    flexible_total = sum(w for w, c in zip(widths, critical) if not c)
    result: list[float] = []
    for name, w, is_critical in zip(fields, widths, critical):
        if is_critical:
            result.append(CRITICAL_MIN_WIDTHS[name])
        else:
            share = remaining * w / flexible_total if flexible_total > 0 else 0.0
            result.append(max(SQUEEZE_FLOOR, share))
    return result


# ── PDF ─────────────────────────────────────────────────────────────
PAGE_SIZE = landscape(A4)
MARGIN = 30.0
COLUMN_PADDING = 8.0
ROW_HEIGHT = 16.0
HEADER_HEIGHT = 20.0
BODY_FONT = ("Helvetica", 8)
HEADER_FONT_PDF = ("Helvetica-Bold", 8.5)


def fit_text(text: str, width: float, font: str, size: float) -> str:
    """Trim *text* with an ellipsis so it renders within *width* points."""
    if stringWidth(text, font, size) <= width:
        return text
    ellipsis = "..."
    while text and stringWidth(text + ellipsis, font, size) > width:
        text = text[:-1]
    return text + ellipsis if text else ""


class _PdfTableWriter:
    def __init__(self, table: ReportTable, path: Path) -> None:
        self.table = table
        self.canvas = canvas.Canvas(str(path), pagesize=PAGE_SIZE)
        self.page_width, self.page_height = PAGE_SIZE
        self.usable_width = self.page_width - 2 * MARGIN
        headers = table.pdf_headers or table.headers
        self.headers = headers
        self.widths = compute_column_widths(
            table.fields, headers, table.rows, self.usable_width, COLUMN_PADDING
        )
        self.y = self.page_height - MARGIN
        self.page = 1

    def _draw_title(self) -> None:
        c = self.canvas
        c.setFont("Helvetica-Bold", 18)
        c.drawCentredString(self.page_width / 2, self.y - 18, self.table.title)
        self.y -= 34
        c.setFont("Helvetica", 9)
        for key, value in self.table.metadata.items():
            c.drawString(MARGIN, self.y, f"{key}: {value}")
            self.y -= 12
        self.y -= 8

    def _draw_header_row(self) -> None:
        c = self.canvas
        c.setFillColor(colors.HexColor("#D3D3D3"))
        c.rect(MARGIN, self.y - HEADER_HEIGHT, self.usable_width, HEADER_HEIGHT, stroke=0, fill=1)
        c.setFillColor(colors.black)
        c.setFont(*HEADER_FONT_PDF)
        x = MARGIN
        for header, width in zip(self.headers, self.widths):
            c.drawString(x + 2, self.y - 13, fit_text(header, width - 2, *HEADER_FONT_PDF))
            x += width + COLUMN_PADDING
        self.y -= HEADER_HEIGHT

    def _draw_footer(self) -> None:
        self.canvas.setFont("Helvetica", 8)
        self.canvas.drawRightString(
            self.page_width - MARGIN, MARGIN / 2, f"Page {self.page}"
        )

    def _new_page(self) -> None:
        self._draw_footer()
        self.canvas.showPage()
        self.page += 1
        self.y = self.page_height - MARGIN
        self._draw_header_row()

    def write(self) -> None:
        c = self.canvas
        c.setTitle(self.table.title)
        self._draw_title()
        self._draw_header_row()

        if not self.table.rows:
            c.setFont("Helvetica-Oblique", 9)
            c.drawString(MARGIN, self.y - 14, "No records found for the selected filters.")

        for index, row in enumerate(self.table.rows):
            if self.y - ROW_HEIGHT < MARGIN:
                self._new_page()
            if index % 2 == 1:
                c.setFillColor(colors.HexColor("#F5F8FA"))
                c.rect(MARGIN, self.y - ROW_HEIGHT, self.usable_width, ROW_HEIGHT, stroke=0, fill=1)
                c.setFillColor(colors.black)
            c.setFont(*BODY_FONT)
            x = MARGIN
            for name, width in zip(self.table.fields, self.widths):
                c.drawString(x + 2, self.y - 11, fit_text(self.table.cell(row, name), width - 2, *BODY_FONT))
                x += width + COLUMN_PADDING
            self.y -= ROW_HEIGHT

        self._draw_footer()
        c.save()


def write_pdf(table: ReportTable, path: Path) -> None:
    _PdfTableWriter(table, path).write()


WRITERS = {
    "csv": (write_csv, "csv", "text/csv"),
    "excel": (
        write_excel,
        "xlsx",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ),
    "pdf": (write_pdf, "pdf", "application/pdf"),
}
