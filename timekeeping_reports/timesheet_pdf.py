from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from io import BytesIO
from pathlib import Path
from typing import Any, List, Optional, Sequence, Tuple

from reportlab.lib import colors
from reportlab.lib.pagesizes import letter
from reportlab.lib.utils import simpleSplit
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen import canvas

from timekeeping.classification import DEFAULT_RANKS, ClassificationRanks, EmployeeGroup, group_and_sort_by_employee
from timekeeping.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_HEADING = "Electrical Construction Timesheet"
FONT = "Helvetica"
FONT_BOLD = "Helvetica-Bold"


@dataclass(frozen=True)
class TimesheetLine:
    employee_id: str
    employee_name: str
    classification: Optional[str]
    project_name: str
    project_number: Optional[str]
    hours_worked: float
    work_type: str = "Regular"
    task_performed: Optional[str] = None
    description: Optional[str] = None


@dataclass(frozen=True)
class TimesheetDocument:
    id: str
    date: date
    status: str
    created_by: str
    title: Optional[str] = None
    notes: Optional[str] = None
    lines: Tuple[TimesheetLine, ...] = ()


@dataclass(frozen=True)
class PageGeometry:
    """Vertical layout in points measured down from the top edge."""

    width: float = letter[0]
    height: float = letter[1]
    left: float = 50.0
    right: float = 562.0
    content_top: float = 50.0
    content_bottom: float = 700.0
    footer_y: float = 722.0
    group_header_height: float = 15.0
    column_header_height: float = 20.0
    entry_height: float = 20.0
    subtotal_height: float = 25.0
    separator_height: float = 15.0
    grand_total_height: float = 20.0


# Column x positions for entry rows: project, hours, work type, task.
COLUMNS = (50.0, 250.0, 310.0, 390.0)
COLUMN_WIDTHS = (190.0, 55.0, 75.0, 172.0)


@dataclass(frozen=True)
class LayoutRow:
    kind: str
    cells: Tuple[str, ...]
    y: float
    height: float
    employee_id: Optional[str] = None


@dataclass
class PageLayout:
    number: int
    rows: List[LayoutRow] = field(default_factory=list)

    def rows_of(self, kind: str) -> List[LayoutRow]:
        return [row for row in self.rows if row.kind == kind]


def _fmt_hours(value: float) -> str:
    return f"{value:.2f}"


def _fmt_date(value: date) -> str:
    return value.strftime("%A, %B %d, %Y")


def _group_label(group: EmployeeGroup) -> str:
    first = group.entries[0]
    return f"{first.employee_name} ({first.classification or 'Unclassified'})"


def _project_label(line: TimesheetLine) -> str:
    if line.project_number:
        return f"{line.project_name} ({line.project_number})"
    return line.project_name


class _Cursor:
    """Running vertical position; opens a new page when a row would not fit."""

    def __init__(self, geometry: PageGeometry) -> None:
        self.geometry = geometry
        self.pages: List[PageLayout] = [PageLayout(number=1)]
        self.y = geometry.content_top

    @property
    def page(self) -> PageLayout:
        return self.pages[-1]

    def fits(self, height: float) -> bool:
        return self.y + height <= self.geometry.content_bottom

    def new_page(self) -> None:
        self.pages.append(PageLayout(number=len(self.pages) + 1))
        self.y = self.geometry.content_top

    def place(self, kind: str, cells: Sequence[str], height: float, employee_id: Optional[str] = None) -> bool:
        """Append a row, returning True if a page break happened first."""

        broke = False
        if not self.fits(height) and self.page.rows:
            self.new_page()
            broke = True
        self.page.rows.append(LayoutRow(kind=kind, cells=tuple(cells), y=self.y, height=height, employee_id=employee_id))
        self.y += height
        return broke


def _layout_header(cursor: _Cursor, document: TimesheetDocument, heading: str) -> None:
    geometry = cursor.geometry
    cursor.place("heading", [heading], 30.0)
    cursor.place("meta", [f"Date: {_fmt_date(document.date)}"], 15.0)
    cursor.place("meta", [f"Status: {document.status}"], 15.0)
    cursor.place("meta", [f"Created By: {document.created_by}"], 15.0)
    if document.title:
        cursor.place("meta", [f"Title: {document.title}"], 15.0)
    cursor.place("rule", [], geometry.separator_height)
    if document.notes:
        cursor.place("section", ["Notes:"], 15.0)
        width = geometry.right - geometry.left
        for line in simpleSplit(document.notes, FONT, 10, width) or [""]:
            cursor.place("notes", [line], 13.0)
        cursor.place("rule", [], geometry.separator_height)
    cursor.place("section", ["Time Entries"], 20.0)


def _layout_group_heading(cursor: _Cursor, group: EmployeeGroup, continued: bool = False) -> None:
    geometry = cursor.geometry
    label = _group_label(group) + (" (continued)" if continued else "")
    cursor.place("group_header", [label], geometry.group_header_height, group.employee_id)
    cursor.place("column_header", ["Project", "Hours", "Work Type", "Task"], geometry.column_header_height, group.employee_id)


def _layout_group(cursor: _Cursor, group: EmployeeGroup) -> None:
    geometry = cursor.geometry
    # Keep the group heading together with at least its first row.
    lead = geometry.group_header_height + geometry.column_header_height + geometry.entry_height
    if not cursor.fits(lead) and cursor.page.rows:
        cursor.new_page()
    _layout_group_heading(cursor, group)

    for line in group.entries:
        if not cursor.fits(geometry.entry_height):
            cursor.new_page()
            _layout_group_heading(cursor, group, continued=True)
        cursor.place(
            "entry",
            [
                _project_label(line),
                _fmt_hours(float(line.hours_worked)),
                line.work_type or "Regular",
                line.task_performed or line.description or "-",
            ],
            geometry.entry_height,
            group.employee_id,
        )

    cursor.place(
        "subtotal",
        [f"Total Hours: {_fmt_hours(group.subtotal.total_hours)}"],
        geometry.subtotal_height,
        group.employee_id,
    )
    cursor.place("rule", [], geometry.separator_height)


def layout_timesheet(
    document: TimesheetDocument,
    ranks: ClassificationRanks = DEFAULT_RANKS,
    geometry: PageGeometry = PageGeometry(),
    heading: str = DEFAULT_HEADING,
) -> List[PageLayout]:
    """First pass: lay every row out on pages; footers are not part of it."""

    cursor = _Cursor(geometry)
    _layout_header(cursor, document, heading)

    groups = group_and_sort_by_employee(document.lines, ranks)
    grand_total = 0.0
    for group in groups:
        _layout_group(cursor, group)
        grand_total += group.subtotal.total_hours

    cursor.place("grand_total", [f"Grand Total: {_fmt_hours(grand_total)} hours"], geometry.grand_total_height)
    return cursor.pages


def footer_text(page_number: int, total_pages: int, generated_at: Optional[datetime] = None) -> str:
    text = f"Page {page_number} of {total_pages}"
    if generated_at is not None:
        text += f" | Generated on {generated_at.strftime('%Y-%m-%d %H:%M')}"
    return text


def _fit(text: str, font: str, size: float, width: float) -> str:
    if stringWidth(text, font, size) <= width:
        return text
    while text and stringWidth(text + "...", font, size) > width:
        text = text[:-1]
    return text + "..."


def _draw_row(c: Any, row: LayoutRow, geometry: PageGeometry) -> None:
    # Rows are laid out top-down; reportlab's origin is bottom-left.
    baseline = geometry.height - row.y - 10
    if row.kind == "heading":
        c.setFont(FONT_BOLD, 20)
        c.drawCentredString(geometry.width / 2, geometry.height - row.y - 20, row.cells[0])
    elif row.kind in ("meta", "notes"):
        c.setFont(FONT, 10)
        c.drawString(geometry.left, baseline, row.cells[0])
    elif row.kind == "section":
        c.setFont(FONT_BOLD, 12)
        c.drawString(geometry.left, baseline, row.cells[0])
    elif row.kind == "rule":
        line_y = geometry.height - row.y - row.height / 2
        c.setStrokeColor(colors.black)
        c.line(geometry.left, line_y, geometry.right, line_y)
    elif row.kind == "group_header":
        c.setFont(FONT_BOLD, 11)
        c.drawString(geometry.left, baseline, row.cells[0])
    elif row.kind == "column_header":
        c.setFont(FONT_BOLD, 9)
        for x, text in zip(COLUMNS, row.cells):
            c.drawString(x, baseline, text)
        rule_y = geometry.height - row.y - row.height + 3
        c.setStrokeColor(colors.lightgrey)
        c.line(geometry.left, rule_y, geometry.right, rule_y)
    elif row.kind == "entry":
        c.setFont(FONT, 9)
        for x, width, text in zip(COLUMNS, COLUMN_WIDTHS, row.cells):
            c.drawString(x, baseline, _fit(text, FONT, 9, width))
    elif row.kind == "subtotal":
        c.setFont(FONT_BOLD, 10)
        c.drawString(geometry.left, baseline, row.cells[0])
    elif row.kind == "grand_total":
        c.setFont(FONT_BOLD, 12)
        c.drawString(geometry.left, baseline, row.cells[0])


def _draw_footer(c: Any, text: str, geometry: PageGeometry) -> None:
    c.setFont(FONT, 8)
    c.setFillColor(colors.grey)
    c.drawCentredString(geometry.width / 2, geometry.height - geometry.footer_y, text)
    c.setFillColor(colors.black)


def render_timesheet_pdf(
    document: TimesheetDocument,
    ranks: ClassificationRanks = DEFAULT_RANKS,
    geometry: PageGeometry = PageGeometry(),
    heading: str = DEFAULT_HEADING,
    generated_at: Optional[datetime] = None,
) -> bytes:
    pages = layout_timesheet(document, ranks, geometry, heading)
    total_pages = len(pages)

    buffer = BytesIO()
    c = canvas.Canvas(buffer, pagesize=(geometry.width, geometry.height))
    c.setTitle(document.title or f"Timesheet {document.date.isoformat()}")
    for page in pages:
        for row in page.rows:
            _draw_row(c, row, geometry)
        _draw_footer(c, footer_text(page.number, total_pages, generated_at), geometry)
        c.showPage()
    c.save()

    logger.info("timesheet_pdf_rendered", timesheet_id=document.id, pages=total_pages, entries=len(document.lines))
    return buffer.getvalue()


def export_timesheet_pdf(document: TimesheetDocument, output_path: Path, **options: Any) -> Path:
    content = render_timesheet_pdf(document, **options)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_bytes(content)
    return output_path
