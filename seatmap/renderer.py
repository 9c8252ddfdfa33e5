import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas

logger = logging.getLogger(__name__)

ELLIPSIS = "..."


@dataclass
class PageConfig:
    page_size: Tuple[float, float] = landscape(A4)
    margin_x: float = 15 * mm
    margin_bottom: float = 15 * mm
    grid_top: float = 32 * mm
    max_cell_width: float = 35 * mm
    max_cell_height: float = 30 * mm
    min_cell_width: float = 12 * mm
    min_cell_height: float = 10 * mm
    name_limit: int = 18
    board_label: str = "BOARD"
    # photos are skipped in cells shorter than this
    min_photo_cell_height: float = 18 * mm


@dataclass
class SeatCell:
    row: int
    col: int
    x: float
    y: float
    width: float
    height: float
    font_size: float
    student_id: Any = None
    label: Optional[str] = None
    annotation: Optional[str] = None
    image: Any = None
    photo_failed: bool = False

    @property
    def is_empty(self):
        return self.label is None


@dataclass
class SeatingDocument:
    page_width: float
    page_height: float
    title: str
    subtitle: str
    board: Tuple[float, float, float, float]
    board_label: str
    rows: int
    cols: int
    cells: List[SeatCell] = field(default_factory=list)

    def cell(self, row, col):
        return self.cells[row * self.cols + col]


def truncate_name(name, limit):
    if len(name) <= limit:
        return name
    return name[:limit] + ELLIPSIS


def leader_annotation(student):
    if student.is_leader:
        return "(L)"
    if student.is_vice_leader:
        return "(VL)"
    return None


def fit_cell_size(available, count, minimum, maximum):
    """
    Largest size up to ``maximum`` that lets ``count`` cells fit in
    ``available``. Going below ``minimum`` is allowed (with a warning)
    since the grid must stay on the page.
    """
    size = min(maximum, available / count)
    if size < minimum:
        logger.warning(f"{count} cells need {size / mm:.1f}mm each, below the {minimum / mm:.1f}mm minimum")
    return size


class LayoutRenderer:
    """
    Turns a seat map into a one page ``SeatingDocument``.

    ``asset_resolver`` maps a photo reference to something reportlab can
    draw; when it fails the cell keeps the name only.
    """

    def __init__(self, page_config=None, asset_resolver=None):
        self.page_config = page_config or PageConfig()
        self.asset_resolver = asset_resolver

    def render(self, layout, roster_lookup, title="Seating Chart", subtitle=""):
        if hasattr(layout, "serialize"):
            layout = layout.serialize()
        rows, cols, seats = layout["rows"], layout["cols"], layout["seats"]
        cfg = self.page_config
        page_width, page_height = cfg.page_size

        cell_width = fit_cell_size(page_width - 2 * cfg.margin_x, cols, cfg.min_cell_width, cfg.max_cell_width)
        cell_height = fit_cell_size(
            page_height - cfg.grid_top - cfg.margin_bottom, rows, cfg.min_cell_height, cfg.max_cell_height
        )
        font_size = max(4, min(7, cell_height * 0.2))
        start_x = (page_width - cols * cell_width) / 2
        top = page_height - cfg.grid_top

        document = SeatingDocument(
            page_width=page_width,
            page_height=page_height,
            title=title,
            subtitle=subtitle,
            board=(page_width / 2 - 40 * mm, page_height - 28 * mm, 80 * mm, 6 * mm),
            board_label=cfg.board_label,
            rows=rows,
            cols=cols,
        )

        for row in range(rows):
            for col in range(cols):
                cell = SeatCell(
                    row=row,
                    col=col,
                    x=start_x + col * cell_width,
                    y=top - (row + 1) * cell_height,
                    width=cell_width,
                    height=cell_height,
                    font_size=font_size,
                )
                student_id = seats[row][col]
                if student_id is not None:
                    self._fill_cell(cell, student_id, roster_lookup)
                document.cells.append(cell)

        return document

    def _fill_cell(self, cell, student_id, roster_lookup):
        student = roster_lookup(student_id)
        if student is None:
            logger.warning(f"Seat ({cell.row}, {cell.col}) holds {student_id!r} which is not on the roster")
            return

        cell.student_id = student_id
        cell.label = truncate_name(student.name, self.page_config.name_limit)
        cell.annotation = leader_annotation(student)

        if not student.photo_ref or self.asset_resolver is None:
            return
        if cell.height < self.page_config.min_photo_cell_height:
            return
        try:
            cell.image = self.asset_resolver(student.photo_ref)
        except Exception as e:
            cell.photo_failed = True
            logger.warning(f"Photo {student.photo_ref!r} for {student_id!r} could not be loaded: {e}")


def write_pdf(document, target):
    """Draw ``document`` on a single PDF page. ``target`` is a path or binary file object."""
    c = canvas.Canvas(target, pagesize=(document.page_width, document.page_height))
    c.setTitle(document.title)
    width, height = document.page_width, document.page_height

    c.setFont("Helvetica-Bold", 16)
    c.drawCentredString(width / 2, height - 12 * mm, document.title)
    if document.subtitle:
        c.setFont("Helvetica", 10)
        c.drawCentredString(width / 2, height - 18 * mm, document.subtitle)

    bx, by, bw, bh = document.board
    c.setFillGray(0.8)
    c.rect(bx, by, bw, bh, stroke=0, fill=1)
    c.setFillGray(0)
    c.setFont("Helvetica", 8)
    c.drawCentredString(bx + bw / 2, by + 2 * mm, document.board_label)

    for cell in document.cells:
        _draw_cell(c, cell)

    c.showPage()
    c.save()
    return target


def _draw_cell(c, cell):
    c.setStrokeGray(0.7)
    if cell.is_empty:
        c.setDash(2, 2)
        c.rect(cell.x, cell.y, cell.width, cell.height, stroke=1, fill=0)
        c.setDash()
        return
    c.rect(cell.x, cell.y, cell.width, cell.height, stroke=1, fill=0)

    center_x = cell.x + cell.width / 2
    text_y = cell.y + cell.height / 2

    if cell.image is not None:
        pad = 1 * mm
        photo_height = cell.height * 0.6
        try:
            c.drawImage(
                cell.image,
                cell.x + pad,
                cell.y + cell.height - photo_height - pad,
                cell.width - 2 * pad,
                photo_height - pad,
                preserveAspectRatio=True,
                mask="auto",
            )
            text_y = cell.y + (cell.height - photo_height) / 2
        except Exception as e:
            logger.warning(f"Could not draw photo in seat ({cell.row}, {cell.col}): {e}")

    c.setFont("Helvetica", cell.font_size)
    c.drawCentredString(center_x, text_y, cell.label)
    if cell.annotation:
        c.setFont("Helvetica", cell.font_size - 1)
        c.drawCentredString(center_x, text_y - cell.font_size - 1, cell.annotation)
