"""PDF report generator drawn directly on a reportlab canvas."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from reportlab.lib.pagesizes import A3, A4, LEGAL, LETTER, landscape, portrait
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen import canvas

from src.core.config import settings
from src.core.models import ReportFormat
from src.core.utils import utcnow
from src.reporting.templates import Orientation, ReportField, ReportTemplateSpec
from .base import Artifact, BaseGenerator, ReportData, iter_groups

PAGE_SIZES = {"A4": A4, "A3": A3, "LETTER": LETTER, "LEGAL": LEGAL}

# Standard PDF fonts and their bold variants
FONTS = {
    "Helvetica": "Helvetica-Bold",
    "Times-Roman": "Times-Bold",
    "Courier": "Courier-Bold",
}

ROW_HEIGHT = 15
HEADER_ROW_HEIGHT = 20
CELL_PADDING = 4


class PDFReportGenerator(BaseGenerator):
    """Paginated table with a header block; one section per group."""

    format = ReportFormat.PDF
    extension = "pdf"
    media_type = "application/pdf"

    def generate(
        self,
        template: ReportTemplateSpec,
        data: ReportData,
        parameters: Optional[Dict[str, Any]] = None,
        generated_at: Optional[datetime] = None,
        filename: str = None,
    ) -> Artifact:
        generated_at = generated_at or utcnow()
        output_file = self.output_dir / self._get_filename(template.name, filename)

        layout = template.layout
        size = PAGE_SIZES.get(layout.page_size.value, A4)
        size = landscape(size) if layout.orientation == Orientation.LANDSCAPE else portrait(size)

        doc = canvas.Canvas(str(output_file), pagesize=size)
        doc.setTitle(template.name)
        renderer = _PageRenderer(doc, template, size)

        renderer.draw_header(generated_at)
        first = True
        for group, records in iter_groups(data):
            if group is not None:
                if not first:
                    renderer.new_page()
                renderer.draw_group_title(group)
            renderer.draw_table(records)
            first = False

        renderer.finish()
        doc.save()

        return self._artifact(output_file, data, generated_at)


class _PageRenderer:
    """Tracks the vertical cursor and breaks pages when it passes the bottom bound."""

    def __init__(self, doc: canvas.Canvas, template: ReportTemplateSpec, size):
        self.doc = doc
        self.template = template
        self.width, self.height = size
        self.margins = template.layout.margins
        self.font = template.styling.font_family if template.styling.font_family in FONTS else "Helvetica"
        self.bold_font = FONTS[self.font]
        self.fields: List[ReportField] = template.visible_fields()
        usable = self.width - self.margins.left - self.margins.right
        self.column_width = usable / max(len(self.fields), 1)
        self.bottom = self.margins.bottom + template.layout.footer_height
        self.page_number = 1
        self.y = self.height - self.margins.top

    def draw_header(self, generated_at: datetime):
        styling = self.template.styling
        left = self.margins.left
        self.y -= styling.header_font_size
        self.doc.setFont(self.bold_font, styling.header_font_size)
        self.doc.setFillColor(styling.primary_color)
        self.doc.drawString(left, self.y, self.template.name)
        self.doc.setFillColor("#000000")

        self.doc.setFont(self.font, 10)
        self.y -= 16
        self.doc.drawString(left, self.y, f"Generated on: {generated_at.strftime('%Y-%m-%d %H:%M:%S')} UTC")
        if self.template.description:
            self.y -= 14
            self.doc.drawString(left, self.y, self._fit(self.template.description, self.width - left - self.margins.right, self.font, 10))

        self.y -= 10
        self.doc.line(left, self.y, self.width - self.margins.right, self.y)
        self.y -= 20

    def draw_group_title(self, group: str):
        self._ensure_space(HEADER_ROW_HEIGHT * 2)
        self.doc.setFont(self.bold_font, 14)
        self.doc.drawString(self.margins.left, self.y, f"Group: {group}")
        self.y -= HEADER_ROW_HEIGHT

    def draw_table(self, records: List[Dict[str, Any]]):
        self._draw_column_headers()
        font_size = max(self.template.styling.font_size - 3, 6)
        for record in records:
            if self.y < self.bottom:
                self.new_page()
                self._draw_column_headers()
            self.doc.setFont(self.font, font_size)
            for index, value in enumerate(BaseGenerator._row(record, self.fields)):
                x = self.margins.left + index * self.column_width
                self.doc.drawString(x, self.y, self._fit(value, self.column_width - CELL_PADDING, self.font, font_size))
            self.y -= ROW_HEIGHT
        self.y -= ROW_HEIGHT

    def _draw_column_headers(self):
        self._ensure_space(HEADER_ROW_HEIGHT + ROW_HEIGHT)
        self.doc.setFont(self.bold_font, 10)
        for index, report_field in enumerate(self.fields):
            x = self.margins.left + index * self.column_width
            self.doc.drawString(x, self.y, self._fit(report_field.label, self.column_width - CELL_PADDING, self.bold_font, 10))
        self.y -= 6
        right = self.margins.left + len(self.fields) * self.column_width
        self.doc.line(self.margins.left, self.y, right, self.y)
        self.y -= ROW_HEIGHT

    def _ensure_space(self, needed: float):
        if self.y - needed < self.bottom:
            self.new_page()

    def _draw_footer(self):
        self.doc.setFont(self.font, 8)
        footer_y = self.margins.bottom / 2
        self.doc.drawCentredString(self.width / 2, footer_y, f"Generated by {settings.system_name}")
        self.doc.drawRightString(self.width - self.margins.right, footer_y, f"Page {self.page_number}")

    def new_page(self):
        self._draw_footer()
        self.doc.showPage()
        self.page_number += 1
        self.y = self.height - self.margins.top

    def finish(self):
        self._draw_footer()
        self.doc.showPage()

    @staticmethod
    def _fit(text: str, width: float, font: str, size: float) -> str:
        """Truncate text with an ellipsis so it fits in a column."""
        if stringWidth(text, font, size) <= width:
            return text
        while text and stringWidth(text + "...", font, size) > width:
            text = text[:-1]
        return text + "..."
