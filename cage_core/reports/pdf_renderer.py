# =============================================================================
# cage_core/reports/pdf_renderer.py
# PDF rendering of Service Call sheets and PM checklists (fpdf2)
# =============================================================================
"""
Renders a FormRecord to PDF bytes.

Signatures and the receipt photo travel inside the record as data URLs
("data:image/png;base64,...") and are embedded as images. A PM checklist is
drawn from the form type's fixed checklist template, ticking the items whose
flag is set in record["checks"].
"""

from __future__ import annotations
import base64
import binascii
import io
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple
import logging

from fpdf import FPDF

from cage_core.errors import ReportRenderError
from cage_core.forms.form_types import FormRecord, FormType

logger = logging.getLogger(__name__)

COMPANY_NAME = "CAGE Antigua-Barbuda Ltd"
BRAND_RED = (180, 20, 20)
SECTION_FILL = (245, 245, 245)


@dataclass(frozen=True)
class ReportLayout:
    """What goes on the page for one form type."""
    subtitle: str
    # (label, record field) pairs in the header block
    header_fields: Tuple[Tuple[str, str], ...]
    # (title, record field) free-text sections
    sections: Tuple[Tuple[str, str], ...]
    footer_field: Optional[Tuple[str, str]] = None


LAYOUTS = {
    "service": ReportLayout(
        subtitle="Technical Operations Service Call Sheet",
        header_fields=(
            ("Call Type", "callType"),
            ("Shop Name", "shopName"),
            ("Date", "date"),
            ("System Type", "systemType"),
            ("Terminal #", "terminalNumber"),
            ("Tech Name", "techName"),
            ("Vehicle #", "vehicleNumber"),
            ("Arrival", "arrivalTime"),
            ("Departure", "departureTime"),
        ),
        sections=(
            ("Fault Reported", "faultReported"),
            ("Fault Encountered", "faultEncountered"),
            ("Repairs Made", "repairsMade"),
            ("Parts Used", "partsUsed"),
            ("Other Comments", "otherComments"),
        ),
        footer_field=("Agent Assessment", "agentAssessment"),
    ),
    "pm": ReportLayout(
        subtitle="PM Check List",
        header_fields=(
            ("Agent Name", "agentName"),
            ("Date", "date"),
            ("System Type", "systemType"),
            ("Arrival", "arrivalTime"),
            ("Departure", "departureTime"),
            ("Tech Name", "techName"),
        ),
        sections=(
            ("Parts Used", "partsUsed"),
            ("Comments", "comments"),
        ),
    ),
}


def decode_data_url(data_url: str) -> bytes:
    """Raw image bytes from a base64 data URL."""
    if not data_url.startswith("data:") or "," not in data_url:
        raise ValueError("Not a data URL")
    header, payload = data_url.split(",", 1)
    if ";base64" not in header:
        raise ValueError("Only base64 data URLs are supported")
    try:
        return base64.b64decode(payload, validate=False)
    except binascii.Error as e:
        raise ValueError(f"Invalid base64 payload: {e}") from e


def _text(value) -> str:
    """Core PDF fonts are latin-1 only; anything else is replaced."""
    text = "" if value is None else str(value)
    return text.encode("latin-1", "replace").decode("latin-1")


class ReportRenderer(ABC):
    """Record -> PDF bytes contract used by the submission pipeline."""

    @abstractmethod
    def render(self, record: FormRecord, form_type: FormType) -> bytes:
        """Render a record; raises ReportRenderError on failure."""


class PdfReportRenderer(ReportRenderer):
    """
    fpdf2 renderer for both form types.

    Usage:
        renderer = PdfReportRenderer()
        pdf_bytes = renderer.render(session.record, SERVICE_CALL)
    """

    MARGIN = 15
    SIGNATURE_SIZE = (50, 25)
    RECEIPT_SIZE = 80

    def render(self, record: FormRecord, form_type: FormType) -> bytes:
        layout = LAYOUTS.get(form_type.key)
        if layout is None:
            raise ReportRenderError(
                f"No report layout for form type {form_type.key!r}", form_type=form_type.key
            )

        try:
            pdf = FPDF()
            pdf.set_margins(self.MARGIN, self.MARGIN, self.MARGIN)
            pdf.set_auto_page_break(auto=True, margin=15)
            pdf.add_page()

            self._draw_banner(pdf, layout.subtitle)
            self._draw_header_fields(pdf, record, layout)
            if form_type.checklist:
                self._draw_checklist(pdf, record, form_type.checklist)
            for title, field_name in layout.sections:
                self._draw_section(pdf, title, record.get(field_name))
            if layout.footer_field:
                label, field_name = layout.footer_field
                pdf.ln(2)
                pdf.set_font("Helvetica", "B", 10)
                pdf.cell(0, 7, _text(f"{label}: {record.get(field_name) or 'N/A'}"),
                         new_x="LMARGIN", new_y="NEXT")
            self._draw_signatures(pdf, record, form_type)
            self._draw_footer(pdf)

            output = bytes(pdf.output())
        except ReportRenderError:
            raise
        except Exception as e:
            raise ReportRenderError(
                f"Failed to render {form_type.label} PDF: {e}", form_type=form_type.key
            ) from e

        logger.info(f"Rendered {form_type.label} PDF ({len(output) / 1024:.1f} KB)")
        return output

    # =========================================================================
    # PAGE SECTIONS
    # =========================================================================

    def _draw_banner(self, pdf: FPDF, subtitle: str) -> None:
        pdf.set_fill_color(*BRAND_RED)
        pdf.rect(0, 0, pdf.w, 40, style="F")
        pdf.set_text_color(255, 255, 200)
        pdf.set_xy(self.MARGIN, 12)
        pdf.set_font("Helvetica", "B", 22)
        pdf.cell(0, 10, COMPANY_NAME, new_x="LMARGIN", new_y="NEXT")
        pdf.set_font("Helvetica", "", 10)
        pdf.cell(0, 6, subtitle, new_x="LMARGIN", new_y="NEXT")
        pdf.set_text_color(0, 0, 0)
        pdf.set_y(50)

    def _draw_header_fields(self, pdf: FPDF, record: FormRecord, layout: ReportLayout) -> None:
        top = pdf.get_y()
        receipt_bottom = self._draw_receipt(pdf, record, top)

        pdf.set_font("Helvetica", "", 10)
        for label, field_name in layout.header_fields:
            pdf.set_font("Helvetica", "B", 10)
            pdf.cell(30, 7, f"{label}:", new_x="RIGHT")
            pdf.set_font("Helvetica", "", 10)
            pdf.cell(70, 7, _text(record.get(field_name) or "N/A"), new_x="LMARGIN", new_y="NEXT")

        pdf.set_y(max(pdf.get_y(), receipt_bottom) + 6)

    def _draw_receipt(self, pdf: FPDF, record: FormRecord, top: float) -> float:
        """Receipt photo on the right of the header block. Returns its bottom edge."""
        receipt = record.get("receiptImage")
        if not receipt:
            return top

        size = self.RECEIPT_SIZE
        x = pdf.w - size - self.MARGIN
        try:
            pdf.image(io.BytesIO(decode_data_url(receipt)), x=x, y=top, w=size, h=size)
        except Exception as e:
            logger.warning(f"Skipping unreadable receipt image: {e}")
            return top

        pdf.set_draw_color(50, 50, 50)
        pdf.rect(x, top, size, size)
        pdf.set_xy(x, top + size + 1)
        pdf.set_font("Helvetica", "", 8)
        pdf.set_text_color(100, 100, 100)
        pdf.cell(size, 5, "Attached Receipt / Proof")
        pdf.set_text_color(0, 0, 0)
        pdf.set_xy(self.MARGIN, top)
        return top + size + 8

    def _draw_checklist(self, pdf: FPDF, record: FormRecord, items: Tuple[str, ...]) -> None:
        checks = list(record.get("checks") or [])
        pdf.set_fill_color(*SECTION_FILL)
        pdf.set_font("Helvetica", "B", 10)
        pdf.cell(0, 7, "  Checklist", new_x="LMARGIN", new_y="NEXT", fill=True)

        box_x = pdf.w - self.MARGIN - 6
        for index, item in enumerate(items):
            checked = index < len(checks) and bool(checks[index])
            y = pdf.get_y()
            pdf.set_font("Helvetica", "", 9)
            pdf.cell(box_x - self.MARGIN - 2, 8, _text(f"{index + 1}. {item}"))
            pdf.rect(box_x, y + 1, 6, 6)
            if checked:
                pdf.set_xy(box_x, y + 1)
                pdf.set_font("ZapfDingbats", "", 10)
                pdf.cell(6, 6, "4", align="C")
            pdf.set_xy(self.MARGIN, y + 8)
        pdf.ln(4)

    def _draw_section(self, pdf: FPDF, title: str, content) -> None:
        pdf.set_fill_color(*SECTION_FILL)
        pdf.set_font("Helvetica", "B", 10)
        pdf.cell(0, 7, f"  {title}", new_x="LMARGIN", new_y="NEXT", fill=True)
        pdf.set_font("Helvetica", "", 10)
        pdf.multi_cell(0, 5, _text(content or "No details provided."),
                       new_x="LMARGIN", new_y="NEXT")
        pdf.ln(3)

    def _draw_signatures(self, pdf: FPDF, record: FormRecord, form_type: FormType) -> None:
        blocks = form_type.signature_blocks
        if not blocks:
            return

        sig_w, sig_h = self.SIGNATURE_SIZE
        block_height = sig_h + 16
        if pdf.get_y() + block_height > pdf.h - 20:
            pdf.add_page()
        pdf.ln(4)

        top = pdf.get_y()
        usable = pdf.w - 2 * self.MARGIN
        step = usable / len(blocks)
        for index, (field_name, caption, date_field) in enumerate(blocks):
            x = self.MARGIN + index * step
            pdf.set_xy(x, top)
            pdf.set_font("Helvetica", "B", 8)
            pdf.cell(step, 4, f"{caption} Signature")
            signature = record.get(field_name)
            if signature:
                try:
                    pdf.image(io.BytesIO(decode_data_url(signature)),
                              x=x, y=top + 5, w=sig_w, h=sig_h)
                except Exception as e:
                    logger.warning(f"Skipping unreadable {caption.lower()} signature: {e}")
            pdf.line(x, top + 5 + sig_h, x + sig_w, top + 5 + sig_h)
            pdf.set_xy(x, top + 7 + sig_h)
            pdf.set_font("Helvetica", "", 8)
            pdf.cell(step, 4, _text(f"Date: {record.get(date_field) or ''}"))

        pdf.set_xy(self.MARGIN, top + block_height)

    def _draw_footer(self, pdf: FPDF) -> None:
        pdf.ln(4)
        pdf.set_font("Helvetica", "I", 8)
        generated = datetime.now().strftime("%Y-%m-%d %H:%M")
        pdf.cell(0, 5, f"Generated: {generated}", new_x="LMARGIN", new_y="NEXT", align="C")


def render_report(record: FormRecord, form_type: FormType) -> bytes:
    """Render with the default fpdf2 renderer."""
    return PdfReportRenderer().render(record, form_type)
