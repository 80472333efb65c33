# =============================================================================
# cage_core/reports/__init__.py
# PDF rendering and delivery of submitted forms
# =============================================================================

from cage_core.reports.pdf_renderer import (
    ReportRenderer,
    PdfReportRenderer,
    ReportLayout,
    LAYOUTS,
    decode_data_url,
    render_report,
)
from cage_core.reports.delivery import (
    ArtifactDelivery,
    DirectoryDelivery,
    StreamlitDelivery,
    build_mailto_url,
)

__all__ = [
    "ReportRenderer",
    "PdfReportRenderer",
    "ReportLayout",
    "LAYOUTS",
    "decode_data_url",
    "render_report",
    "ArtifactDelivery",
    "DirectoryDelivery",
    "StreamlitDelivery",
    "build_mailto_url",
]
