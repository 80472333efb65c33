# =============================================================================
# cage_core/reports/delivery.py
# Handing a rendered report to the technician (download + email compose)
# =============================================================================

from __future__ import annotations
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional
from urllib.parse import quote
import logging

from cage_core.errors import DeliveryError

logger = logging.getLogger(__name__)


def build_mailto_url(subject: str, body: str, recipient: str = "") -> str:
    """Email-compose URL with an empty recipient unless one is given."""
    return f"mailto:{recipient}?subject={quote(subject, safe='')}&body={quote(body, safe='')}"


class ArtifactDelivery(ABC):
    """Delivers the artifact, then offers (never forces) the email hand-off."""

    @abstractmethod
    def deliver(self, file_name: str, artifact: bytes) -> Optional[str]:
        """
        Hand the artifact over.

        Returns:
            Where it went (a path or a description), or None

        Raises:
            DeliveryError: If the artifact could not be handed over
        """

    def offer_email(self, email_url: str) -> None:
        """Offer the compose link. Default: nothing to show."""


class DirectoryDelivery(ArtifactDelivery):
    """
    Writes artifacts into a downloads directory.

    Usage:
        delivery = DirectoryDelivery(Path("downloads"))
        path = delivery.deliver("ServiceCall_Acme_1700000000000.pdf", pdf_bytes)
    """

    def __init__(self, downloads_dir: Path):
        self.downloads_dir = Path(downloads_dir)
        self.last_email_url: Optional[str] = None

    def deliver(self, file_name: str, artifact: bytes) -> Optional[str]:
        target = self.downloads_dir / file_name
        try:
            self.downloads_dir.mkdir(parents=True, exist_ok=True)
            target.write_bytes(artifact)
        except OSError as e:
            raise DeliveryError(f"Could not write {target}: {e}", file_name=file_name) from e

        logger.info(f"Report saved to {target}")
        return str(target)

    def offer_email(self, email_url: str) -> None:
        self.last_email_url = email_url


class StreamlitDelivery(ArtifactDelivery):
    """Download button plus an email link button in the running Streamlit page."""

    def deliver(self, file_name: str, artifact: bytes) -> Optional[str]:
        import streamlit as st

        try:
            st.download_button(
                label=f"Download {file_name}",
                data=artifact,
                file_name=file_name,
                mime="application/pdf",
                key=f"download_{file_name}",
            )
        except Exception as e:
            raise DeliveryError(f"Download could not be offered: {e}", file_name=file_name) from e
        return "browser download"

    def offer_email(self, email_url: str) -> None:
        import streamlit as st

        st.success("PDF ready. Attach it to the email to send it on.")
        st.link_button("Open email app", email_url)
