"""QR stamping of shipment documents.

The stamp is a QR code encoding the verification URL plus a short caption,
drawn in the bottom-right corner of the document's last page. The overlay
is rendered with reportlab and merged onto the page with pypdf; the source
bytes are never modified.
"""

from __future__ import annotations

import io
import logging

import qrcode
from pypdf import PdfReader, PdfWriter
from pypdf.errors import PyPdfError
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from shipdesk.config import ShipdeskConfig
from shipdesk.exceptions import MalformedDocument, StampingFailed

logger = logging.getLogger(__name__)

QR_SIZE = 80.0
QR_MARGIN = 20.0
CAPTION = "Verified by OpexIO"
CAPTION_FONT = "Helvetica"
CAPTION_FONT_SIZE = 8
CAPTION_OFFSET = 10.0


def render_qr_png(content: str) -> bytes:
    """Render ``content`` as a PNG QR code with a one-module border."""
    qr = qrcode.QRCode(border=1)
    qr.add_data(content)
    qr.make(fit=True)
    image = qr.make_image(fill_color="black", back_color="white")
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def _load(source: bytes) -> PdfReader:
    try:
        reader = PdfReader(io.BytesIO(source))
        page_count = len(reader.pages)
    except (PyPdfError, ValueError, KeyError, TypeError) as exc:
        raise MalformedDocument(details=str(exc)) from exc
    if page_count == 0:
        raise MalformedDocument(details="Document has no pages")
    return reader


class PdfStamper:
    """Callable stamping engine: ``stamper(source, url) -> stamped``."""

    def __init__(
        self,
        *,
        caption: str = CAPTION,
        size: float = QR_SIZE,
        margin: float = QR_MARGIN,
    ) -> None:
        self.caption = caption
        self.size = size
        self.margin = margin

    @classmethod
    def from_config(cls, config: ShipdeskConfig) -> PdfStamper:
        return cls(
            caption=config.stamp_caption,
            size=config.stamp_size,
            margin=config.stamp_margin,
        )

    def __call__(self, source: bytes, verification_url: str) -> bytes:
        return self.stamp(source, verification_url)

    def stamp(self, source: bytes, verification_url: str) -> bytes:
        """Return a copy of ``source`` with the QR stamp on its last page.

        Raises ``MalformedDocument`` when the source cannot be parsed and
        ``StampingFailed`` for any other rendering or embedding error.
        """
        reader = _load(source)
        try:
            qr_png = render_qr_png(verification_url)
            writer = PdfWriter(clone_from=reader)
            last_page = writer.pages[-1]
            box = last_page.mediabox
            overlay = self._render_overlay(
                qr_png,
                right=float(box.right),
                bottom=float(box.bottom),
                top=float(box.top),
            )
            last_page.merge_page(PdfReader(io.BytesIO(overlay)).pages[0])
            output = io.BytesIO()
            writer.write(output)
        except Exception as exc:
            logger.exception("Stamping failed for %s", verification_url)
            raise StampingFailed(details=str(exc)) from exc

        stamped = output.getvalue()
        logger.debug(
            "Stamped %d-page document, %d -> %d bytes",
            len(reader.pages),
            len(source),
            len(stamped),
        )
        return stamped

    def _render_overlay(
        self,
        qr_png: bytes,
        *,
        right: float,
        bottom: float,
        top: float,
    ) -> bytes:
        buffer = io.BytesIO()
        overlay = canvas.Canvas(buffer, pagesize=(right, top))
        x = right - self.size - self.margin
        y = bottom + self.margin
        overlay.drawImage(
            ImageReader(io.BytesIO(qr_png)),
            x,
            y,
            width=self.size,
            height=self.size,
        )
        overlay.setFont(CAPTION_FONT, CAPTION_FONT_SIZE)
        overlay.drawString(x, y - CAPTION_OFFSET, self.caption)
        overlay.showPage()
        overlay.save()
        return buffer.getvalue()


def stamp_pdf(source: bytes, verification_url: str) -> bytes:
    """Stamp with the default size, margin and caption."""
    return PdfStamper().stamp(source, verification_url)
