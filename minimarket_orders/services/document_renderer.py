"""
PDF documents (order receipts, sale receipts, cash closures, template preview)

Rendering writes a uniquely named temporary file and returns its path. The
caller owns the file from then on.
"""
from __future__ import annotations

import base64
import binascii
import io
import logging
import os
import re
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Sequence
from xml.sax.saxutils import escape as xml_escape

import httpx
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.platypus import Image, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle
from sqlalchemy.orm import Session

from minimarket_orders.config import BrandingConfig, Settings
from minimarket_orders.repositories.order_repository import OrderRepository
from minimarket_orders.schemas.notification import DocumentKind
from minimarket_orders.services.configuration import ConfigurationProvider

logger = logging.getLogger(__name__)

DEFAULT_ACCENT_COLOR = "#2563eb"
_HEX_COLOR = re.compile(r"^#?([0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")
_DATA_URI = re.compile(r"^data:image/[\w.+-]+;base64,(?P<data>.+)$", re.DOTALL)


class RenderError(Exception):
    """Document could not be produced"""
    pass


class EmptyDocumentError(RenderError):
    """The business record has no line items"""
    pass


class TemplateDisabledError(RenderError):
    """The document type is switched off in settings"""
    pass


@dataclass
class DocumentLine:
    description: str
    quantity: int
    unit_price: Decimal
    subtotal: Decimal


@dataclass
class ReceiptDocument:
    """Layout-independent content of one document"""
    title: str
    number: str
    issued_at: datetime
    party_lines: List[str] = field(default_factory=list)
    lines: List[DocumentLine] = field(default_factory=list)
    totals: List[tuple] = field(default_factory=list)  # (label, amount)
    notes: List[str] = field(default_factory=list)


DocumentSource = Callable[[Session, str], ReceiptDocument]


def resolve_color(value: Optional[str]) -> colors.Color:
    """Hex string to a color; malformed values fall back to the default accent"""
    match = _HEX_COLOR.match((value or "").strip())
    if not match:
        if value:
            logger.warning("Invalid accent color %r, using default %s", value, DEFAULT_ACCENT_COLOR)
        return colors.HexColor(DEFAULT_ACCENT_COLOR)
    digits = match.group(1)
    if len(digits) == 3:
        digits = "".join(ch * 2 for ch in digits)
    return colors.HexColor(f"#{digits}")


class ImageResolver:
    """Turns a logo reference into image bytes, or None when nothing resolves"""

    def __init__(self, static_root: Optional[str] = None, timeout: float = 5.0, client: Optional[httpx.Client] = None):
        self.static_root = static_root
        self.timeout = timeout
        self._client = client

    def resolve(self, source: Optional[str]) -> Optional[bytes]:
        if not source:
            return None
        source = source.strip()
        for strategy in (self._from_absolute_path, self._from_static_root, self._from_http, self._from_data_uri):
            try:
                data = strategy(source)
            except (OSError, httpx.HTTPError, binascii.Error, ValueError) as e:
                logger.debug("Image strategy %s failed for %s: %s", strategy.__name__, source[:80], e)
                continue
            if data:
                return data
        logger.warning("Could not resolve image %s, rendering without it", source[:80])
        return None

    def _from_absolute_path(self, source: str) -> Optional[bytes]:
        if os.path.isabs(source) and os.path.isfile(source):
            with open(source, "rb") as handle:
                return handle.read()
        return None

    def _from_static_root(self, source: str) -> Optional[bytes]:
        if not self.static_root or source.startswith(("http://", "https://", "data:")):
            return None
        path = os.path.join(self.static_root, source.lstrip("/\\"))
        if os.path.isfile(path):
            with open(path, "rb") as handle:
                return handle.read()
        return None

    def _from_http(self, source: str) -> Optional[bytes]:
        if not source.startswith(("http://", "https://")):
            return None
        if self._client is not None:
            response = self._client.get(source, timeout=self.timeout)
        else:
            with httpx.Client(timeout=self.timeout, follow_redirects=True) as client:
                response = client.get(source)
        response.raise_for_status()
        return response.content

    def _from_data_uri(self, source: str) -> Optional[bytes]:
        match = _DATA_URI.match(source)
        if not match:
            return None
        return base64.b64decode(match.group("data"), validate=True)


def _money(value) -> str:
    return f"S/ {Decimal(value):.2f}"


def load_order_receipt(db: Session, order_id: str) -> ReceiptDocument:
    order = OrderRepository(db).get_by_id(order_id)
    if order is None:
        raise RenderError(f"Order {order_id} not found")

    party_lines = [f"Customer: {order.customer_name}", f"Email: {order.customer_email}"]
    if order.customer_phone:
        party_lines.append(f"Phone: {order.customer_phone}")
    if order.shipping_method == "delivery":
        address = ", ".join(p for p in (order.shipping_address, order.shipping_city, order.shipping_region) if p)
        party_lines.append(f"Delivery to: {address or '-'}")
    else:
        party_lines.append("Store pickup")

    return ReceiptDocument(
        title="RECEIPT",
        number=order.order_number,
        issued_at=order.created_at or datetime.now(timezone.utc),
        party_lines=party_lines,
        lines=[
            DocumentLine(item.product_name, item.quantity, Decimal(item.unit_price), Decimal(item.subtotal))
            for item in order.items
        ],
        totals=[
            ("Subtotal", Decimal(order.subtotal)),
            ("Shipping", Decimal(order.shipping_cost)),
            ("Total", Decimal(order.total)),
        ],
        notes=[f"Payment method: {order.payment_method}"],
    )


def load_template_preview(db: Session, record_id: str) -> ReceiptDocument:
    return ReceiptDocument(
        title="RECEIPT (PREVIEW)",
        number=record_id or "PREVIEW-0001",
        issued_at=datetime.now(timezone.utc),
        party_lines=["Customer: Sample Customer", "Email: customer@example.com"],
        lines=[
            DocumentLine("Sample product A", 2, Decimal("3.50"), Decimal("7.00")),
            DocumentLine("Sample product B", 1, Decimal("12.90"), Decimal("12.90")),
        ],
        totals=[("Subtotal", Decimal("19.90")), ("Total", Decimal("19.90"))],
        notes=["This is a preview of the document template."],
    )


class DocumentRenderer:
    """Renders documents of a given kind for a record id"""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        settings: Settings,
        image_resolver: Optional[ImageResolver] = None,
        output_dir: Optional[str] = None,
    ):
        self._session_factory = session_factory
        self.settings = settings
        self.image_resolver = image_resolver or ImageResolver()
        self.output_dir = output_dir
        self._sources: Dict[DocumentKind, DocumentSource] = {
            DocumentKind.ORDER_RECEIPT: load_order_receipt,
            DocumentKind.TEMPLATE_PREVIEW: load_template_preview,
        }

    def register_source(self, kind: DocumentKind, source: DocumentSource) -> None:
        """Plug in loaders owned by other features (sales, cash closures)"""
        self._sources[kind] = source

    def render(self, kind: DocumentKind, record_id: str, branding: BrandingConfig) -> str:
        """
        Render a document and return the path of the written PDF

        Raises:
            TemplateDisabledError: document type switched off
            EmptyDocumentError: record has no line items
            RenderError: anything else that prevents producing the file
        """
        source = self._sources.get(kind)
        if source is None:
            raise RenderError(f"No document source registered for {kind.value}")

        db = self._session_factory()
        try:
            if not ConfigurationProvider(db, self.settings).is_template_active(kind):
                raise TemplateDisabledError(f"Template for {kind.value} is not active")
            document = source(db, record_id)
        finally:
            db.close()

        if not document.lines:
            raise EmptyDocumentError(f"{kind.value} {record_id} has no line items")

        try:
            return self._write(kind, document, branding)
        except RenderError:
            raise
        except Exception as e:
            raise RenderError(f"Failed to render {kind.value} {record_id}: {e}") from e

    def _write(self, kind: DocumentKind, document: ReceiptDocument, branding: BrandingConfig) -> str:
        safe_number = re.sub(r"[^A-Za-z0-9_-]", "_", document.number)
        fd, path = tempfile.mkstemp(prefix=f"{kind.value}_{safe_number}_", suffix=".pdf", dir=self.output_dir)
        os.close(fd)
        try:
            doc = SimpleDocTemplate(
                path,
                pagesize=A4,
                leftMargin=15 * mm,
                rightMargin=15 * mm,
                topMargin=15 * mm,
                bottomMargin=15 * mm,
                title=f"{document.title} {document.number}",
            )
            doc.build(self._story(document, branding))
        except Exception:
            _remove_quietly(path)
            raise
        logger.info("Rendered %s %s to %s", kind.value, document.number, path)
        return path

    def _story(self, document: ReceiptDocument, branding: BrandingConfig) -> list:
        accent = resolve_color(branding.accent_color)
        styles = getSampleStyleSheet()
        heading = ParagraphStyle("Heading", parent=styles["Heading2"], textColor=accent)
        small = ParagraphStyle("Small", parent=styles["Normal"], fontSize=9, leading=11)

        story: list = []
        logo = self.image_resolver.resolve(branding.logo)
        if logo:
            try:
                reader = ImageReader(io.BytesIO(logo))
                width, height = reader.getSize()
                scale = min(40 * mm / width, 20 * mm / height)
                story.append(Image(io.BytesIO(logo), width=width * scale, height=height * scale, hAlign="LEFT"))
            except Exception as e:
                logger.warning("Logo could not be decoded, rendering without it: %s", e)

        story.append(Paragraph(xml_escape(branding.company_name), heading))
        company = [branding.address, branding.phone, branding.email]
        if branding.ruc:
            company.insert(0, f"RUC: {branding.ruc}")
        for line in filter(None, company):
            story.append(Paragraph(xml_escape(line), small))
        story.append(Spacer(1, 6 * mm))

        story.append(Paragraph(f"{xml_escape(document.title)} No. {xml_escape(document.number)}", styles["Heading3"]))
        story.append(Paragraph(document.issued_at.strftime("%d/%m/%Y %H:%M"), small))
        for line in document.party_lines:
            story.append(Paragraph(xml_escape(line), small))
        story.append(Spacer(1, 4 * mm))

        story.append(self._items_table(document.lines, accent))
        story.append(Spacer(1, 4 * mm))
        story.append(self._totals_table(document.totals))

        for note in document.notes:
            story.append(Spacer(1, 2 * mm))
            story.append(Paragraph(xml_escape(note), small))
        story.append(Spacer(1, 6 * mm))
        story.append(Paragraph("Thank you for your purchase", small))
        return story

    def _items_table(self, lines: Sequence[DocumentLine], accent: colors.Color) -> Table:
        rows = [["Description", "Qty", "Unit price", "Subtotal"]]
        for line in lines:
            rows.append([line.description, str(line.quantity), _money(line.unit_price), _money(line.subtotal)])
        table = Table(rows, colWidths=[90 * mm, 20 * mm, 35 * mm, 35 * mm], repeatRows=1)
        table.setStyle(TableStyle([
            ("BACKGROUND", (0, 0), (-1, 0), accent),
            ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
            ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
            ("FONTSIZE", (0, 0), (-1, -1), 9),
            ("ALIGN", (1, 1), (-1, -1), "RIGHT"),
            ("LINEBELOW", (0, 1), (-1, -1), 0.25, colors.lightgrey),
        ]))
        return table

    def _totals_table(self, totals: Sequence[tuple]) -> Table:
        rows = [[label, _money(amount)] for label, amount in totals]
        table = Table(rows, colWidths=[145 * mm, 35 * mm])
        style = [("ALIGN", (0, 0), (-1, -1), "RIGHT"), ("FONTSIZE", (0, 0), (-1, -1), 9)]
        if rows:
            style.append(("FONTNAME", (0, len(rows) - 1), (-1, len(rows) - 1), "Helvetica-Bold"))
        table.setStyle(TableStyle(style))
        return table


def _remove_quietly(path: str) -> None:
    try:
        os.remove(path)
    except OSError:
        pass
