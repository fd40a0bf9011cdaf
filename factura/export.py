"""Rasterize the invoice preview to PNG and package it as an A4 PDF"""
import io
import re
import logging
from typing import Optional, Tuple
import fitz  # PyMuPDF
from PIL import Image, ImageDraw, ImageFont

from .models import InvoicePreview, PreparedInvoice
from .preview import BACKGROUND_COLOR, MUTED_TEXT_COLOR, PRIMARY_COLOR, TEXT_COLOR, build_preview


logger = logging.getLogger(__name__)

PAGE_WIDTH_PX = 794  # A4 width at 96 dpi
MARGIN = 48
ROW_HEIGHT = 30

# (header, share of the table width, right aligned)
COLUMNS = [
    ("Código", 0.13, False),
    ("Descripción", 0.35, False),
    ("Cant.", 0.08, True),
    ("P. Catálogo", 0.14, True),
    ("P. Vendedora", 0.15, True),
    ("Total", 0.15, True),
]

MEDIA_TYPES = {
    "pdf": "application/pdf",
    "png": "image/png",
}


class ExportError(Exception):
    """The invoice could not be rasterized or packaged"""


def export_filename(invoice_number: Optional[str], extension: str) -> str:
    """factura-<number>.<ext>, or factura-documento.<ext> when there is no number"""
    name = re.sub(r"[^\w.-]+", "-", (invoice_number or "").strip()).strip("-.")
    return f"factura-{name or 'documento'}.{extension}"


def _font(size: int, bold: bool = False) -> ImageFont.ImageFont:
    names = ["DejaVuSans-Bold.ttf", "Arial Bold.ttf"] if bold else ["DejaVuSans.ttf", "Arial.ttf"]
    for name in names:
        try:
            return ImageFont.truetype(name, size)
        except OSError:
            continue
    return ImageFont.load_default(size=size)


def _fit_text(draw: ImageDraw.ImageDraw, text: str, font, width: float) -> str:
    if draw.textlength(text, font=font) <= width:
        return text
    while text and draw.textlength(text + "…", font=font) > width:
        text = text[:-1]
    return text + "…"


def fit_to_page(
    image_width: float,
    image_height: float,
    page_width: float,
    page_height: float
) -> Tuple[float, float, float, float]:
    """
    Best-fit placement of an image on a page keeping its aspect ratio.

    Returns (x, y, width, height): centred horizontally, aligned to the top.
    """
    aspect = image_width / image_height
    if aspect > page_width / page_height:
        width = page_width
        height = width / aspect
    else:
        height = page_height
        width = height * aspect
    return (page_width - width) / 2, 0.0, width, height


def render_png(preview: InvoicePreview, scale: int = 2) -> bytes:
    """Draw the invoice layout onto a white canvas and return PNG bytes"""
    s = scale
    width = PAGE_WIDTH_PX * s
    margin = MARGIN * s
    table_width = width - 2 * margin
    body_rows = len(preview.rows) or 1
    height = (330 + ROW_HEIGHT * (body_rows + 1) + 200) * s

    title_font = _font(32 * s, bold=True)
    heading_font = _font(13 * s, bold=True)
    text_font = _font(12 * s)
    total_font = _font(16 * s, bold=True)

    try:
        image = Image.new("RGB", (width, height), BACKGROUND_COLOR)
        draw = ImageDraw.Draw(image)

        # Header
        y = margin
        draw.text((margin, y), preview.title, font=title_font, fill=PRIMARY_COLOR)
        if preview.invoice_number:
            draw.text((margin, y + 44 * s), f"N° {preview.invoice_number}", font=text_font, fill=MUTED_TEXT_COLOR)
        right = width - margin
        draw.text((right, y + 6 * s), f"Fecha: {preview.issued_on}", font=text_font, fill=TEXT_COLOR, anchor="ra")
        if preview.due_date:
            draw.text((right, y + 26 * s), f"Vence: {preview.due_date}", font=text_font, fill=TEXT_COLOR, anchor="ra")
        y += 84 * s
        draw.line((margin, y, right, y), fill=PRIMARY_COLOR, width=2 * s)

        # Client
        y += 20 * s
        draw.text((margin, y), "FACTURAR A", font=heading_font, fill=MUTED_TEXT_COLOR)
        y += 22 * s
        draw.text((margin, y), preview.client_name, font=heading_font, fill=TEXT_COLOR)
        if preview.client_address:
            draw.text((margin, y + 20 * s), preview.client_address, font=text_font, fill=MUTED_TEXT_COLOR)
        y += 70 * s

        # Items table
        row_height = ROW_HEIGHT * s
        padding = 6 * s
        draw.rectangle((margin, y, right, y + row_height), fill=PRIMARY_COLOR)
        x = margin
        column_bounds = []
        for header, share, align_right in COLUMNS:
            column_width = table_width * share
            column_bounds.append((x, column_width, align_right))
            anchor_x = x + column_width - padding if align_right else x + padding
            draw.text(
                (anchor_x, y + row_height / 2), header, font=heading_font,
                fill=BACKGROUND_COLOR, anchor="rm" if align_right else "lm",
            )
            x += column_width
        y += row_height

        for row in preview.rows:
            values = [row.code, row.description, row.quantity, row.catalog_price, row.vendor_price, row.line_total]
            for value, (x, column_width, align_right) in zip(values, column_bounds):
                text = _fit_text(draw, value, text_font, column_width - 2 * padding)
                anchor_x = x + column_width - padding if align_right else x + padding
                draw.text(
                    (anchor_x, y + row_height / 2), text, font=text_font,
                    fill=TEXT_COLOR, anchor="rm" if align_right else "lm",
                )
            y += row_height
            draw.line((margin, y, right, y), fill="#e5e7eb", width=s)
        if not preview.rows and preview.empty_message:
            draw.text((width / 2, y + row_height / 2), preview.empty_message,
                      font=text_font, fill=MUTED_TEXT_COLOR, anchor="mm")
            y += row_height

        # Totals
        y += 24 * s
        label_x = right - 300 * s
        for label, value in (
            ("Subtotal (Precio Catálogo):", preview.catalog_subtotal),
            ("Subtotal (Precio Vendedora):", preview.vendor_subtotal),
        ):
            draw.text((label_x, y), label, font=text_font, fill=MUTED_TEXT_COLOR)
            draw.text((right, y), value, font=text_font, fill=TEXT_COLOR, anchor="ra")
            y += 24 * s
        y += 6 * s
        draw.line((label_x, y, right, y), fill=PRIMARY_COLOR, width=s)
        y += 10 * s
        draw.text((label_x, y), "TOTAL A PAGAR:", font=total_font, fill=PRIMARY_COLOR)
        draw.text((right, y), preview.total_due, font=total_font, fill=PRIMARY_COLOR, anchor="ra")

        # Footer
        draw.text((width / 2, height - margin), preview.footer, font=total_font, fill=PRIMARY_COLOR, anchor="md")

        buffered = io.BytesIO()
        image.save(buffered, format="PNG")
        return buffered.getvalue()
    except Exception as e:
        logger.error("Failed to rasterize invoice preview: %s", e, exc_info=True)
        raise ExportError(f"Failed to render invoice image: {e}")


def render_pdf(png_bytes: bytes) -> bytes:
    """Embed a rendered invoice image into a single A4 portrait page"""
    try:
        with Image.open(io.BytesIO(png_bytes)) as image:
            image_width, image_height = image.size

        page_width, page_height = fitz.paper_size("a4")
        x, y, width, height = fit_to_page(image_width, image_height, page_width, page_height)

        doc = fitz.open()
        try:
            page = doc.new_page(width=page_width, height=page_height)
            page.insert_image(fitz.Rect(x, y, x + width, y + height), stream=png_bytes)
            return doc.tobytes()
        finally:
            doc.close()
    except Exception as e:
        logger.error("Failed to build invoice PDF: %s", e, exc_info=True)
        raise ExportError(f"Failed to build PDF: {e}")


def export_invoice(prepared: PreparedInvoice, file_format: str = "pdf") -> Tuple[bytes, str, str]:
    """
    Render a prepared invoice for download.

    Returns:
        (file bytes, media type, filename)
    """
    if file_format not in MEDIA_TYPES:
        raise ValueError(f"Unsupported export format: {file_format}")

    png_bytes = render_png(build_preview(prepared))
    content = png_bytes if file_format == "png" else render_pdf(png_bytes)
    filename = export_filename(prepared.invoice.invoice_number, file_format)
    logger.info("Exported %s (%d bytes)", filename, len(content))
    return content, MEDIA_TYPES[file_format], filename
