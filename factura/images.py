"""Image preparation for the extraction flows using Pillow and PyMuPDF"""
import io
import re
import base64
import logging
from typing import Tuple
import fitz  # PyMuPDF
from PIL import Image, ImageOps


logger = logging.getLogger(__name__)

MAX_DIMENSION = 1600
JPEG_QUALITY = 80

SUPPORTED_UPLOAD_TYPES = (
    "image/png",
    "image/jpeg",
    "image/webp",
    "application/pdf",
)

_DATA_URI = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,(?P<data>.+)$", re.DOTALL)


def detect_mime_type(file_bytes: bytes, filename: str = "") -> str:
    """Detect the MIME type from the file extension, then from magic bytes"""
    name = (filename or "").lower()
    if name.endswith(".pdf"):
        return "application/pdf"
    elif name.endswith(".png"):
        return "image/png"
    elif name.endswith((".jpg", ".jpeg")):
        return "image/jpeg"
    elif name.endswith(".webp"):
        return "image/webp"

    if file_bytes.startswith(b"%PDF"):
        return "application/pdf"
    elif file_bytes.startswith(b"\x89PNG"):
        return "image/png"
    elif file_bytes.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    elif file_bytes[:4] == b"RIFF" and file_bytes[8:12] == b"WEBP":
        return "image/webp"
    return "unknown"


def to_data_uri(file_bytes: bytes, mime_type: str) -> str:
    encoded = base64.b64encode(file_bytes).decode("utf-8")
    return f"data:{mime_type};base64,{encoded}"


def decode_data_uri(data_uri: str) -> Tuple[str, bytes]:
    """Split a data:<mime>;base64,<payload> URI into its MIME type and raw bytes"""
    match = _DATA_URI.match((data_uri or "").strip())
    if not match:
        raise ValueError("Expected a data URI of the form data:<mimetype>;base64,<data>")
    try:
        payload = base64.b64decode(match.group("data"), validate=True)
    except (ValueError, TypeError) as e:
        raise ValueError(f"Invalid base64 payload in data URI: {e}")
    if not payload:
        raise ValueError("Data URI has an empty payload")
    return match.group("mime"), payload


def compress_image(
    file_bytes: bytes,
    mime_type: str = "image/jpeg",
    max_dimension: int = MAX_DIMENSION,
    quality: int = JPEG_QUALITY
) -> Tuple[bytes, str]:
    """
    Shrink an image to fit max_dimension and re-encode it as JPEG.

    Best effort: when the image cannot be processed, or the result is not
    smaller, the original bytes and MIME type are returned.
    """
    try:
        image = Image.open(io.BytesIO(file_bytes))
        image = ImageOps.exif_transpose(image)
        image.thumbnail((max_dimension, max_dimension))

        if image.mode in ("RGBA", "LA", "P"):
            image = image.convert("RGBA")
            background = Image.new("RGB", image.size, (255, 255, 255))
            background.paste(image, mask=image.getchannel("A"))
            image = background
        elif image.mode != "RGB":
            image = image.convert("RGB")

        buffered = io.BytesIO()
        image.save(buffered, format="JPEG", quality=quality, optimize=True)
        compressed = buffered.getvalue()
    except Exception as e:
        logger.warning("Image compression failed, using the original file: %s", e)
        return file_bytes, mime_type

    if len(compressed) >= len(file_bytes):
        return file_bytes, mime_type

    logger.debug("Compressed image from %d to %d bytes", len(file_bytes), len(compressed))
    return compressed, "image/jpeg"


def pdf_first_page_to_png(pdf_bytes: bytes, dpi: int = 200) -> bytes:
    """Rasterize the first page of a PDF invoice"""
    try:
        doc = fitz.open(stream=pdf_bytes, filetype="pdf")
    except Exception as e:
        raise ValueError(f"Failed to open PDF: {e}")
    try:
        if len(doc) == 0:
            raise ValueError("PDF has no pages")
        pixmap = doc[0].get_pixmap(dpi=dpi)
        return pixmap.tobytes("png")
    finally:
        doc.close()


def prepare_upload(file_bytes: bytes, filename: str) -> str:
    """
    Turn an uploaded invoice (image or PDF) into a compressed image data URI

    Raises:
        ValueError: unsupported file type or unreadable PDF
    """
    mime_type = detect_mime_type(file_bytes, filename)
    if mime_type not in SUPPORTED_UPLOAD_TYPES:
        raise ValueError(f"Unsupported file type: {mime_type}")

    if mime_type == "application/pdf":
        file_bytes = pdf_first_page_to_png(file_bytes)
        mime_type = "image/png"

    file_bytes, mime_type = compress_image(file_bytes, mime_type)
    return to_data_uri(file_bytes, mime_type)
