"""FastAPI backend for Factura Fácil"""
import io
import logging
from typing import Any, Dict
from fastapi import FastAPI, UploadFile, File, HTTPException, Query, Body
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse

from . import config
from .export import ExportError, export_invoice
from .extraction import parse_invoice_image, parse_invoice_text
from .images import SUPPORTED_UPLOAD_TYPES, prepare_upload
from .models import (
    ExtractionResult,
    ImageExtractionRequest,
    InvoiceTotals,
    PreparedInvoice,
    TextExtractionRequest,
    TotalsRequest,
)
from .preview import build_preview
from .totals import calculate_totals, validate_invoice


logger = logging.getLogger(__name__)

app = FastAPI(title="Factura Fácil", version="0.1.0")

# CORS middleware for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def startup_event():
    """Configure logging on startup"""
    config.configure_logging()
    logger.info("Factura Fácil started (LLM provider: %s)", config.LLM_PROVIDER)


def _prepare(invoice: Dict[str, Any]) -> PreparedInvoice:
    """Validate raw form values or fail with a 422 listing every field error"""
    parsed, errors = validate_invoice(invoice)
    if parsed is None:
        raise HTTPException(
            status_code=422,
            detail={
                "message": "La factura tiene errores de validación.",
                "errors": [error.model_dump() for error in errors],
            },
        )
    return PreparedInvoice(invoice=parsed, totals=calculate_totals(parsed.items))


@app.get("/api/health")
async def health_check():
    """Health check endpoint"""
    status = {
        "status": "ok",
        "provider": config.LLM_PROVIDER,
        "gemini_configured": bool(config.GEMINI_API_KEY),
        "ollama_available": False
    }

    # Check Ollama availability
    try:
        import ollama
        models = ollama.list()
        status["ollama_available"] = any(
            config.OLLAMA_MODEL in (model.get("model") or model.get("name") or "")
            for model in models.get("models", [])
        )
    except Exception as e:
        logger.debug("Ollama not reachable: %s", e)

    return status


@app.post("/api/totals", response_model=InvoiceTotals)
async def totals_endpoint(request: TotalsRequest):
    """Recompute totals for in-progress items"""
    return calculate_totals(request.items)


@app.post("/api/invoices/prepare")
async def prepare_invoice_endpoint(invoice: Dict[str, Any] = Body(...)):
    """Validate an invoice and return the snapshot plus its printable layout"""
    prepared = _prepare(invoice)
    return {
        "invoice": prepared.model_dump(by_alias=True, mode="json"),
        "preview": build_preview(prepared).model_dump(by_alias=True, mode="json"),
    }


@app.post("/api/invoices/export")
async def export_invoice_endpoint(
    invoice: Dict[str, Any] = Body(...),
    format: str = Query("pdf", pattern="^(pdf|png)$")
):
    """Download the invoice as PDF or PNG"""
    prepared = _prepare(invoice)

    try:
        content, media_type, filename = export_invoice(prepared, format)
    except ExportError:
        label = "el PDF" if format == "pdf" else "la imagen PNG"
        raise HTTPException(
            status_code=500,
            detail=f"Hubo un problema al crear {label}."
        )

    return StreamingResponse(
        io.BytesIO(content),
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'}
    )


@app.post("/api/extract/text", response_model=ExtractionResult)
async def extract_text_endpoint(request: TextExtractionRequest):
    """Extract line items from pasted text"""
    return await parse_invoice_text(request.text)


@app.post("/api/extract/image", response_model=ExtractionResult)
async def extract_image_endpoint(request: ImageExtractionRequest):
    """Extract line items from an invoice photo sent as a data URI"""
    if len(request.photo_data_uri) > config.MAX_UPLOAD_BYTES:
        raise HTTPException(
            status_code=413,
            detail=f"Image exceeds the {config.MAX_UPLOAD_BYTES} byte limit"
        )
    return await parse_invoice_image(request.photo_data_uri)


@app.post("/api/extract/upload", response_model=ExtractionResult)
async def extract_upload_endpoint(file: UploadFile = File(...)):
    """Compress an uploaded invoice image (or PDF) and extract its line items"""
    if file.content_type not in SUPPORTED_UPLOAD_TYPES:
        raise HTTPException(
            status_code=400,
            detail=f"Unsupported file type: {file.content_type}"
        )

    # Read file bytes
    file_bytes = await file.read()

    if len(file_bytes) > config.MAX_UPLOAD_BYTES:
        raise HTTPException(
            status_code=413,
            detail=f"File exceeds the {config.MAX_UPLOAD_BYTES} byte limit"
        )

    try:
        photo_data_uri = prepare_upload(file_bytes, file.filename)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return await parse_invoice_image(photo_data_uri)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
