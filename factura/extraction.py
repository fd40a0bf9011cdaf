"""AI extraction of invoice line items from text or images (Gemini, with optional local Ollama)"""
import json
import base64
import asyncio
import logging
from typing import Any, Optional, Tuple
import ollama
from google import genai
from google.genai import types
from pydantic import ValidationError

from . import config
from .images import decode_data_uri
from .models import ExtractionResult


logger = logging.getLogger(__name__)

MIN_TEXT_LENGTH = 10
TEXT_TEMPERATURE = 0.1
IMAGE_TEMPERATURE = 0.2

# (mime type, raw bytes)
ImagePayload = Tuple[str, bytes]


class ExtractionError(ValueError):
    """Raised by the provider layer when a model call fails"""


ITEM_SCHEMA_DESCRIPTION = """
- code (string, opcional): código o SKU del producto, alfanumérico. Si el ítem no muestra un código, OMITE el campo. NO INVENTES CÓDIGOS.
- description (string, obligatorio): descripción completa del producto.
- quantity (number, obligatorio, >= 1): cantidad del producto.
- catalogPrice (number, opcional, >= 0): precio de catálogo POR UNIDAD.
- vendorPrice (number, obligatorio, >= 0): precio de venta de la vendedora POR UNIDAD.
"""

NUMBER_RULES = """
Conversión de números (cantidad y precios):
1. Elimina símbolos de moneda y espacios.
2. Escribe el valor como NÚMERO JSON: punto como separador decimal y sin separadores de miles.
3. Si la coma es el separador decimal, los puntos son separadores de miles, y viceversa.
Ejemplos (texto -> JSON):
- "2" -> 2
- "S/ 20.249,00" -> 20249.00
- "1.234,56" -> 1234.56
- "9.749" -> 9749
- "22,50" -> 22.50
"""

OUTPUT_RULES = """
Formato de respuesta:
- Devuelve un objeto JSON con una ÚNICA clave llamada "items".
- "items" es un array de objetos con el esquema indicado arriba.
- quantity, catalogPrice y vendorPrice deben ser números, no cadenas.
- Si no encuentras ítems válidos, devuelve {{"items": []}}.

Ejemplo:
{{
  "items": [
    {{ "code": "COD001", "description": "Camisa Talla L", "quantity": 2, "catalogPrice": 25.00, "vendorPrice": 20.00 }},
    {{ "description": "Pantalón Jean Azul", "quantity": 1, "vendorPrice": 45.50 }}
  ]
}}

Responde ÚNICAMENTE con el objeto JSON, sin texto adicional ni bloques markdown.
"""

TEXT_EXTRACTION_PROMPT = (
    """
Eres un asistente experto en extraer ítems de facturas a partir de texto.
Analiza el texto y extrae cada ítem o línea de producto.

Texto de entrada:
{text}

Reglas:
- Todos los datos de un ítem (código, descripción, cantidad, precios) deben provenir del MISMO ítem del texto.
- Campos de cada ítem:
"""
    + ITEM_SCHEMA_DESCRIPTION
    + NUMBER_RULES
    + OUTPUT_RULES
)

IMAGE_EXTRACTION_PROMPT = (
    """
Eres un asistente experto en extraer ítems de facturas a partir de imágenes.
Analiza la imagen adjunta; normalmente los ítems aparecen en una tabla.

Reglas:
- Lee la tabla fila por fila. Todos los campos de un ítem deben salir de la MISMA fila visual; no mezcles valores de filas vecinas.
- Columnas habituales: "Cant." o "Cantidad" para quantity; "Precio Unitario" o "P. Unit" para catalogPrice.
- Si la fila solo muestra un total de línea (por ejemplo "Vr. Neto", "Subtotal", "Importe", "Total Item"), calcula vendorPrice como total de línea / quantity.
- Si la descripción parece un código, busca la descripción completa en la misma fila.
- Omite filas sin descripción clara o sin cantidad válida.
- Campos de cada ítem:
"""
    + ITEM_SCHEMA_DESCRIPTION
    + NUMBER_RULES
    + OUTPUT_RULES
).format()


def parse_json_response(text: str) -> Any:
    """Parse JSON from LLM response, handling markdown code blocks"""
    if not text or not text.strip():
        raise ValueError("Empty response")

    # Remove markdown code blocks if present
    if "```" in text:
        text = text.replace("```json", "").replace("```", "")
    text = text.strip()

    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    # Find JSON object bounds
    first_brace = text.find("{")
    last_brace = text.rfind("}")
    if first_brace != -1 and last_brace != -1:
        text = text[first_brace:last_brace + 1]

    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise ValueError(f"Failed to parse JSON response: {e}")


async def gemini_generate(
    prompt: str,
    image: Optional[ImagePayload] = None,
    temperature: float = TEXT_TEMPERATURE
) -> str:
    """Run the prompt on Gemini and return the raw response text"""
    if not config.GEMINI_API_KEY:
        raise ExtractionError("GEMINI_API_KEY not set")

    try:
        client = genai.Client(api_key=config.GEMINI_API_KEY)

        contents = [prompt]
        if image:
            mime_type, image_bytes = image
            contents.append(types.Part.from_bytes(data=image_bytes, mime_type=mime_type))

        response = await asyncio.to_thread(
            client.models.generate_content,
            model=config.GEMINI_MODEL,
            contents=contents,
            config=types.GenerateContentConfig(
                temperature=temperature,
                response_mime_type="application/json",
            ),
        )
        text = response.text
    except Exception as e:
        raise ExtractionError(f"Gemini extraction failed: {e}")

    if not text:
        raise ExtractionError("No response from Gemini")
    return text


async def ollama_generate(
    prompt: str,
    image: Optional[ImagePayload] = None,
    temperature: float = TEXT_TEMPERATURE
) -> str:
    """Run the prompt on the local Ollama vision model and return the raw response text"""
    message = {"role": "user", "content": prompt}
    if image:
        message["images"] = [base64.b64encode(image[1]).decode("utf-8")]

    try:
        response = await asyncio.to_thread(
            ollama.chat,
            model=config.OLLAMA_MODEL,
            messages=[message],
            format="json",
            options={"temperature": temperature},
        )
        text = response["message"]["content"]
    except Exception as e:
        if "not found" in str(e).lower():
            raise ExtractionError(
                f"Ollama model '{config.OLLAMA_MODEL}' not found. Please run: ollama pull {config.OLLAMA_MODEL}"
            )
        raise ExtractionError(f"Ollama extraction failed: {e}")

    if not text:
        raise ExtractionError("No response from Ollama")
    return text


async def generate(
    prompt: str,
    image: Optional[ImagePayload] = None,
    temperature: float = TEXT_TEMPERATURE
) -> str:
    """Dispatch to the configured provider; "auto" tries Ollama first and falls back to Gemini"""
    provider = config.LLM_PROVIDER
    if provider == "ollama":
        return await ollama_generate(prompt, image, temperature)
    if provider == "auto":
        try:
            return await ollama_generate(prompt, image, temperature)
        except ExtractionError as e:
            logger.info("Ollama unavailable, falling back to Gemini: %s", e)
    return await gemini_generate(prompt, image, temperature)


def build_result(raw_text: str, flow: str = "extraction") -> ExtractionResult:
    """Turn a raw model response into an ExtractionResult; invalid output yields no items"""
    try:
        payload = parse_json_response(raw_text)
    except ValueError as e:
        logger.warning("[%s] Model returned unparsable output (%s). Falling back to empty items.", flow, e)
        return ExtractionResult(items=[], error="La IA devolvió una respuesta no válida.")

    if not isinstance(payload, dict) or not isinstance(payload.get("items"), list):
        logger.warning(
            "[%s] Unexpected output structure, expected {\"items\": [...]} but received: %.500s. "
            "Falling back to empty items.",
            flow, json.dumps(payload, ensure_ascii=False),
        )
        return ExtractionResult(items=[], error="La IA devolvió una respuesta no válida.")

    try:
        result = ExtractionResult.model_validate({"items": payload["items"]})
    except ValidationError as e:
        logger.warning("[%s] Extracted items failed validation: %s. Falling back to empty items.", flow, e)
        return ExtractionResult(items=[], error="Los ítems extraídos no cumplen el formato esperado.")

    logger.info("[%s] Extracted %d item(s)", flow, len(result.items))
    return result


async def _run_extraction(
    flow: str,
    prompt: str,
    image: Optional[ImagePayload],
    temperature: float
) -> ExtractionResult:
    try:
        raw_text = await generate(prompt, image=image, temperature=temperature)
    except Exception as e:
        logger.error("[%s] Extraction call failed: %s. Falling back to empty items.", flow, e, exc_info=True)
        return ExtractionResult(items=[], error="Hubo un problema al contactar con la IA.")
    return build_result(raw_text, flow)


async def parse_invoice_text(text: str) -> ExtractionResult:
    """
    Extract line items from free-form text.

    Never raises: short input, provider errors and malformed model output all
    return an empty item list, with `error` set to a user-facing message.
    """
    text = (text or "").strip()
    if len(text) < MIN_TEXT_LENGTH:
        logger.warning("[parse_invoice_text] Input too short (%d chars), skipping model call", len(text))
        return ExtractionResult(
            items=[],
            error=f"El texto debe tener al menos {MIN_TEXT_LENGTH} caracteres.",
        )

    logger.debug("[parse_invoice_text] Extracting items from %d chars of text", len(text))
    prompt = TEXT_EXTRACTION_PROMPT.format(text=text)
    return await _run_extraction("parse_invoice_text", prompt, None, TEXT_TEMPERATURE)


async def parse_invoice_image(photo_data_uri: str) -> ExtractionResult:
    """
    Extract line items from an invoice photo given as a base64 data URI.

    Same contract as parse_invoice_text: never raises.
    """
    try:
        mime_type, image_bytes = decode_data_uri(photo_data_uri)
    except ValueError as e:
        logger.warning("[parse_invoice_image] Invalid image payload: %s", e)
        return ExtractionResult(items=[], error="La imagen no tiene un formato válido.")

    if not mime_type.startswith("image/"):
        logger.warning("[parse_invoice_image] Unsupported MIME type %s", mime_type)
        return ExtractionResult(items=[], error="La imagen no tiene un formato válido.")

    logger.debug("[parse_invoice_image] Extracting items from %s image (%d bytes)", mime_type, len(image_bytes))
    return await _run_extraction(
        "parse_invoice_image",
        IMAGE_EXTRACTION_PROMPT,
        (mime_type, image_bytes),
        IMAGE_TEMPERATURE,
    )
