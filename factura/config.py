"""Environment configuration and logging setup"""
import os
import sys
import logging
from dotenv import load_dotenv


load_dotenv()

GEMINI_API_KEY = os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY")
GEMINI_MODEL = os.getenv("FACTURA_GEMINI_MODEL", "gemini-2.0-flash")
OLLAMA_MODEL = os.getenv("FACTURA_OLLAMA_MODEL", "qwen2.5vl")

# "gemini", "ollama" or "auto" (Ollama first, Gemini on failure)
LLM_PROVIDER = os.getenv("FACTURA_LLM_PROVIDER", "gemini").lower()

# Image uploads are capped at ~20MB
MAX_UPLOAD_BYTES = int(os.getenv("FACTURA_MAX_UPLOAD_BYTES", "20000000"))

LOG_LEVEL = os.getenv("FACTURA_LOG_LEVEL", "INFO").upper()

CORS_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:5173",
    "http://localhost:9002",
]


def configure_logging(level: str = None) -> None:
    """Attach a stdout handler to the package logger"""
    logger = logging.getLogger("factura")
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s [%(name)s] %(message)s"
        ))
        logger.addHandler(handler)
    logger.setLevel(level or LOG_LEVEL)
