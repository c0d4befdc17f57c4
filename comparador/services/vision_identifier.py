# comparador/services/vision_identifier.py

"""Photo-based product identification using Gemini vision."""

import json
import logging
import re
from typing import Any, Protocol, cast

import google.generativeai as genai  # type: ignore[import-untyped]

from comparador.config.settings import Settings
from comparador.models.product import Confidence, VisionResult

logger = logging.getLogger("comparador.vision")

# Leading magic bytes of the formats the model accepts
_MAGIC_HEADERS: dict[bytes, str] = {
    b"\xff\xd8\xff": "image/jpeg",
    b"\x89PNG\r\n\x1a\n": "image/png",
    b"GIF87a": "image/gif",
    b"GIF89a": "image/gif",
}

_JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")

_PROMPT = """\
Actúa como un experto en retail peruano. Analiza esta imagen de producto \
y extrae datos para un comparador de precios.

Responde SOLO con un objeto JSON válido:
{
  "productName": "Nombre comercial completo (Marca + Producto + Variante)",
  "brand": "Marca principal",
  "quantity": "Contenido neto (ej: '1.5L', '500g') o null",
  "category": "Bebidas, Abarrotes, Limpieza, Lácteos, Cuidado Personal, \
Tecnología o Snacks",
  "confidence": "high, medium o low"
}

No inventes información que no veas claramente."""


class VisionIdentifier(Protocol):
    """Image bytes -> candidate product identification."""

    def identify(self, image_bytes: bytes) -> VisionResult | None: ...


def detect_mime_type(image_bytes: bytes) -> str | None:
    """MIME type from the magic header, or ``None`` if unsupported."""
    for magic, mime in _MAGIC_HEADERS.items():
        if image_bytes.startswith(magic):
            return mime
    if image_bytes[:4] == b"RIFF" and image_bytes[8:12] == b"WEBP":
        return "image/webp"
    return None


def parse_model_output(text: str) -> VisionResult | None:
    """Read the model's JSON answer; ``None`` when it is unusable."""
    try:
        data: Any = json.loads(text)
    except (json.JSONDecodeError, TypeError):
        match = _JSON_OBJECT_RE.search(text or "")
        if not match:
            return None
        try:
            data = json.loads(match.group(0))
        except json.JSONDecodeError:
            return None
    if not isinstance(data, dict):
        return None

    payload = cast(dict[str, Any], data)
    name = str(payload.get("productName") or "").strip()
    if not name:
        return None

    quantity = payload.get("quantity")
    quantity_text = str(quantity).strip() if quantity else None
    if quantity_text and quantity_text.lower() not in name.lower():
        name = f"{name} {quantity_text}"

    return VisionResult(
        name=name,
        confidence=Confidence.from_label(payload.get("confidence")),
        brand=payload.get("brand") or None,
        category=payload.get("category") or None,
        quantity=quantity_text,
    )


class GeminiVisionIdentifier:
    """Identify a product photo with a Gemini model in JSON mode."""

    def __init__(
        self,
        api_key: str | None = None,
        model_name: str | None = None,
    ) -> None:
        self.settings = Settings()
        self.api_key = (
            api_key if api_key is not None else self.settings.GEMINI_API_KEY
        )
        self.model_name = model_name or self.settings.GEMINI_MODEL
        self._model: Any = None

    def _get_model(self) -> Any:
        if self._model is None:
            genai.configure(api_key=self.api_key)
            self._model = genai.GenerativeModel(
                self.model_name,
                generation_config={
                    "response_mime_type": "application/json",
                    "temperature": 0.1,
                    "max_output_tokens": 500,
                },
            )
        return self._model

    def validate_image(self, image_bytes: bytes) -> str | None:
        """Return the image MIME type, or ``None`` if it is rejected."""
        if not image_bytes:
            logger.warning("Image rejected: empty payload")
            return None
        if len(image_bytes) > self.settings.MAX_IMAGE_BYTES:
            logger.warning(
                "Image rejected: %.2f MB exceeds limit",
                len(image_bytes) / (1024 * 1024),
            )
            return None
        mime = detect_mime_type(image_bytes)
        if mime is None:
            logger.warning("Image rejected: unrecognised format")
        return mime

    def identify(self, image_bytes: bytes) -> VisionResult | None:
        """Ask the model what product the photo shows."""
        if not self.api_key:
            logger.warning("GEMINI_API_KEY not configured, skipping vision")
            return None
        mime = self.validate_image(image_bytes)
        if mime is None:
            return None

        response = self._get_model().generate_content(
            [_PROMPT, {"mime_type": mime, "data": image_bytes}]
        )
        text = str(getattr(response, "text", "") or "")
        logger.debug("Vision raw response: %s", text[:200])

        result = parse_model_output(text)
        if result is None:
            logger.warning("Vision output could not be parsed")
            return None
        logger.info(
            "Vision identified '%s' (confidence=%s)",
            result.name,
            result.confidence.label,
        )
        return result
