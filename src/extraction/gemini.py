"""Gemini vision backend for receipt extraction."""

import json
import logging
from typing import Any, Dict, Optional

from shared.exceptions import ExtractionError, ValidationError
from shared.images import decode_data_url
from receipts.models import Receipt, VALID_CATEGORIES
from extraction.parser import ReceiptParser

logger = logging.getLogger(__name__)

SYSTEM_INSTRUCTION = (
    "You are an expert accountant and data entry specialist. Analyze receipt images, "
    "even handwritten ones, with high precision. If the date is missing, use today's date. "
    "If time is missing, use 12:00. If address is missing, infer from merchant name or leave "
    "empty. Always attempt to find the VAT/Tax amount."
)

_PROMPT = f"""\
Analyze this receipt. Extract the merchant, address, date, time, total amount,
and total VAT/Tax amount. Identify the currency. Categorize the expense. Try to
estimate the latitude and longitude of the business if the address is present
or the business is a known chain in a specific city found on the receipt.

Return only a JSON object with these keys:
  merchantName (string), merchantAddress (string),
  date (YYYY-MM-DD), time (HH:MM, 24h),
  amount (number, gross total), currency (3-letter code),
  vat (number, 0 if not found),
  category (one of: {", ".join(VALID_CATEGORIES)}),
  type ("Business" or "Private"),
  latitude (number or null), longitude (number or null)
"""


class GeminiReceiptExtractor:
    """Extract structured receipt data using Google Gemini's vision capability."""

    def __init__(self, api_key: str = "", model: str = "gemini-2.5-flash") -> None:
        self._api_key = api_key
        self._model = model

    async def analyze(self, image_data: str, target_currency: str) -> Receipt:
        """
        Extract a receipt from an inline image.

        Args:
            image_data: Data URL of the receipt photo
            target_currency: Currency used when none is recognised

        Returns:
            New receipt carrying the inline image

        Raises:
            ExtractionError: If the model cannot be called or answers garbage
        """
        if not self._api_key:
            raise ExtractionError(
                "Gemini API key is not configured. Set GEMINI_API_KEY."
            )

        try:
            content, mime_type = decode_data_url(image_data)
        except ValidationError as e:
            raise ExtractionError(f"Invalid receipt image: {e.message}")

        try:
            import google.generativeai as genai
        except ImportError:
            raise ImportError(
                "google-generativeai SDK is required: pip install google-generativeai"
            ) from None

        genai.configure(api_key=self._api_key)
        model = genai.GenerativeModel(self._model, system_instruction=SYSTEM_INSTRUCTION)

        try:
            response = await model.generate_content_async(
                [{"mime_type": mime_type, "data": content}, _PROMPT],
                generation_config={"response_mime_type": "application/json"},
            )
            text = response.text
        except Exception as e:
            logger.error(f"Gemini analysis error: {e}")
            raise ExtractionError(f"Receipt analysis failed: {str(e)}")

        extracted = _parse_response(text)
        return ReceiptParser.to_receipt(extracted, image_data, target_currency)


def _parse_response(text: Optional[str]) -> Dict[str, Any]:
    """Parse the JSON object from Gemini's response."""
    if not text:
        raise ExtractionError("No response from Gemini")

    cleaned = text.strip()
    if cleaned.startswith("```"):
        lines = cleaned.split("\n")
        lines = [l for l in lines[1:] if not l.strip().startswith("```")]
        cleaned = "\n".join(lines)

    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        logger.error(f"Unparseable Gemini response: {text[:200]!r}")
        raise ExtractionError(f"Invalid response from Gemini: {str(e)}")

    if not isinstance(data, dict):
        raise ExtractionError("Gemini response is not a JSON object")
    return data
