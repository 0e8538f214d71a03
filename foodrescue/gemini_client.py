# foodrescue/gemini_client.py
import base64
import logging

import requests

from . import config
from .errors import VerificationRejected, VerificationTimeout
from .utils import decode_image

logger = logging.getLogger(__name__)

GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

FOOD_PROMPT = """You are an expert in food analysis. Analyze this image and provide:
1. The type of food (e.g. "pizza", "salad"). Just give the food name without any extra text.
2. An estimate of the quantity (in portions or kg).
3. Your confidence level in this assessment (as a number between 0 and 1).
4. Estimated time before the food might spoil (in hours).

Respond in JSON format like this:
{
  "foodType": "food name",
  "quantity": "estimated quantity with unit",
  "confidence": 0.9,
  "expiryHours": 12
}"""


def call_gemini_vision(image_bytes: bytes, mime_type: str, prompt: str = FOOD_PROMPT, timeout=None) -> str:
    if not config.GEMINI_API_KEY:
        raise VerificationRejected("GEMINI_API_KEY is not configured")

    payload = {
        "contents": [
            {
                "parts": [
                    {"text": prompt},
                    {"inline_data": {"mime_type": mime_type,
                                     "data": base64.b64encode(image_bytes).decode("ascii")}},
                ]
            }
        ]
    }

    try:
        r = requests.post(
            GEMINI_URL.format(model=config.GEMINI_MODEL),
            params={"key": config.GEMINI_API_KEY},
            json=payload,
            timeout=timeout or config.VERIFY_TIMEOUT,
        )
    except requests.Timeout as e:
        logger.error("gemini call timed out: %s", e)
        raise VerificationTimeout(str(e))
    except requests.RequestException as e:
        logger.error("gemini call failed: %s", e)
        raise VerificationRejected(str(e))

    if not r.ok:
        logger.error("gemini returned %s: %s", r.status_code, r.text[:200])
        raise VerificationRejected(f"Gemini error {r.status_code}")

    try:
        data = r.json()
    except ValueError:
        raise VerificationRejected("Gemini returned a non-JSON body")

    output = (
        (data.get("candidates") or [{}])[0]
        .get("content", {})
        .get("parts", [{}])[0]
        .get("text", "")
    )
    if not output:
        raise VerificationRejected("Gemini returned no text")
    return output


def verify_food(image, timeout=None) -> str:
    """Raw model text for a base64 (data-URL) food photo."""
    raw, mime = decode_image(image)
    return call_gemini_vision(raw, mime, timeout=timeout)
