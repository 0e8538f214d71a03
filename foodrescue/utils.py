# foodrescue/utils.py
import base64, binascii, io, json, math, re

from PIL import Image, UnidentifiedImageError

from .errors import MalformedVerificationResponse, ValidationError
from .factors import CO2_OFFSET_PER_UNIT

FENCED_JSON = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", re.DOTALL)
NUMBER = re.compile(r"\d+(?:\.\d+)?")


def _finite_float(s):
    value = float(s)
    return value if math.isfinite(value) else None


# NaN/Infinity and overflowing literals become null; responses are strict JSON
_decoder = json.JSONDecoder(parse_constant=lambda name: None, parse_float=_finite_float)


def extract_json_object(text):
    """Pull the JSON object out of a model reply.

    Tries a fenced ```json block first, then every ``{`` in order, keeping the
    first one that decodes to a complete object.
    """
    if not text or not isinstance(text, str):
        raise MalformedVerificationResponse("empty verification response")
    starts = []
    m = FENCED_JSON.search(text)
    if m:
        starts.append(m.start(1))
    starts.extend(i for i, ch in enumerate(text) if ch == "{")
    for i in starts:
        try:
            obj, _ = _decoder.raw_decode(text, i)
        except ValueError:
            continue
        if isinstance(obj, dict):
            return obj
    raise MalformedVerificationResponse(f"no JSON object in verification response: {text[:120]!r}")


def decode_image(data):
    """Return (bytes, mime_type) for a base64 image, with or without a data-URL header."""
    if not data or not isinstance(data, str):
        raise ValidationError("image is required")
    payload = data.split(",", 1)[1] if data.startswith("data:") and "," in data else data
    try:
        raw = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError("image is not valid base64")
    if not raw:
        raise ValidationError("image is empty")
    return raw, detect_mime(raw)


def detect_mime(raw):
    try:
        with Image.open(io.BytesIO(raw)) as img:
            fmt = (img.format or "").upper()
    except (UnidentifiedImageError, OSError):
        return "image/jpeg"
    return Image.MIME.get(fmt, "image/jpeg")


def parse_quantity(text):
    """First number in a free-text quantity ("2.5 kg" -> 2.5), 0.0 when there is none."""
    m = NUMBER.search(text or "")
    return float(m.group(0)) if m else 0.0


def impact_summary(reports, tasks, accounts):
    collected = sum(parse_quantity(t.quantity) for t in tasks)
    return {
        "food_collected": round(collected, 1),
        "reports_submitted": len(reports),
        "tokens_earned": sum(a.points or 0 for a in accounts),
        "co2_offset": round(collected * CO2_OFFSET_PER_UNIT, 1),
    }


def dumps_or_none(obj):
    if obj is None:
        return None
    if isinstance(obj, str):
        return obj
    return json.dumps(obj)


def loads_or_raw(text):
    if text is None:
        return None
    try:
        return json.loads(text)
    except (TypeError, ValueError):
        return text
