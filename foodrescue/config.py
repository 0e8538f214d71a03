# foodrescue/config.py
import os
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(BASE_DIR / ".env")

DATA_DIR = Path(os.getenv("DATA_DIR", str(BASE_DIR / "data")))

DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{DATA_DIR / 'foodrescue.db'}")
# optional JSON document (same layout as data/data.json) imported into an empty database
SEED_DATA_PATH = os.getenv("SEED_DATA_PATH", "")

GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-1.5-flash")
VERIFY_TIMEOUT = float(os.getenv("VERIFY_TIMEOUT", "30"))

GOOGLE_MAPS_API_KEY = os.getenv("GOOGLE_MAPS_API_KEY", "")
LOCATION_TIMEOUT = float(os.getenv("LOCATION_TIMEOUT", "10"))

# demo identity used by /init and by /report when no userId is sent
DEFAULT_EMAIL = os.getenv("DEFAULT_EMAIL", "demo@example.com")
DEFAULT_NAME = os.getenv("DEFAULT_NAME", "Demo User")
DEFAULT_LOCATION = os.getenv("DEFAULT_LOCATION", "Unknown location")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
