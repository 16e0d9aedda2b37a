"""
SkinAI 設定ファイル
Configuration for the SkinAI analysis funnel.

Camera capture is handled client-side via WebRTC / getUserMedia.
Values come from environment variables (optionally a .env file).
"""
import os

from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, default))
    except (TypeError, ValueError):
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.environ.get(name, default))
    except (TypeError, ValueError):
        return default


# ── データディレクトリ ──
BASE_DIR = os.path.dirname(os.path.abspath(__file__))
DATA_DIR = os.environ.get("SKINAI_DATA_DIR", os.path.join(BASE_DIR, "data"))

# ── 画像設定 ──
MAX_IMAGE_BYTES = _env_int("MAX_IMAGE_BYTES", 5000 * 1024)
MAX_IMAGE_EDGE = _env_int("MAX_IMAGE_EDGE", 2048)
JPEG_QUALITY = _env_int("JPEG_QUALITY", 80)
# phone cameras often write multi-picture JPEGs, which Pillow reports as MPO
ACCEPTED_FORMATS = ("JPEG", "MPO", "PNG", "WEBP", "GIF", "BMP")

# ── Flask 設定 ──
FLASK_HOST = os.environ.get("FLASK_HOST", "0.0.0.0")
FLASK_PORT = _env_int("FLASK_PORT", 5000)
FLASK_DEBUG = os.environ.get("FLASK_DEBUG", "0") == "1"
SECRET_KEY = os.environ.get("SECRET_KEY", "skinai-dev-secret-change-me")
# base64 data URLs are ~4/3 of the raw bytes
MAX_CONTENT_LENGTH = _env_int("MAX_CONTENT_LENGTH", MAX_IMAGE_BYTES * 2)
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

# ── Database 設定 ──
SQLALCHEMY_DATABASE_URI = os.environ.get(
    "SQLALCHEMY_DATABASE_URI",
    f"sqlite:///{os.path.join(DATA_DIR, 'skinai.db')}",
)
SQLALCHEMY_TRACK_MODIFICATIONS = False
HANDOFF_TTL_MINUTES = _env_int("HANDOFF_TTL_MINUTES", 30)

os.makedirs(DATA_DIR, exist_ok=True)

# ── Analysis API ──
# openai | gemini | mock
ANALYSIS_PROVIDER = os.environ.get("ANALYSIS_PROVIDER", "openai").lower()
ANALYSIS_TIMEOUT = _env_float("ANALYSIS_TIMEOUT", 60.0)

OPENAI_API_KEY = os.environ.get("OPENAI_API_KEY", "")
OPENAI_BASE_URL = os.environ.get("OPENAI_BASE_URL", "https://api.openai.com/v1")
OPENAI_MODEL = os.environ.get("OPENAI_MODEL", "gpt-4o-mini")
OPENAI_MAX_TOKENS = _env_int("OPENAI_MAX_TOKENS", 4000)
OPENAI_TEMPERATURE = _env_float("OPENAI_TEMPERATURE", 0.3)
IMAGE_DETAIL_LEVEL = os.environ.get("IMAGE_DETAIL_LEVEL", "high")

GOOGLE_API_KEY = os.environ.get("GOOGLE_API_KEY", "")
GEMINI_MODEL = os.environ.get("GEMINI_MODEL", "gemini-1.5-flash")

PLACEHOLDER_KEYS = ("", "your_openai_api_key_here", "your_google_api_key_here")
