import os

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in {"1", "true", "yes"}


def _env_float(name: str, default: float | None) -> float | None:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return float(value)


# --- Upstream services ---

VISION_API_KEY = os.getenv("VISION_API_KEY", "")
VISION_ENDPOINT = os.getenv("VISION_ENDPOINT", "https://vision.googleapis.com/v1/images:annotate")

GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-1.5-flash")
GEMINI_BASE_URL = os.getenv("GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta")
GEMINI_TEMPERATURE = _env_float("GEMINI_TEMPERATURE", None)  # None = model default sampling

FIELD_EXTRACTION_PROVIDER = os.getenv("FIELD_EXTRACTION_PROVIDER", "gemini")
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o")

# --- Call policy ---

UPSTREAM_TIMEOUT_SECONDS = _env_float("UPSTREAM_TIMEOUT_SECONDS", 15.0)
UPSTREAM_MAX_RETRIES = int(os.getenv("UPSTREAM_MAX_RETRIES", "1"))

# --- Draft policy ---

TOTAL_TOLERANCE = _env_float("TOTAL_TOLERANCE", 0.01)
STRICT_TOTALS = _env_bool("STRICT_TOTALS")
