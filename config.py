import os

from dotenv import load_dotenv

load_dotenv()

GEMINI_API_KEY = (os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY") or "").strip()
GEMINI_BASE_URL = os.getenv("GEMINI_API_URL", "https://generativelanguage.googleapis.com").rstrip("/")

OPENROUTER_API_KEY = os.getenv("OPENROUTER_API_KEY", "").strip()
OPENROUTER_BASE_URL = os.getenv("OPENROUTER_API_URL", "https://openrouter.ai/api/v1").rstrip("/")

GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-1.5-flash").strip()
QWEN_MODEL = os.getenv("QWEN_MODEL", "qwen/qwen3-coder:free").strip()
MISTRAL_MODEL = os.getenv("MISTRAL_MODEL", "mistralai/codestral-latest").strip()

REQUEST_TIMEOUT = float(os.getenv("REQUEST_TIMEOUT", "120"))

HOST = os.getenv("HOST", "0.0.0.0").strip()
PORT = int(os.getenv("PORT", "3001"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").strip().upper()

BASE_DIR = os.path.dirname(__file__)
STATIC_DIR = os.path.join(BASE_DIR, "static")
