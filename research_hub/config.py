# config.py
import os
import sys

from dotenv import load_dotenv
from loguru import logger as LOGGER  # noqa: F401

_custom_format = (
    "<green>{time: HH:mm:ss}</green> | "
    "<level>{level: <5}</level> | "
    "<level>{message}</level>"
)
LOGGER.remove()
LOGGER.add(sink=sys.stdout, format=_custom_format, level="DEBUG" if os.getenv("DEBUG") else "INFO")

load_dotenv()

# --- Paths ---
VAULT_DIR = os.getenv("VAULT_DIR", "vault")

# --- Extraction ---
USER_AGENT = os.getenv(
    "USER_AGENT",
    "Mozilla/5.0 (compatible; ResearchHub/1.0; +https://research-hub.example.com)",
)
FETCH_TIMEOUT = float(os.getenv("FETCH_TIMEOUT", "20"))
MIN_CONTENT_LENGTH = 100
MIN_EXCERPT_LENGTH = 20
EXCERPT_SENTENCES = 3

# --- Monitoring ---
MONITOR_INTERVAL_SECONDS = float(os.getenv("MONITOR_INTERVAL_SECONDS", str(60 * 60)))
MONITOR_INITIAL_DELAY_SECONDS = float(os.getenv("MONITOR_INITIAL_DELAY_SECONDS", "1"))
# Single acceptance threshold for collected content.
RELEVANCE_THRESHOLD = int(os.getenv("RELEVANCE_THRESHOLD", "30"))
MANUAL_CONTENT_RELEVANCE = int(os.getenv("MANUAL_CONTENT_RELEVANCE", "85"))

# --- AI Providers ---
AI_REQUEST_TIMEOUT = float(os.getenv("AI_REQUEST_TIMEOUT", "120"))
DEFAULT_TEMPERATURE = float(os.getenv("DEFAULT_TEMPERATURE", "0.1"))
ANTHROPIC_MAX_TOKENS = int(os.getenv("ANTHROPIC_MAX_TOKENS", "4000"))
AZURE_OPENAI_API_VERSION = os.getenv("AZURE_OPENAI_API_VERSION", "2024-10-21")
VERTEXAI_DEFAULT_REGION = os.getenv("VERTEXAI_DEFAULT_REGION", "us-central1")
STRUCTURED_FALLBACK_LENGTH = 500
API_KEY_VISIBLE_CHARS = 8

# --- Summaries ---
FULL_SUMMARY_LIMIT = int(os.getenv("FULL_SUMMARY_LIMIT", "100"))
MAX_TITLE_LENGTH = 80
SUMMARY_ITEM_SEPARATOR = "\n\n---\n\n"
