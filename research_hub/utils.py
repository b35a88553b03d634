import os
import re
from datetime import datetime, timezone
from typing import Optional

from research_hub.config import API_KEY_VISIBLE_CHARS, EXCERPT_SENTENCES, MIN_EXCERPT_LENGTH


def ensure_dir_exists(path: str):
    """Ensures that a directory exists, creating it if necessary."""
    os.makedirs(path, exist_ok=True)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def clean_text(text: str) -> str:
    """Collapses every whitespace run, line breaks included, into a single space."""
    text = re.sub(r"\s+", " ", text)
    return text.strip()


def make_excerpt(content: str, sentences: int = EXCERPT_SENTENCES) -> Optional[str]:
    """First few sentences of `content`, or None when too short to be useful."""
    if not content:
        return None
    parts = content.split(".")[:sentences]
    excerpt = ".".join(parts) + ("." if len(parts) >= sentences else "")
    return excerpt if len(excerpt) > MIN_EXCERPT_LENGTH else None


def mask_api_key(api_key: Optional[str]) -> Optional[str]:
    if not api_key:
        return None
    return f"{api_key[:API_KEY_VISIBLE_CHARS]}..."


def strip_code_fences(text: str) -> str:
    """Removes a surrounding ```json ... ``` block that chat models like to add."""
    text = text.strip()
    match = re.match(r"^```[a-zA-Z]*\s*\n?(.*?)\n?```$", text, re.DOTALL)
    return match.group(1).strip() if match else text
