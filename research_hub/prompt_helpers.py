from pathlib import Path
from typing import Dict, List
import re
from research_hub.config import LOGGER

PROMPTS_DIR = Path(__file__).resolve().parent / "prompts"
LOADED_CACHE: Dict[str, str] = {}
PROMPT_INCLUDE_PATTERN = re.compile(r"<!-- INCLUDE: ([^>]+) -->")


def _resolve(path: str | Path) -> Path:
    path = Path(path)
    return path if path.is_absolute() else PROMPTS_DIR / path


def _read_prompt_file(path: Path) -> str:
    if not path.exists() or not path.is_file():
        raise FileNotFoundError(f"The file at {path} does not exist, or is not a file.")
    return path.read_text(encoding="utf-8")


def _expand_includes(text: str, stack: List[str]) -> str:
    """
    Replaces every `<!-- INCLUDE: name.md -->` with the named file, expanded in
    turn. `stack` holds the files currently being expanded.
    """
    while (match := PROMPT_INCLUDE_PATTERN.search(text)) is not None:
        name = match.group(1).strip()
        if name in stack:
            raise ValueError(f"Circular reference detected: {name} is already being processed.")

        included = _expand_includes(_read_prompt_file(_resolve(name)), stack + [name])
        parts = (text[: match.start()].strip(), included.strip(), text[match.end() :].strip())
        text = "\n".join(parts)
    return text


def load_prompt(path: str | Path) -> str:
    """Loads a prompt relative to the bundled prompts directory, expanding includes."""
    resolved = _resolve(path)
    key = str(resolved)
    if key not in LOADED_CACHE:
        LOADED_CACHE[key] = _expand_includes(_read_prompt_file(resolved), [resolved.name]).strip()
        LOGGER.debug(f"Loaded prompt from {key}")
    return LOADED_CACHE[key]
