from typing import Literal, Optional
from research_hub.prompt_helpers import load_prompt

SUMMARIZE_SYSTEM = load_prompt("summarize_system.md")
EXTRACT_STRUCTURED_SYSTEM = load_prompt("extract_structured_system.md")
SUMMARIZE_USER = load_prompt("summarize_user.md")
EXTRACT_STRUCTURED_USER = load_prompt("extract_structured_user.md")
SUMMARY_TITLE_PROMPT = load_prompt("summary_title.md")
FULL_SUMMARY_INPUT = load_prompt("full_summary_input.md")
DIFFERENTIAL_SUMMARY_INPUT = load_prompt("differential_summary_input.md")
CONNECTION_TEST_PROMPT = "Reply with the single word: ok"


def summarize_system_prompt(focus: Optional[str] = None) -> str:
    if focus and focus.strip():
        return SUMMARIZE_SYSTEM + f"\n- Pay special attention to: {focus.strip()}"
    return SUMMARIZE_SYSTEM


def create_message_entry(
    role: Literal["user", "assistant", "system"],
    template: str,
    **kwargs,
):
    if kwargs:
        content = template.format(**kwargs)
    else:
        content = template
    if role not in ["user", "assistant", "system"]:
        raise ValueError(f"Invalid role: {role}. Must be 'user', 'assistant', or 'system'.")
    return {"role": role, "content": content}
