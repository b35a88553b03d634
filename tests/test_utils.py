from research_hub.utils import clean_text, make_excerpt, mask_api_key, strip_code_fences


def test_clean_text_collapses_whitespace():
    assert clean_text("  a\n\n\tb   c  ") == "a b c"
    assert clean_text("First paragraph.\n\n  Second\r\nline.") == "First paragraph. Second line."
    assert clean_text("") == ""


def test_make_excerpt():
    text = "One sentence here. Two sentence here. Three sentence here. Four."
    assert make_excerpt(text) == "One sentence here. Two sentence here. Three sentence here."
    assert make_excerpt("Too short.") is None
    assert make_excerpt("") is None
    assert make_excerpt("A single long sentence without a final stop") == "A single long sentence without a final stop"


def test_mask_api_key():
    assert mask_api_key("sk-1234567890") == "sk-12345..."
    assert mask_api_key(None) is None
    assert mask_api_key("") is None


def test_strip_code_fences():
    assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_code_fences('```\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_code_fences('{"a": 1}') == '{"a": 1}'
