from bistro.utils import sanitize_input


def test_sanitize_removes_script_tags():
    s = "<script>alert(1)</script>Bob"
    out = sanitize_input(s)
    assert "<script" not in out.lower()
    assert "bob" in out.lower()


def test_sanitize_keeps_ampersands_and_collapses_whitespace():
    assert sanitize_input("  Fish  &\tChips ") == "Fish & Chips"


def test_sanitize_none_is_empty():
    assert sanitize_input(None) == ""


def test_sanitize_keeps_plain_text_symbols():
    assert sanitize_input("Spicy <3 wings") == "Spicy <3 wings"
    assert sanitize_input("Spicy <3 wings, 1 < 2 & done") == "Spicy <3 wings, 1 < 2 & done"
    # a literal entity typed by an admin is stored as the character it names
    assert sanitize_input("Mac &amp; Cheese") == "Mac & Cheese"
