from wakelink.utils.display import printable


def test_left_to_right_text_is_unchanged():
    assert printable("Hello, world") == "Hello, world"


def test_hebrew_is_reordered_for_terminal():
    assert printable("שלום") == "םולש"
