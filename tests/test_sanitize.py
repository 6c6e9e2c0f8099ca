"""Tests for card text sanitizing."""

import pytest


class TestSanitize:
    def test_plain_text_unchanged(self):
        from reelcompose.sanitize import sanitize

        assert sanitize("Jane Doe") == "Jane Doe"

    def test_apostrophe_becomes_typographic(self):
        from reelcompose.sanitize import sanitize

        assert sanitize("What's your role?") == "What’s your role?"

    def test_double_quote_becomes_typographic(self):
        from reelcompose.sanitize import sanitize

        assert sanitize('Say "hi"') == "Say ”hi”"

    def test_colon_becomes_dash(self):
        from reelcompose.sanitize import sanitize

        assert sanitize("Role: CTO") == "Role - CTO"

    def test_semicolon_and_brackets(self):
        from reelcompose.sanitize import sanitize

        assert sanitize("a;b [c]") == "a b (c)"

    def test_backslash_removed(self):
        from reelcompose.sanitize import sanitize

        assert sanitize("back\\slash") == "backslash"

    def test_none_is_empty(self):
        from reelcompose.sanitize import sanitize

        assert sanitize(None) == ""

    def test_control_characters_become_spaces(self):
        from reelcompose.sanitize import sanitize

        assert sanitize("line1\nline2\ttab") == "line1 line2 tab"

    def test_unicode_kept(self):
        from reelcompose.sanitize import sanitize

        assert sanitize("Zoë — 日本") == "Zoë — 日本"

    @pytest.mark.parametrize("text", [
        "It's 5:00; [done]",
        'quote"\\slash',
        "",
        "nothing special",
        "::;;[[]]''",
    ])
    def test_idempotent(self, text):
        from reelcompose.sanitize import sanitize

        once = sanitize(text)
        assert sanitize(once) == once

    def test_output_has_no_filtergraph_syntax(self):
        from reelcompose.sanitize import sanitize

        out = sanitize("x'\";:[]\\,y")
        for ch in "'\";:[]\\":
            assert ch not in out
