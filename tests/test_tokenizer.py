"""Tests for the inbound command tokenizer."""

from emacsbridge.protocol.tokenizer import tokenize


class TestTokenize:
    def test_bare_and_quoted(self):
        assert tokenize('foo "bar baz" 3') == ["foo", "bar baz", "3"]

    def test_empty_string(self):
        assert tokenize("") == []

    def test_whitespace_only(self):
        assert tokenize("  \t\n  ") == []

    def test_leading_whitespace_skipped(self):
        assert tokenize("   goto  12") == ["goto", "12"]

    def test_empty_quoted_string(self):
        assert tokenize('set ""') == ["set", ""]

    def test_backslash_inside_quotes_kept_verbatim(self):
        """Escapes are tolerated but not decoded."""
        assert tokenize(r'say "a \"quoted\" word"') == ["say", r'a \"quoted\" word']

    def test_quoted_string_with_newline(self):
        assert tokenize('insert "two\nlines"') == ["insert", "two\nlines"]

    def test_trailing_newline(self):
        assert tokenize('visit "/tmp/a b.txt" 4\n') == ["visit", "/tmp/a b.txt", "4"]

    def test_unterminated_quote_does_not_fail(self):
        tokens = tokenize('open "half')
        assert tokens[0] == "open"
        assert tokens[1] == '"half'

    def test_multiple_lines_form_one_token_list(self):
        assert tokenize("first a\nsecond b") == ["first", "a", "second", "b"]
