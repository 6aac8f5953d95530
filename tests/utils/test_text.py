"""Tests for slug generation."""

from jacms.utils.text import slugify


class TestSlugify:
    def test_collapses_punctuation_and_spaces(self):
        assert slugify("News  &  Events") == "news-events"

    def test_keeps_existing_dashes_single(self):
        assert slugify("a -- b") == "a-b"

    def test_non_ascii_uses_fallback(self):
        assert slugify("日本語", "tag") == "tag"

    def test_empty_without_fallback(self):
        assert slugify("日本語") == ""
