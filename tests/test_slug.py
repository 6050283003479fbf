"""Tests for slug and filename utilities."""

import pytest

from kanban_md.utils.slug import MAX_SLUG_LENGTH, extract_id, generate_filename, slugify


class TestSlugify:
    """Tests for the slugify function."""

    def test_basic_text(self):
        """Simple text is lowercased and spaces become hyphens."""
        assert slugify("Hello World") == "hello-world"

    def test_special_characters_collapse(self):
        """Runs of non-alphanumerics become one hyphen."""
        assert slugify("Fix Login Bug!") == "fix-login-bug"
        assert slugify("What's up?") == "what-s-up"
        assert slugify("a @#$% b") == "a-b"

    def test_leading_trailing_hyphens_removed(self):
        """Leading and trailing hyphens are stripped."""
        assert slugify("  hello world  ") == "hello-world"
        assert slugify("---hello---") == "hello"

    def test_unicode_normalized(self):
        """Accented characters fold to ASCII."""
        assert slugify("café") == "cafe"
        assert slugify("résumé") == "resume"

    def test_empty_result(self):
        """All-special-character input produces an empty string."""
        assert slugify("@#$%") == ""

    def test_length_capped(self):
        """Slugs are cut to the maximum length without a trailing hyphen."""
        slug = slugify("word " * 40)
        assert len(slug) <= MAX_SLUG_LENGTH
        assert not slug.endswith("-")


class TestGenerateFilename:
    """Tests for the generate_filename function."""

    def test_zero_padded_id(self):
        """Ids are padded to three digits."""
        assert generate_filename(7, "Fix login") == "007-fix-login.md"

    def test_wide_id(self):
        """Ids wider than three digits are kept whole."""
        assert generate_filename(1234, "Big") == "1234-big.md"

    def test_empty_slug_falls_back(self):
        """Titles with no slug characters use 'task'."""
        assert generate_filename(3, "!!!") == "003-task.md"


class TestExtractId:
    """Tests for the extract_id function."""

    def test_leading_digits(self):
        assert extract_id("042-fix-login.md") == 42

    def test_no_id_raises(self):
        """Filenames without a leading id raise ValueError."""
        with pytest.raises(ValueError):
            extract_id("notes.md")

    def test_digits_without_hyphen_raise(self):
        with pytest.raises(ValueError):
            extract_id("42.md")
