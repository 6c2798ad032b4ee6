"""
Pytest configuration and shared fixtures for bookpress tests.
"""
import os
import sys
import textwrap

import pytest

# Make scripts/ importable when the package is not installed
SCRIPTS_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "scripts")
sys.path.insert(0, SCRIPTS_DIR)

from bookpress.book import Book
from bookpress.numbering import Number


# ============================================================================
# Fixtures: books
# ============================================================================

@pytest.fixture
def make_book(tmp_path):
    """Factory for a Book rooted in a temporary directory."""

    def factory(*chapters, **options):
        options.setdefault("title", "Test Book")
        options.setdefault("author", "Test Author")
        book = Book(root=str(tmp_path), **options)
        for chapter in chapters:
            number, text = chapter if isinstance(chapter, tuple) else (Number.DEFAULT, chapter)
            book.add_chapter_text(number, textwrap.dedent(text))
        return book

    return factory


@pytest.fixture
def book_dir(tmp_path):
    """A book directory with book.yaml and three chapters under chapters/."""
    root = tmp_path / "manuscript" / "1_example"
    (root / "chapters").mkdir(parents=True)
    (root / "book.yaml").write_text(
        textwrap.dedent(
            """\
            title: The Example
            author: Jane Doe
            lang: en
            """
        ),
        encoding="utf-8",
    )
    (root / "chapters" / "2_second.md").write_text("# Second\n\nMore text.\n", encoding="utf-8")
    (root / "chapters" / "1_first.md").write_text("# First\n\nHello, world.\n", encoding="utf-8")
    (root / "chapters" / "10_last.md").write_text("# Last\n\nThe end.\n", encoding="utf-8")
    return root


@pytest.fixture
def png_bytes():
    """Bytes of a tiny image file; content is never decoded."""
    return b"\x89PNG\r\n\x1a\n" + b"\x00" * 16
