"""
bookpress: markdown manuscripts to EPUB, HTML, LaTeX/PDF and ODT.

Public API:
    from bookpress.book import Book
    from bookpress.config import BookConfig, ConfigError
    from bookpress.numbering import Number, resolve
    from bookpress.parser import Parser
    from bookpress.cleaner import get_cleaner
    from bookpress.renderers import RENDERERS, DEFAULT_FORMATS
    from bookpress.resolve import find_book_dir
"""

__version__ = "0.1.0"
