"""
Book configuration: load, validate, and provide defaults for book.yaml.

    title: The Example
    author: Jane Doe
    lang: fr
    output:
      epub: output/example.epub
      pdf: output/example.pdf
    epub:
      version: 3
      css: epub.css
    chapters:
      - "! title_page.md"
      - "+ chapters/01.md"
      - "- interlude.md"

Keys may use dashes or underscores (`nb-char` or `nb_char`).
"""

import os

import yaml

from bookpress.book import Book, OPTIONS
from bookpress.errors import ConfigError
from bookpress.numbering import Number, parse_directive
from bookpress.resolve import find_chapter_files, resolve_artifact


# Fields required in every book.yaml
REQUIRED_FIELDS = ["title", "author"]

# Defaults applied if missing
DEFAULTS = {
    "prefix": "",
    "output": {},
    "epub": {},
    "html": {},
    "tex": {},
}

# Top-level keys copied straight onto the Book
BOOK_FIELDS = [
    "lang", "author", "title", "description", "subject", "numbering",
    "numbering_template", "autoclean", "nb_char", "temp_dir", "tex_command",
]

OUTPUT_FORMATS = ["epub", "html", "tex", "pdf", "odt"]


def _normalize(data):
    """Dashed keys to underscores, one level of nesting deep."""
    normalized = {}
    for key, value in data.items():
        key = str(key).replace("-", "_")
        if isinstance(value, dict):
            value = {str(k).replace("-", "_"): v for k, v in value.items()}
        normalized[key] = value
    return normalized


class BookConfig:
    """
    Loaded, validated book configuration.

    Usage:
        config = BookConfig.load(book_dir)
        config.title          # "The Example"
        config.epub["css"]    # "epub.css"
        config.get("series")  # None if not set
        book = config.to_book()
    """

    def __init__(self, data, book_dir):
        self._data = data
        self.book_dir = book_dir

    @classmethod
    def load(cls, book_dir):
        """Load and validate book.yaml from a book directory."""
        yaml_path = os.path.join(book_dir, "book.yaml")
        if not os.path.exists(yaml_path):
            raise ConfigError(f"No book.yaml found in {book_dir}")

        try:
            with open(yaml_path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"book.yaml is not valid YAML: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"book.yaml must be a YAML mapping, got {type(data).__name__}")
        data = _normalize(data)

        # Validate required fields
        missing = [key for key in REQUIRED_FIELDS if not data.get(key)]
        if missing:
            raise ConfigError(
                f"book.yaml missing required fields: {', '.join(missing)}"
            )

        # Apply top-level defaults
        for key, default in DEFAULTS.items():
            data.setdefault(key, type(default)(default) if isinstance(default, dict) else default)
        for key in ["output", "epub", "html", "tex"]:
            if not isinstance(data[key], dict):
                raise ConfigError(f"book.yaml: '{key}' must be a mapping")

        unknown = sorted(set(data["output"]) - set(OUTPUT_FORMATS))
        if unknown:
            raise ConfigError(f"book.yaml: unknown output format(s): {', '.join(unknown)}")

        version = data["epub"].get("version", 2)
        if version not in (2, 3):
            raise ConfigError(f"book.yaml: epub.version must be 2 or 3, got {version!r}")

        nb_char = data.get("nb_char", OPTIONS["nb_char"])
        if not isinstance(nb_char, str) or len(nb_char) != 1:
            raise ConfigError(f"book.yaml: nb_char must be a single character, got {nb_char!r}")

        chapters = data.get("chapters")
        if chapters is not None and not isinstance(chapters, list):
            raise ConfigError("book.yaml: 'chapters' must be a list of chapter directives")

        return cls(data, book_dir)

    # ── Attribute access ───────────────────────────────────

    def __getattr__(self, name):
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self._data[name]
        except KeyError:
            raise AttributeError(f"BookConfig has no field '{name}'")

    def get(self, key, default=None):
        return self._data.get(key, default)

    def __getitem__(self, key):
        return self._data[key]

    def __contains__(self, key):
        return key in self._data

    # ── Convenience ────────────────────────────────────────

    def chapter_directives(self):
        """[(Number, relative path)] from `chapters`, or discovered files."""
        chapters = self.get("chapters")
        if chapters is None:
            return [(Number.DEFAULT, path) for path in find_chapter_files(self.book_dir)]
        return [parse_directive(line) for line in chapters]

    def artifact(self, filename):
        """An override file's resolved path, or the name as given if not found."""
        if not filename:
            return None
        return resolve_artifact(self.book_dir, filename) or filename

    def book_options(self):
        """Keyword arguments for Book()."""
        options = {key: self._data[key] for key in BOOK_FIELDS if key in self._data}
        options["cover"] = self.artifact(self.get("cover"))
        options["epub_version"] = self.epub.get("version", 2)
        options["epub_css"] = self.artifact(self.epub.get("css"))
        options["epub_template"] = self.artifact(self.epub.get("template"))
        options["html_css"] = self.artifact(self.html.get("css"))
        options["html_template"] = self.artifact(self.html.get("template"))
        options["tex_template"] = self.artifact(self.tex.get("template"))
        if self.tex.get("command"):
            options["tex_command"] = self.tex["command"]
        for fmt in OUTPUT_FORMATS:
            options[f"output_{fmt}"] = self.output.get(fmt)
        return options

    def to_book(self, verbose=False):
        """
        Build the Book and parse its chapters.

        Raises ConfigError for bad directives, FileNotFound or ParseError
        for unreadable chapters.
        """
        book = Book(root=self.book_dir, verbose=verbose, **self.book_options())
        for number, path in self.chapter_directives():
            book.add_chapter(number, path)
        return book

    def summary(self):
        """Print a short config summary."""
        print(f"\n  Book:   {self.title}")
        print(f"  Author: {self.author}")
        print(f"  Source: {self.book_dir}")
        print(f"  Output: {', '.join(self.output) or 'none configured'}")
