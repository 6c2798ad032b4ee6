"""
The book: metadata, options and ordered chapters, plus the render driver.

Usage:
    book = Book(root="manuscript/1_example", title="Example", author="Me")
    book.add_chapter(Number.DEFAULT, "chapters/01.md")
    book.output_epub = "output/example.epub"
    failures = book.render_all()

Chapters are parsed when added, with the cleaner selected by the book's
language. Relative paths (chapters, cover, images, template overrides,
outputs) are resolved against `root`; the process working directory is
never changed.
"""

import os
from concurrent.futures import ThreadPoolExecutor

from bookpress.cleaner import get_cleaner
from bookpress.errors import BookError, FileNotFound
from bookpress.escape import ESCAPERS
from bookpress.numbering import resolve
from bookpress.parser import Parser
from bookpress.renderers import EpubRenderer, HtmlRenderer, LatexRenderer, OdtRenderer
from bookpress.templates import load_builtin
from bookpress.templating import expand


# Options and their defaults; every one is also an attribute of Book
OPTIONS = {
    "lang": "en",
    "author": "Anonymous",
    "title": "Untitled",
    "description": "",
    "subject": "",
    "cover": None,
    "numbering": True,
    "numbering_template": "{{number}}. {{title}}",
    "autoclean": True,
    "nb_char": " ",
    "verbose": False,
    "temp_dir": None,
    "tex_command": "pdflatex",
    "keep_tex": False,
    "epub_css": None,
    "epub_template": None,
    "epub_version": 2,
    "html_css": None,
    "html_template": None,
    "tex_template": None,
    "output_epub": None,
    "output_html": None,
    "output_tex": None,
    "output_pdf": None,
    "output_odt": None,
}

# Overridable templates → built-in fallback
TEMPLATES = {
    "epub_css": "epub.css",
    "epub_template": None,  # depends on epub_version
    "html_css": "html.css",
    "html_template": "html.html",
    "tex_template": "book.tex",
}

# Render order of render_all()
OUTPUT_FORMATS = ["epub", "html", "tex", "pdf", "odt"]


class Book:
    def __init__(self, root=None, **options):
        unknown = sorted(set(options) - set(OPTIONS))
        if unknown:
            raise ValueError(f"unknown book option(s): {', '.join(unknown)}")
        self.root = os.path.abspath(root or os.getcwd())
        self.chapters = []  # (Number, tokens)
        for key, default in OPTIONS.items():
            setattr(self, key, options.get(key, default))

    def __repr__(self):
        return f"<Book {self.title!r} by {self.author!r}, {len(self.chapters)} chapter(s)>"

    # ── Chapters ───────────────────────────────────────────

    def get_cleaner(self):
        return get_cleaner(self.lang, self.nb_char, self.autoclean)

    def add_chapter(self, number, path):
        """Parse a markdown file and append it as a chapter."""
        tokens = Parser(self.get_cleaner()).parse_file(self.resolve_path(path))
        self.chapters.append((number, tokens))
        return tokens

    def add_chapter_text(self, number, text):
        """Append a chapter from markdown source already in memory."""
        tokens = Parser(self.get_cleaner()).parse(text)
        self.chapters.append((number, tokens))
        return tokens

    def resolved_chapters(self):
        return resolve([number for number, _ in self.chapters], self.numbering)

    def resolve_path(self, path):
        return os.path.join(self.root, os.path.expanduser(path))

    # ── Headers, metadata, templates ───────────────────────

    def get_header(self, number, title):
        """Numbered chapter header from `numbering_template`."""
        return expand(self.numbering_template, number=number, title=title)

    def get_metadata(self, format):
        """Metadata escaped for `format` ("none", "html" or "tex")."""
        if format not in ESCAPERS:
            raise ValueError(f"unknown metadata format: {format!r}")
        escape = ESCAPERS[format]
        return {
            key: escape(str(getattr(self, key) or ""))
            for key in ["author", "title", "lang", "description", "subject"]
        }

    def get_template(self, name):
        """
        Text of an overridable template: the file named by the option of the
        same name, or the built-in one.
        """
        if name not in TEMPLATES:
            raise ValueError(f"unknown template: {name!r}")
        override = getattr(self, name)
        if override:
            path = self.resolve_path(override)
            if not os.path.isfile(path):
                raise FileNotFound(path, name.replace("_", " "))
            with open(path, "r", encoding="utf-8") as f:
                return f.read()
        builtin = TEMPLATES[name]
        if builtin is None:
            builtin = "epub3.opf" if self.epub_version == 3 else "epub2.opf"
        return load_builtin(builtin)

    # ── Rendering ──────────────────────────────────────────

    def render_epub(self, path=None):
        return EpubRenderer(self).build(self._output(path, "epub"))

    def render_html(self, path=None):
        return HtmlRenderer(self).build(self._output(path, "html"))

    def render_tex(self, path=None):
        return LatexRenderer(self).build(self._output(path, "tex"))

    def render_pdf(self, path=None):
        return LatexRenderer(self, keep_tex=self.keep_tex).build_pdf(self._output(path, "pdf"))

    def render_odt(self, path=None):
        return OdtRenderer(self).build(self._output(path, "odt"))

    def _output(self, path, fmt):
        path = path or getattr(self, f"output_{fmt}")
        if not path:
            raise ValueError(f"no output path for {fmt}")
        return self.resolve_path(path)

    def configured_outputs(self):
        return [fmt for fmt in OUTPUT_FORMATS if getattr(self, f"output_{fmt}")]

    def render_all(self, jobs=1):
        """
        Render every configured output.

        Each format is attempted even when another fails. Returns
        {format: error or None}; an empty dict when nothing is configured.
        """
        formats = self.configured_outputs()
        if not formats:
            print("  Warning: no output configured, nothing rendered")
            return {}

        if jobs > 1 and len(formats) > 1:
            with ThreadPoolExecutor(max_workers=jobs) as pool:
                futures = {fmt: pool.submit(self._render_one, fmt) for fmt in formats}
                results = {fmt: future.result() for fmt, future in futures.items()}
        else:
            results = {fmt: self._render_one(fmt) for fmt in formats}

        for fmt, error in results.items():
            if error is not None:
                print(f"  ✗ {fmt} failed: {error}")
        return results

    def _render_one(self, fmt):
        try:
            getattr(self, f"render_{fmt}")()
        except (BookError, OSError) as e:
            return e
        return None
