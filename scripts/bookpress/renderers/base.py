"""
Base renderer shared by every output format.

Subclasses set `format_name` / `key` / `extension`, implement `escape()`,
the `visit_*` methods for each token type, `render_title()` and
`render()`. Shared logic (chapter walk, numbering headers, footnote
bookkeeping, status output, external commands, atomic writes) lives here.

Each chapter goes through the same states:

    NOT_STARTED → RENDERING_HEADER → RENDERING_BODY → DONE

RENDERING_HEADER is skipped when the chapter title is hidden.
"""

import os
import shlex
import subprocess
from abc import ABC, abstractmethod
from enum import Enum

from bookpress.container import Container, write_text_atomic
from bookpress.errors import FileNotFound, RenderError
from bookpress.tokens import FootnoteDefinition, Header, flatten_text, walk


class ChapterState(Enum):
    NOT_STARTED = "not started"
    RENDERING_HEADER = "rendering header"
    RENDERING_BODY = "rendering body"
    DONE = "done"


def split_title(tokens):
    """
    Separate a chapter's title from its body.

    The first top-level level-1 header is the title. Returns
    (title_children or None, remaining tokens).
    """
    for i, token in enumerate(tokens):
        if isinstance(token, Header) and token.level == 1:
            return token.children, tuple(tokens[:i]) + tuple(tokens[i + 1:])
    return None, tuple(tokens)


class BaseRenderer(ABC):
    """
    Abstract base for format renderers.

    Subclasses must define:
        format_name:  str   human-readable name ("EPUB", "LaTeX", ...)
        key:          str   format key used in errors ("epub", "tex", ...)
        extension:    str   output file extension (".epub", ".tex", ...)
        render():     method build the artifact (str or Container)
    """

    format_name = None
    key = None
    extension = None

    def __init__(self, book):
        self.book = book
        self.state = ChapterState.NOT_STARTED
        self.chapter_index = None
        self.footnote_defs = {}
        self.footnote_order = []
        self.expanding = set()

    # ── Logging ────────────────────────────────────────────

    def log(self, msg):
        if self.book.verbose:
            print(msg)

    def header(self):
        print(f"\n{'─' * 60}")
        print(f"  Building {self.format_name}: {self.book.title}")
        print(f"{'─' * 60}")

    # ── Errors ─────────────────────────────────────────────

    def error(self, message):
        """A RenderError tagged with this format and the current chapter."""
        return RenderError(message, format=self.key, chapter=self.chapter_index)

    # ── Chapter walk ───────────────────────────────────────

    def chapters(self):
        """Yield (index, resolved, tokens) for every chapter, 1-based."""
        resolved = self.book.resolved_chapters()
        for index, (res, (_, tokens)) in enumerate(zip(resolved, self.book.chapters), 1):
            yield index, res, tokens

    def render_chapter(self, index, resolved, tokens):
        """Render one chapter: its header (unless hidden) then its body."""
        self.chapter_index = index
        self.state = ChapterState.NOT_STARTED
        self.footnote_defs = {
            t.label: t.children for t in walk(tokens) if isinstance(t, FootnoteDefinition)
        }
        self.footnote_order = []

        title, body = split_title(tokens)
        parts = []
        try:
            if resolved.show_title and (title is not None or resolved.number is not None):
                self.state = ChapterState.RENDERING_HEADER
                parts.append(self.render_title(self.header_text(resolved, title or ())))

            self.state = ChapterState.RENDERING_BODY
            parts.append(self.render_tokens(body))
            parts.append(self.render_footnotes())
        except RenderError as e:
            if e.format is None:
                raise RenderError(e.message, format=self.key, chapter=index) from e
            raise

        self.state = ChapterState.DONE
        return "".join(parts)

    def header_text(self, resolved, title_tokens):
        """Chapter header in the target format, numbered when it should be."""
        title = self.render_tokens(title_tokens)
        if resolved.number is None:
            return title
        return self.book.get_header(resolved.number, title)

    def plain_title(self, resolved, tokens):
        """Unescaped header text of a chapter, for tables of contents."""
        if not resolved.show_title:
            return None
        title, _ = split_title(tokens)
        if title is None and resolved.number is None:
            return None
        text = flatten_text(title or ())
        if resolved.number is None:
            return text
        return self.book.get_header(resolved.number, text).strip()

    # ── Token dispatch ─────────────────────────────────────

    def render_tokens(self, tokens):
        return "".join(self.render_token(token) for token in tokens)

    def render_token(self, token):
        visit = getattr(self, f"visit_{type(token).__name__.lower()}", None)
        if visit is None:
            raise self.error(f"{self.format_name} cannot render {type(token).__name__}")
        return visit(token)

    def visit_footnotedefinition(self, token):
        # Rendered where referenced or after the chapter, never in place
        return ""

    def footnote_number(self, label):
        """Number of a footnote in this chapter; unknown labels are errors."""
        if label not in self.footnote_defs:
            raise self.error(f"unresolved footnote reference [^{label}]")
        if label not in self.footnote_order:
            self.footnote_order.append(label)
        return self.footnote_order.index(label) + 1

    def expand_footnote(self, label, render):
        """Render a footnote's children at its reference with `render`."""
        if label in self.expanding:
            raise self.error(f"footnote [^{label}] references itself")
        self.expanding.add(label)
        try:
            return render(self.footnote_defs[label])
        finally:
            self.expanding.discard(label)

    def render_footnotes(self):
        """Notes block appended after a chapter body; empty by default."""
        return ""

    # ── Format hooks ───────────────────────────────────────

    @abstractmethod
    def escape(self, text):
        ...

    @abstractmethod
    def render_title(self, text):
        """Wrap already-rendered header text as a chapter title."""
        ...

    @abstractmethod
    def render(self):
        """Build the artifact: a str for text formats, a Container otherwise."""
        ...

    # ── Output ─────────────────────────────────────────────

    def build(self, path):
        """Render and write the artifact to `path`. Returns the path."""
        self.header()
        artifact = self.render()
        if isinstance(artifact, Container):
            artifact.write(path)
        else:
            write_text_atomic(path, artifact)
        print(f"  ✓ {path}")
        return path

    # ── External commands ──────────────────────────────────

    def exec_cmd(self, cmd, label="Command", cwd=None):
        """
        Run an external command; a missing executable or a non-zero exit
        raises RenderError. Returns the CompletedProcess.
        """
        if isinstance(cmd, str):
            cmd = shlex.split(cmd)
        try:
            result = subprocess.run(
                cmd,
                cwd=cwd,
                capture_output=True,
                text=True,
                errors="replace",
            )
        except FileNotFoundError as e:
            raise self.error(f"{cmd[0]} not found") from e

        if result.returncode != 0:
            self.log(f"  ✗ {label} failed (exit {result.returncode})")
            lines = (result.stderr or result.stdout or "").strip().splitlines()
            detail = "\n".join(lines[-20:])
            raise self.error(f"{label} failed (exit {result.returncode})\n{detail}".rstrip())
        return result

    def template(self, name):
        """An overridable template; a missing override file is a RenderError."""
        try:
            return self.book.get_template(name)
        except FileNotFound as e:
            raise self.error(str(e)) from e

    def resolve(self, path):
        """Resolve a path from chapter content or metadata against the book root."""
        return os.path.normpath(self.book.resolve_path(path))
