"""
LaTeX renderer.

Pipeline:
    1. Token trees → LaTeX source through the book.tex template
    2. (PDF only) the source is written to a scratch directory and
       compiled twice with `tex_command` (second pass for the TOC)
    3. The PDF is moved into place only when compilation succeeded

A failing compiler is reported once with the first errors of its log;
there is no retry.
"""

import os
import shutil
import tempfile

from bookpress.container import write_atomic
from bookpress.errors import RenderError
from bookpress.escape import escape_tex
from bookpress.renderers.base import BaseRenderer
from bookpress.templating import expand_tex
from bookpress.tokens import Paragraph

# babel option per language prefix
BABEL_LANGUAGES = {
    "en": "english",
    "fr": "french",
    "de": "ngerman",
    "es": "spanish",
    "it": "italian",
    "pt": "portuguese",
    "nl": "dutch",
    "ca": "catalan",
    "sv": "swedish",
    "da": "danish",
    "fi": "finnish",
    "pl": "polish",
    "ru": "russian",
}

SECTIONS = {
    1: r"\chapter*",
    2: r"\section*",
    3: r"\subsection*",
    4: r"\subsubsection*",
    5: r"\paragraph",
    6: r"\subparagraph",
}

ENUM_COUNTERS = ("enumi", "enumii", "enumiii", "enumiv")


def escape_url(url):
    """Characters hyperref still needs escaped inside \\href and \\url."""
    return url.replace("\\", "/").replace("%", r"\%").replace("#", r"\#")


class LatexRenderer(BaseRenderer):
    format_name = "LaTeX"
    key = "tex"
    extension = ".tex"

    def __init__(self, book, keep_tex=False):
        super().__init__(book)
        self.keep_tex = keep_tex
        self.enum_depth = 0

    def escape(self, text):
        return escape_tex(text)

    @property
    def babel(self):
        lang = (self.book.lang or "en").lower().replace("_", "-").split("-")[0]
        return BABEL_LANGUAGES.get(lang, "english")

    # ── Book ───────────────────────────────────────────────

    def render(self):
        chapters = []
        for index, resolved, tokens in self.chapters():
            content = self.render_chapter(index, resolved, tokens)
            if not resolved.show_title:
                content = "\\clearpage\n\n" + content
            chapters.append(content)
            self.log(f"  Chapter {index}: {self.plain_title(resolved, tokens) or '(untitled)'}")

        template = self.template("tex_template")
        return expand_tex(
            template,
            content="\n".join(chapters),
            babel=self.babel,
            **self.book.get_metadata("tex"),
        )

    # ── PDF ────────────────────────────────────────────────

    def build_pdf(self, path):
        """Render, compile with `tex_command`, and move the PDF to `path`."""
        self.format_name = "PDF"
        self.key = "pdf"
        self.header()
        source = self.render()

        temp_dir = self.book.resolve_path(self.book.temp_dir) if self.book.temp_dir else None
        workdir = tempfile.mkdtemp(prefix="bookpress_tex_", dir=temp_dir)
        try:
            tex_file = os.path.join(workdir, "book.tex")
            with open(tex_file, "w", encoding="utf-8") as f:
                f.write(source)

            command = self.book.tex_command.split()
            compile_cmd = command + [
                "-interaction=nonstopmode",
                "-halt-on-error",
                f"-output-directory={workdir}",
                tex_file,
            ]
            for pass_num in [1, 2]:
                self.log(f"  {command[0]} pass {pass_num}...")
                try:
                    self.exec_cmd(compile_cmd, f"{command[0]} pass {pass_num}", cwd=workdir)
                except RenderError as e:
                    errors = self._tex_errors(os.path.join(workdir, "book.log"))
                    if not errors:
                        raise
                    first = e.message.splitlines()[0]
                    raise self.error(first + "\n" + "\n".join(errors)) from e

            pdf_file = os.path.join(workdir, "book.pdf")
            if not os.path.exists(pdf_file):
                raise self.error(f"{command[0]} produced no PDF")

            with open(pdf_file, "rb") as src:
                write_atomic(path, lambda f: shutil.copyfileobj(src, f))
        finally:
            if self.keep_tex:
                self.log(f"  Kept intermediate files in {workdir}")
            else:
                shutil.rmtree(workdir, ignore_errors=True)

        print(f"  ✓ {path}")
        return path

    def _tex_errors(self, log_file):
        """Extract useful error lines from the LaTeX log file."""
        if not os.path.exists(log_file):
            return []

        with open(log_file, "r", errors="replace") as f:
            log_content = f.read()

        errors = [
            line
            for line in log_content.splitlines()
            if line.startswith("!") or "Error" in line
        ]
        if errors:
            return errors[:10]
        return log_content.splitlines()[-20:]

    # ── Chapter pieces ─────────────────────────────────────

    def render_title(self, text):
        return f"\\chapter*{{{text}}}\n\\addcontentsline{{toc}}{{chapter}}{{{text}}}\n\n"

    # ── Blocks ─────────────────────────────────────────────

    def visit_paragraph(self, token):
        return f"{self.render_tokens(token.children)}\n\n"

    def visit_header(self, token):
        command = SECTIONS.get(token.level, r"\subparagraph")
        return f"{command}{{{self.render_tokens(token.children)}}}\n\n"

    def visit_blockquote(self, token):
        return f"\\begin{{quotation}}\n{self.render_tokens(token.children)}\\end{{quotation}}\n\n"

    def visit_codeblock(self, token):
        return f"\\begin{{Verbatim}}\n{token.text}\n\\end{{Verbatim}}\n\n"

    def visit_rule(self, token):
        return "\\begin{center}\\rule{0.5\\linewidth}{0.5pt}\\end{center}\n\n"

    def visit_list(self, token):
        return f"\\begin{{itemize}}\n{self.render_tokens(token.children)}\\end{{itemize}}\n\n"

    def visit_orderedlist(self, token):
        counter = ENUM_COUNTERS[min(self.enum_depth, 3)]
        self.enum_depth += 1
        try:
            items = self.render_tokens(token.children)
        finally:
            self.enum_depth -= 1
        start = ""
        if token.start != 1:
            start = f"\\setcounter{{{counter}}}{{{token.start - 1}}}\n"
        return f"\\begin{{enumerate}}\n{start}{items}\\end{{enumerate}}\n\n"

    def visit_item(self, token):
        return f"\\item{{}} {self.render_tokens(token.children).strip()}\n"

    # ── Inline ─────────────────────────────────────────────

    def visit_str(self, token):
        return escape_tex(token.text)

    def visit_emphasis(self, token):
        return f"\\emph{{{self.render_tokens(token.children)}}}"

    def visit_strong(self, token):
        return f"\\textbf{{{self.render_tokens(token.children)}}}"

    def visit_code(self, token):
        return f"\\texttt{{{escape_tex(token.text)}}}"

    def visit_link(self, token):
        return f"\\href{{{escape_url(token.url)}}}{{{self.render_tokens(token.children)}}}"

    def visit_image(self, token):
        path = token.url
        if "://" not in path:
            path = self.resolve(path).replace(os.sep, "/")
        return f"\\includegraphics[width=\\linewidth,height=\\textheight,keepaspectratio]{{{path}}}"

    def visit_softbreak(self, token):
        return "\n"

    def visit_hardbreak(self, token):
        return "\\\\{}\n"

    def visit_footnotereference(self, token):
        self.footnote_number(token.label)
        body = self.expand_footnote(token.label, self._footnote_body)
        return f"\\footnote{{{body}}}"

    def _footnote_body(self, children):
        if len(children) == 1 and isinstance(children[0], Paragraph):
            return self.render_tokens(children[0].children)
        return self.render_tokens(children).strip()
