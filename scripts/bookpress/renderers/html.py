"""
HTML renderer.

Produces one self-contained page: every chapter in its own <section>,
footnotes gathered after each chapter, the stylesheet inlined in the
page template. The same tag vocabulary (XHTML-compatible) is reused by
the EPUB renderer for chapter bodies.
"""

from bookpress.escape import escape_html
from bookpress.renderers.base import BaseRenderer
from bookpress.templating import expand
from bookpress.tokens import flatten_text


class HtmlRenderer(BaseRenderer):
    format_name = "HTML"
    key = "html"
    extension = ".html"

    def __init__(self, book, image_map=None):
        super().__init__(book)
        # url → path inside a container, set by the EPUB renderer
        self.image_map = image_map or {}

    def escape(self, text):
        return escape_html(text)

    # ── Book ───────────────────────────────────────────────

    def render(self):
        sections = []
        toc = []
        for index, resolved, tokens in self.chapters():
            content = self.render_chapter(index, resolved, tokens)
            anchor = f"chapter-{index}"
            sections.append(
                f'<section class="chapter" id="{anchor}">\n{content}</section>\n'
            )
            title = self.plain_title(resolved, tokens)
            if title:
                toc.append(f'<li><a href="#{anchor}">{escape_html(title)}</a></li>')
            self.log(f"  Chapter {index}: {title or '(untitled)'}")

        template = self.template("html_template")
        style = self.template("html_css")
        return expand(
            template,
            content="".join(sections),
            toc="\n".join(toc),
            style=style,
            **self.book.get_metadata("html"),
        )

    # ── Chapter pieces ─────────────────────────────────────

    def render_title(self, text):
        return f"<h1>{text}</h1>\n"

    def note_id(self, number):
        return f"note-{self.chapter_index}-{number}"

    def render_footnotes(self):
        if not self.footnote_order:
            return ""
        notes = []
        # Notes may reference other notes, so footnote_order can grow here
        i = 0
        while i < len(self.footnote_order):
            label = self.footnote_order[i]
            number = i + 1
            body = self.render_tokens(self.footnote_defs[label])
            if not body.startswith("<p>"):
                body = f"<p>{body}</p>\n"
            backlink = (
                f'<a class="note-number" href="#ref-{self.chapter_index}-{number}">{number}</a>. '
            )
            body = body.replace("<p>", f"<p>{backlink}", 1)
            notes.append(f'<div class="note" id="{self.note_id(number)}">\n{body}</div>\n')
            i += 1
        return f'<div class="notes">\n{"".join(notes)}</div>\n'

    # ── Blocks ─────────────────────────────────────────────

    def visit_paragraph(self, token):
        return f"<p>{self.render_tokens(token.children)}</p>\n"

    def visit_header(self, token):
        level = min(max(token.level, 1), 6)
        return f"<h{level}>{self.render_tokens(token.children)}</h{level}>\n"

    def visit_blockquote(self, token):
        return f"<blockquote>\n{self.render_tokens(token.children)}</blockquote>\n"

    def visit_codeblock(self, token):
        cls = f' class="language-{escape_html(token.language)}"' if token.language else ""
        return f"<pre><code{cls}>{escape_html(token.text)}\n</code></pre>\n"

    def visit_rule(self, token):
        return "<hr />\n"

    def visit_list(self, token):
        return f"<ul>\n{self.render_tokens(token.children)}</ul>\n"

    def visit_orderedlist(self, token):
        start = f' start="{token.start}"' if token.start != 1 else ""
        return f"<ol{start}>\n{self.render_tokens(token.children)}</ol>\n"

    def visit_item(self, token):
        return f"<li>{self.render_tokens(token.children)}</li>\n"

    # ── Inline ─────────────────────────────────────────────

    def visit_str(self, token):
        return escape_html(token.text)

    def visit_emphasis(self, token):
        return f"<em>{self.render_tokens(token.children)}</em>"

    def visit_strong(self, token):
        return f"<strong>{self.render_tokens(token.children)}</strong>"

    def visit_code(self, token):
        return f"<code>{escape_html(token.text)}</code>"

    def visit_link(self, token):
        title = f' title="{escape_html(token.title)}"' if token.title else ""
        return f'<a href="{escape_html(token.url)}"{title}>{self.render_tokens(token.children)}</a>'

    def visit_image(self, token):
        src = self.image_map.get(token.url, token.url)
        alt = escape_html(flatten_text(token.children))
        title = f' title="{escape_html(token.title)}"' if token.title else ""
        return f'<img src="{escape_html(src)}" alt="{alt}"{title} />'

    def visit_softbreak(self, token):
        return "\n"

    def visit_hardbreak(self, token):
        return "<br />\n"

    def visit_footnotereference(self, token):
        first = token.label not in self.footnote_order
        number = self.footnote_number(token.label)
        anchor = f' id="ref-{self.chapter_index}-{number}"' if first else ""
        return (
            f'<a class="footnote-ref"{anchor} '
            f'href="#{self.note_id(number)}"><sup>{number}</sup></a>'
        )
