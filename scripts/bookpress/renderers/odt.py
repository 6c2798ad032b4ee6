"""
ODT renderer.

Builds an OpenDocument text container:

    mimetype                stored, first
    content.xml             chapters as text:h / text:p / text:list
    styles.xml              paragraph, text and list styles
    meta.xml
    META-INF/manifest.xml
    Pictures/...            every local image

Footnotes become text:note elements at their reference. A local image
that cannot be found is an error, as for EPUB.
"""

import os
import re

from bookpress.container import Container
from bookpress.escape import escape_html
from bookpress.renderers.base import BaseRenderer
from bookpress.renderers.epub import is_local, media_type
from bookpress.templates import load_builtin
from bookpress.templating import expand
from bookpress.tokens import find_images

ODT_MIMETYPE = "application/vnd.oasis.opendocument.text"

_SPACES_RE = re.compile(r"  +")


def escape_odt(text):
    """XML escaping plus ODF markup for tabs and repeated spaces."""
    text = escape_html(text)
    text = _SPACES_RE.sub(lambda m: f' <text:s text:c="{len(m.group(0)) - 1}"/>', text)
    return text.replace("\t", "<text:tab/>")


class OdtRenderer(BaseRenderer):
    format_name = "ODT"
    key = "odt"
    extension = ".odt"

    def __init__(self, book):
        super().__init__(book)
        self.pictures = {}  # url → path inside the container
        self.paragraph_style = "Text_20_body"
        self.list_depth = 0
        self.note_count = 0
        self.frame_count = 0

    def escape(self, text):
        return escape_odt(text)

    # ── Book ───────────────────────────────────────────────

    def render(self):
        book = self.book
        metadata = book.get_metadata("html")
        container = Container(ODT_MIMETYPE)

        self._add_pictures(container)

        chapters = []
        for index, resolved, tokens in self.chapters():
            chapters.append(self.render_chapter(index, resolved, tokens))
            self.log(f"  Chapter {index}: {self.plain_title(resolved, tokens) or '(untitled)'}")
        self.chapter_index = None

        lang = (book.lang or "en").replace("_", "-").split("-")
        container.add(
            "content.xml",
            expand(load_builtin("odt_content.xml"), content="".join(chapters), **metadata),
        )
        container.add(
            "styles.xml",
            expand(
                load_builtin("odt_styles.xml"),
                language=escape_html(lang[0].lower()),
                country=escape_html(lang[1].upper() if len(lang) > 1 else "none"),
            ),
        )
        container.add("meta.xml", expand(load_builtin("odt_meta.xml"), **metadata))

        entries = [
            ("content.xml", "text/xml"),
            ("styles.xml", "text/xml"),
            ("meta.xml", "text/xml"),
        ] + [(path, media_type(path)) for path in self.pictures.values()]
        manifest = "\n".join(
            f'  <manifest:file-entry manifest:full-path="{escape_html(path)}" '
            f'manifest:media-type="{kind}"/>'
            for path, kind in entries
        )
        container.add(
            "META-INF/manifest.xml",
            expand(load_builtin("odt_manifest.xml"), entries=manifest),
        )
        return container

    def _add_pictures(self, container):
        added = {}
        for index, (_, tokens) in enumerate(self.book.chapters, 1):
            self.chapter_index = index
            for url in find_images(tokens):
                if not is_local(url):
                    continue
                path = self.resolve(url)
                if path not in added:
                    if not os.path.isfile(path):
                        raise self.error(f"image not found: {url}")
                    name = f"Pictures/{len(added):03d}_{os.path.basename(path)}"
                    with open(path, "rb") as f:
                        container.add(name, f.read())
                    added[path] = name
                self.pictures[url] = added[path]
        self.chapter_index = None

    # ── Chapter pieces ─────────────────────────────────────

    def render_title(self, text):
        return (
            f'<text:h text:style-name="Heading_20_1" text:outline-level="1">{text}</text:h>\n'
        )

    def _paragraph(self, content):
        return f'<text:p text:style-name="{self.paragraph_style}">{content}</text:p>\n'

    def _blocks(self, children):
        """Render children, wrapping loose inline tokens into paragraphs."""
        out = []
        inline = []
        for child in children:
            if child.is_block:
                if inline:
                    out.append(self._paragraph(self.render_tokens(inline)))
                    inline = []
                out.append(self.render_token(child))
            else:
                inline.append(child)
        if inline:
            out.append(self._paragraph(self.render_tokens(inline)))
        return "".join(out)

    # ── Blocks ─────────────────────────────────────────────

    def visit_paragraph(self, token):
        return self._paragraph(self.render_tokens(token.children))

    def visit_header(self, token):
        level = min(max(token.level, 1), 6)
        return (
            f'<text:h text:style-name="Heading_20_{level}" text:outline-level="{level}">'
            f"{self.render_tokens(token.children)}</text:h>\n"
        )

    def visit_blockquote(self, token):
        previous = self.paragraph_style
        self.paragraph_style = "Quotations"
        try:
            return self._blocks(token.children)
        finally:
            self.paragraph_style = previous

    def visit_codeblock(self, token):
        lines = [escape_odt(line) for line in token.text.split("\n")]
        return (
            '<text:p text:style-name="Preformatted_20_Text">'
            + "<text:line-break/>".join(lines)
            + "</text:p>\n"
        )

    def visit_rule(self, token):
        return '<text:p text:style-name="Horizontal_20_Line">* * *</text:p>\n'

    def _list(self, token, style):
        self.list_depth += 1
        previous = self.paragraph_style
        self.paragraph_style = "List_20_Contents"
        try:
            items = self.render_tokens(token.children)
        finally:
            self.list_depth -= 1
            self.paragraph_style = previous
        attr = f' text:style-name="{style}"' if self.list_depth == 0 else ""
        return f"<text:list{attr}>\n{items}</text:list>\n"

    def visit_list(self, token):
        return self._list(token, "Bullets")

    def visit_orderedlist(self, token):
        content = self._list(token, "Numbering")
        if token.start != 1:
            content = content.replace(
                "<text:list-item>", f'<text:list-item text:start-value="{token.start}">', 1
            )
        return content

    def visit_item(self, token):
        return f"<text:list-item>\n{self._blocks(token.children)}</text:list-item>\n"

    # ── Inline ─────────────────────────────────────────────

    def visit_str(self, token):
        return escape_odt(token.text)

    def visit_emphasis(self, token):
        return f'<text:span text:style-name="Emphasis">{self.render_tokens(token.children)}</text:span>'

    def visit_strong(self, token):
        return (
            f'<text:span text:style-name="Strong_20_Emphasis">'
            f"{self.render_tokens(token.children)}</text:span>"
        )

    def visit_code(self, token):
        return f'<text:span text:style-name="Source_20_Text">{escape_odt(token.text)}</text:span>'

    def visit_link(self, token):
        return (
            f'<text:a xlink:type="simple" xlink:href="{escape_html(token.url)}">'
            f"{self.render_tokens(token.children)}</text:a>"
        )

    def visit_image(self, token):
        href = self.pictures.get(token.url, token.url)
        self.frame_count += 1
        return (
            f'<draw:frame draw:style-name="Frame" draw:name="image{self.frame_count}" '
            f'text:anchor-type="as-char" svg:width="15cm" style:rel-width="100%" '
            f'style:rel-height="scale">'
            f'<draw:image xlink:href="{escape_html(href)}" xlink:type="simple" '
            f'xlink:show="embed" xlink:actuate="onLoad"/></draw:frame>'
        )

    def visit_softbreak(self, token):
        return " "

    def visit_hardbreak(self, token):
        return "<text:line-break/>"

    def visit_footnotereference(self, token):
        number = self.footnote_number(token.label)
        self.note_count += 1
        previous = self.paragraph_style
        self.paragraph_style = "Footnote"
        try:
            body = self.expand_footnote(token.label, self._blocks)
        finally:
            self.paragraph_style = previous
        return (
            f'<text:note text:id="ftn{self.note_count}" text:note-class="footnote">'
            f"<text:note-citation>{number}</text:note-citation>"
            f"<text:note-body>{body}</text:note-body></text:note>"
        )
