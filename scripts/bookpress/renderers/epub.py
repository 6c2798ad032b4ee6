"""
EPUB renderer.

Assembles the container itself:

    mimetype                    stored, first
    META-INF/container.xml
    OEBPS/content.opf           package document (EPUB 2 or 3 template)
    OEBPS/toc.ncx
    OEBPS/nav.xhtml             EPUB 3 only
    OEBPS/stylesheet.css
    OEBPS/cover.xhtml           when a cover is set
    OEBPS/chapter_NNN.xhtml     one per chapter
    OEBPS/images/...            cover and every local image

A cover, image or stylesheet that cannot be found is an error: the book
is not written rather than written without it.
"""

import mimetypes
import os
import uuid
from datetime import datetime, timezone

from bookpress.container import Container
from bookpress.escape import escape_html
from bookpress.renderers.base import BaseRenderer
from bookpress.renderers.html import HtmlRenderer
from bookpress.templates import load_builtin
from bookpress.templating import expand
from bookpress.tokens import find_images


def is_local(url):
    return "://" not in url and not url.startswith(("data:", "mailto:"))


def media_type(path):
    kind, _ = mimetypes.guess_type(path)
    return kind or "application/octet-stream"


class EpubRenderer(BaseRenderer):
    format_name = "EPUB"
    key = "epub"
    extension = ".epub"

    def __init__(self, book):
        super().__init__(book)
        self.html = HtmlRenderer(book)
        self.html.key = self.key
        self.html.format_name = self.format_name
        self.images = {}  # source path → path inside OEBPS/

    def escape(self, text):
        return escape_html(text)

    def render_title(self, text):
        return self.html.render_title(text)

    @property
    def version(self):
        return 3 if self.book.epub_version == 3 else 2

    # ── Book ───────────────────────────────────────────────

    def render(self):
        book = self.book
        metadata = book.get_metadata("html")
        book_id = str(uuid.uuid5(uuid.NAMESPACE_URL, f"bookpress:{book.author}:{book.title}"))

        container = Container("application/epub+zip")
        container.add("META-INF/container.xml", load_builtin("container.xml"))

        css = self.template("epub_css")
        self.log(f"  EPUB version: {self.version}")

        cover = self._add_cover(container, metadata)
        self._add_images(container)

        chapter_template = load_builtin(f"chapter{self.version}.xhtml")
        entries = []
        for index, resolved, tokens in self.chapters():
            content = self.html.render_chapter(index, resolved, tokens)
            title = self.plain_title(resolved, tokens)
            filename = f"chapter_{index:03d}.xhtml"
            xhtml = expand(
                chapter_template,
                content=content,
                title=escape_html(title or book.title),
                lang=metadata["lang"],
            )
            container.add(f"OEBPS/{filename}", xhtml)
            entries.append((filename, title))
            self.log(f"  Chapter {index}: {title or '(untitled)'}")

        self.chapter_index = None
        container.add("OEBPS/stylesheet.css", css)
        container.add("OEBPS/toc.ncx", self._ncx(entries, book_id, metadata))
        if self.version == 3:
            container.add("OEBPS/nav.xhtml", self._nav(entries, metadata))
        container.add("OEBPS/content.opf", self._opf(entries, cover, book_id, metadata))
        return container

    # ── Resources ──────────────────────────────────────────

    def _add_cover(self, container, metadata):
        """Add the cover image and page. Returns the image's OEBPS path or None."""
        if not self.book.cover:
            return None
        path = self.resolve(self.book.cover)
        if not os.path.isfile(path):
            raise self.error(f"cover image not found: {path}")
        ext = os.path.splitext(path)[1].lower() or ".jpg"
        href = f"images/cover{ext}"
        with open(path, "rb") as f:
            container.add(f"OEBPS/{href}", f.read())
        self.images[path] = href
        self.log(f"  Cover: {path}")

        alt = escape_html(f"Cover image for {self.book.title}")
        content = f'<div class="cover"><img src="{href}" alt="{alt}" /></div>'
        xhtml = expand(
            load_builtin(f"chapter{self.version}.xhtml"),
            content=content,
            title=metadata["title"],
            lang=metadata["lang"],
        )
        container.add("OEBPS/cover.xhtml", xhtml)
        return href

    def _add_images(self, container):
        """Embed every local image referenced by a chapter."""
        for index, (_, tokens) in enumerate(self.book.chapters, 1):
            self.chapter_index = index
            for url in find_images(tokens):
                if not is_local(url):
                    continue
                path = self.resolve(url)
                if path not in self.images:
                    if not os.path.isfile(path):
                        raise self.error(f"image not found: {url}")
                    name = os.path.basename(path)
                    href = f"images/{len(self.images):03d}_{name}"
                    with open(path, "rb") as f:
                        container.add(f"OEBPS/{href}", f.read())
                    self.images[path] = href
                self.html.image_map[url] = self.images[path]
        self.chapter_index = None

    # ── Package documents ──────────────────────────────────

    def _ncx(self, entries, book_id, metadata):
        points = []
        order = 0
        for filename, title in entries:
            if not title:
                continue
            order += 1
            points.append(
                f'    <navPoint id="navPoint-{order}" playOrder="{order}">\n'
                f"      <navLabel><text>{escape_html(title)}</text></navLabel>\n"
                f'      <content src="{filename}"/>\n'
                f"    </navPoint>"
            )
        return expand(
            load_builtin("toc.ncx"),
            uuid=book_id,
            title=metadata["title"],
            nav_points="\n".join(points),
        )

    def _nav(self, entries, metadata):
        items = [
            f'        <li><a href="{filename}">{escape_html(title)}</a></li>'
            for filename, title in entries
            if title
        ]
        return expand(
            load_builtin("nav.xhtml"),
            title=metadata["title"],
            lang=metadata["lang"],
            entries="\n".join(items),
        )

    def _opf(self, entries, cover, book_id, metadata):
        items = []
        itemrefs = []
        optional = []

        if metadata["description"]:
            optional.append(f"    <dc:description>{metadata['description']}</dc:description>")
        if metadata["subject"]:
            optional.append(f"    <dc:subject>{metadata['subject']}</dc:subject>")

        if cover:
            cover_props = ' properties="cover-image"' if self.version == 3 else ""
            items.append(
                f'    <item id="cover-image" href="{cover}" media-type="{media_type(cover)}"{cover_props}/>'
            )
            items.append('    <item id="cover" href="cover.xhtml" media-type="application/xhtml+xml"/>')
            itemrefs.append('    <itemref idref="cover"/>')
            if self.version == 2:
                optional.append('    <meta name="cover" content="cover-image"/>')

        for i, href in enumerate(sorted(set(self.images.values()) - {cover})):
            items.append(f'    <item id="image-{i}" href="{href}" media-type="{media_type(href)}"/>')

        for i, (filename, _) in enumerate(entries, 1):
            items.append(
                f'    <item id="chapter_{i:03d}" href="{filename}" media-type="application/xhtml+xml"/>'
            )
            itemrefs.append(f'    <itemref idref="chapter_{i:03d}"/>')

        guide = ""
        if cover and self.version == 2:
            guide = '  <guide>\n    <reference type="cover" title="Cover" href="cover.xhtml"/>\n  </guide>'

        now = datetime.now(timezone.utc)
        template = self.template("epub_template")
        return expand(
            template,
            uuid=book_id,
            date=now.strftime("%Y-%m-%d"),
            modified=now.strftime("%Y-%m-%dT%H:%M:%SZ"),
            optional="\n".join(optional),
            items="\n".join(items),
            itemrefs="\n".join(itemrefs),
            guide=guide,
            **metadata,
        )

