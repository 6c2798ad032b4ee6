"""
Renderer tests: HTML, LaTeX, EPUB and ODT output for small books.
"""

import os
import zipfile

import pytest

from bookpress.errors import RenderError
from bookpress.numbering import Number
from bookpress.renderers import EpubRenderer, HtmlRenderer, LatexRenderer, OdtRenderer
from bookpress.renderers.base import ChapterState, split_title
from bookpress.tokens import Header, Paragraph, Str


class TestSplitTitle:
    def test_first_level_one_header_is_title(self):
        tokens = (Paragraph((Str("a"),)), Header(1, (Str("T"),)), Header(1, (Str("U"),)))
        title, body = split_title(tokens)
        assert title == (Str("T"),)
        assert body == (Paragraph((Str("a"),)), Header(1, (Str("U"),)))

    def test_no_title(self):
        tokens = (Header(2, (Str("T"),)),)
        assert split_title(tokens) == (None, tokens)


# ============================================================================
# HTML
# ============================================================================


class TestHtml:
    """Standalone HTML page"""

    def test_hello_world(self, make_book):
        html = HtmlRenderer(make_book("Hello, world.")).render()
        assert "<p>Hello, world.</p>" in html

    def test_numbered_title(self, make_book):
        html = HtmlRenderer(make_book("# Start\n\nText")).render()
        assert "<h1>1. Start</h1>" in html
        assert '<a href="#chapter-1">1. Start</a>' in html

    def test_custom_numbering_template(self, make_book):
        book = make_book("# Start\n\nText", numbering_template="Chapter {{ number }}: {{ title }}")
        assert "<h1>Chapter 1: Start</h1>" in HtmlRenderer(book).render()

    def test_unnumbered_and_hidden(self, make_book):
        book = make_book(
            (Number.HIDDEN, "# Secret\n\nBody"),
            (Number.UNNUMBERED, "# Preface\n\nWords"),
            "# One\n\nMore",
        )
        html = HtmlRenderer(book).render()
        assert "Secret" not in html
        assert "<p>Body</p>" in html
        assert "<h1>Preface</h1>" in html
        assert "<h1>1. One</h1>" in html

    def test_title_and_text_escaped(self, make_book):
        book = make_book('# A <b> & "c"\n\ntext', title='Tom & "Jerry" <3')
        html = HtmlRenderer(book).render()
        assert "Tom &amp; &quot;Jerry&quot; &lt;3" in html
        assert 'Tom & "Jerry" <3' not in html
        assert "A &lt;b&gt; &amp; &quot;c&quot;" in html
        assert "<b>" not in html

    def test_inline_markup(self, make_book):
        html = HtmlRenderer(make_book("*a* **b** `c` [d](http://e)")).render()
        assert "<em>a</em> <strong>b</strong> <code>c</code> <a href=\"http://e\">d</a>" in html

    def test_footnotes(self, make_book):
        html = HtmlRenderer(make_book("Text[^n].\n\n[^n]: The note.")).render()
        assert 'href="#note-1-1"' in html
        assert '<div class="note" id="note-1-1">' in html
        assert "The note." in html

    def test_unresolved_footnote(self, make_book):
        with pytest.raises(RenderError) as exc:
            HtmlRenderer(make_book("Fine.", "Text[^missing].")).render()
        assert exc.value.format == "html"
        assert exc.value.chapter == 2

    def test_chapter_state(self, make_book):
        renderer = HtmlRenderer(make_book("Text"))
        assert renderer.state == ChapterState.NOT_STARTED
        renderer.render()
        assert renderer.state == ChapterState.DONE

    def test_missing_custom_stylesheet(self, make_book):
        with pytest.raises(RenderError) as exc:
            HtmlRenderer(make_book("Text", html_css="missing.css")).render()
        assert "missing.css" in str(exc.value)

    def test_custom_template(self, make_book, tmp_path):
        (tmp_path / "page.html").write_text("<main>{{ content }}</main>", encoding="utf-8")
        html = HtmlRenderer(make_book("Hello", html_template="page.html")).render()
        assert html.startswith("<main>")
        assert "<p>Hello</p>" in html


# ============================================================================
# LaTeX
# ============================================================================


class TestLatex:
    """LaTeX source and PDF compilation"""

    def test_hello_world(self, make_book):
        tex = LatexRenderer(make_book("Hello, world.")).render()
        assert "Hello, world." in tex
        assert r"\begin{document}" in tex

    def test_metadata_escaped(self, make_book):
        tex = LatexRenderer(make_book("Text", title="50% off_now \\o/")).render()
        assert r"50\% off\_now \textbackslash{}o/" in tex
        assert "50% off_now" not in tex

    def test_text_escaped(self, make_book):
        tex = LatexRenderer(make_book("100% sure_thing & more")).render()
        assert r"100\% sure\_thing \& more" in tex

    def test_chapter_title(self, make_book):
        tex = LatexRenderer(make_book("# Rain\n\nText")).render()
        assert r"\chapter*{1. Rain}" in tex

    def test_babel_language(self, make_book):
        assert LatexRenderer(make_book("x", lang="fr")).babel == "french"
        assert LatexRenderer(make_book("x", lang="xx")).babel == "english"

    def test_footnote_inline(self, make_book):
        tex = LatexRenderer(make_book("Text[^n].\n\n[^n]: The note.")).render()
        assert r"Text\footnote{The note.}." in tex

    def test_self_referencing_footnote(self, make_book):
        with pytest.raises(RenderError) as exc:
            LatexRenderer(make_book("Text[^a].\n\n[^a]: See[^a].")).render()
        assert "references itself" in str(exc.value)

    def test_nested_ordered_list_start(self, make_book):
        tex = LatexRenderer(make_book("1. a\n\n   3. b\n   4. c")).render()
        assert r"\setcounter{enumii}{2}" in tex

    def test_custom_template_with_latex_macros(self, make_book, tmp_path):
        (tmp_path / "custom.tex").write_text(
            "\\newcommand{\\sep}{%\n  \\par}\n"
            "\\newcommand{\\x}[1]{#1}\n"
            "\\title{\\VAR{title}}\n"
            "\\VAR{content}\n",
            encoding="utf-8",
        )
        tex = LatexRenderer(make_book("Hello", title="A & B", tex_template="custom.tex")).render()
        assert tex.startswith("\\newcommand{\\sep}{%\n  \\par}\n\\newcommand{\\x}[1]{#1}\n")
        assert r"\title{A \& B}" in tex
        assert "Hello" in tex

    def test_item_and_line_break_before_bracket(self, make_book):
        """A leading [ is text, not an optional argument"""
        tex = LatexRenderer(make_book("- [x] done\n\na  \n[1] b")).render()
        assert r"\item{} [x] done" in tex
        assert "a\\\\{}\n[1] b" in tex

    def test_missing_tex_command(self, make_book, tmp_path):
        book = make_book("Text", tex_command="bookpress-no-such-tex")
        output = tmp_path / "out" / "book.pdf"
        with pytest.raises(RenderError) as exc:
            book.render_pdf(str(output))
        assert exc.value.format == "pdf"
        assert "not found" in str(exc.value)
        assert not output.exists()

    def test_temp_dir_relative_to_book_root(self, make_book, tmp_path, monkeypatch):
        (tmp_path / "scratch").mkdir()
        elsewhere = tmp_path / "elsewhere"
        elsewhere.mkdir()
        monkeypatch.chdir(elsewhere)
        book = make_book(
            "Text", tex_command="bookpress-no-such-tex", temp_dir="scratch", keep_tex=True,
        )
        with pytest.raises(RenderError):
            book.render_pdf(str(tmp_path / "book.pdf"))
        kept = os.listdir(tmp_path / "scratch")
        assert len(kept) == 1 and kept[0].startswith("bookpress_tex_")
        assert os.listdir(elsewhere) == []


# ============================================================================
# EPUB
# ============================================================================


class TestEpub:
    """EPUB container"""

    def test_entries(self, make_book):
        container = EpubRenderer(make_book("# One\n\nA", "# Two\n\nB")).render()
        names = container.names()
        assert names[0] == "mimetype"
        assert container.read("mimetype") == b"application/epub+zip"
        for name in [
            "META-INF/container.xml",
            "OEBPS/content.opf",
            "OEBPS/toc.ncx",
            "OEBPS/stylesheet.css",
            "OEBPS/chapter_001.xhtml",
            "OEBPS/chapter_002.xhtml",
        ]:
            assert name in names
        assert "OEBPS/nav.xhtml" not in names
        assert len([n for n in names if n.startswith("OEBPS/chapter_")]) == 2

    def test_epub3_nav(self, make_book):
        container = EpubRenderer(make_book("# One\n\nA", epub_version=3)).render()
        assert "OEBPS/nav.xhtml" in container
        assert b'version="3.0"' in container.read("OEBPS/content.opf")

    def test_chapter_content(self, make_book):
        container = EpubRenderer(make_book("# One\n\nHello & bye")).render()
        xhtml = container.read("OEBPS/chapter_001.xhtml").decode("utf-8")
        assert "<p>Hello &amp; bye</p>" in xhtml
        assert "<h1>1. One</h1>" in xhtml

    def test_written_zip(self, make_book, tmp_path):
        path = tmp_path / "out" / "book.epub"
        make_book("Text").render_epub(str(path))
        with zipfile.ZipFile(path) as z:
            first = z.infolist()[0]
            assert first.filename == "mimetype"
            assert first.compress_type == zipfile.ZIP_STORED
            assert z.read("mimetype") == b"application/epub+zip"

    def test_cover(self, make_book, tmp_path, png_bytes):
        (tmp_path / "cover.png").write_bytes(png_bytes)
        container = EpubRenderer(make_book("Text", cover="cover.png")).render()
        assert "OEBPS/images/cover.png" in container
        assert "OEBPS/cover.xhtml" in container
        assert b'<meta name="cover" content="cover-image"/>' in container.read("OEBPS/content.opf")

    def test_missing_cover(self, make_book):
        with pytest.raises(RenderError) as exc:
            EpubRenderer(make_book("Text", cover="missing.jpg")).render()
        assert exc.value.format == "epub"

    def test_images_embedded(self, make_book, tmp_path, png_bytes):
        (tmp_path / "img.png").write_bytes(png_bytes)
        container = EpubRenderer(make_book("![pic](img.png)")).render()
        assert "OEBPS/images/000_img.png" in container
        xhtml = container.read("OEBPS/chapter_001.xhtml").decode("utf-8")
        assert 'src="images/000_img.png"' in xhtml

    def test_remote_image_left_as_link(self, make_book):
        container = EpubRenderer(make_book("![pic](http://example.com/a.png)")).render()
        assert not [n for n in container.names() if n.startswith("OEBPS/images/")]

    def test_missing_image(self, make_book):
        with pytest.raises(RenderError) as exc:
            EpubRenderer(make_book("Fine", "![pic](nope.png)")).render()
        assert exc.value.chapter == 2


# ============================================================================
# ODT
# ============================================================================


class TestOdt:
    """OpenDocument text container"""

    def test_entries(self, make_book):
        container = OdtRenderer(make_book("# One\n\nHello, world.")).render()
        names = container.names()
        assert names[0] == "mimetype"
        assert container.read("mimetype") == b"application/vnd.oasis.opendocument.text"
        for name in ["content.xml", "styles.xml", "meta.xml", "META-INF/manifest.xml"]:
            assert name in names

    def test_content(self, make_book):
        container = OdtRenderer(make_book("# One\n\nHello & *bye*")).render()
        content = container.read("content.xml").decode("utf-8")
        assert '<text:h text:style-name="Heading_20_1" text:outline-level="1">1. One</text:h>' in content
        assert '<text:span text:style-name="Emphasis">bye</text:span>' in content
        assert "Hello &amp; " in content

    def test_list_items_wrapped_in_paragraphs(self, make_book):
        content = OdtRenderer(make_book("- a\n- b")).render().read("content.xml").decode("utf-8")
        assert '<text:list text:style-name="Bullets">' in content
        assert '<text:list-item>\n<text:p text:style-name="List_20_Contents">a</text:p>\n</text:list-item>' in content

    def test_footnote(self, make_book):
        content = OdtRenderer(make_book("Text[^n].\n\n[^n]: The note.")).render().read("content.xml")
        assert b'text:note-class="footnote"' in content
        assert b"The note." in content

    def test_pictures(self, make_book, tmp_path, png_bytes):
        (tmp_path / "img.png").write_bytes(png_bytes)
        container = OdtRenderer(make_book("![pic](img.png)")).render()
        assert "Pictures/000_img.png" in container
        assert b'manifest:full-path="Pictures/000_img.png"' in container.read("META-INF/manifest.xml")

    def test_missing_image(self, make_book):
        with pytest.raises(RenderError) as exc:
            OdtRenderer(make_book("![pic](nope.png)")).render()
        assert exc.value.format == "odt"
