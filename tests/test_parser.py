"""
Markdown parser tests: block and inline structure, literal fallback for
malformed markup, file errors, cleaner application.
"""

import time

import pytest

from bookpress.cleaner import French
from bookpress.errors import FileNotFound, ParseError
from bookpress.parser import MAX_NESTING, Parser
from bookpress.tokens import (
    BlockQuote, Code, CodeBlock, Emphasis, FootnoteDefinition,
    FootnoteReference, HardBreak, Header, Image, Item, Link, List,
    OrderedList, Paragraph, Rule, SoftBreak, Str, Strong,
)


def parse(text, cleaner=None):
    return Parser(cleaner).parse(text)


class TestBlocks:
    """Block-level structure"""

    def test_single_paragraph(self):
        """Plain text is one paragraph holding one text leaf"""
        assert parse("Hello, world.") == (Paragraph((Str("Hello, world."),)),)

    def test_atx_headers(self):
        """ATX headers keep their level"""
        tokens = parse("# Title\n\n### Sub ###\n\nText")
        assert tokens == (
            Header(1, (Str("Title"),)),
            Header(3, (Str("Sub"),)),
            Paragraph((Str("Text"),)),
        )

    def test_setext_header(self):
        """Underlined text is a header"""
        assert parse("Title\n=====") == (Header(1, (Str("Title"),)),)
        assert parse("Part\n----") == (Header(2, (Str("Part"),)),)

    def test_rule(self):
        """A line of three stars or dashes is a rule"""
        assert parse("***") == (Rule(),)
        assert parse("a\n\n- - -\n\nb")[1] == Rule()

    def test_blockquote(self):
        """Quoted lines, including lazy continuations, form one quote"""
        tokens = parse("> quoted\nstill quoted")
        assert tokens == (
            BlockQuote((Paragraph((Str("quoted"), SoftBreak(), Str("still quoted"))),)),
        )

    def test_fenced_code(self):
        """Fenced code keeps its language and raw text"""
        tokens = parse("```python\nprint(*a*)\n```")
        assert tokens == (CodeBlock("python", "print(*a*)"),)

    def test_indented_code(self):
        """Four spaces of indentation make a code block"""
        assert parse("    x = 1\n    y = 2") == (CodeBlock("", "x = 1\ny = 2"),)

    def test_tight_list(self):
        """Tight list items hold inline tokens directly"""
        assert parse("- a\n- b") == (
            List((Item((Str("a"),)), Item((Str("b"),)))),
        )

    def test_loose_list(self):
        """Blank lines between items wrap their text in paragraphs"""
        assert parse("- a\n\n- b") == (
            List((
                Item((Paragraph((Str("a"),)),)),
                Item((Paragraph((Str("b"),)),)),
            )),
        )

    def test_ordered_list_start(self):
        """Ordered lists remember their first number"""
        tokens = parse("3. x\n4. y")
        assert tokens == (OrderedList(3, (Item((Str("x"),)), Item((Str("y"),)))),)

    def test_nested_list(self):
        """Indented items nest inside their parent item"""
        tokens = parse("- a\n  - b")
        assert tokens == (
            List((Item((Str("a"), List((Item((Str("b"),)),)))),)),
        )

    def test_footnote_definition(self):
        """Footnote definitions are blocks carrying their label"""
        tokens = parse("Text[^1].\n\n[^1]: The note.")
        assert tokens == (
            Paragraph((Str("Text"), FootnoteReference("1"), Str("."))),
            FootnoteDefinition("1", (Paragraph((Str("The note."),)),)),
        )

    def test_crlf_and_bom(self):
        """Windows line endings and a BOM do not change the tree"""
        assert parse("\ufeffa\r\nb") == parse("a\nb")


class TestInline:
    """Inline markup"""

    def test_emphasis_and_strong(self):
        """Single and double stars"""
        assert parse("*a* and **b**") == (
            Paragraph((Emphasis((Str("a"),)), Str(" and "), Strong((Str("b"),)))),
        )

    def test_nested_emphasis(self):
        """Strong inside emphasis"""
        assert parse("*a **b** c*") == (
            Paragraph((Emphasis((Str("a "), Strong((Str("b"),)), Str(" c"))),)),
        )

    def test_code_span(self):
        """Code spans are not parsed further"""
        assert parse("use `*x*` here") == (
            Paragraph((Str("use "), Code("*x*"), Str(" here"))),
        )

    def test_inline_link(self):
        """[text](url "title")"""
        assert parse('[site](http://example.com "Home")') == (
            Paragraph((Link("http://example.com", "Home", (Str("site"),)),)),
        )

    def test_reference_link(self):
        """[text][ref] with a definition elsewhere; the definition line disappears"""
        tokens = parse("[site][ex]\n\n[ex]: http://example.com")
        assert tokens == (Paragraph((Link("http://example.com", "", (Str("site"),)),)),)

    def test_autolink(self):
        """<url> becomes a link to itself"""
        assert parse("<http://example.com>") == (
            Paragraph((Link("http://example.com", "", (Str("http://example.com"),)),)),
        )

    def test_image(self):
        """Images keep their alt text as children"""
        assert parse("![A cat](cat.png)") == (
            Paragraph((Image("cat.png", "", (Str("A cat"),)),)),
        )

    def test_soft_and_hard_breaks(self):
        """A newline is soft; two trailing spaces or a backslash make it hard"""
        assert parse("a\nb") == (Paragraph((Str("a"), SoftBreak(), Str("b"))),)
        assert parse("a  \nb") == (Paragraph((Str("a"), HardBreak(), Str("b"))),)
        assert parse("a\\\nb") == (Paragraph((Str("a"), HardBreak(), Str("b"))),)

    def test_backslash_escape(self):
        """Escaped markup characters are literal"""
        assert parse(r"\*not emphasis\*") == (Paragraph((Str("*not emphasis*"),)),)


class TestMalformedMarkup:
    """Unmatched markup degrades to literal text"""

    def test_unclosed_emphasis(self):
        assert parse("*open") == (Paragraph((Str("*open"),)),)

    def test_unclosed_code(self):
        assert parse("`open") == (Paragraph((Str("`open"),)),)

    def test_unclosed_link(self):
        assert parse("[text](http://x") == (Paragraph((Str("[text](http://x"),)),)

    def test_undefined_reference(self):
        assert parse("[nothing]") == (Paragraph((Str("[nothing]"),)),)

    def test_underscore_inside_word(self):
        """snake_case_names are not emphasis"""
        assert parse("snake_case_name") == (Paragraph((Str("snake_case_name"),)),)

    def test_empty_input(self):
        assert parse("") == ()
        assert parse("\n\n  \n") == ()

    def test_many_unmatched_delimiters(self):
        """Thousands of openers with nothing to close them parse quickly"""
        for c in "*_":
            text = f"{c}a " * 4000
            started = time.perf_counter()
            tokens = parse(text)
            assert time.perf_counter() - started < 2
            assert tokens == (Paragraph((Str(text.rstrip()),)),)

    def test_late_opener_still_matches(self):
        assert parse("*a *b c*") == (Paragraph((Str("*a "), Emphasis((Str("b c"),)))),)

    def test_deeply_nested_quotes(self):
        """Quotes nested past the limit are kept as literal text"""
        tokens = parse(">" * 600 + " x")
        depth = 0
        token = tokens[0]
        while isinstance(token, BlockQuote):
            token = token.children[0]
            depth += 1
        assert depth == MAX_NESTING
        assert token == Paragraph((Str(">" * (600 - MAX_NESTING) + " x"),))

    def test_deeply_nested_links(self):
        (paragraph,) = parse("[" * 300 + "a" + "](u)" * 300)
        assert isinstance(paragraph.children[0], Link)


class TestDeterminism:
    """Parsing is a pure function of its input"""

    def test_same_input_same_tree(self):
        text = "# T\n\n*a* [b](c) `d`\n\n- e\n- f\n\n> g"
        assert parse(text) == parse(text)

    def test_parser_reusable(self):
        """Reference definitions do not leak between documents"""
        parser = Parser()
        parser.parse("[x]\n\n[x]: http://one")
        assert parser.parse("[x]") == (Paragraph((Str("[x]"),)),)


class TestCleanerApplication:
    """The cleaner runs on every text leaf as it is created"""

    def test_french_leaf(self):
        tokens = parse("Quoi ?", French("~"))
        assert tokens == (Paragraph((Str("Quoi~?"),)),)

    def test_cleaner_skips_code(self):
        tokens = parse("`a ?` b ?", French("~"))
        assert tokens == (Paragraph((Code("a ?"), Str(" b~?"))),)

    def test_dialogue_dash_at_line_start(self):
        """Only a run opening a line gets the dialogue-dash rule"""
        tokens = parse("— Oui.\nIl dit — non.", French("~"))
        assert tokens == (
            Paragraph((Str("—~Oui."), SoftBreak(), Str("Il dit — non."))),
        )


class TestParseFile:
    """File-level errors"""

    def test_reads_utf8(self, tmp_path):
        path = tmp_path / "ch.md"
        path.write_text("Été", encoding="utf-8")
        assert Parser().parse_file(str(path)) == (Paragraph((Str("Été"),)),)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFound) as exc:
            Parser().parse_file(str(tmp_path / "missing.md"))
        assert exc.value.path.endswith("missing.md")

    def test_invalid_utf8(self, tmp_path):
        path = tmp_path / "bad.md"
        path.write_bytes(b"caf\xe9")
        with pytest.raises(ParseError) as exc:
            Parser().parse_file(str(path))
        assert exc.value.path == str(path)
