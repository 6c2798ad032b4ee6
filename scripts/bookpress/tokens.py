"""
Format-neutral document tree for one chapter.

The parser builds these once; renderers only read them. Every node is a
frozen dataclass, so two trees compare equal when their node types and
children match recursively. Children are tuples owned by their parent.

Block tokens:
    Paragraph, Header, BlockQuote, CodeBlock, Rule,
    List, OrderedList, Item, FootnoteDefinition

Inline tokens:
    Str, Emphasis, Strong, Code, Link, Image,
    SoftBreak, HardBreak, FootnoteReference
"""

from dataclasses import dataclass


class Token:
    """Base class for every node of the tree."""

    children = ()
    is_block = False


# ── Block tokens ───────────────────────────────────────────────────────


@dataclass(frozen=True)
class Paragraph(Token):
    children: tuple = ()
    is_block = True


@dataclass(frozen=True)
class Header(Token):
    level: int = 1
    children: tuple = ()
    is_block = True


@dataclass(frozen=True)
class BlockQuote(Token):
    children: tuple = ()
    is_block = True


@dataclass(frozen=True)
class CodeBlock(Token):
    """Verbatim block. `text` is never inline-parsed nor cleaned."""

    language: str = ""
    text: str = ""
    is_block = True


@dataclass(frozen=True)
class Rule(Token):
    is_block = True


@dataclass(frozen=True)
class List(Token):
    """Unordered list; children are Item tokens."""

    children: tuple = ()
    is_block = True


@dataclass(frozen=True)
class OrderedList(Token):
    start: int = 1
    children: tuple = ()
    is_block = True


@dataclass(frozen=True)
class Item(Token):
    children: tuple = ()
    is_block = True


@dataclass(frozen=True)
class FootnoteDefinition(Token):
    label: str = ""
    children: tuple = ()
    is_block = True


# ── Inline tokens ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class Str(Token):
    text: str = ""


@dataclass(frozen=True)
class Emphasis(Token):
    children: tuple = ()


@dataclass(frozen=True)
class Strong(Token):
    children: tuple = ()


@dataclass(frozen=True)
class Code(Token):
    text: str = ""


@dataclass(frozen=True)
class Link(Token):
    url: str = ""
    title: str = ""
    children: tuple = ()


@dataclass(frozen=True)
class Image(Token):
    """Image reference; children hold the alt text."""

    url: str = ""
    title: str = ""
    children: tuple = ()


@dataclass(frozen=True)
class SoftBreak(Token):
    pass


@dataclass(frozen=True)
class HardBreak(Token):
    pass


@dataclass(frozen=True)
class FootnoteReference(Token):
    label: str = ""


# ── Traversal helpers ──────────────────────────────────────────────────


def walk(tokens):
    """Yield every token depth-first, in source order."""
    for token in tokens:
        yield token
        yield from walk(token.children)


def flatten_text(tokens):
    """Concatenated text content of a token sequence (no markup)."""
    parts = []
    for token in tokens:
        if isinstance(token, (Str, Code)):
            parts.append(token.text)
        elif isinstance(token, (SoftBreak, HardBreak)):
            parts.append(" ")
        elif isinstance(token, CodeBlock):
            parts.append(token.text)
        else:
            parts.append(flatten_text(token.children))
    return "".join(parts)


def find_images(tokens):
    """Return the URLs of every image in the tree, first occurrence order."""
    urls = []
    for token in walk(tokens):
        if isinstance(token, Image) and token.url not in urls:
            urls.append(token.url)
    return urls
