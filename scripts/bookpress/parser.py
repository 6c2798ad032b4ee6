"""
Markdown → token tree.

Block structure is read line by line (headings, paragraphs, quotes, lists,
code blocks, rules, footnote definitions); paragraph and heading text is then
scanned for inline markup. Every text leaf goes through the book's cleaner
at the moment it is created.

Malformed inline markup is kept as literal text: parsing a string never
fails. Only `parse_file()` raises, for unreadable or non-UTF-8 files.

Usage:
    parser = Parser(cleaner=French("\u202f"))
    tokens = parser.parse_file("chapters/01.md")
"""

import re

from bookpress.errors import FileNotFound, ParseError
from bookpress.tokens import (
    BlockQuote, Code, CodeBlock, Emphasis, FootnoteDefinition,
    FootnoteReference, HardBreak, Header, Image, Item, Link, List,
    OrderedList, Paragraph, Rule, SoftBreak, Str, Strong,
)


# ── Block patterns ─────────────────────────────────────────────────────

ATX_RE = re.compile(r"^ {0,3}(#{1,6})(?=[ \t]|$)(.*)$")
ATX_CLOSE_RE = re.compile(r"(?:^|[ \t]+)#+[ \t]*$")
SETEXT_RE = re.compile(r"^ {0,3}(=+|-+)[ \t]*$")
RULE_RE = re.compile(r"^ {0,3}(?:(?:\*[ \t]*){3,}|(?:-[ \t]*){3,}|(?:_[ \t]*){3,})$")
FENCE_RE = re.compile(r"^( {0,3})(`{3,}|~{3,})(.*)$")
QUOTE_RE = re.compile(r"^ {0,3}> ?")
LIST_RE = re.compile(r"^( {0,3})([-*+]|\d{1,9}[.)])(?:([ \t]+)(.*)|$)")
FOOTNOTE_DEF_RE = re.compile(r"^ {0,3}\[\^([^\]\s]+)\]:[ \t]*(.*)$")
REF_DEF_RE = re.compile(
    r"^ {0,3}\[([^\]^][^\]]*)\]:[ \t]*<?([^\s>]+)>?"
    r"""(?:[ \t]+(?:"([^"]*)"|'([^']*)'|\(([^)]*)\)))?[ \t]*$"""
)

# ── Inline patterns ────────────────────────────────────────────────────

ESCAPABLE = set("!\"#$%&'()*+,-./:;<=>?@[\\]^_`{|}~")
FOOTNOTE_REF_RE = re.compile(r"\[\^([^\]\s]+)\]")
AUTOLINK_RE = re.compile(r"<([A-Za-z][A-Za-z0-9+.\-]{1,31}:[^\s<>]*)>")
EMAIL_RE = re.compile(r"<([A-Za-z0-9.!#$%&'*+/=?^_`{|}~\-]+@[A-Za-z0-9\-]+(?:\.[A-Za-z0-9\-]+)*)>")

# Deeper quotes, lists or inline spans are kept as literal text
MAX_NESTING = 64


def _is_blank(line):
    return not line.strip()


def _indent(line):
    return len(line) - len(line.lstrip(" "))


def _normalize_label(label):
    return " ".join(label.split()).lower()


def _unescape(text):
    return re.sub(r"\\([!-/:-@\[-`{-~])", r"\1", text)


class _Run:
    """Accumulates inline tokens, merging adjacent text into one cleaned leaf."""

    def __init__(self, cleaner, first):
        self.cleaner = cleaner
        self.first = first
        self.tokens = []
        self.buf = []

    @property
    def at_line_start(self):
        return self.first and not self.buf

    def text(self, s):
        self.buf.append(s)

    def flush(self):
        if not self.buf:
            return
        s = "".join(self.buf)
        self.buf = []
        if not s:
            return
        if self.cleaner is not None:
            s = self.cleaner.clean(s, self.first)
        self.tokens.append(Str(s))
        self.first = False

    def push(self, token):
        self.flush()
        self.tokens.append(token)
        self.first = isinstance(token, (SoftBreak, HardBreak))


class Parser:
    """
    Markdown parser.

    `cleaner` is any object with a `clean(text, is_first_run_in_line)`
    method, or None to keep text as written.
    """

    def __init__(self, cleaner=None):
        self.cleaner = cleaner
        self._refs = {}
        self._depth = 0
        self._inline_depth = 0

    # ── Entry points ───────────────────────────────────────

    def parse(self, text):
        """Parse markdown text into a tuple of block tokens."""
        if text.startswith("\ufeff"):
            text = text[1:]
        text = text.replace("\r\n", "\n").replace("\r", "\n")
        lines = [line.expandtabs(4) for line in text.split("\n")]
        self._refs = self._collect_references(lines)
        return tuple(self._parse_blocks(lines))

    def parse_file(self, path):
        """
        Read and parse a UTF-8 markdown file.

        Raises FileNotFound if the file does not exist, ParseError if it
        cannot be read or decoded.
        """
        try:
            with open(path, "r", encoding="utf-8") as f:
                text = f.read()
        except FileNotFoundError as e:
            raise FileNotFound(path, "chapter") from e
        except UnicodeDecodeError as e:
            raise ParseError("chapter is not valid UTF-8", path) from e
        except OSError as e:
            raise ParseError(f"could not read chapter: {e.strerror}", path) from e
        return self.parse(text)

    # ── Link reference definitions ─────────────────────────

    def _collect_references(self, lines):
        """First pass: gather [label]: url "title" definitions outside code."""
        refs = {}
        fence = None
        for line in lines:
            m = FENCE_RE.match(line)
            if fence:
                if m and m.group(2)[0] == fence[0] and len(m.group(2)) >= len(fence) \
                        and not m.group(3).strip():
                    fence = None
                continue
            if m:
                fence = m.group(2)
                continue
            m = REF_DEF_RE.match(line)
            if m:
                key = _normalize_label(m.group(1))
                title = m.group(3) or m.group(4) or m.group(5) or ""
                refs.setdefault(key, (_unescape(m.group(2)), _unescape(title)))
        return refs

    # ── Blocks ─────────────────────────────────────────────

    def _parse_blocks(self, lines):
        if self._depth >= MAX_NESTING:
            text = "\n".join(line.strip() for line in lines if not _is_blank(line))
            return [Paragraph(self._literal(text))] if text else []
        self._depth += 1
        try:
            return self._read_blocks(lines)
        finally:
            self._depth -= 1

    def _read_blocks(self, lines):
        blocks = []
        i = 0
        n = len(lines)

        while i < n:
            line = lines[i]

            if _is_blank(line):
                i += 1
                continue

            m = FENCE_RE.match(line)
            if m and not (m.group(2)[0] == "`" and "`" in m.group(3)):
                block, i = self._fenced_code(lines, i, m)
                blocks.append(block)
                continue

            if _indent(line) >= 4:
                block, i = self._indented_code(lines, i)
                blocks.append(block)
                continue

            m = ATX_RE.match(line)
            if m:
                content = ATX_CLOSE_RE.sub("", m.group(2).strip())
                blocks.append(Header(len(m.group(1)), self._inline(content)))
                i += 1
                continue

            if RULE_RE.match(line):
                blocks.append(Rule())
                i += 1
                continue

            if QUOTE_RE.match(line):
                block, i = self._blockquote(lines, i)
                blocks.append(block)
                continue

            m = FOOTNOTE_DEF_RE.match(line)
            if m:
                block, i = self._footnote(lines, i, m)
                blocks.append(block)
                continue

            m = LIST_RE.match(line)
            if m:
                block, i = self._list(lines, i)
                blocks.append(block)
                continue

            m = REF_DEF_RE.match(line)
            if m and _normalize_label(m.group(1)) in self._refs:
                i += 1
                continue

            block, i = self._paragraph(lines, i)
            blocks.append(block)

        return blocks

    def _interrupts_paragraph(self, line):
        """True if `line` starts a block that can end a running paragraph."""
        if ATX_RE.match(line) or RULE_RE.match(line) or QUOTE_RE.match(line):
            return True
        if FENCE_RE.match(line) or FOOTNOTE_DEF_RE.match(line):
            return True
        m = LIST_RE.match(line)
        if m and m.group(4) and m.group(4).strip():
            marker = m.group(2)
            return not marker[0].isdigit() or int(marker[:-1]) == 1
        return False

    def _paragraph(self, lines, i):
        n = len(lines)
        collected = [lines[i].lstrip()]
        i += 1
        while i < n:
            line = lines[i]
            if _is_blank(line):
                break
            m = SETEXT_RE.match(line)
            if m:
                level = 1 if m.group(1)[0] == "=" else 2
                text = "\n".join(collected).strip()
                return Header(level, self._inline(text)), i + 1
            if self._interrupts_paragraph(line):
                break
            collected.append(line.lstrip())
            i += 1
        text = "\n".join(collected).rstrip()
        return Paragraph(self._inline(text)), i

    def _fenced_code(self, lines, i, m):
        n = len(lines)
        indent = len(m.group(1))
        fence = m.group(2)
        info = m.group(3).strip()
        language = info.split()[0] if info else ""
        content = []
        i += 1
        while i < n:
            line = lines[i]
            close = FENCE_RE.match(line)
            if close and close.group(2)[0] == fence[0] \
                    and len(close.group(2)) >= len(fence) and not close.group(3).strip():
                i += 1
                break
            content.append(line[min(indent, _indent(line)):])
            i += 1
        return CodeBlock(_unescape(language), "\n".join(content)), i

    def _indented_code(self, lines, i):
        n = len(lines)
        content = []
        while i < n and (_is_blank(lines[i]) or _indent(lines[i]) >= 4):
            content.append(lines[i][4:])
            i += 1
        while content and _is_blank(content[-1]):
            content.pop()
        return CodeBlock("", "\n".join(content)), i

    def _blockquote(self, lines, i):
        n = len(lines)
        inner = []
        while i < n:
            line = lines[i]
            m = QUOTE_RE.match(line)
            if m:
                inner.append(line[m.end():])
                i += 1
                continue
            if _is_blank(line):
                break
            # Lazy continuation of a quoted paragraph
            if inner and not _is_blank(inner[-1]) and not self._interrupts_paragraph(line):
                inner.append(line)
                i += 1
                continue
            break
        return BlockQuote(tuple(self._parse_blocks(inner))), i

    def _footnote(self, lines, i, m):
        n = len(lines)
        label = m.group(1)
        inner = [m.group(2)]
        i += 1
        while i < n:
            line = lines[i]
            if _is_blank(line):
                inner.append("")
                i += 1
                continue
            if _indent(line) >= 2:
                inner.append(line[min(_indent(line), 4):])
                i += 1
                continue
            if not _is_blank(inner[-1]) and not self._interrupts_paragraph(line) \
                    and not REF_DEF_RE.match(line):
                inner.append(line)
                i += 1
                continue
            break
        while inner and _is_blank(inner[-1]):
            inner.pop()
        return FootnoteDefinition(label, tuple(self._parse_blocks(inner))), i

    # ── Lists ──────────────────────────────────────────────

    def _list(self, lines, i):
        n = len(lines)
        first = LIST_RE.match(lines[i])
        marker = first.group(2)
        ordered = marker[0].isdigit()
        start = int(marker[:-1]) if ordered else 1

        items = []
        loose = False
        while i < n:
            m = LIST_RE.match(lines[i])
            if not m or RULE_RE.match(lines[i]) or not _same_list(marker, m.group(2)):
                break
            if items and items[-1][1]:
                # blank line between two items
                loose = True
            item_lines, i, trailing_blank = self._list_item(lines, i, m)
            if any(_is_blank(l) for l in item_lines[1:]):
                loose = True
            items.append((item_lines, trailing_blank))

        children = []
        for item_lines, _ in items:
            while item_lines and _is_blank(item_lines[0]):
                item_lines = item_lines[1:]
            blocks = self._parse_blocks(item_lines)
            if not loose:
                blocks = _tighten(blocks)
            children.append(Item(tuple(blocks)))

        if ordered:
            return OrderedList(start, tuple(children)), i
        return List(tuple(children)), i

    def _list_item(self, lines, i, m):
        """
        Collect the lines of one list item, with its indentation removed.

        Returns (lines, next_index, ended_with_blank_line).
        """
        n = len(lines)
        indent = len(m.group(1))
        marker = m.group(2)
        spacing = m.group(3) or ""
        content = m.group(4) or ""

        if not content.strip():
            content_indent = indent + len(marker) + 1
            content = ""
        elif len(spacing) > 4:
            content_indent = indent + len(marker) + 1
            content = spacing[1:] + content
        else:
            content_indent = indent + len(marker) + len(spacing)

        item = [content]
        i += 1
        while i < n:
            line = lines[i]
            if _is_blank(line):
                item.append("")
                i += 1
                continue
            if _indent(line) >= content_indent:
                item.append(line[content_indent:])
                i += 1
                continue
            if _is_blank(item[-1]):
                break
            if LIST_RE.match(line) or self._interrupts_paragraph(line):
                break
            # Lazy continuation of the item's paragraph
            item.append(line.lstrip())
            i += 1

        trailing = False
        while len(item) > 1 and _is_blank(item[-1]):
            item.pop()
            trailing = True
        return item, i, trailing

    # ── Inline ─────────────────────────────────────────────

    def _inline(self, text, first=True):
        if self._inline_depth >= MAX_NESTING:
            return self._literal(text, first)
        self._inline_depth += 1
        try:
            return self._read_inline(text, first)
        finally:
            self._inline_depth -= 1

    def _literal(self, text, first=True):
        run = _Run(self.cleaner, first)
        run.text(text)
        run.flush()
        return tuple(run.tokens)

    def _read_inline(self, text, first):
        run = _Run(self.cleaner, first)
        closers = {}
        i = 0
        n = len(text)

        while i < n:
            c = text[i]

            if c == "\\":
                nxt = text[i + 1] if i + 1 < n else ""
                if nxt == "\n":
                    run.push(HardBreak())
                    i = _skip_spaces(text, i + 2)
                elif nxt in ESCAPABLE and nxt:
                    run.text(nxt)
                    i += 2
                else:
                    run.text(c)
                    i += 1
                continue

            if c == "\n":
                pending = "".join(run.buf)
                hard = pending.endswith("  ")
                run.buf = [pending.rstrip(" ")]
                run.push(HardBreak() if hard else SoftBreak())
                i = _skip_spaces(text, i + 1)
                continue

            if c == "`":
                span = _code_span(text, i)
                if span:
                    code, i = span
                    run.push(Code(code))
                else:
                    j = _run_end(text, i, "`")
                    run.text(text[i:j])
                    i = j
                continue

            if c == "!" and text.startswith("[", i + 1):
                link = self._link(text, i + 1)
                if link:
                    label, url, title, i = link
                    run.push(Image(url, title, self._inline(label, False)))
                else:
                    run.text(c)
                    i += 1
                continue

            if c == "[":
                m = FOOTNOTE_REF_RE.match(text, i)
                if m:
                    run.push(FootnoteReference(m.group(1)))
                    i = m.end()
                    continue
                link = self._link(text, i)
                if link:
                    label, url, title, end = link
                    run.push(Link(url, title, self._inline(label, run.at_line_start)))
                    i = end
                else:
                    run.text(c)
                    i += 1
                continue

            if c == "<":
                m = AUTOLINK_RE.match(text, i) or EMAIL_RE.match(text, i)
                if m:
                    target = m.group(1)
                    url = target if m.re is AUTOLINK_RE else f"mailto:{target}"
                    run.push(Link(url, "", self._inline(target, run.at_line_start)))
                    i = m.end()
                    continue
                run.text(c)
                i += 1
                continue

            if c in "*_":
                found = self._emphasis(text, i, run.at_line_start, closers)
                if found:
                    token, i = found
                    run.push(token)
                else:
                    j = _run_end(text, i, c)
                    run.text(text[i:j])
                    i = j
                continue

            run.text(c)
            i += 1

        run.flush()
        return tuple(run.tokens)

    def _emphasis(self, text, i, first, closers):
        """
        Try to read *emphasis* or **strong** opening at `i`.

        `closers` caches, per delimiter character, the last position in
        `text` that could close a run.
        """
        c = text[i]
        length = _run_end(text, i, c) - i
        prev = text[i - 1] if i > 0 else " "
        after = text[i + length] if i + length < len(text) else " "
        if after.isspace():
            return None
        if c == "_" and prev.isalnum():
            return None
        if c not in closers:
            closers[c] = _last_closer(text, c)
        if closers[c] <= i:
            return None

        for size in ((2, 1) if length >= 2 else (1,)):
            start = i + size
            close = _find_closer(text, start, c, size)
            if close is not None:
                children = self._inline(text[start:close], first)
                token = Strong(children) if size == 2 else Emphasis(children)
                return token, close + size
        return None

    def _link(self, text, i):
        """
        Try to read a link starting with "[" at `i`.

        Returns (label, url, title, end) or None.
        """
        close = _matching_bracket(text, i)
        if close is None:
            return None
        label = text[i + 1:close]
        j = close + 1

        if j < len(text) and text[j] == "(":
            dest = _link_destination(text, j)
            if dest:
                url, title, end = dest
                return label, url, title, end

        if j < len(text) and text[j] == "[":
            close2 = text.find("]", j + 1)
            if close2 != -1:
                ref = self._refs.get(_normalize_label(text[j + 1:close2] or label))
                if ref:
                    return label, ref[0], ref[1], close2 + 1

        ref = self._refs.get(_normalize_label(label))
        if ref:
            return label, ref[0], ref[1], close + 1
        return None


# ── Inline scanning helpers ────────────────────────────────────────────


def _skip_spaces(text, i):
    while i < len(text) and text[i] == " ":
        i += 1
    return i


def _run_end(text, i, c):
    while i < len(text) and text[i] == c:
        i += 1
    return i


def _code_span(text, i):
    """Return (code, end) for a backtick code span at `i`, or None."""
    ticks = _run_end(text, i, "`") - i
    closer = re.compile(r"(?<!`)`{%d}(?!`)" % ticks)
    m = closer.search(text, i + ticks)
    if not m:
        return None
    code = text[i + ticks:m.start()].replace("\n", " ")
    if len(code) >= 2 and code[0] == " " and code[-1] == " " and code.strip():
        code = code[1:-1]
    return code, m.end()


def _matching_bracket(text, i):
    depth = 0
    j = i
    n = len(text)
    while j < n:
        c = text[j]
        if c == "\\":
            j += 2
            continue
        if c == "`":
            span = _code_span(text, j)
            j = span[1] if span else _run_end(text, j, "`")
            continue
        if c == "[":
            depth += 1
        elif c == "]":
            depth -= 1
            if depth == 0:
                return j
        j += 1
    return None


def _link_destination(text, j):
    """Parse `(url "title")` starting at the "(" in `j`."""
    n = len(text)
    k = j + 1
    while k < n and text[k] in " \n":
        k += 1

    if k < n and text[k] == "<":
        end = text.find(">", k)
        if end == -1 or "\n" in text[k:end]:
            return None
        url = text[k + 1:end]
        k = end + 1
    else:
        start = k
        depth = 0
        while k < n:
            c = text[k]
            if c == "\\" and k + 1 < n:
                k += 2
                continue
            if c.isspace():
                break
            if c == "(":
                depth += 1
            elif c == ")":
                if depth == 0:
                    break
                depth -= 1
            k += 1
        url = text[start:k]

    while k < n and text[k] in " \n":
        k += 1

    title = ""
    if k < n and text[k] in "\"'(":
        closing = ")" if text[k] == "(" else text[k]
        end = text.find(closing, k + 1)
        if end == -1:
            return None
        title = text[k + 1:end]
        k = end + 1
        while k < n and text[k] in " \n":
            k += 1

    if k < n and text[k] == ")":
        return _unescape(url), _unescape(title), k + 1
    return None


def _last_closer(text, c):
    """
    Last position of `c` that is not preceded by whitespace (for "_", also
    not followed by an alphanumeric after its run), or -1. No emphasis can
    close after it.
    """
    n = len(text)
    run_end = n
    for p in range(n - 1, 0, -1):
        if text[p] != c:
            continue
        if p + 1 >= n or text[p + 1] != c:
            run_end = p + 1
        if text[p - 1].isspace():
            continue
        if c == "_" and run_end < n and text[run_end].isalnum():
            continue
        return p
    return -1


def _find_closer(text, start, c, size):
    """
    Position of the delimiter run closing an emphasis opened just before
    `start`, or None. Nested openers of the same character are matched
    first, so `*a **b** c*` closes on the last star.
    """
    stack = []
    j = start
    n = len(text)
    while j < n:
        ch = text[j]
        if ch == "\\":
            j += 2
            continue
        if ch == "`":
            span = _code_span(text, j)
            j = span[1] if span else _run_end(text, j, "`")
            continue
        if ch != c:
            j += 1
            continue

        end = _run_end(text, j, c)
        length = end - j
        before = text[j - 1] if j > start else " "
        after = text[end] if end < n else " "
        can_close = not before.isspace()
        can_open = not after.isspace()
        if c == "_":
            can_close = can_close and not after.isalnum()
            can_open = can_open and not before.isalnum()

        if can_close and stack:
            remaining = length
            while stack and remaining:
                top = stack.pop()
                if remaining >= top:
                    remaining -= top
                else:
                    stack.append(top - remaining)
                    remaining = 0
            if not stack and remaining >= size:
                return j + (length - remaining)
        elif can_close and length >= size:
            return j
        elif can_open and not can_close:
            stack.append(length)
        j = end
    return None


def _same_list(first, marker):
    if first[0].isdigit():
        return marker[0].isdigit() and marker[-1] == first[-1]
    return marker == first


def _tighten(blocks):
    """Tight list items hold their paragraph text inline."""
    out = []
    for block in blocks:
        if isinstance(block, Paragraph):
            out.extend(block.children)
        else:
            out.append(block)
    return out
