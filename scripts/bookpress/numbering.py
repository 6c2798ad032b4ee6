"""
Chapter numbering.

Each chapter carries a `Number` policy; `resolve()` turns the ordered
policies into what each chapter header shows:

    HIDDEN          title suppressed, counter unchanged
    UNNUMBERED      title shown without number, counter unchanged
    DEFAULT         counter + 1
    specified(n)    counter set to n, later DEFAULT chapters continue from n
"""

from collections import namedtuple
from dataclasses import dataclass

from bookpress.errors import ConfigError


@dataclass(frozen=True)
class Number:
    kind: str
    value: int = None

    @classmethod
    def specified(cls, n):
        return cls("specified", int(n))

    def __repr__(self):
        if self.kind == "specified":
            return f"Number.specified({self.value})"
        return f"Number.{self.kind.upper()}"


Number.HIDDEN = Number("hidden")
Number.UNNUMBERED = Number("unnumbered")
Number.DEFAULT = Number("default")


Resolved = namedtuple("Resolved", ["number", "show_title"])


def resolve(numbers, numbering=True):
    """
    Resolve chapter policies into (display number, show title) pairs.

    With `numbering` off every chapter except hidden ones shows its title
    without a number.
    """
    counter = 0
    resolved = []
    for number in numbers:
        if number.kind == "hidden":
            resolved.append(Resolved(None, False))
        elif number.kind == "unnumbered" or not numbering:
            resolved.append(Resolved(None, True))
        elif number.kind == "default":
            counter += 1
            resolved.append(Resolved(counter, True))
        elif number.kind == "specified":
            counter = number.value
            resolved.append(Resolved(counter, True))
        else:
            raise ValueError(f"unknown chapter numbering: {number!r}")
    return resolved


# ── Chapter directives ─────────────────────────────────────────────────


def _filename(rest, line):
    words = rest.split()
    if not words:
        raise ConfigError(f"no chapter file given: '{line}'")
    if len(words) > 1:
        raise ConfigError(f"chapter file names must not contain whitespace: '{line}'")
    return words[0]


def parse_directive(line):
    """
    Read one chapter directive.

        + file.md     numbered chapter
        - file.md     unnumbered chapter
        ! file.md     hidden title
        3. file.md    chapter number 3 (also "3: file.md", "3+ file.md")

    Returns (Number, filename). Raises ConfigError on malformed input.
    """
    line = str(line).strip()
    if not line:
        raise ConfigError("empty chapter directive")

    head = line[0]
    if head == "+":
        return Number.DEFAULT, _filename(line[1:], line)
    if head == "-":
        return Number.UNNUMBERED, _filename(line[1:], line)
    if head == "!":
        return Number.HIDDEN, _filename(line[1:], line)
    if head.isdigit():
        for i, c in enumerate(line):
            if c in ".:+":
                try:
                    value = int(line[:i])
                except ValueError:
                    raise ConfigError(f"could not parse chapter number: '{line}'")
                return Number.specified(value), _filename(line[i + 1:], line)
        raise ConfigError(f"ill-formatted line specifying chapter number: '{line}'")
    raise ConfigError(
        f"chapter directive must start with '+', '-', '!' or a number: '{line}'"
    )
