"""
Typographic cleaning of text runs.

The parser calls `clean()` on every text leaf as it emits it, so the
cleaner sees the same run boundaries the renderers will see.

Variants:
    Cleaner   no-op, returns text unchanged
    French    non-breaking spaces around French punctuation

The variant is chosen once per book by `get_cleaner()`.
"""

import re


class Cleaner:
    """No-op cleaner."""

    def clean(self, text, is_first_run_in_line=False):
        return text

    def __eq__(self, other):
        return type(self) is type(other)

    def __repr__(self):
        return f"{type(self).__name__}()"


class French(Cleaner):
    """
    French typographic rules.

    - runs of spaces collapse to one space
    - the space before ? ! ; : and » becomes `nb_char`
    - « and » always get `nb_char` on their inner side
    - a dialogue dash opening a line is followed by `nb_char`

    Letters are never touched and cleaning twice gives the same result.
    """

    def __init__(self, nb_char=" "):
        self.nb_char = nb_char
        nb = re.escape(nb_char)
        self._spaces = re.compile(r" {2,}")
        self._before_punct = re.compile(r"[ \t]+(?=[?!;:»])")
        self._before_close = re.compile(rf"(?<=[^\s{nb}])»")
        self._after_open = re.compile(r"«[ \t]+")
        self._open_glued = re.compile(rf"«(?=[^\s{nb}])")
        self._dash = re.compile(rf"^—(?:[ \t]+|(?=[^\s{nb}]))")

    def clean(self, text, is_first_run_in_line=False):
        nb = self.nb_char
        text = self._spaces.sub(" ", text)
        text = self._before_punct.sub(nb, text)
        text = self._before_close.sub(nb + "»", text)
        text = self._after_open.sub("«" + nb, text)
        text = self._open_glued.sub("«" + nb, text)
        if is_first_run_in_line:
            text = self._dash.sub("—" + nb, text)
        return text

    def __eq__(self, other):
        return type(self) is type(other) and self.nb_char == other.nb_char

    def __repr__(self):
        return f"French(nb_char={self.nb_char!r})"


def get_cleaner(lang, nb_char=" ", autoclean=True):
    """
    Pick the cleaner for a book.

    Returns None when autoclean is off, `French` for any "fr*" language,
    and the no-op `Cleaner` otherwise.
    """
    if not autoclean:
        return None
    if (lang or "").lower().startswith("fr"):
        return French(nb_char)
    return Cleaner()
