"""
Text escaping for each output grammar.

Only leaf text and interpolated metadata go through these; markup the
renderers emit themselves is never escaped twice.
"""

_HTML = {
    "&": "&amp;",
    "<": "&lt;",
    ">": "&gt;",
    '"': "&quot;",
    "'": "&#39;",
}

_TEX = {
    "\\": r"\textbackslash{}",
    "&": r"\&",
    "%": r"\%",
    "$": r"\$",
    "#": r"\#",
    "_": r"\_",
    "{": r"\{",
    "}": r"\}",
    "~": r"\textasciitilde{}",
    "^": r"\textasciicircum{}",
    "<": r"\textless{}",
    ">": r"\textgreater{}",
    "\u00a0": "~",
    "\u202f": r"\,",
}


def escape_html(text):
    """Escape text for HTML, XHTML and XML text nodes or attributes."""
    return "".join(_HTML.get(c, c) for c in text)


def escape_tex(text):
    """Escape text for LaTeX; non-breaking spaces become ties or thin spaces."""
    return "".join(_TEX.get(c, c) for c in text)


def escape_none(text):
    return text


ESCAPERS = {
    "none": escape_none,
    "html": escape_html,
    "tex": escape_tex,
}
