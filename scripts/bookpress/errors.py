"""
Error types raised by the parser and the renderers.

Library code raises these; only the command line converts them into
exit codes and messages.
"""


class BookError(Exception):
    """Base class for every error raised by bookpress."""
    pass


class FileNotFound(BookError):
    """A chapter, template, stylesheet or image could not be found."""

    def __init__(self, path, what="file"):
        self.path = path
        self.what = what
        super().__init__(f"{what} not found: {path}")


class ParseError(BookError):
    """A chapter could not be read or decoded."""

    def __init__(self, message, path=None):
        self.message = message
        self.path = path
        if path:
            super().__init__(f"{message} ({path})")
        else:
            super().__init__(message)


class RenderError(BookError):
    """
    Rendering failed.

    `format` names the output format ("epub", "tex", ...) and `chapter`
    the 1-based chapter index, when known.
    """

    def __init__(self, message, format=None, chapter=None):
        self.message = message
        self.format = format
        self.chapter = chapter
        where = []
        if format:
            where.append(format)
        if chapter is not None:
            where.append(f"chapter {chapter}")
        if where:
            super().__init__(f"{message} [{', '.join(where)}]")
        else:
            super().__init__(message)


class ConfigError(BookError):
    """Raised when book.yaml or a chapter directive is missing or invalid."""
    pass
