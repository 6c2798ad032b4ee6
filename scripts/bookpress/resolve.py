"""
Book resolution, chapter discovery, and artifact lookup.

The CLI and the config loader import from here to find a book directory,
list its chapter files, or locate per-book and shared override files.
"""

import glob
import os
import re

import yaml


def natural_sort_key(s):
    """Sort strings with embedded numbers naturally (2.md before 10.md)."""
    return [
        int(text) if text.isdigit() else text.lower()
        for text in re.split(r"(\d+)", s)
    ]


def _is_book_dir(path):
    return os.path.isdir(path) and os.path.isfile(os.path.join(path, "book.yaml"))


def _book_title(book_path):
    """Title from a book's book.yaml, or "" if it has none or cannot be read."""
    try:
        with open(os.path.join(book_path, "book.yaml"), encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, UnicodeDecodeError, yaml.YAMLError):
        return ""
    if not isinstance(data, dict):
        return ""
    return str(data.get("title") or "")


def _number_prefix(entry):
    match = re.match(r"^(\d+)_", entry)
    return int(match.group(1)) if match else None


def find_book_dir(identifier, project_root):
    """
    Resolve a book identifier to its manuscript directory.

    Accepts, tried in this order:
        - Direct path:  manuscript/1_example
        - Number:       1 or 01   (matches the "1_..." prefix)
        - Keyword:      example   (matches a directory name, then a YAML title)

    Each kind of match is tried against every book before the next one, so
    "2" finds 2_sequel even when 1_part2 sorts first.

    Returns: path to the book directory, or None.
    """
    for candidate in [identifier, os.path.join(project_root, identifier)]:
        if _is_book_dir(candidate):
            return os.path.abspath(candidate)

    manuscript_root = os.path.join(project_root, "manuscript")
    if not os.path.isdir(manuscript_root):
        return None

    books = []
    for entry in sorted(os.listdir(manuscript_root), key=natural_sort_key):
        path = os.path.join(manuscript_root, entry)
        if os.path.isdir(path):
            books.append((entry, path))

    if identifier.isdigit():
        for entry, path in books:
            if _number_prefix(entry) == int(identifier):
                return path

    keyword = identifier.lower()
    for entry, path in books:
        if keyword in entry.lower():
            return path
    for entry, path in books:
        if keyword in _book_title(path).lower():
            return path
    return None


def find_chapter_files(book_dir):
    """
    Markdown chapters of a book with no explicit chapter list.

    Uses chapters/*.md, falling back to *.md in the book root, in natural
    sort order. Returns paths relative to `book_dir`.
    """
    for directory in [os.path.join(book_dir, "chapters"), book_dir]:
        files = glob.glob(os.path.join(directory, "*.md"))
        if files:
            files.sort(key=natural_sort_key)
            return [os.path.relpath(f, book_dir) for f in files]
    return []


def resolve_artifact(book_dir, filename):
    """
    Resolve an override filename (stylesheet, template, cover) to a path.

    Search order (first match wins):
        1. the book directory itself
        2. book artifacts/    (per-book overrides)
        3. repo artifacts/    (shared across all books, two levels up)

    Returns: absolute path or None.
    """
    if not filename:
        return None

    if os.path.isabs(filename):
        return filename if os.path.exists(filename) else None

    repo_root = os.path.dirname(os.path.dirname(os.path.abspath(book_dir)))
    for base in [
        book_dir,
        os.path.join(book_dir, "artifacts"),
        os.path.join(repo_root, "artifacts"),
    ]:
        path = os.path.join(base, filename)
        if os.path.exists(path):
            return os.path.abspath(path)

    return None
