#!/usr/bin/env python3
"""
Build script for bookpress.

Renders a markdown manuscript described by book.yaml to EPUB, HTML,
LaTeX, PDF and ODT.

Usage:
    python build.py example                    Render outputs listed in book.yaml
    python build.py example --epub --odt       Render epub + odt into output/
    python build.py example --all              Render all formats (except PDF)
    python build.py example --pdf --keep-tex   Render PDF, keep intermediate files
    python build.py 1 --all --jobs 4           Render formats in parallel

Requires: PyYAML, Jinja2
Optional: pdflatex or another LaTeX engine (PDF)
"""

import os
import re
import sys
import argparse
import traceback

# Ensure bookpress is importable from the scripts/ directory
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from bookpress.config import BookConfig
from bookpress.errors import BookError
from bookpress.renderers import RENDERERS, DEFAULT_FORMATS
from bookpress.resolve import find_book_dir


# ── Resolve book ───────────────────────────────────────────────────────


def resolve_book(identifier):
    """Find book directory, load config. Exits on failure."""
    project_root = os.getcwd()
    book_dir = find_book_dir(identifier, project_root)

    if not book_dir:
        print(f"Error: Could not find book '{identifier}'")
        print(f"  Searched in: {os.path.join(project_root, 'manuscript')}")
        print("  Tip: Run from the project root, or pass a direct path.")
        sys.exit(1)

    try:
        config = BookConfig.load(book_dir)
    except BookError as e:
        print(f"Error: {e}")
        sys.exit(1)

    return book_dir, config


def slugify(title):
    """Output file stem from a title: "The Example!" → "the_example"."""
    return re.sub(r"\W+", "_", title.lower()).strip("_") or "book"


# ── Build command ──────────────────────────────────────────────────────


def cmd_build(args):
    """Render the configured formats, or the ones given as flags."""
    book_dir, config = resolve_book(args.book)

    # Determine which formats to build
    formats = []
    if args.all:
        formats = list(DEFAULT_FORMATS)
    for fmt in RENDERERS:
        if getattr(args, fmt, False) and fmt not in formats:
            formats.append(fmt)

    config.summary()

    try:
        book = config.to_book(verbose=args.verbose)
    except BookError as e:
        print(f"Error: {e}")
        sys.exit(1)

    if not book.chapters:
        print(f"Error: No markdown files found in {book_dir}")
        sys.exit(1)
    print(f"  Chapters: {len(book.chapters)}")

    # Format flags replace the outputs configured in book.yaml
    if formats:
        project_root = os.getcwd()
        output_dir = os.path.abspath(args.output_dir or os.path.join(project_root, "output"))
        os.makedirs(output_dir, exist_ok=True)
        print(f"  Output: {output_dir}")

        stem = config.prefix or slugify(config.title)
        for fmt in RENDERERS:
            path = None
            if fmt in formats:
                path = os.path.join(output_dir, f"{stem}.{fmt}")
            setattr(book, f"output_{fmt}", path)

    book.keep_tex = args.keep_tex
    results = book.render_all(jobs=args.jobs)

    # Summary
    print(f"\n{'─' * 60}")
    failed = [fmt for fmt, error in results.items() if error is not None]
    if failed:
        print(f"  Done with errors: {', '.join(failed)} failed")
        sys.exit(1)
    else:
        print(f"  Done. {len(results)} format(s) built successfully.")


# ── Argument Parser ────────────────────────────────────────────────────


def build_parser():
    parser = argparse.ArgumentParser(
        description="Markdown manuscript renderer",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
examples:
  %(prog)s example                    Render the outputs listed in book.yaml
  %(prog)s example --epub --html      Render epub + html into output/
  %(prog)s example --all              Render epub, html, tex and odt
  %(prog)s example --pdf --keep-tex   Render PDF, keep .tex for debugging
  %(prog)s 1 --all --jobs 4           Render formats in parallel
        """,
    )
    parser.add_argument("book", help="Book number, keyword, or path")

    fmt = parser.add_argument_group("output formats")
    fmt.add_argument("--epub", action="store_true", help="Render EPUB")
    fmt.add_argument("--html", action="store_true", help="Render standalone HTML")
    fmt.add_argument("--tex", action="store_true", help="Render LaTeX source")
    fmt.add_argument("--pdf", action="store_true", help="Render PDF (requires a LaTeX engine)")
    fmt.add_argument("--odt", action="store_true", help="Render OpenDocument text")
    fmt.add_argument("--all", action="store_true", help="Render epub + html + tex + odt")

    opts = parser.add_argument_group("options")
    opts.add_argument("--output-dir", help="Output directory for format flags")
    opts.add_argument(
        "--jobs", "-j", type=int, default=1, help="Formats rendered in parallel"
    )
    opts.add_argument("--verbose", "-v", action="store_true")
    opts.add_argument(
        "--keep-tex",
        action="store_true",
        help="Keep intermediate .tex/.log for PDF debugging",
    )
    return parser


# ── Main ───────────────────────────────────────────────────────────────


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.jobs < 1:
        parser.error("--jobs must be at least 1")
    cmd_build(args)


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        print("\nCancelled.")
        sys.exit(1)
    except Exception as e:
        log_path = "build_error.log"
        with open(log_path, "w") as f:
            traceback.print_exc(file=f)
        print(f"\nUnexpected error: {e}")
        print(f"Full traceback written to {log_path}")
        sys.exit(1)
