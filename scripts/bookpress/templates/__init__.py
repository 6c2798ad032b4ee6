"""
Built-in templates and stylesheets, used when a book sets no override.
"""

import os

TEMPLATE_DIR = os.path.dirname(os.path.abspath(__file__))


def load_builtin(name):
    """Return the text of a built-in template file."""
    with open(os.path.join(TEMPLATE_DIR, name), "r", encoding="utf-8") as f:
        return f.read()
