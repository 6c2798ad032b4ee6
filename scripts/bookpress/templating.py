"""
Template expansion.

Built-in and user-supplied templates use {{ name }} placeholders expanded
with Jinja2. Autoescaping is off: callers escape values for the target
format before passing them in. A placeholder with no value is an error,
never an empty string.

LaTeX templates use their own delimiters, since `{%` and `{#1}` are
ordinary LaTeX:

    \\VAR{title}            a value
    \\BLOCK{if author}      a statement
    \\#{a comment}          dropped from the output
"""

from jinja2 import Environment, StrictUndefined, TemplateError

from bookpress.errors import RenderError


_env = Environment(
    undefined=StrictUndefined,
    autoescape=False,
    keep_trailing_newline=True,
)

_tex_env = Environment(
    block_start_string="\\BLOCK{",
    block_end_string="}",
    variable_start_string="\\VAR{",
    variable_end_string="}",
    comment_start_string="\\#{",
    comment_end_string="}",
    undefined=StrictUndefined,
    autoescape=False,
    keep_trailing_newline=True,
    trim_blocks=True,
)


def _render(env, template, variables):
    try:
        return env.from_string(template).render(**variables)
    except TemplateError as e:
        raise RenderError(f"could not expand template: {e}") from e


def expand(template, **variables):
    """Expand `template` with `variables`. Raises RenderError on failure."""
    return _render(_env, template, variables)


def expand_tex(template, **variables):
    """Like `expand`, with the \\VAR{...} delimiters of LaTeX templates."""
    return _render(_tex_env, template, variables)
