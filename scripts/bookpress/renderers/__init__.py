from bookpress.renderers.epub import EpubRenderer
from bookpress.renderers.html import HtmlRenderer
from bookpress.renderers.latex import LatexRenderer
from bookpress.renderers.odt import OdtRenderer

RENDERERS = {
    "epub": EpubRenderer,
    "html": HtmlRenderer,
    "tex": LatexRenderer,
    "pdf": LatexRenderer,
    "odt": OdtRenderer,
}

# --all renders these (PDF excluded: requires a LaTeX engine, opt-in with --pdf)
DEFAULT_FORMATS = ["epub", "html", "tex", "odt"]
