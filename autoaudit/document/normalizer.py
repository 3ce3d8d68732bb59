"""
Minify DOCX-derived HTML into compact, structure-preserving text.

Images, styling and every tag outside a small retained set are dropped;
tables, paragraphs, emphasis and line breaks survive so question boundaries
stay visible to the analysis service.
"""
import re

RETAINED_TAGS = frozenset({"table", "tr", "td", "p", "strong", "b", "i", "br"})

IMG_PATTERN = re.compile(r"<img\b[^>]*>", re.IGNORECASE)
STYLE_CLASS_PATTERN = re.compile(r"\s*(?<![\w-])(?:style|class)\s*=\s*(?:\"[^\"]*\"|'[^']*')", re.IGNORECASE)
ANY_TAG_PATTERN = re.compile(r"<[^>]+>")
EMPTY_PARAGRAPH_PATTERN = re.compile(r"<p\s*>(?:\s|&nbsp;|&#160;)*</p\s*>", re.IGNORECASE)
NBSP_PATTERN = re.compile(r"&nbsp;|&#160;", re.IGNORECASE)
WHITESPACE_PATTERN = re.compile(r"\s+")
TAG_PATTERN = re.compile(r"<\s*/?\s*([^\s/>]*)[^>]*>")


def _strip_styling(match: re.Match) -> str:
    return STYLE_CLASS_PATTERN.sub("", match.group(0))


def _keep_retained(match: re.Match) -> str:
    if match.group(1).lower() in RETAINED_TAGS:
        return match.group(0)
    return ""


def _minify_once(html: str) -> str:
    html = IMG_PATTERN.sub("", html)
    html = ANY_TAG_PATTERN.sub(_strip_styling, html)
    html = EMPTY_PARAGRAPH_PATTERN.sub("", html)
    html = NBSP_PATTERN.sub(" ", html)
    html = WHITESPACE_PATTERN.sub(" ", html)
    html = TAG_PATTERN.sub(_keep_retained, html)
    return html.strip()


def normalize(html: str) -> str:
    """
    Apply the minification steps until the output is stable.

    A single pass can expose new work (a paragraph emptied by tag stripping,
    whitespace joined across a removed tag), so the passes repeat to a fixed
    point. Each pass never grows the text, so this terminates.
    """
    current = html or ""
    while True:
        minified = _minify_once(current)
        if minified == current:
            return minified
        current = minified
