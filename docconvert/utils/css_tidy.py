"""
CSS Tidy Utility

Parses, tidies and minifies the CSS held in the <style> elements of a
converted HTML document.

Functions:
    - tidy_css: Merge, override, quote and minify a document's styles
    - quote_font_families: Quote font family names that need it
    - minify_css: Strip comments, whitespace and redundant semicolons
"""

import re
from typing import Dict, List, Optional, Tuple

from bs4 import BeautifulSoup

from .html_utils import HTML_PARSER, serialize
from .logging_config import get_logger

logger = get_logger()

_CSS_COMMENT_RE = re.compile(r'/\*.*?\*/', re.DOTALL)
_HTML_COMMENT_MARKER_RE = re.compile(r'<!--|-->')
_STYLE_CLOSE_RE = re.compile(r'<\s*/\s*style\b[^>]*>?', re.IGNORECASE)
# Stripped from family names before quoting
_UNSAFE_FONT_RE = re.compile(r'[<>{};\x00-\x1f\x7f]')
_NEEDS_QUOTES_RE = re.compile(r'[^a-zA-Z-]')
_WHITESPACE_RE = re.compile(r'\s+')
_UNSAFE_VALUE_RE = re.compile(r'[{};:<>]')


def quote_font_families(value: str) -> str:
    """
    Quote every family name that contains anything but letters and hyphens.

    Examples:
        >>> quote_font_families("Arial, Times New Roman, sans-serif")
        'Arial, "Times New Roman", sans-serif'
    """
    families = []
    for font in value.split(","):
        font = _UNSAFE_FONT_RE.sub("", _STYLE_CLOSE_RE.sub("", font)).strip()
        if not font:
            continue
        unquoted = font.strip("'\"").strip()
        if not unquoted:
            continue
        if _NEEDS_QUOTES_RE.search(unquoted):
            escaped = unquoted.replace("\\", "\\\\").replace('"', '\\"')
            families.append(f'"{escaped}"')
        else:
            families.append(unquoted)
    return ", ".join(families)


def _split_rules(css: str) -> List[Tuple[str, str]]:
    """
    Split a stylesheet into top-level (prelude, block) pairs.

    Blocks of at-rules such as @media keep their nested braces.
    """
    rules = []
    depth = 0
    start = 0
    prelude = ""
    for index, char in enumerate(css):
        if char == "{":
            if depth == 0:
                prelude = css[start:index]
                start = index + 1
            depth += 1
        elif char == "}" and depth:
            depth -= 1
            if depth == 0:
                rules.append((prelude.strip(), css[start:index]))
                start = index + 1
    return rules


def _parse_declarations(block: str) -> Dict[str, str]:
    declarations: Dict[str, str] = {}
    for item in block.split(";"):
        if ":" not in item:
            continue
        name, value = item.split(":", 1)
        name = name.strip().lower()
        value = value.strip()
        if name and value:
            declarations[name] = value
    return declarations


def _minify_value(value: str) -> str:
    value = _WHITESPACE_RE.sub(" ", value).strip()
    return re.sub(r'\s*,\s*', ',', value)


def _serialize_rule(selector: str, declarations: Dict[str, str]) -> str:
    body = ";".join(f"{name}:{_minify_value(value)}" for name, value in declarations.items())
    return f"{selector}{{{body}}}" if body else ""


def minify_css(css: str) -> str:
    """Strip comments, whitespace, empty rules and redundant semicolons."""
    css = _HTML_COMMENT_MARKER_RE.sub("", _CSS_COMMENT_RE.sub("", css))
    out = []
    for prelude, block in _split_rules(css):
        selector = _WHITESPACE_RE.sub(" ", prelude)
        selector = re.sub(r'\s*([,>+~])\s*', r'\1', selector)
        if "{" in block:
            inner = minify_css(block)
            if inner:
                out.append(f"{selector}{{{inner}}}")
            continue
        rule = _serialize_rule(selector, _parse_declarations(block))
        if rule:
            out.append(rule)
    return "".join(out)


def tidy_css(html_content: str, background_color: Optional[str] = None,
             fonts: Optional[str] = None) -> str:
    """
    Merge a document's <style> elements into one tidied element in <head>.

    Args:
        html_content: Full HTML document
        background_color: Colour set on every div rule
        fonts: Font family list replacing the document's fonts

    Returns:
        HTML document with a single minified <style>, or none if it would be
        empty
    """
    soup = BeautifulSoup(html_content, HTML_PARSER)
    styles = soup.find_all("style")

    background_color = _UNSAFE_VALUE_RE.sub("", str(background_color)).strip() if background_color else None
    fonts = str(fonts) if fonts else None

    combined = "".join(style.get_text() for style in styles)
    style_count = len(styles)
    if style_count == 0 and (fonts or background_color):
        combined = "div {}"
        style_count = 1

    for style in styles:
        style.decompose()

    css = _HTML_COMMENT_MARKER_RE.sub("", _CSS_COMMENT_RE.sub("", combined))
    rules = []
    for prelude, block in _split_rules(css):
        if "{" in block:
            rules.append(minify_css(f"{prelude}{{{block}}}"))
            continue

        declarations = _parse_declarations(block)

        # A lone stylesheet gets the new fonts on every rule
        if fonts and ("font-family" in declarations or style_count == 1):
            declarations["font-family"] = fonts

        if "font-family" in declarations:
            declarations["font-family"] = quote_font_families(declarations["font-family"])

        if prelude.lower().startswith("div"):
            # Stop page divs overrunning into the next page
            declarations["page-break-inside"] = "avoid"
            if background_color:
                declarations["background-color"] = background_color

        selector = re.sub(r'\s*([,>+~])\s*', r'\1', _WHITESPACE_RE.sub(" ", prelude))
        rules.append(_serialize_rule(selector, declarations))

    minified = "".join(rules)
    if minified:
        if soup.head is None:
            head = soup.new_tag("head")
            if soup.html is not None:
                soup.html.insert(0, head)
            else:
                soup.insert(0, head)
        new_style = soup.new_tag("style")
        new_style.string = minified
        soup.head.append(new_style)

    logger.debug(f"Tidied {len(styles)} style element(s) into {len(minified)} bytes of CSS")
    return serialize(soup)
