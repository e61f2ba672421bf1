"""
HTML Processing Utilities for the docconvert service.

This module provides the HTML post-processing shared by the conversion
routes: loading a converter's raw artifact, removing duplicate <title> and
<meta> elements, repairing mojibake, wrapping fragments into full documents
and extracting plain text.
"""

import re
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from bs4 import BeautifulSoup, Comment

from .encoding_fixes import fix_mojibake
from .error_handling import ClientInputError, ConversionEnvironmentError
from .logging_config import get_logger

logger = get_logger()

HTML_PARSER = "html.parser"

# Elements of which only the first occurrence is kept
SINGLETON_HEAD_ELEMENTS = ("title", "meta")

_BLANK_LINES_RE = re.compile(r'\n\s*\n+')
_HTML_MARKUP_RE = re.compile(r'<(!doctype\s+html|html|head|body|[a-z][a-z0-9]*)(\s[^>]*)?/?>', re.IGNORECASE)


@dataclass(frozen=True)
class NormalizedOutput:
    """Post-processed converter output, ready to be sent."""
    body: str
    media_type: str


def serialize(soup: BeautifulSoup) -> str:
    """Serialize with named entities so repeated parse and serialize passes agree."""
    return soup.decode(formatter="html")


def html_media_type(encoding: str = "UTF-8") -> str:
    return f"text/html; charset={encoding.lower()}"


def dedupe_head_elements(html_content: str) -> str:
    """
    Keep only the first <title> and the first <meta> of a document.

    Poppler writes one <title>/<meta> pair per page when it merges pages into
    a single file; browsers and downstream parsers expect one of each.

    Args:
        html_content: Full HTML document

    Returns:
        Serialized document with later duplicates removed
    """
    soup = BeautifulSoup(html_content, HTML_PARSER)

    removed = 0
    for name in SINGLETON_HEAD_ELEMENTS:
        for element in soup.find_all(name)[1:]:
            element.decompose()
            removed += 1

    if removed:
        logger.debug(f"Removed {removed} duplicate head element(s)")

    return serialize(soup)


def normalize_html(html_content: str) -> str:
    """Repair mojibake, then de-duplicate head elements."""
    # Repair first: serialization turns the garbled characters into entities
    return dedupe_head_elements(fix_mojibake(html_content))


# Poppler encoding names without a Python codec of the same name
CODEC_ALIASES = {
    "ascii7": "ascii",
}


def python_codec(encoding: str) -> str:
    return CODEC_ALIASES.get(encoding.lower(), encoding)


def read_artifact(path: Union[str, Path], encoding: str) -> str:
    """
    Load a converter's output file with the encoding it was written in.

    Raises:
        ClientInputError: The requested encoding is unknown
        ConversionEnvironmentError: The file is missing or unreadable
    """
    try:
        with open(path, "r", encoding=python_codec(encoding), errors="replace") as f:
            return f.read()
    except LookupError as e:
        raise ClientInputError(f"Unknown output encoding: {encoding}", service="postprocess") from e
    except OSError as e:
        raise ConversionEnvironmentError(
            f"Unable to read converter output {path}: {e.strerror or e}",
            service="postprocess",
        ) from e


def postprocess(raw_artifact_path: Union[str, Path], encoding: str = "UTF-8") -> NormalizedOutput:
    """
    Load a raw HTML artifact and normalize it.

    Args:
        raw_artifact_path: File written by the external converter
        encoding: Encoding the converter was asked to write

    Returns:
        NormalizedOutput with a single <title>/<meta> and repaired text
    """
    html_content = read_artifact(raw_artifact_path, encoding)
    return NormalizedOutput(normalize_html(html_content), html_media_type(encoding))


def unique_title(route: str) -> str:
    """Document title unique to one conversion, e.g. docconvert_docx-to-html_<uuid>."""
    return f"docconvert_{route}_{uuid.uuid4()}"


def wrap_html_document(content: str, title: Optional[str] = None,
                       header: Optional[str] = None, footer: Optional[str] = None) -> str:
    """
    Wrap content in a full HTML document structure.

    Args:
        content: The HTML fragment to wrap
        title: Title for the document
        header: Optional fragment placed in a <header> before the content
        footer: Optional fragment placed in a <footer> after the content

    Returns:
        Full HTML document with a UTF-8 charset declaration
    """
    content = content or ""
    title_tag = f"<title>{title}</title>" if title else "<title>Document</title>"
    header_tag = f"<header>{header}</header>" if header else ""
    footer_tag = f"<footer>{footer}</footer>" if footer else ""

    return f"""<!DOCTYPE html>
<html>
<head>
<meta content="text/html; charset=utf-8" http-equiv="Content-Type">
{title_tag}
</head>
<body>
<div>
{header_tag}
{content}
{footer_tag}
</div>
</body>
</html>"""


def is_html(content: str) -> bool:
    """True if the text contains at least one HTML tag."""
    if not content or not content.strip():
        return False
    return bool(_HTML_MARKUP_RE.search(content))


def html_to_text(html_content: str) -> str:
    """
    Extract plain text content from HTML.

    Scripts, styles and comments are dropped; block text is separated by
    newlines with runs of blank lines collapsed to one.
    """
    if not html_content:
        return ""

    soup = BeautifulSoup(html_content, HTML_PARSER)

    for element in soup(["script", "style", "head", "template"]):
        element.decompose()
    for comment in soup.find_all(string=lambda text: isinstance(text, Comment)):
        comment.extract()

    text = soup.get_text(separator="\n", strip=True)
    return _BLANK_LINES_RE.sub("\n\n", text).strip()
