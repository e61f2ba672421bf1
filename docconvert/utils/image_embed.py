"""
Embeds images referenced by converted HTML as base64 data URIs.
"""

import base64
import os
from pathlib import Path
from typing import List, Optional, Union
from urllib.parse import unquote, urlparse

from bs4 import BeautifulSoup

from .error_handling import ConversionEnvironmentError
from .html_utils import HTML_PARSER, serialize
from .logging_config import get_logger

logger = get_logger()


def resolve_inside(directory: Union[str, Path], src: str) -> Optional[Path]:
    """
    Resolve an <img src> against the directory it was written to.

    Returns None for remote or data URLs and for paths escaping the
    directory.
    """
    if not src:
        return None
    parsed = urlparse(src)
    if parsed.scheme or parsed.netloc:
        return None

    root = Path(directory).resolve()
    candidate = (root / unquote(parsed.path)).resolve()
    try:
        candidate.relative_to(root)
    except ValueError:
        logger.warning(f"Refusing to embed image outside {root}: {src}")
        return None
    return candidate


def referenced_images(html_content: str, directory: Union[str, Path]) -> List[Path]:
    """Local image files the document references, in document order."""
    soup = BeautifulSoup(html_content, HTML_PARSER)
    paths = []
    for image in soup.find_all("img"):
        path = resolve_inside(directory, image.get("src", ""))
        if path is not None and path not in paths:
            paths.append(path)
    return paths


def embed_html_images(html_content: str, directory: Union[str, Path], remove_alt: bool = False) -> str:
    """
    Replace local <img src> references with data URIs.

    Args:
        html_content: Full HTML document
        directory: Directory image paths are relative to
        remove_alt: Drop alt attributes from every image

    Returns:
        Document with its images embedded

    Raises:
        ConversionEnvironmentError: A referenced image cannot be read
    """
    soup = BeautifulSoup(html_content, HTML_PARSER)
    embedded = 0

    for image in soup.find_all("img"):
        if remove_alt and image.has_attr("alt"):
            del image["alt"]

        path = resolve_inside(directory, image.get("src", ""))
        if path is None:
            continue

        try:
            with open(path, "rb") as f:
                encoded = base64.b64encode(f.read()).decode("ascii")
        except OSError as e:
            raise ConversionEnvironmentError(
                f"Unable to read image {os.path.basename(path)}: {e.strerror or e}",
                service="embed-images",
            ) from e

        image_format = path.suffix.lstrip(".").lower() or "png"
        if image_format == "jpg":
            image_format = "jpeg"
        image["src"] = f"data:image/{image_format};base64,{encoded}"
        embedded += 1

    if embedded:
        logger.debug(f"Embedded {embedded} image(s)")
    return serialize(soup)
