"""
HTML to plain text conversion.
"""

from starlette.concurrency import run_in_threadpool

from ..utils.html_utils import html_to_text
from ..utils.logging_config import get_logger, log_duration
from . import TEXT_MEDIA_TYPE, ConversionResult

logger = get_logger()


@log_duration(logger)
async def html_to_txt(payload: bytes, charset: str = "utf-8") -> ConversionResult:
    """Extract the readable text of an HTML document."""
    try:
        content = payload.decode(charset, errors="replace")
    except LookupError:
        content = payload.decode("utf-8", errors="replace")
    body = await run_in_threadpool(html_to_text, content)
    return ConversionResult(body, TEXT_MEDIA_TYPE)
