"""
Word document conversions.

DOCX is converted in-process with Mammoth, with running headers and footers
read by python-docx since Mammoth ignores them. Legacy DOC files go through
the antiword binary.
"""

import html
from io import BytesIO
from typing import List, Optional, Tuple

import docx
import mammoth
from starlette.concurrency import run_in_threadpool

from ..config import ServiceConfig
from ..utils.css_tidy import tidy_css
from ..utils.encoding_fixes import fix_mojibake
from ..utils.error_handling import ClientInputError
from ..utils.html_utils import unique_title, wrap_html_document
from ..utils.logging_config import get_logger, log_duration
from ..utils.process_runner import run_process
from ..utils.temp_file_manager import ArtifactState, artifact_scope, stage_payload
from . import HTML_MEDIA_TYPE, TEXT_MEDIA_TYPE, ConversionResult

logger = get_logger()


def _log_messages(messages) -> None:
    for message in messages:
        if message.type == "error":
            logger.error(f"Mammoth error: {message.message}")
        else:
            logger.debug(f"Mammoth {message.type}: {message.message}")


def _paragraphs_html(texts: List[str]) -> str:
    return "".join(f"<p>{html.escape(text)}</p>" for text in texts)


def extract_headers_footers(payload: bytes) -> Tuple[str, str]:
    """
    Text of the document's running headers and footers as HTML paragraphs.

    Linked sections repeat their predecessor's header, so each distinct
    paragraph is kept once.
    """
    document = docx.Document(BytesIO(payload))
    headers: List[str] = []
    footers: List[str] = []

    for section in document.sections:
        for part, seen in ((section.header, headers), (section.footer, footers)):
            if part.is_linked_to_previous and seen:
                continue
            for paragraph in part.paragraphs:
                text = paragraph.text.strip()
                if text and text not in seen:
                    seen.append(text)

    return _paragraphs_html(headers), _paragraphs_html(footers)


def _docx_to_html_sync(payload: bytes) -> str:
    result = mammoth.convert_to_html(BytesIO(payload))
    _log_messages(result.messages)
    header, footer = extract_headers_footers(payload)

    return wrap_html_document(
        fix_mojibake(result.value),
        title=unique_title("docx-to-html"),
        header=fix_mojibake(header),
        footer=fix_mojibake(footer),
    )


def _docx_to_txt_sync(payload: bytes) -> str:
    result = mammoth.extract_raw_text(BytesIO(payload))
    _log_messages(result.messages)
    return result.value


@log_duration(logger)
async def docx_to_html(payload: bytes, background_color: Optional[str] = None,
                       fonts: Optional[str] = None) -> ConversionResult:
    """Convert a DOCX document to a full HTML document."""
    try:
        body = await run_in_threadpool(_docx_to_html_sync, payload)
    except Exception as e:
        # Mammoth and python-docx raise on malformed documents
        raise ClientInputError(f"Unable to read DOCX document: {e}", service="mammoth") from e

    if background_color or fonts:
        body = tidy_css(body, background_color=background_color, fonts=fonts)
    return ConversionResult(body, HTML_MEDIA_TYPE)


@log_duration(logger)
async def docx_to_txt(payload: bytes) -> ConversionResult:
    """Extract the raw text of a DOCX document."""
    try:
        body = await run_in_threadpool(_docx_to_txt_sync, payload)
    except Exception as e:
        raise ClientInputError(f"Unable to read DOCX document: {e}", service="mammoth") from e
    return ConversionResult(body, TEXT_MEDIA_TYPE)


@log_duration(logger)
async def doc_to_txt(payload: bytes, config: ServiceConfig) -> ConversionResult:
    """Extract the text of a legacy Word document with antiword."""
    async with artifact_scope(config.temp_dir) as handle:
        input_path = stage_payload(payload, handle, "doc")
        result = await run_process(
            [config.antiword_binary, "-m", "UTF-8.txt", str(input_path)],
            timeout=config.process_timeout_sec,
        )
        handle.transition(ArtifactState.PRODUCED)
        body = result.stdout.decode("utf-8", errors="replace")
        handle.transition(ArtifactState.NORMALIZED)

    return ConversionResult(body, TEXT_MEDIA_TYPE)
