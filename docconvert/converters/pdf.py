"""
PDF conversions through Poppler's pdftohtml and pdftotext.
"""

from pathlib import Path
from typing import List, Optional

from ..config import (
    PDF_TO_HTML_FLAGS,
    PDF_TO_HTML_SUFFIX,
    PDF_TO_HTML_VALUES,
    PDF_TO_TXT_FLAGS,
    PDF_TO_TXT_VALUES,
    ServiceConfig,
)
from ..utils.css_tidy import tidy_css
from ..utils.html_utils import postprocess, read_artifact
from ..utils.image_embed import embed_html_images, referenced_images
from ..utils.logging_config import get_logger, log_duration
from ..utils.process_runner import classify_failure, run_process, tool_name
from ..utils.query_options import ConversionOptions
from ..utils.temp_file_manager import ArtifactHandle, ArtifactState, artifact_scope, stage_payload
from . import ConversionResult

logger = get_logger()


async def run_pdftohtml(payload: bytes, handle: ArtifactHandle, options: ConversionOptions,
                        config: ServiceConfig) -> List[Path]:
    """
    Convert a PDF into <id>-html.html inside the handle's namespace.

    Returns:
        Written paths, the HTML document first, then the images it references
    """
    input_path = stage_payload(payload, handle, "pdf")
    output_path = handle.register(handle.path_for(PDF_TO_HTML_SUFFIX))

    cmd = [config.poppler_binary("pdftohtml")]
    cmd.extend(options.to_cli_args(PDF_TO_HTML_FLAGS, PDF_TO_HTML_VALUES))
    # pdftohtml strips ".html" and appends "-html.html" in single page mode
    cmd.extend([str(input_path), f"{handle.base_path}.html"])

    result = await run_process(cmd, timeout=config.process_timeout_sec)
    if not output_path.exists():
        # Some Poppler builds exit 0 after printing a syntax error
        raise classify_failure(tool_name(cmd[0]), result.returncode, result.stderr)

    written = [output_path]
    encoding = options.get("outputEncoding", "UTF-8")
    for image in referenced_images(read_artifact(output_path, encoding), handle.directory):
        written.append(handle.register(image))

    handle.transition(ArtifactState.PRODUCED)
    return written


async def run_pdftotext(payload: bytes, handle: ArtifactHandle, options: ConversionOptions,
                        config: ServiceConfig) -> List[Path]:
    """Convert a PDF into <id>.txt inside the handle's namespace."""
    input_path = stage_payload(payload, handle, "pdf")
    output_path = handle.register(handle.path_for(".txt"))

    cmd = [config.poppler_binary("pdftotext")]
    cmd.extend(options.to_cli_args(PDF_TO_TXT_FLAGS, PDF_TO_TXT_VALUES))
    cmd.extend([str(input_path), str(output_path)])

    result = await run_process(cmd, timeout=config.process_timeout_sec)
    if not output_path.exists():
        raise classify_failure(tool_name(cmd[0]), result.returncode, result.stderr)

    handle.transition(ArtifactState.PRODUCED)
    return [output_path]


@log_duration(logger)
async def pdf_to_html(payload: bytes, options: ConversionOptions, config: ServiceConfig,
                      background_color: Optional[str] = None, fonts: Optional[str] = None,
                      remove_alt: bool = False) -> ConversionResult:
    """
    Convert a PDF to a self-contained HTML document.

    The document is normalized, its CSS tidied and its images embedded before
    the artifact namespace is cleaned.
    """
    encoding = options.get("outputEncoding", "UTF-8")
    async with artifact_scope(config.temp_dir) as handle:
        written = await run_pdftohtml(payload, handle, options, config)
        output = postprocess(written[0], encoding)
        body = tidy_css(output.body, background_color=background_color, fonts=fonts)
        body = embed_html_images(body, handle.directory, remove_alt=remove_alt)
        handle.transition(ArtifactState.NORMALIZED)

    return ConversionResult(body, output.media_type)


@log_duration(logger)
async def pdf_to_txt(payload: bytes, options: ConversionOptions, config: ServiceConfig) -> ConversionResult:
    """
    Convert a PDF to plain text, or to an HTML page when generateHtmlMetaFile
    is set.
    """
    encoding = options.get("outputEncoding", "UTF-8")
    async with artifact_scope(config.temp_dir) as handle:
        written = await run_pdftotext(payload, handle, options, config)
        if options.get("generateHtmlMetaFile") is True:
            output = postprocess(written[0], encoding)
            body, media_type = output.body, output.media_type
        else:
            body = read_artifact(written[0], encoding)
            media_type = f"text/plain; charset={encoding.lower()}"
        handle.transition(ArtifactState.NORMALIZED)

    return ConversionResult(body, media_type)
