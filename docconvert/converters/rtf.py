"""
RTF conversions through Pandoc.
"""

from typing import Optional

from ..config import ServiceConfig
from ..utils.css_tidy import tidy_css
from ..utils.html_utils import postprocess, read_artifact, unique_title
from ..utils.logging_config import get_logger, log_duration
from ..utils.process_runner import run_process
from ..utils.temp_file_manager import ArtifactHandle, ArtifactState, artifact_scope, stage_payload
from . import TEXT_MEDIA_TYPE, ConversionResult

logger = get_logger()

PANDOC_WRITERS = {
    "html": "html5",
    "txt": "plain",
}


async def run_pandoc(payload: bytes, handle: ArtifactHandle, output_format: str, config: ServiceConfig):
    """Convert an RTF payload into <id>.<output_format> with Pandoc."""
    input_path = stage_payload(payload, handle, "rtf")
    output_path = handle.register(handle.path_for(f".{output_format}"))

    cmd = [
        config.pandoc_binary,
        "--from", "rtf",
        "--to", PANDOC_WRITERS[output_format],
        "--output", str(output_path),
    ]
    if output_format == "html":
        cmd.extend(["--standalone", "--metadata", f"pagetitle={unique_title('rtf-to-html')}"])
    cmd.append(str(input_path))

    await run_process(cmd, timeout=config.process_timeout_sec)
    handle.transition(ArtifactState.PRODUCED)
    return [output_path]


@log_duration(logger)
async def rtf_to_html(payload: bytes, config: ServiceConfig,
                      background_color: Optional[str] = None,
                      fonts: Optional[str] = None) -> ConversionResult:
    """Convert an RTF document to a full HTML document."""
    async with artifact_scope(config.temp_dir) as handle:
        written = await run_pandoc(payload, handle, "html", config)
        output = postprocess(written[0], "UTF-8")
        body = output.body
        if background_color or fonts:
            body = tidy_css(body, background_color=background_color, fonts=fonts)
        handle.transition(ArtifactState.NORMALIZED)

    return ConversionResult(body, output.media_type)


@log_duration(logger)
async def rtf_to_txt(payload: bytes, config: ServiceConfig) -> ConversionResult:
    """Convert an RTF document to plain text."""
    async with artifact_scope(config.temp_dir) as handle:
        written = await run_pandoc(payload, handle, "txt", config)
        body = read_artifact(written[0], "UTF-8")
        handle.transition(ArtifactState.NORMALIZED)

    return ConversionResult(body, TEXT_MEDIA_TYPE)
