"""
Runs external conversion binaries (Poppler, Pandoc, antiword).

The request awaits the child process while the event loop keeps serving
other requests. Failures are classified here, before they leave this
module: a diagnostic matching the tool's known malformed-input patterns is a
ClientInputError, everything else is a ConversionEnvironmentError. Nothing
is retried.
"""

import asyncio
import os
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from ..config import CLIENT_INPUT_ERROR_PATTERNS
from .error_handling import ClientInputError, ConversionEnvironmentError, ErrorCode
from .logging_config import get_logger

logger = get_logger()


@dataclass(frozen=True)
class ProcessResult:
    """Output of a finished external process."""
    returncode: int
    stdout: bytes
    stderr: str


def tool_name(binary: str) -> str:
    """Bare tool name of a binary path, e.g. /usr/bin/pdftohtml -> pdftohtml."""
    name = os.path.basename(binary)
    root, ext = os.path.splitext(name)
    return root if ext.lower() == ".exe" else name


def is_client_input_error(tool: str, diagnostic: str, patterns: Optional[Iterable[str]] = None) -> bool:
    """True when the diagnostic matches one of the tool's malformed-input patterns."""
    if patterns is None:
        patterns = CLIENT_INPUT_ERROR_PATTERNS.get(tool, ())
    return any(pattern in diagnostic for pattern in patterns)


def classify_failure(tool: str, returncode: int, diagnostic: str):
    """Exception for a failed run of `tool`."""
    if is_client_input_error(tool, diagnostic):
        return ClientInputError(
            f"{tool} rejected the document: {diagnostic.strip()}",
            service=tool,
        )

    error_msg = f"{tool} failed with return code {returncode}"
    if diagnostic.strip():
        error_msg += f". stderr: {diagnostic.strip()}"
    else:
        error_msg += ". No error output captured"
    return ConversionEnvironmentError(error_msg, service=tool)


async def _terminate(process: asyncio.subprocess.Process) -> None:
    if process.returncode is None:
        try:
            process.kill()
        except ProcessLookupError:
            pass
    await process.wait()


async def run_process(
    cmd: Sequence[str],
    timeout: float,
    stdin: Optional[bytes] = None,
) -> ProcessResult:
    """
    Run a conversion binary and wait for it without blocking the loop.

    Args:
        cmd: Binary followed by its arguments
        timeout: Seconds before the process is killed
        stdin: Bytes fed to the process, if any

    Returns:
        ProcessResult of a zero exit status

    Raises:
        ClientInputError: The tool reported a malformed payload
        ConversionEnvironmentError: Missing binary, permissions, crash, timeout
    """
    cmd: List[str] = [str(part) for part in cmd]
    tool = tool_name(cmd[0])
    logger.debug(f"Running {' '.join(cmd)}")

    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdin=asyncio.subprocess.PIPE if stdin is not None else asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as e:
        raise ConversionEnvironmentError(
            f"{tool} binary not found: {cmd[0]}",
            service=tool,
            error_code=ErrorCode.CONVERTER_UNAVAILABLE,
        ) from e
    except PermissionError as e:
        raise ConversionEnvironmentError(
            f"Permission denied running {cmd[0]}",
            service=tool,
            error_code=ErrorCode.CONVERTER_UNAVAILABLE,
        ) from e
    except OSError as e:
        raise ConversionEnvironmentError(f"Unable to start {tool}: {e}", service=tool) from e

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(stdin), timeout=timeout)
    except asyncio.TimeoutError as e:
        await _terminate(process)
        raise ConversionEnvironmentError(
            f"{tool} did not finish within {timeout}s",
            service=tool,
            error_code=ErrorCode.CONVERTER_TIMEOUT,
        ) from e
    except asyncio.CancelledError:
        # Client went away; do not leave the child writing into the temp dir
        await asyncio.shield(_terminate(process))
        logger.info(f"{tool} killed after request cancellation")
        raise

    diagnostic = stderr.decode("utf-8", errors="replace")
    if process.returncode != 0:
        raise classify_failure(tool, process.returncode, diagnostic)

    if diagnostic.strip():
        logger.debug(f"{tool} stderr: {diagnostic.strip()}")

    return ProcessResult(process.returncode, stdout, diagnostic)
