"""
Request-scoped temporary artifact management.

Every conversion that needs an external process gets its own artifact
namespace: a unique token inside the configured temp directory. Files the
process writes are named after that token and registered on the handle, and
the handle is cleaned exactly once when the request leaves the conversion
pipeline, whether it succeeded, failed or was cancelled.

Usage:
    async with artifact_scope(config.temp_dir) as handle:
        written = await invoker(payload, handle, options)
        result = postprocess(written[0], "UTF-8")
    # files are gone here, before the response is emitted
"""

import errno
import os
import uuid
from contextlib import asynccontextmanager
from enum import Enum
from pathlib import Path
from typing import AsyncIterator, List, Union

from .error_handling import ConversionEnvironmentError, ErrorCode
from .logging_config import get_logger

logger = get_logger()


class ArtifactState(str, Enum):
    """Lifecycle of one request's artifacts."""
    ALLOCATED = "allocated"
    PRODUCED = "produced"
    NORMALIZED = "normalized"
    FAILED = "failed"
    CLEANED = "cleaned"


# Allowed forward transitions; CLEANED is reachable from every live state
_TRANSITIONS = {
    ArtifactState.ALLOCATED: {ArtifactState.PRODUCED, ArtifactState.FAILED, ArtifactState.CLEANED},
    ArtifactState.PRODUCED: {ArtifactState.NORMALIZED, ArtifactState.FAILED, ArtifactState.CLEANED},
    ArtifactState.NORMALIZED: {ArtifactState.CLEANED},
    ArtifactState.FAILED: {ArtifactState.CLEANED},
    ArtifactState.CLEANED: set(),
}


# Log marker for an artifact that could not be removed; cleanup never raises
CLEANUP_WARNING = "CleanupWarning"


class ArtifactHandle:
    """
    One request's artifact namespace.

    Attributes:
        id: Opaque 128-bit random token (hex)
        directory: Directory the artifacts live in
        base_path: directory / id, the prefix of every artifact name
    """

    def __init__(self, directory: Union[str, Path], token: str):
        self.id = token
        self.directory = Path(directory)
        self.base_path = self.directory / token
        self.state = ArtifactState.ALLOCATED
        self._paths: List[Path] = []

    def __repr__(self):
        return f"ArtifactHandle(id={self.id}, state={self.state.value})"

    @property
    def paths(self) -> List[Path]:
        """Registered artifact paths, in registration order."""
        return list(self._paths)

    @property
    def cleaned(self) -> bool:
        return self.state is ArtifactState.CLEANED

    def path_for(self, suffix: str) -> Path:
        """Artifact path derived from the token, e.g. path_for('-html.html')."""
        return self.directory / f"{self.id}{suffix}"

    def register(self, path: Union[str, Path]) -> Path:
        """Record a file written on behalf of this request."""
        path = Path(path)
        if self.cleaned:
            raise RuntimeError(f"Cannot register {path} on a cleaned handle")
        if path not in self._paths:
            self._paths.append(path)
        return path

    def transition(self, state: ArtifactState) -> None:
        if state is self.state:
            return
        if state not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Invalid artifact transition {self.state.value} -> {state.value}")
        self.state = state

    def cleanup(self) -> int:
        """
        Remove every artifact of this handle. Safe to call more than once.

        Deletes the registered paths, then any file left in the directory
        whose name starts with the token (partial output of an interrupted
        process). Failures are logged and never raised.

        Returns:
            Number of files removed
        """
        if self.cleaned:
            return 0

        removed = 0
        for path in self._paths:
            removed += _remove_quietly(path)

        try:
            leftovers = [entry for entry in os.scandir(self.directory)
                         if entry.name.startswith(self.id) and entry.is_file()]
        except OSError as e:
            logger.warning(f"Failed to list temp directory {self.directory}: {e}")
            leftovers = []

        for entry in leftovers:
            removed += _remove_quietly(Path(entry.path))

        self._paths.clear()
        self.state = ArtifactState.CLEANED
        logger.debug(f"Cleaned up {removed} artifact(s) for {self.id}")
        return removed


def _remove_quietly(path: Path) -> int:
    try:
        os.remove(path)
        logger.debug(f"Cleaned up temporary file: {path}")
        return 1
    except FileNotFoundError:
        return 0
    except OSError as e:
        logger.warning(f"{CLEANUP_WARNING}: failed to cleanup temp file {path}: {e}")
        return 0


def ensure_directory(directory: Union[str, Path]) -> Path:
    """Create the temp directory; an existing one is fine, anything else is fatal."""
    directory = Path(directory)
    try:
        os.makedirs(directory)
        logger.info(f"Created temp directory {directory}")
    except OSError as e:
        if e.errno != errno.EEXIST or not directory.is_dir():
            raise ConversionEnvironmentError(
                f"Unable to create temp directory {directory}: {e.strerror or e}",
                service="temp-storage",
                error_code=ErrorCode.TEMP_STORAGE_ERROR,
            ) from e
    return directory


def new_token() -> str:
    return uuid.uuid4().hex


def allocate(base_directory: Union[str, Path]) -> ArtifactHandle:
    """
    Allocate a fresh artifact namespace for one request.

    Args:
        base_directory: Directory that will hold the artifacts

    Returns:
        ArtifactHandle in the ALLOCATED state; nothing is written yet

    Raises:
        ConversionEnvironmentError: If the directory cannot be created
    """
    directory = ensure_directory(base_directory)
    return ArtifactHandle(directory, new_token())


def stage_payload(payload: bytes, handle: ArtifactHandle, extension: str) -> Path:
    """Write the request body into the handle's namespace as <id>.<extension>."""
    path = handle.register(handle.path_for(f".{extension}"))
    try:
        with open(path, "wb") as f:
            f.write(payload)
    except OSError as e:
        raise ConversionEnvironmentError(
            f"Unable to stage payload in {handle.directory}: {e.strerror or e}",
            service="temp-storage",
            error_code=ErrorCode.TEMP_STORAGE_ERROR,
        ) from e
    return path


@asynccontextmanager
async def artifact_scope(base_directory: Union[str, Path]) -> AsyncIterator[ArtifactHandle]:
    """
    Allocate a handle for the duration of a conversion.

    Cleanup runs on scope exit for normal completion, exceptions and
    cancellation alike, which is before the route builds its response.
    """
    handle = allocate(base_directory)
    try:
        yield handle
    except BaseException:
        if handle.state in (ArtifactState.ALLOCATED, ArtifactState.PRODUCED):
            handle.transition(ArtifactState.FAILED)
        raise
    finally:
        handle.cleanup()
