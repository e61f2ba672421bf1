"""
Service configuration for docconvert.

Runtime settings come from environment variables and are frozen into a
ServiceConfig once per process. Per-tool option defaults and query-string
allow-lists live here next to the route table so that every conversion
route reads them from one place.
"""

import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, FrozenSet, Optional, Tuple


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}")


def _env_list(name: str) -> Tuple[str, ...]:
    value = os.getenv(name, "")
    return tuple(item.strip() for item in value.split(",") if item.strip())


@dataclass(frozen=True)
class ServiceConfig:
    """Process-wide settings. Built by get_config(), never mutated."""

    host: str = "0.0.0.0"
    port: int = 8204
    temp_dir: Path = Path(tempfile.gettempdir()) / "docconvert"
    poppler_bin_path: Optional[str] = None
    pandoc_binary: str = "pandoc"
    antiword_binary: str = "antiword"
    process_timeout_sec: int = 60
    max_body_mb: int = 10
    bearer_tokens: FrozenSet[str] = field(default_factory=frozenset)
    cors_origins: Tuple[str, ...] = ()

    @property
    def max_body_bytes(self) -> int:
        return self.max_body_mb * 1024 * 1024

    @property
    def auth_enabled(self) -> bool:
        return bool(self.bearer_tokens)

    def poppler_binary(self, name: str) -> str:
        """Full path to a Poppler utility, or its bare name to resolve via PATH."""
        if self.poppler_bin_path:
            return str(Path(self.poppler_bin_path) / name)
        return name


def get_config() -> ServiceConfig:
    """Read the service configuration from the environment."""
    temp_dir = os.getenv("TEMP_DIR")
    return ServiceConfig(
        host=os.getenv("HOST", "0.0.0.0"),
        port=_env_int("PORT", 8204),
        temp_dir=Path(temp_dir) if temp_dir else Path(tempfile.gettempdir()) / "docconvert",
        poppler_bin_path=os.getenv("POPPLER_BINARY_PATH") or None,
        pandoc_binary=os.getenv("PANDOC_BINARY", "pandoc"),
        antiword_binary=os.getenv("ANTIWORD_BINARY", "antiword"),
        process_timeout_sec=_env_int("PROCESS_TIMEOUT_SEC", 60),
        max_body_mb=_env_int("MAX_BODY_MB", 10),
        bearer_tokens=frozenset(_env_list("AUTH_BEARER_TOKENS")),
        cors_origins=_env_list("CORS_ORIGIN"),
    )


# ===== MEDIA TYPES =====

DOCX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

INPUT_MEDIA_TYPES: Dict[str, Tuple[str, ...]] = {
    "pdf": ("application/pdf",),
    "docx": (DOCX_MEDIA_TYPE,),
    "rtf": ("application/rtf", "text/rtf"),
    "doc": ("application/msword",),
    "html": ("text/html",),
}

OUTPUT_MEDIA_TYPES: Dict[str, str] = {
    "html": "text/html",
    "txt": "text/plain",
}


# ===== POPPLER pdftohtml =====

# Flag and value-taking options understood by pdftohtml, keyed by query name
PDF_TO_HTML_FLAGS: Dict[str, str] = {
    "complexOutput": "-c",
    "exchangePdfLinks": "-p",
    "extractHidden": "-hidden",
    "ignoreImages": "-i",
    "noDrm": "-nodrm",
    "noMergeParagraph": "-nomerge",
    "singlePage": "-s",
}

PDF_TO_HTML_VALUES: Dict[str, str] = {
    "firstPageToConvert": "-f",
    "imageFormat": "-fmt",
    "lastPageToConvert": "-l",
    "outputEncoding": "-enc",
    "ownerPassword": "-opw",
    "userPassword": "-upw",
    "wordBreakThreshold": "-wbt",
    "zoom": "-zoom",
}

PDF_TO_HTML_ALLOWED: FrozenSet[str] = frozenset({
    "exchangePdfLinks",
    "extractHidden",
    "firstPageToConvert",
    "ignoreImages",
    "imageFormat",
    "lastPageToConvert",
    "noDrm",
    "noMergeParagraph",
    "outputEncoding",
    "ownerPassword",
    "userPassword",
    "wordBreakThreshold",
    "zoom",
})

PDF_TO_HTML_DEFAULTS: Dict[str, object] = {
    "complexOutput": True,
    "outputEncoding": "UTF-8",
    "singlePage": True,
}

# pdftohtml appends this to the output root when writing a single complex page
PDF_TO_HTML_SUFFIX = "-html.html"


# ===== POPPLER pdftotext =====

PDF_TO_TXT_FLAGS: Dict[str, str] = {
    "generateHtmlMetaFile": "-htmlmeta",
    "maintainLayout": "-layout",
    "noDiagonalText": "-nodiag",
    "noPageBreaks": "-nopgbrk",
    "rawLayout": "-raw",
}

PDF_TO_TXT_VALUES: Dict[str, str] = {
    "cropHeight": "-H",
    "cropWidth": "-W",
    "cropXAxis": "-x",
    "cropYAxis": "-y",
    "eolConvention": "-eol",
    "firstPageToConvert": "-f",
    "fixedWidthLayout": "-fixed",
    "lastPageToConvert": "-l",
    "outputEncoding": "-enc",
    "ownerPassword": "-opw",
    "resolution": "-r",
    "userPassword": "-upw",
}

PDF_TO_TXT_ALLOWED: FrozenSet[str] = frozenset(PDF_TO_TXT_FLAGS) | frozenset(PDF_TO_TXT_VALUES)

PDF_TO_TXT_DEFAULTS: Dict[str, object] = {
    "outputEncoding": "UTF-8",
}


# Values forwarded verbatim; "0012" is a valid password, not the number 12
STRING_OPTIONS: FrozenSet[str] = frozenset({
    "backgroundColor",
    "eolConvention",
    "fonts",
    "imageFormat",
    "outputEncoding",
    "ownerPassword",
    "userPassword",
})


# ===== HTML POST-PROCESSING =====

TIDY_CSS_ALLOWED: FrozenSet[str] = frozenset({"backgroundColor", "fonts"})

PDF_HTML_POSTPROCESS_ALLOWED: FrozenSet[str] = TIDY_CSS_ALLOWED | frozenset({"removeAlt"})


# ===== EXTERNAL TOOL DIAGNOSTICS =====

# Diagnostic substrings that mean the payload itself is malformed. Any other
# failure of the tool is treated as an environment error.
CLIENT_INPUT_ERROR_PATTERNS: Dict[str, Tuple[str, ...]] = {
    "pdftohtml": ("Syntax Error:",),
    "pdftotext": ("Syntax Error:",),
    "antiword": ("is not a Word Document",),
    "pandoc": (),
}
