"""
Conversion router for the document endpoints.

Each route checks, in order, the bearer token, the Accept header, the
Content-Type header, the body size and the body's format signature, then
hands the payload and its options to the matching converter.
"""

import secrets
from typing import Callable, Iterable, Optional, Tuple

from fastapi import APIRouter, Depends, Request, Response

from .config import (
    INPUT_MEDIA_TYPES,
    OUTPUT_MEDIA_TYPES,
    PDF_HTML_POSTPROCESS_ALLOWED,
    PDF_TO_HTML_ALLOWED,
    PDF_TO_HTML_DEFAULTS,
    PDF_TO_TXT_ALLOWED,
    PDF_TO_TXT_DEFAULTS,
    STRING_OPTIONS,
    TIDY_CSS_ALLOWED,
    ServiceConfig,
    get_config,
)
from .converters import ConversionResult
from .converters import html as html_converter
from .converters import pdf as pdf_converter
from .converters import rtf as rtf_converter
from .converters import word as word_converter
from .utils.error_handling import (
    NotAcceptableError,
    PayloadTooLargeError,
    UnauthorizedError,
    UnsupportedMediaTypeError,
)
from .utils.html_utils import python_codec
from .utils.logging_config import get_logger
from .utils.query_options import ConversionOptions, build_options
from .validate import ValidationError, validate_payload

logger = get_logger()

router = APIRouter(tags=["conversions"])


# ===== REQUEST CHECKS =====

def get_service_config(request: Request) -> ServiceConfig:
    config = getattr(request.app.state, "config", None)
    if config is None:
        config = get_config()
        request.app.state.config = config
    return config


def require_bearer_token(request: Request) -> None:
    """Reject the request unless it carries one of the configured tokens."""
    config = get_service_config(request)
    if not config.auth_enabled:
        return

    scheme, _, token = request.headers.get("authorization", "").partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token:
        raise UnauthorizedError("Missing bearer token", service="auth")
    if not any(secrets.compare_digest(token, known) for known in config.bearer_tokens):
        raise UnauthorizedError("Invalid bearer token", service="auth")


def _media_ranges(accept: str) -> Iterable[Tuple[str, float]]:
    for item in accept.split(","):
        parts = [part.strip() for part in item.split(";")]
        media_range = parts[0].lower()
        if not media_range:
            continue
        quality = 1.0
        for param in parts[1:]:
            name, _, value = param.partition("=")
            if name.strip().lower() == "q":
                try:
                    quality = float(value)
                except ValueError:
                    quality = 0.0
        yield media_range, quality


def accepts_any(accept: Optional[str], media_types: Iterable[str]) -> bool:
    """
    True if the Accept header allows at least one of the media types.

    Examples:
        >>> accepts_any("text/*;q=0.5", ["text/html"])
        True
        >>> accepts_any("application/json", ["text/html"])
        False
    """
    if not accept or not accept.strip():
        return True

    for media_type in media_types:
        main_type = media_type.split("/", 1)[0]
        for media_range, quality in _media_ranges(accept):
            if quality <= 0:
                continue
            if media_range in ("*/*", "*", media_type, f"{main_type}/*"):
                return True
    return False


def require_accept(*outputs: str) -> Callable[[Request], None]:
    """Dependency rejecting requests whose Accept header excludes the outputs."""
    media_types = [OUTPUT_MEDIA_TYPES[output] for output in outputs]

    def check_accept(request: Request) -> None:
        if not accepts_any(request.headers.get("accept"), media_types):
            raise NotAcceptableError(
                f"This route produces {', '.join(media_types)}",
                service="router",
            )

    return check_accept


def content_type(request: Request) -> Tuple[str, Optional[str]]:
    """Media type and charset parameter of the request body."""
    header = request.headers.get("content-type", "")
    parts = [part.strip() for part in header.split(";")]
    charset = None
    for param in parts[1:]:
        name, _, value = param.partition("=")
        if name.strip().lower() == "charset":
            charset = value.strip().strip('"') or None
    return parts[0].lower(), charset


async def read_payload(request: Request, input_format: str, config: ServiceConfig) -> bytes:
    """
    Read and check the request body.

    Raises:
        UnsupportedMediaTypeError: Wrong Content-Type, empty body or a body
            that is not of the declared format
        PayloadTooLargeError: Body over the configured limit
    """
    media_type, charset = content_type(request)
    if media_type not in INPUT_MEDIA_TYPES[input_format]:
        raise UnsupportedMediaTypeError(
            f"Content-Type {media_type or '(none)'} is not supported here, "
            f"expected {', '.join(INPUT_MEDIA_TYPES[input_format])}",
            service="router",
        )

    limit = config.max_body_bytes
    declared = request.headers.get("content-length")
    if declared and declared.isdigit() and int(declared) > limit:
        raise PayloadTooLargeError(f"Body exceeds {config.max_body_mb}MB", service="router")

    chunks = []
    received = 0
    async for chunk in request.stream():
        received += len(chunk)
        if received > limit:
            raise PayloadTooLargeError(f"Body exceeds {config.max_body_mb}MB", service="router")
        chunks.append(chunk)
    payload = b"".join(chunks)

    try:
        validate_payload(payload, input_format, charset=charset)
    except ValidationError as e:
        raise UnsupportedMediaTypeError(str(e), service="validator") from e

    return payload


def conversion_response(result: ConversionResult) -> Response:
    """Encode the converted body in the charset its media type declares."""
    charset = "utf-8"
    for param in result.media_type.split(";")[1:]:
        name, _, value = param.partition("=")
        if name.strip().lower() == "charset" and value.strip():
            charset = value.strip()
    try:
        content = result.body.encode(python_codec(charset), errors="xmlcharrefreplace")
    except LookupError:
        content = result.body.encode("utf-8")
    return Response(content=content, media_type=result.media_type)


def postprocess_options(request: Request, allowed) -> ConversionOptions:
    return build_options(dict(request.query_params), allowed, keep_strings=STRING_OPTIONS)


#-- PDF conversions
#-------------------------------------------------------------------------------
@router.post("/pdf/html", dependencies=[Depends(require_bearer_token), Depends(require_accept("html"))])
async def convert_pdf_to_html(request: Request):
    """Convert PDF to HTML with Poppler's pdftohtml"""
    config = get_service_config(request)
    payload = await read_payload(request, "pdf", config)
    query = dict(request.query_params)
    options = build_options(query, PDF_TO_HTML_ALLOWED, PDF_TO_HTML_DEFAULTS, keep_strings=STRING_OPTIONS)
    post = postprocess_options(request, PDF_HTML_POSTPROCESS_ALLOWED)

    result = await pdf_converter.pdf_to_html(
        payload,
        options,
        config,
        background_color=post.get("backgroundColor"),
        fonts=post.get("fonts"),
        remove_alt=post.get("removeAlt") is True,
    )
    return conversion_response(result)


@router.post("/pdf/txt", dependencies=[Depends(require_bearer_token), Depends(require_accept("txt", "html"))])
async def convert_pdf_to_txt(request: Request):
    """Convert PDF to text with Poppler's pdftotext"""
    config = get_service_config(request)
    payload = await read_payload(request, "pdf", config)
    options = build_options(dict(request.query_params), PDF_TO_TXT_ALLOWED, PDF_TO_TXT_DEFAULTS,
                            keep_strings=STRING_OPTIONS)

    result = await pdf_converter.pdf_to_txt(payload, options, config)
    return conversion_response(result)


#-- Word conversions
#-------------------------------------------------------------------------------
@router.post("/docx/html", dependencies=[Depends(require_bearer_token), Depends(require_accept("html"))])
async def convert_docx_to_html(request: Request):
    """Convert DOCX to HTML with Mammoth"""
    config = get_service_config(request)
    payload = await read_payload(request, "docx", config)
    options = postprocess_options(request, TIDY_CSS_ALLOWED)

    result = await word_converter.docx_to_html(
        payload,
        background_color=options.get("backgroundColor"),
        fonts=options.get("fonts"),
    )
    return conversion_response(result)


@router.post("/docx/txt", dependencies=[Depends(require_bearer_token), Depends(require_accept("txt"))])
async def convert_docx_to_txt(request: Request):
    """Convert DOCX to text with Mammoth"""
    config = get_service_config(request)
    payload = await read_payload(request, "docx", config)

    result = await word_converter.docx_to_txt(payload)
    return conversion_response(result)


@router.post("/doc/txt", dependencies=[Depends(require_bearer_token), Depends(require_accept("txt"))])
async def convert_doc_to_txt(request: Request):
    """Convert legacy DOC to text with antiword"""
    config = get_service_config(request)
    payload = await read_payload(request, "doc", config)

    result = await word_converter.doc_to_txt(payload, config)
    return conversion_response(result)


#-- RTF conversions
#-------------------------------------------------------------------------------
@router.post("/rtf/html", dependencies=[Depends(require_bearer_token), Depends(require_accept("html"))])
async def convert_rtf_to_html(request: Request):
    """Convert RTF to HTML with Pandoc"""
    config = get_service_config(request)
    payload = await read_payload(request, "rtf", config)
    options = postprocess_options(request, TIDY_CSS_ALLOWED)

    result = await rtf_converter.rtf_to_html(
        payload,
        config,
        background_color=options.get("backgroundColor"),
        fonts=options.get("fonts"),
    )
    return conversion_response(result)


@router.post("/rtf/txt", dependencies=[Depends(require_bearer_token), Depends(require_accept("txt"))])
async def convert_rtf_to_txt(request: Request):
    """Convert RTF to text with Pandoc"""
    config = get_service_config(request)
    payload = await read_payload(request, "rtf", config)

    result = await rtf_converter.rtf_to_txt(payload, config)
    return conversion_response(result)


#-- HTML conversions
#-------------------------------------------------------------------------------
@router.post("/html/txt", dependencies=[Depends(require_bearer_token), Depends(require_accept("txt"))])
async def convert_html_to_txt(request: Request):
    """Convert HTML to text with BeautifulSoup"""
    config = get_service_config(request)
    payload = await read_payload(request, "html", config)
    _, charset = content_type(request)

    result = await html_converter.html_to_txt(payload, charset=charset or "utf-8")
    return conversion_response(result)
