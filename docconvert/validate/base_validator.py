"""
Base payload validator classes for request body validation.

The Content-Type header can be spoofed, so each conversion route checks
that the body actually carries the format it declares before handing it to
a converter.
"""

import io
import logging
import zipfile
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Union

logger = logging.getLogger(__name__)


class ValidationError(Exception):
    """Raised when payload validation fails."""
    def __init__(self, message: str, format_type: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.format_type = format_type
        self.details = details or {}


class BasePayloadValidator(ABC):
    """
    Base class for format validators.

    Provides the empty-body check and error reporting shared by every
    format-specific validator.
    """

    def __init__(self, format_name: str):
        self.format_name = format_name
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def validate(self, content: bytes, **options) -> bool:
        """
        Validate a request body.

        Args:
            content: Raw body bytes
            **options: Format-specific validation options

        Returns:
            bool: True if validation passes

        Raises:
            ValidationError: If validation fails
        """
        if not content:
            raise ValidationError(
                "Payload is empty",
                format_type=self.format_name,
                details={"content_length": 0}
            )
        return self._validate_content(self._decode(content, options.get("charset")), **options)

    def _decode(self, content: bytes, charset: Optional[str] = None) -> Union[str, bytes]:
        return content

    @abstractmethod
    def _validate_content(self, content: Union[str, bytes], **options) -> bool:
        """
        Perform format-specific content validation.

        Raises:
            ValidationError: If the content is not of this format
        """


class BinaryBasedValidator(BasePayloadValidator):
    """Validator for formats identified by a leading signature."""

    signatures: tuple = ()
    search_window = 0

    def _validate_content(self, content: bytes, **options) -> bool:
        window = content[:self.search_window] if self.search_window else None
        for signature in self.signatures:
            if window is not None and signature in window:
                return True
            if content.startswith(signature):
                return True
        raise ValidationError(
            f"Invalid {self.format_name.upper()} payload: signature not found",
            format_type=self.format_name,
            details={"header_found": content[:8].hex()}
        )


class TextBasedValidator(BasePayloadValidator):
    """Validator for text formats, decoded leniently in the declared charset (UTF-8 by default)."""

    def _decode(self, content: bytes, charset: Optional[str] = None) -> str:
        try:
            return content.decode(charset or 'utf-8', errors='replace')
        except LookupError:
            self.logger.debug(f"Unknown charset {charset!r}, validating as UTF-8")
            return content.decode('utf-8', errors='replace')

    def _validate_basic_text_content(self, content: str) -> None:
        if not content.strip():
            raise ValidationError(
                "Payload contains only whitespace",
                format_type=self.format_name,
                details={"content_length": len(content)}
            )

        if '\x00' in content:
            raise ValidationError(
                "Payload contains binary data (null bytes)",
                format_type=self.format_name
            )


class ArchiveBasedValidator(BasePayloadValidator):
    """Validator for ZIP based formats with a set of required members."""

    def __init__(self, format_name: str, required_files: List[str]):
        super().__init__(format_name)
        self.required_files = required_files

    def _validate_content(self, content: bytes, **options) -> bool:
        try:
            with zipfile.ZipFile(io.BytesIO(content), 'r') as zf:
                namelist = zf.namelist()
        except zipfile.BadZipFile as e:
            raise ValidationError(
                f"Invalid {self.format_name.upper()} payload (not a valid ZIP archive): {e}",
                format_type=self.format_name,
                details={"zip_error": str(e)}
            )

        missing_files = [name for name in self.required_files if name not in namelist]
        if missing_files:
            raise ValidationError(
                f"Missing required {self.format_name.upper()} files: {missing_files}",
                format_type=self.format_name,
                details={
                    "missing_files": missing_files,
                    "available_files": namelist[:10]
                }
            )
        return True


def create_validator_for_format(format_name: str) -> BasePayloadValidator:
    """
    Factory function to create the validator for an input format.

    Raises:
        ValueError: If format is not supported
    """
    from .formats import doc, docx, html, pdf, rtf

    format_validators = {
        'doc': doc.DOCValidator,
        'docx': docx.DOCXValidator,
        'html': html.HTMLValidator,
        'pdf': pdf.PDFValidator,
        'rtf': rtf.RTFValidator,
    }

    validator_class = format_validators.get(format_name.lower())
    if not validator_class:
        raise ValueError(f"Unsupported format: {format_name}")

    return validator_class()
