"""
Payload validation module for document conversion.

Checks that a request body is of the format its Content-Type claims before
it is passed to a converter.
"""

import logging
from typing import Dict

from .base_validator import BasePayloadValidator, ValidationError, create_validator_for_format

logger = logging.getLogger(__name__)

__all__ = ['ValidationError', 'get_validator', 'validate_payload']

_validators: Dict[str, BasePayloadValidator] = {}


def get_validator(format_name: str) -> BasePayloadValidator:
    """Validator instance for a format, created on first use."""
    key = format_name.lower()
    if key not in _validators:
        _validators[key] = create_validator_for_format(key)
    return _validators[key]


def validate_payload(content: bytes, expected_format: str, **options) -> bool:
    """
    Validate a request body against its expected format.

    Raises:
        ValidationError: If validation fails
        ValueError: If format is not supported
    """
    try:
        return get_validator(expected_format).validate(content, **options)
    except ValidationError as e:
        logger.info(f"Rejected {expected_format} payload: {e}")
        raise
