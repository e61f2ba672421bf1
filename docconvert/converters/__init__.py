"""
Conversion pipelines, one module per input format.

Each public coroutine takes the raw request body and its ConversionOptions
and returns a ConversionResult held in memory; temporary artifacts never
outlive the call.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class ConversionResult:
    """Converted document ready to be sent."""
    body: str
    media_type: str


TEXT_MEDIA_TYPE = "text/plain; charset=utf-8"
HTML_MEDIA_TYPE = "text/html; charset=utf-8"
