"""
RTF payload validation.
"""

from ..base_validator import BinaryBasedValidator


class RTFValidator(BinaryBasedValidator):
    signatures = (b'{\\rtf',)

    def __init__(self):
        super().__init__("rtf")

    def _validate_content(self, content: bytes, **options) -> bool:
        # Editors sometimes emit a BOM or leading whitespace
        return super()._validate_content(content.lstrip(b'\xef\xbb\xbf \t\r\n'), **options)
