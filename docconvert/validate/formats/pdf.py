"""
PDF payload validation.
"""

from ..base_validator import BinaryBasedValidator


class PDFValidator(BinaryBasedValidator):
    """Accepts bodies with a %PDF- header in the first kilobyte.

    Structural damage past the header is left to Poppler, which reports it
    as a syntax error.
    """

    signatures = (b'%PDF-',)
    search_window = 1024

    def __init__(self):
        super().__init__("pdf")
